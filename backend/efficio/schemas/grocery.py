"""
Efficio Backend — Pydantic Request/Response Schemas
=====================================================

What:  Pydantic models for the entities the services return and the requests
       the HTTP layer accepts.
How:   Services build these models from stored hash fields; FastAPI validates
       request bodies against them and serializes responses from them.
Who:   Services (as return types), route handlers, tests.

Stored field encoding (see services.keys for the key layout):
    - floats as repr(), ints as str()
    - booleans as "1" / "0"
    - units by their enum value ("count", "gram", "milliliter")
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Entities — What the services return
# ══════════════════════════════════════════════════════════════════════════


class Unit(str, Enum):
    COUNT = "count"
    GRAM = "gram"
    MILLILITER = "milliliter"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "Unit":
        """Decode a stored unit; anything unknown reads back as COUNT."""
        try:
            return cls(raw)
        except ValueError:
            return cls.COUNT


def encode_bool(value: bool) -> str:
    return "1" if value else "0"


def decode_bool(raw: Optional[str]) -> bool:
    return raw in ("1", "true", "True")


class Product(BaseModel):
    """
    What:  One line of a grocery list.
    Who:   Returned by product creation and nested inside Aisle listings.
    """

    product_id: str = Field(description="Opaque product id")
    name: str
    quantity: int = Field(default=1)
    unit: Unit = Field(default=Unit.COUNT)
    is_done: bool = Field(default=False, description="Checked off in the shop")
    sort_weight: float = Field(default=0.0, description="Ordering hint inside the aisle")


class Aisle(BaseModel):
    """
    What:  A section of a store holding products.
    Who:   Returned by aisle creation (with no products) and nested inside Store.
    """

    aisle_id: str = Field(description="Opaque aisle id")
    name: str
    sort_weight: float = Field(default=0.0, description="Ordering hint inside the store")
    products: List[Product] = Field(default_factory=list)


class Store(BaseModel):
    """Full store with its aisles and their products, as GET /store/{id} returns it."""

    store_id: str = Field(description="Opaque store id")
    name: str
    aisles: List[Aisle] = Field(default_factory=list)


class StoreLight(BaseModel):
    """Shallow store: what the store list shows."""

    store_id: str
    name: str


class StoreLightList(BaseModel):
    stores: List[StoreLight] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Requests — What callers send
# ══════════════════════════════════════════════════════════════════════════


class NameData(BaseModel):
    """Body of every create/rename request."""

    name: str = Field(min_length=1, max_length=200)


class EditProduct(BaseModel):
    """
    What:  Partial product update. Absent fields are left untouched.
    Who:   PUT /api/product/{id}.

    At least one field must be set; ProductRepository.edit enforces it so the
    rule also holds for callers that bypass FastAPI.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    quantity: Optional[int] = Field(default=None, ge=0)
    unit: Optional[Unit] = None
    is_done: Optional[bool] = None

    def has_at_least_a_field(self) -> bool:
        return any(
            value is not None
            for value in (self.name, self.quantity, self.unit, self.is_done)
        )


class ItemWeight(BaseModel):
    id: str = Field(description="Aisle or product id")
    sort_weight: float


class EditWeight(BaseModel):
    """
    What:  Batch reorder request (drag-and-drop result).
    Who:   PUT /api/sort_weight.
    """

    aisles: Optional[List[ItemWeight]] = None
    products: Optional[List[ItemWeight]] = None

    def has_at_least_a_field(self) -> bool:
        return bool(self.aisles) or bool(self.products)


class UserCreate(BaseModel):
    """
    Registration request.

    Fields are plain strings here; UserService.register validates them and
    raises ValidationError, so the same rules apply outside HTTP.
    """

    username: str
    email: str
    password: str


class AuthInfo(BaseModel):
    """Login request."""

    username: str
    password: str


class ConnectionToken(BaseModel):
    """Returned by registration and login."""

    token: str = Field(description="Session token, sent back in the x-auth-token header")
    user_id: str


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Error body shared by every failing endpoint.

    Example:
        {
            "error": "permission_denied",
            "message": "User does not have permission to edit this resource",
            "details": null,
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy or unhealthy")
    version: str
    store: str = Field(description="Store connectivity: connected, disconnected")
    uptime_seconds: float
