"""
Efficio Backend — Ordering
============================

What:  Sort weights of aisles and products: ordering helpers, the weight a
       new child receives, and batch reorder (drag-and-drop).
Who:   Aisle/Product repositories (weights and listings), PUT /api/sort_weight.
"""

import logging
from typing import Callable, List, Optional, Sequence, TypeVar

from efficio.exceptions import ValidationError
from efficio.schemas.grocery import EditWeight
from efficio.services import keys
from efficio.services.permissions import check_ownership
from efficio.services.sessions import SessionManager
from efficio.services.transaction import TransactionEngine
from efficio.store import KeyValueReader, StoreTransaction, WriteBatch

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 1e-6

T = TypeVar("T")


def weights_equal(a: float, b: float) -> bool:
    return abs(a - b) < WEIGHT_TOLERANCE


def sort_by_weight(items: Sequence[T]) -> List[T]:
    """
    Order aisles or products by sort_weight, then by name.

    Weights closer than WEIGHT_TOLERANCE count as equal so float noise from
    client-side drag-and-drop does not decide the order.
    """
    ordered = sorted(items, key=lambda item: (item.sort_weight, item.name))
    # Stable pass: collapse near-equal weights onto the name tie-break
    result: List[T] = []
    for item in ordered:
        position = len(result)
        while (
            position > 0
            and weights_equal(result[position - 1].sort_weight, item.sort_weight)
            and result[position - 1].name > item.name
        ):
            position -= 1
        result.insert(position, item)
    return result


async def next_sort_weight(
    reader: KeyValueReader,
    members_key: str,
    record_key: Callable[[str], str],
) -> float:
    """
    Weight for a new child of the parent whose membership set is `members_key`.

    0 for the first child, otherwise 1 + the largest sibling weight.
    """
    highest: Optional[float] = None
    for child_id in await reader.smembers(members_key):
        raw = await reader.hget(record_key(child_id), keys.SORT_WEIGHT)
        if raw is None:
            continue
        weight = float(raw)
        if highest is None or weight > highest:
            highest = weight
    return 0.0 if highest is None else highest + 1


class ReorderService:
    """Applies a batch of new weights to aisles and products in one commit."""

    def __init__(self, engine: TransactionEngine, sessions: SessionManager, aisles, products) -> None:
        self.engine = engine
        self.sessions = sessions
        self.aisles = aisles
        self.products = products

    async def change_sort_weight(self, token: Optional[str], request: EditWeight) -> None:
        """
        Set the weight of every listed aisle and product.

        Every id is ownership-checked inside the watched block before any
        write is queued, so a record deleted concurrently is reported as
        NotFoundError rather than recreated as a partial hash.

        Raises:
            ValidationError: the request lists neither aisles nor products
            Unauthorized / NotFoundError / PermissionDenied
            TransactionConflict: one of the records changed concurrently
        """
        if not request.has_at_least_a_field():
            raise ValidationError(message="At least one aisle or product must be present")
        user_id = await self.sessions.validate_session(token)
        aisles = request.aisles or []
        products = request.products or []

        watch = [keys.aisle_key(item.id) for item in aisles]
        watch += [keys.product_key(item.id) for item in products]

        async def body(tx: StoreTransaction) -> None:
            for item in aisles:
                check_ownership(user_id, await self.aisles.owner_of(item.id, tx), "aisle", item.id)
            for item in products:
                check_ownership(
                    user_id, await self.products.owner_of(item.id, tx), "product", item.id
                )
            batch = WriteBatch()
            for item in aisles:
                self.aisles.queue_sort_weight(batch, item.id, item.sort_weight)
            for item in products:
                self.products.queue_sort_weight(batch, item.id, item.sort_weight)
            tx.queue(batch)

        await self.engine.run(watch, body, operation="change_sort_weight")
        logger.info(
            "User %s reordered %d aisles and %d products", user_id, len(aisles), len(products)
        )
