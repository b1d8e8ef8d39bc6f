"""
Efficio Backend — Aisle Route Handlers
========================================

What:  PUT/DELETE /api/aisle/{id} and POST /api/aisle/{id}/product.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from efficio.routes.dependencies import get_services, get_token
from efficio.schemas.grocery import ErrorResponse, NameData, Product
from efficio.services.container import ServiceContainer

router = APIRouter(prefix="/api", tags=["Aisles"])

_ERRORS = {
    401: {"description": "Not logged in", "model": ErrorResponse},
    403: {"description": "Not the owner", "model": ErrorResponse},
    404: {"description": "No such aisle", "model": ErrorResponse},
}


@router.put(
    "/aisle/{aisle_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_ERRORS,
    summary="Rename an aisle",
)
async def rename_aisle(
    aisle_id: str,
    body: NameData,
    token: Optional[str] = Depends(get_token),
    services: ServiceContainer = Depends(get_services),
) -> None:
    await services.aisles.rename(token, aisle_id, body.name)


@router.delete(
    "/aisle/{aisle_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_ERRORS,
    summary="Delete an aisle and its products",
)
async def delete_aisle(
    aisle_id: str,
    token: Optional[str] = Depends(get_token),
    services: ServiceContainer = Depends(get_services),
) -> None:
    await services.aisles.delete(token, aisle_id)


@router.post(
    "/aisle/{aisle_id}/product",
    response_model=Product,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
    summary="Add a product to an aisle",
)
async def create_product(
    aisle_id: str,
    body: NameData,
    token: Optional[str] = Depends(get_token),
    services: ServiceContainer = Depends(get_services),
) -> Product:
    return await services.products.create(token, aisle_id, body.name)
