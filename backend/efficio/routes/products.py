"""
Efficio Backend — Product Route Handlers
==========================================

What:  PUT/DELETE /api/product/{id}.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from efficio.routes.dependencies import get_services, get_token
from efficio.schemas.grocery import EditProduct, ErrorResponse
from efficio.services.container import ServiceContainer

router = APIRouter(prefix="/api", tags=["Products"])


@router.put(
    "/product/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        400: {"description": "No field to change", "model": ErrorResponse},
        403: {"description": "Not the owner", "model": ErrorResponse},
        404: {"description": "No such product", "model": ErrorResponse},
    },
    summary="Edit a product (partial)",
)
async def edit_product(
    product_id: str,
    body: EditProduct,
    token: Optional[str] = Depends(get_token),
    services: ServiceContainer = Depends(get_services),
) -> None:
    await services.products.edit(token, product_id, body)


@router.delete(
    "/product/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        403: {"description": "Not the owner", "model": ErrorResponse},
        404: {"description": "No such product", "model": ErrorResponse},
    },
    summary="Delete a product",
)
async def delete_product(
    product_id: str,
    token: Optional[str] = Depends(get_token),
    services: ServiceContainer = Depends(get_services),
) -> None:
    await services.products.delete(token, product_id)
