"""
Efficio Backend — Store Route Handlers
========================================

What:  Store CRUD under /api/store, plus aisle creation inside a store.

Endpoints:
    GET    /api/store              caller's stores (shallow)
    POST   /api/store              create
    GET    /api/store/{id}         one store with aisles and products
    PUT    /api/store/{id}         rename
    DELETE /api/store/{id}         delete with every aisle and product
    POST   /api/store/{id}/aisle   create an aisle in the store
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status

from efficio.routes.dependencies import get_services, get_token
from efficio.schemas.grocery import Aisle, ErrorResponse, NameData, Store, StoreLightList
from efficio.services.container import ServiceContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Stores"])

_ERRORS = {
    401: {"description": "Not logged in", "model": ErrorResponse},
    403: {"description": "Not the owner", "model": ErrorResponse},
    404: {"description": "No such store", "model": ErrorResponse},
}


@router.get("/store", response_model=StoreLightList, summary="List the caller's stores")
async def list_stores(
    token: Optional[str] = Depends(get_token),
    services: ServiceContainer = Depends(get_services),
) -> StoreLightList:
    return await services.stores.list_for_user(token)


@router.post(
    "/store",
    response_model=Store,
    status_code=status.HTTP_201_CREATED,
    responses={401: _ERRORS[401]},
    summary="Create a store",
)
async def create_store(
    body: NameData,
    token: Optional[str] = Depends(get_token),
    services: ServiceContainer = Depends(get_services),
) -> Store:
    return await services.stores.create(token, body.name)


@router.get("/store/{store_id}", response_model=Store, responses=_ERRORS, summary="Get a store")
async def get_store(
    store_id: str,
    token: Optional[str] = Depends(get_token),
    services: ServiceContainer = Depends(get_services),
) -> Store:
    return await services.stores.get(token, store_id)


@router.put(
    "/store/{store_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_ERRORS,
    summary="Rename a store",
)
async def rename_store(
    store_id: str,
    body: NameData,
    token: Optional[str] = Depends(get_token),
    services: ServiceContainer = Depends(get_services),
) -> None:
    await services.stores.rename(token, store_id, body.name)


@router.delete(
    "/store/{store_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_ERRORS,
    summary="Delete a store and its contents",
)
async def delete_store(
    store_id: str,
    token: Optional[str] = Depends(get_token),
    services: ServiceContainer = Depends(get_services),
) -> None:
    await services.stores.delete(token, store_id)


@router.post(
    "/store/{store_id}/aisle",
    response_model=Aisle,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
    summary="Create an aisle in a store",
)
async def create_aisle(
    store_id: str,
    body: NameData,
    token: Optional[str] = Depends(get_token),
    services: ServiceContainer = Depends(get_services),
) -> Aisle:
    return await services.aisles.create(token, store_id, body.name)
