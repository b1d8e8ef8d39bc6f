"""
Efficio Backend — Miscellaneous Route Handlers
================================================

What:  PUT /api/sort_weight (batch reorder) and POST /api/nuke (debug flush).

POST /api/nuke wipes the whole store. It answers 404 unless the
ENABLE_FLUSH_ENDPOINT setting is true.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status

from efficio.exceptions import NotFoundError
from efficio.routes.dependencies import get_services, get_token
from efficio.schemas.grocery import EditWeight, ErrorResponse
from efficio.services.container import ServiceContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Misc"])


@router.put(
    "/sort_weight",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        400: {"description": "Neither aisles nor products given", "model": ErrorResponse},
        403: {"description": "One of the items is not the caller's", "model": ErrorResponse},
    },
    summary="Set the sort weights of aisles and products in one commit",
)
async def change_sort_weight(
    body: EditWeight,
    token: Optional[str] = Depends(get_token),
    services: ServiceContainer = Depends(get_services),
) -> None:
    await services.reorder.change_sort_weight(token, body)


@router.post(
    "/nuke",
    status_code=status.HTTP_204_NO_CONTENT,
    include_in_schema=False,
)
async def nuke(
    request: Request,
    services: ServiceContainer = Depends(get_services),
) -> None:
    if not request.app.state.config.enable_flush_endpoint:
        raise NotFoundError(resource="endpoint")
    logger.warning("Flushing the whole capability store")
    await services.store.flush_all()
