"""
Efficio Backend — Health Check Route
======================================

What:  GET /health for container health checks and load balancers.
How:   PINGs the capability store. Without the store nothing works, so an
       unreachable store makes the service unhealthy (HTTP 503).
"""

import logging
import time

from fastapi import APIRouter, Depends, Response, status

from efficio import __version__
from efficio.exceptions import StoreError
from efficio.routes.dependencies import get_services
from efficio.schemas.grocery import HealthResponse
from efficio.services.container import ServiceContainer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(
    response: Response,
    services: ServiceContainer = Depends(get_services),
) -> HealthResponse:
    store_status = "connected"
    overall = "healthy"
    try:
        if not await services.store.ping():
            raise StoreError(message="Store did not answer PING")
    except StoreError as e:
        store_status = "disconnected"
        overall = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning("Health check: store unreachable: %s", e.message)

    return HealthResponse(
        status=overall,
        version=__version__,
        store=store_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
