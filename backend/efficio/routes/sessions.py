"""
Efficio Backend — Session Route Handlers
==========================================

What:  POST /api/login and POST /api/logout/{user_id}.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from efficio.routes.dependencies import get_services, get_token
from efficio.schemas.grocery import AuthInfo, ConnectionToken, ErrorResponse
from efficio.services.container import ServiceContainer

router = APIRouter(prefix="/api", tags=["Sessions"])


@router.post(
    "/login",
    response_model=ConnectionToken,
    responses={401: {"description": "Invalid username or password", "model": ErrorResponse}},
    summary="Open a session",
)
async def login(
    body: AuthInfo,
    services: ServiceContainer = Depends(get_services),
) -> ConnectionToken:
    return await services.users.login(body)


@router.post(
    "/logout/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"description": "Token missing or not this user's", "model": ErrorResponse}},
    summary="Revoke the session token sent with the request",
)
async def logout(
    user_id: str,
    token: Optional[str] = Depends(get_token),
    services: ServiceContainer = Depends(get_services),
) -> None:
    await services.sessions.logout(token, user_id)
