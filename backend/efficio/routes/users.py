"""
Efficio Backend — User Route Handlers
=======================================

What:  POST /api/user (register) and DELETE /api/user/{id} (delete account).
How:   Thin handlers: parse the body, call UserService, return its result.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status

from efficio.routes.dependencies import get_services, get_token
from efficio.schemas.grocery import ConnectionToken, ErrorResponse, UserCreate
from efficio.services.container import ServiceContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Users"])


@router.post(
    "/user",
    response_model=ConnectionToken,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid username, email or password", "model": ErrorResponse},
        409: {"description": "Username already registered", "model": ErrorResponse},
    },
    summary="Register a new user",
)
async def create_user(
    body: UserCreate,
    services: ServiceContainer = Depends(get_services),
) -> ConnectionToken:
    """Creates the account and returns a first session token."""
    return await services.users.register(body)


@router.delete(
    "/user/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"description": "Token missing or not this user's", "model": ErrorResponse}},
    summary="Delete a user and everything they own",
)
async def delete_user(
    user_id: str,
    token: Optional[str] = Depends(get_token),
    services: ServiceContainer = Depends(get_services),
) -> None:
    await services.users.delete_user(token, user_id)
