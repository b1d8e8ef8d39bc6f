"""
Efficio Backend — Route Dependencies
======================================

What:  FastAPI dependencies shared by the route modules.
How:   The ServiceContainer lives on app.state (set by the lifespan); the
       session token travels in the `x-auth-token` header and is passed to
       services untouched, so a missing header becomes Unauthorized there.
"""

from typing import Optional

from fastapi import Header, Request

from efficio.services.container import ServiceContainer


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_token(x_auth_token: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_auth_token
