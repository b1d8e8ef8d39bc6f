"""
Efficio Backend — Request ID Middleware
=========================================

What:  Gives every request a short correlation id and returns it in the
       X-Request-ID response header.
How:   Reuses a client-sent X-Request-ID or generates one, stores it in a
       ContextVar (read by the access log and the error handlers) and on
       request.state.
Who:   Applied to every request, before the logging middleware.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a request id (client-provided or 8 hex chars of a UUID4)."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = rid
        return response
