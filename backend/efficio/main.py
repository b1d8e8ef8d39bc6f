"""
Efficio Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() assembles middleware, exception handlers and routers, and
       owns the capability store lifecycle through the lifespan.
Who:   uvicorn (`uvicorn efficio.main:app`), and the tests, which pass their
       own InMemoryStore to create_app().

Lifecycle:
    Startup:
    1. Initialize logging
    2. Build the configured capability store (unless one was injected)
    3. PING it with exponential backoff (tenacity) until it answers
    4. Wire the ServiceContainer onto app.state

    Shutdown:
    1. Close the store's connection pool (only if the app created the store)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from efficio import __version__
from efficio.config import Settings, settings
from efficio.exceptions import (
    EfficioError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from efficio.middleware.logging import RequestLoggingMiddleware
from efficio.middleware.request_id import RequestIDMiddleware, request_id_var
from efficio.routes import aisles, health, misc, products, sessions, stores, users
from efficio.services.container import ServiceContainer
from efficio.store import CapabilityStore, create_store, wait_until_ready

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Request ids are included by the access logger and the error handlers.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-command debug output from these is too noisy
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Build the store and services on startup, release them on shutdown.

    A store injected through create_app() is used as-is and left open:
    whoever created it closes it.
    """
    config: Settings = app.state.config
    setup_logging(config.log_level)
    logger.info("=" * 60)
    logger.info("Efficio Backend %s starting up...", __version__)

    owned_store: Optional[CapabilityStore] = None
    if getattr(app.state, "services", None) is None:
        owned_store = create_store(config)
        try:
            await wait_until_ready(
                owned_store,
                attempts=config.connect_max_attempts,
                min_wait=config.connect_min_wait,
                max_wait=config.connect_max_wait,
            )
        except EfficioError:
            logger.error("Capability store unreachable at startup, giving up")
            await owned_store.close()
            raise
        app.state.services = ServiceContainer.from_settings(owned_store, config)

    logger.info("Server ready at http://%s:%d", config.backend_host, config.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Efficio Backend shutting down...")
    if owned_store is not None:
        await owned_store.close()
        app.state.services = None
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> str:
    # The Exception handler runs outside RequestIDMiddleware, after the ContextVar reset
    return getattr(request.state, "request_id", "") or request_id_var.get("")


def _error_body(error: str, message: str, rid: str, details: Optional[dict] = None) -> dict:
    body = {"error": error, "message": message, "request_id": rid}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the EfficioError hierarchy to JSON error responses.

    Handler hierarchy (most specific first, resolved along the MRO):
        ValidationError      → 400, with field details
        NotFoundError        → 404
        InternalError        → transient ones (TransactionConflict) keep their own
                               status + Retry-After: 0; others 500, generic message
        EfficioError         → the exception's own status (401/403/409)
        Exception            → 500, stack trace logged only
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = _request_id(request)
        logger.warning("[%s] Validation error: %s", rid, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, rid, exc.context),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        rid = _request_id(request)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, rid),
        )

    @app.exception_handler(InternalError)
    async def handle_internal_error(request: Request, exc: InternalError):
        rid = _request_id(request)
        if exc.transient:
            logger.warning("[%s] %s | Context: %s", rid, type(exc).__name__, exc.context)
            return JSONResponse(
                status_code=exc.status_code,
                content=_error_body(exc.error_code, exc.message, rid),
                headers={"Retry-After": "0"},
            )
        logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(
                "server_error", "An internal error occurred. Please try again later.", rid
            ),
        )

    @app.exception_handler(EfficioError)
    async def handle_efficio_error(request: Request, exc: EfficioError):
        rid = _request_id(request)
        logger.info("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, rid),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = _request_id(request)
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
                rid,
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    store: Optional[CapabilityStore] = None,
    config: Optional[Settings] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        store: capability store to serve from. When given, services are wired
               immediately and the lifespan neither creates nor closes a store.
        config: settings to use instead of the process-wide `settings`
    """
    config = config or settings

    app = FastAPI(
        title="Efficio API",
        description="Grocery lists: stores, aisles and products, shared across devices.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.services = (
        ServiceContainer.from_settings(store, config) if store is not None else None
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Executed in reverse order of addition: RequestID → Logging → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(users.router)
    app.include_router(sessions.router)
    app.include_router(stores.router)
    app.include_router(aisles.router)
    app.include_router(products.router)
    app.include_router(misc.router)
    app.include_router(health.router)

    return app


# uvicorn expects `efficio.main:app` to be importable
app = create_app()
