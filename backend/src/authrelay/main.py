"""Auth Relay - FastAPI Application

This module creates and configures the FastAPI application for the relay.
"""

import asyncio
import traceback
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.auth import router as auth_router
from .api.health import router as health_router
from .api.proxy import router as proxy_router
from .core.config import get_settings_instance
from .core.exceptions import RelayException, generate_error_id
from .core.http_client import close_http_client
from .core.logging import get_logger, setup_logging
from .core.middleware import RequestIDMiddleware, TimingMiddleware
from .core.readiness import DirectoryGate, DirectoryReadiness, initialize_directory
from .core.state_store import StateStore
from .services.directory_service import IdentityDirectory
from .services.proxy_service import AuthHandlerProxy

logger = get_logger(__name__)
settings = get_settings_instance()


def get_request_context(request: Request) -> dict[str, Any]:
    """Extract loggable request context. Query strings and headers are left out on purpose."""
    return {
        "method": request.method,
        "path": request.url.path,
        "client_host": request.client.host if request.client else None,
        "request_id": getattr(request.state, "request_id", None),
    }


def install_directory(app: FastAPI, gate: DirectoryGate) -> None:
    """Publish the directory gate (and the adapter when ready) on app.state."""
    app.state.directory_gate = gate
    app.state.identity_directory = (
        IdentityDirectory(gate.app, timeout_seconds=settings.external_timeout_seconds) if gate.is_ready() else None
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging()

    logger.info("Starting Auth Relay...")
    logger.info(f"Version: {settings.version}")
    logger.info(f"Environment: {settings.environment}")

    # Evaluated exactly once; never re-checked at request time
    gate = await asyncio.to_thread(initialize_directory, settings)
    install_directory(app, gate)
    logger.info(
        "Directory readiness evaluated",
        extra={"directory_initialized": gate.is_ready(), "directory_detail": gate.readiness.detail},
    )

    if not settings.google_oauth_enabled:
        logger.warning("GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET not set; /auth/google endpoints will fail")
    if not app.state.auth_handler_proxy.enabled:
        logger.warning("RELAY_AUTH_HANDLER_UPSTREAM not set; /__/auth proxy disabled")
    if settings.enforce_state:
        logger.info("Authorization state enforcement enabled", extra={"state_ttl_seconds": settings.state_ttl_seconds})

    yield

    logger.info("Shutting down Auth Relay...")
    try:
        await close_http_client()
        logger.info("HTTP client connections closed")
    except Exception as e:
        logger.error(f"Error closing HTTP client connections: {e}")
    try:
        gate.close()
    except ValueError as e:
        logger.warning(f"Error releasing Firebase app: {e}")
    logger.info("Auth Relay shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="OAuth to Firebase identity relay for native clients",
        version=settings.version,
        debug=settings.debug,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # Safe defaults until lifespan startup evaluates the directory
    install_directory(app, DirectoryGate(DirectoryReadiness(available=False, detail="Not initialized")))
    app.state.state_store = StateStore(ttl_seconds=settings.state_ttl_seconds, max_entries=settings.state_max_entries)
    app.state.auth_handler_proxy = AuthHandlerProxy(settings.auth_handler_upstream)

    setup_middleware(app)
    setup_exception_handlers(app)
    setup_routes(app)

    logger.info("Auth Relay FastAPI application created successfully")
    return app


def setup_middleware(app: FastAPI) -> None:
    """Register request ID, timing and CORS middleware."""
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(TimingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=settings.allowed_origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register JSON error handlers.

    The callback route never reaches these: it converts every failure into a
    deep-link redirect itself. They serve the init, proxy and health routes.
    """

    @app.exception_handler(RelayException)
    async def relay_exception_handler(request: Request, exc: RelayException):
        """Handle relay exceptions with structured logging."""
        error_id = generate_error_id() if exc.status_code >= 500 else None

        if exc.status_code >= 500:
            logger.error(
                "Relay server error",
                extra={
                    "error_id": error_id,
                    "error_code": exc.error_code,
                    "error_message": exc.message,
                    "details": exc.details,
                    "request_context": get_request_context(request),
                },
            )
        else:
            logger.warning(
                "Relay client error",
                extra={
                    "error_code": exc.error_code,
                    "error_message": exc.message,
                    "details": exc.details,
                    "request_context": get_request_context(request),
                },
            )

        error_response = {
            "error": {
                "code": exc.error_code,
                "message": exc.message,
                "details": exc.details,
            }
        }
        if error_id:
            error_response["error"]["error_id"] = error_id

        return JSONResponse(status_code=exc.status_code, content=error_response)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions (404s for unknown routes and the like)."""
        if exc.status_code >= 500:
            logger.error("HTTP server error", extra={"status_code": exc.status_code, "request_context": get_request_context(request)})
        else:
            logger.warning("HTTP client error", extra={"status_code": exc.status_code, "request_context": get_request_context(request)})

        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": f"HTTP_{exc.status_code}", "message": exc.detail, "details": {}}},
            headers=getattr(exc, "headers", None) or None,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors without echoing input values."""
        fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
        return JSONResponse(
            status_code=422,
            content={"error": {"code": "VALIDATION_ERROR", "message": "Invalid request", "details": {"fields": fields}}},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        error_id = generate_error_id()
        include_traceback = settings.debug or settings.environment == "development"

        logger.error(
            "Unhandled exception",
            extra={
                "error_id": error_id,
                "exception_type": type(exc).__name__,
                "request_context": get_request_context(request),
            },
            exc_info=include_traceback,
        )

        error_response: dict[str, Any] = {
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "Internal server error",
                "error_id": error_id,
                "details": {},
            }
        }
        if include_traceback:
            error_response["error"]["details"] = {
                "exception_type": type(exc).__name__,
                "traceback": traceback.format_exception(exc)[-3:],
            }

        return JSONResponse(status_code=500, content=error_response)


def setup_routes(app: FastAPI) -> None:
    """Configure application routes."""
    app.include_router(auth_router)
    app.include_router(proxy_router)
    app.include_router(health_router)


# Configure logging before app instantiation; lifespan's call is a no-op
setup_logging()

app = create_app()
