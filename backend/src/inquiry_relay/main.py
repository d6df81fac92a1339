"""Inquiry Relay - Main FastAPI Application

Accepts website inquiries over HTTP and delivers them to the site owner's
mailbox through a pooled, rate-limited SMTP relay connection.

This module creates and configures the FastAPI application, including:
- Lifespan wiring of the shared relay pool, dispatcher and admission control
- Middleware (request ID correlation, CORS)
- Exception handlers mapping the error taxonomy to HTTP responses
- Inquiry and observability routers
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .admission.rate_limit import AdmissionControl, WindowStore
from .config import Settings, get_settings
from .delivery.dispatcher import Dispatcher
from .delivery.pool import RelayConnectionPool
from .delivery.ports import ConnectionFactory
from .delivery.reporting import failure_payload
from .delivery.smtp_connection import smtp_connection_factory
from .errors import DeliveryError, RateLimitExceeded, ValidationError
from .inquiries.router import router as inquiries_router
from .observability.logging_config import configure_logging
from .observability.middleware import RequestIDMiddleware
from .observability.router import router as observability_router

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    - Startup: build the relay pool, dispatcher and admission control once,
      then verify the relay (failure is logged, startup continues)
    - Shutdown: close relay connections
    """
    settings: Settings = app.state.settings
    logger.info("Inquiry relay starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Relay: {settings.SMTP_HOST}:{settings.SMTP_PORT} (secure={settings.SMTP_SECURE})")

    factory = app.state.connection_factory or smtp_connection_factory(settings)
    pool = RelayConnectionPool.from_settings(settings, factory)
    app.state.pool = pool
    app.state.dispatcher = Dispatcher.from_settings(settings, pool, sleep=app.state.sleep)
    app.state.admission = AdmissionControl.from_settings(settings, store=app.state.window_store)
    app.state.started_at = time.monotonic()

    if settings.SMTP_VERIFY_ON_STARTUP:
        await pool.verify()

    yield

    logger.info("Inquiry relay shutting down...")
    await pool.close()


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def _validation_response(error: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": "validation_error",
            "message": error.message,
            "details": error.details,
        },
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Turn schema failures into 400 ValidationError responses."""
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    fields = ", ".join(d["field"] for d in details if d["field"]) or "request body"
    logger.warning(f"Validation error on {request.method} {request.url.path}: {fields}")
    return _validation_response(
        ValidationError(f"Missing or invalid fields: {fields}", details=details)
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "success": False,
            "error": "rate_limited",
            "message": "Too many requests. Please wait before trying again.",
            "retryAfter": exc.retry_after,
        },
        headers={"Retry-After": str(exc.retry_after)},
    )


async def delivery_error_handler(request: Request, exc: DeliveryError) -> JSONResponse:
    """Classified delivery failure.

    Logs the relay detail but returns only the kind-specific user text.
    """
    logger.error(
        f"Delivery failed on {request.method} {request.url.path}: {exc.message}",
        extra={"error_kind": exc.kind.value, "smtp_code": exc.smtp_code},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=failure_payload(exc),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        content = {
            "success": False,
            "error": "not_found",
            "message": f"Route {request.method} {request.url.path} not found",
        }
    else:
        content = {"success": False, "error": "http_error", "message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions.

    Full details are logged but not exposed to the client.
    """
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}",
        exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "internal_error",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    *,
    connection_factory: Optional[ConnectionFactory] = None,
    window_store: Optional[WindowStore] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to use (defaults to environment settings)
        connection_factory: Relay connection factory (defaults to aiosmtplib)
        window_store: Admission window store (defaults per settings)
        sleep: Backoff sleep used by the dispatcher
    """
    settings = settings or get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    app = FastAPI(
        title="Inquiry Relay API",
        description="Delivers website inquiries to the owner's mailbox via SMTP",
        version=VERSION,
        docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.connection_factory = connection_factory
    app.state.window_store = window_store
    app.state.sleep = sleep

    # Request ID Middleware (must be first for proper correlation)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )

    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(DeliveryError, delivery_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(observability_router)
    app.include_router(inquiries_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, Any]:
        return {"name": "Inquiry Relay API", "version": VERSION, "status": "running"}

    return app
