"""taskdeck - personal task management REST API."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.core import cache_client as cache_module
from src.core.config import constants, settings
from src.core.db_client import close_connection, init_db
from src.core.errors import (
    ErrorResponse,
    ErrorSeverity,
    RateLimitExceededError,
    ServiceError,
    classify_error_with_response,
)
from src.core.logging import configure_logfire, instrument_fastapi
from src.core.storage_client import storage_client
from src.interface.analytics_router import router as analytics_router
from src.interface.auth_router import router as auth_router
from src.interface.category_router import router as category_router
from src.interface.dependencies import first_error_message
from src.interface.notification_router import router as notification_router
from src.interface.task_router import router as task_router
from src.interface.user_router import router as user_router


logger = logging.getLogger(__name__)

DEFAULT_SECRET_KEY = "change-me-in-production"


async def check_cache_connectivity() -> None:
    """Verify the cache backend (optional service).

    Logs a warning if Redis is configured but unreachable; never fails startup.
    """
    cache = cache_module.cache_client
    if not cache.is_available:
        logger.warning("startup_validation", extra={"service": "cache", "status": "unavailable"})
        return

    if await cache.ping():
        logger.info("startup_validation", extra={"service": "cache", "status": "ok"})
    else:
        logger.warning("startup_validation", extra={"service": "cache", "status": "unavailable"})


def validate_startup_configuration() -> None:
    """Fail fast on configuration that is unsafe to serve with.

    Raises:
        ValueError: If a production deployment still uses the default secret
    """
    logger.info("startup_validation_begin")

    settings.require_credential("secret_key", "Access token signing")
    if settings.is_production and settings.secret_key == DEFAULT_SECRET_KEY:
        raise ValueError("SECRET_KEY must be changed before running in production.")
    if storage_client.is_remote:
        settings.require_credential("storage_api_key", "File storage")

    logger.info("startup_validation", extra={"stage": "credentials", "status": "ok"})


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Configure logging first so validation logs are captured
    configure_logfire()

    try:
        validate_startup_configuration()
    except ValueError as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\n❌ Startup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    await check_cache_connectivity()

    await init_db()
    logger.info("Database initialized")

    yield

    await cache_module.cache_client.close()
    await close_connection()
    logger.info("Shutdown complete")


app = FastAPI(
    title="taskdeck",
    description="Personal task management API",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)


@app.exception_handler(ServiceError)
async def service_error_handler(_request: Request, exc: ServiceError) -> JSONResponse:
    status_code, body = classify_error_with_response(exc)
    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(exc.retry_after), "X-RateLimit-Limit": str(exc.limit)}
    level = logging.INFO if exc.severity == ErrorSeverity.LOW else logging.WARNING
    logger.log(level, "Request rejected", extra={"status_code": status_code, "error_code": exc.code})
    return JSONResponse(content=body.model_dump(), status_code=status_code, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    body = ErrorResponse(message=first_error_message(exc.errors()))
    return JSONResponse(content=body.model_dump(), status_code=400)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    body = ErrorResponse(message=str(exc.detail))
    return JSONResponse(content=body.model_dump(), status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"path": request.url.path, "error": str(exc)})
    status_code, body = classify_error_with_response(exc)
    return JSONResponse(content=body.model_dump(), status_code=status_code)


# Register routers
for router in (auth_router, user_router, task_router, category_router, notification_router, analytics_router):
    app.include_router(router, prefix=constants.API_PREFIX)

# Locally stored uploads are served from the same origin
app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)
