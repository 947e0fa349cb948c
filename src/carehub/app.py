"""
FastAPI application factory and main app configuration.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .adapters.db.memory.document_store import InMemoryDocumentStore
from .adapters.db.mongo.client import create_motor_client
from .adapters.db.mongo.document_store import MongoDocumentStore
from .adapters.identity.firebase_identity import FirebaseIdentityProvider
from .api.errors import APIError
from .api.routers import (
    ai,
    appointments,
    auth,
    companies,
    doctors,
    health,
    job_listings,
    medical_records,
    messages,
    notifications,
    patients,
    prescriptions,
)
from .api.utils.responses import fail, ok
from .core.config import get_settings
from .core.structured_logger import configure_logging
from .core.utils.retry import retry_async
from .middleware.performance_middleware import PerformanceMiddleware
from .middleware.request_id_middleware import RequestIDMiddleware

logger = logging.getLogger(__name__)

RESOURCE_ROUTERS = (
    auth.router,
    doctors.router,
    patients.router,
    appointments.router,
    prescriptions.router,
    medical_records.router,
    companies.router,
    job_listings.router,
    messages.router,
    notifications.router,
    ai.router,
    health.router,
)

HTTP_ERROR_CODES = {
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def create_document_store(settings):
    """Document store for the configured backend."""
    if settings.database.backend == "memory":
        logger.warning("Using the in-memory document store; data is lost on restart")
        return InMemoryDocumentStore()
    return MongoDocumentStore(create_motor_client(settings.database), settings.database.db_name)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    configure_logging(settings.logging)
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.app_env} | debug={settings.debug}")

    store = create_document_store(settings)
    try:
        await retry_async(store.ping)
        logger.info(f"Document store ready (backend={settings.database.backend})")
    except Exception as e:
        # Keep serving; /health reports the outage
        logger.error(f"Document store unreachable at startup: {e}")

    app.state.document_store = store
    app.state.identity_provider = FirebaseIdentityProvider(settings.firebase)
    app.state.started_at = time.monotonic()

    yield

    logger.info(f"Shutting down {settings.app_name}")
    await store.close()


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "") or ""


def _failure_code(request: Request) -> str:
    """``<ROUTE_NAME>_FAILED`` for the matched route, ``INTERNAL_ERROR`` otherwise."""
    route = request.scope.get("route")
    name = getattr(route, "name", None)
    return f"{name.upper()}_FAILED" if name else "INTERNAL_ERROR"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        log = logger.error if exc.http_status >= 500 else logger.warning
        log(f"APIError: {exc.code} ({exc.http_status}) {exc.message} | request_id={_request_id(request)}")
        return fail(exc.code, exc.message, exc.http_status, exc.details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if any(error.get("type") == "json_invalid" for error in errors):
            logger.warning(f"Malformed JSON on {request.method} {request.url.path} | request_id={_request_id(request)}")
            return fail("INVALID_JSON", "Request body is not valid JSON", 400)

        details = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ())[1:]),
                "message": error.get("msg", "Validation error"),
                "type": error.get("type"),
            }
            for error in errors
        ]
        logger.warning(
            f"ValidationError on {request.method} {request.url.path}: {details} | request_id={_request_id(request)}"
        )
        return fail("VALIDATION_ERROR", "Invalid request data", 400, details)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        return fail(code, str(exc.detail), exc.status_code)

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception):
        logger.exception(
            f"Unhandled error on {request.method} {request.url.path} | request_id={_request_id(request)}"
        )
        return fail(_failure_code(request), "An unexpected error has occurred. Please try again later.", 500)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Healthcare platform backend: care teams, patients, scheduling and prescriptions",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    allow_origins = settings.cors.allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        # Credentials are never sent with a wildcard origin
        allow_credentials=settings.cors.allow_credentials and "*" not in allow_origins,
        allow_methods=settings.cors.allowed_methods,
        allow_headers=settings.cors.allowed_headers,
        expose_headers=["X-Request-ID", "X-Process-Time"],
        max_age=600,
    )
    app.add_middleware(PerformanceMiddleware)
    # Outermost, so every other layer sees request.state.request_id
    app.add_middleware(RequestIDMiddleware)

    for router in RESOURCE_ROUTERS:
        app.include_router(router, prefix=settings.api_prefix)
    # Unversioned liveness path for load balancers
    app.include_router(health.router, include_in_schema=False)

    register_exception_handlers(app)

    @app.get("/", tags=["health"], include_in_schema=False)
    async def root():
        """Service information."""
        return ok(
            {
                "service": settings.app_name,
                "version": settings.app_version,
                "environment": settings.app_env,
                "status": "running",
                "docs": "/docs",
                "api": settings.api_prefix,
                "health": f"{settings.api_prefix}/health",
            }
        )

    return app


app = create_app()
