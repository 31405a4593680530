"""APSAR Emergency API: Main FastAPI Application.

Call-out coordination, SAR missions, incidents and after-action review
for a volunteer search-and-rescue organisation.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import api_router
from .core import async_session_factory, close_db, get_settings, init_db
from .schemas import ErrorResponse
from .services import (
    ConflictError,
    CoordinationError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    NotificationDispatcher,
    UnauthorizedError,
    ValidationFailedError,
)

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS = [
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ValidationFailedError, status.HTTP_400_BAD_REQUEST),
]

HTTP_ERROR_KINDS = {
    status.HTTP_400_BAD_REQUEST: "ValidationError",
    status.HTTP_401_UNAUTHORIZED: "Unauthorized",
    status.HTTP_403_FORBIDDEN: "Forbidden",
    status.HTTP_404_NOT_FOUND: "Not Found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "Method Not Allowed",
    status.HTTP_409_CONFLICT: "Conflict",
}


def error_response(status_code: int, error: str, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message).model_dump(),
        headers=headers,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info(f"Starting {settings.app_name} ({settings.environment})")

    # Startup - skip init_db in production (schema is managed there)
    if not settings.is_production:
        await init_db()
    yield
    # Shutdown
    await app.state.dispatcher.aclose()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    ## APSAR Emergency API

    Coordination backend for the APSAR mobile client.

    ### Key Features

    - **Call-outs**: broadcast availability requests; one response per member, updated in place.
    - **SAR Missions & Incidents**: lifecycle state machines with command-gated transitions.
    - **Callout Reports**: draft, submit and review with an append-only review history.
    - **Notifications**: in-app rows written with the change, push delivery after commit.

    ### Authentication

    All endpoints except `/api/auth/login`, `/api/auth/refresh` and `/api/public/*`
    require a valid JWT in the `Authorization: Bearer <token>` header.
    """,
    openapi_url=f"{settings.api_prefix}/openapi.json",
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    lifespan=lifespan,
)

# Process-wide collaborators, swapped as a unit in tests
app.state.session_factory = async_session_factory
app.state.dispatcher = NotificationDispatcher.from_settings()

# Credentials cannot be combined with a wildcard origin
cors_origins = settings.allowed_origins or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials="*" not in cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH", "HEAD"],
    allow_headers=["*"],
    max_age=86400,
)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================


@app.exception_handler(CoordinationError)
async def coordination_error_handler(request: Request, exc: CoordinationError):
    """Render domain errors by their kind."""
    status_code = next(
        (code for cls, code in ERROR_STATUS if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    return error_response(status_code, exc.kind, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Authentication, role-gate and routing errors."""
    kind = HTTP_ERROR_KINDS.get(exc.status_code, "Error")
    return error_response(exc.status_code, kind, str(exc.detail), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    parts = []
    for error in errors[:5]:
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "ValidationError",
        "; ".join(parts) or "Invalid request",
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return error_response(
        status.HTTP_409_CONFLICT,
        "Conflict",
        "The change conflicts with existing data",
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
    message = "An unexpected error occurred" if settings.is_production else str(exc)[:500]
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        message,
    )


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "apsar_api.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
    )
