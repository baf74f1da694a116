"""VocabLoop Sync Backend API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from vocabloop.protocols import (
    AuthenticationError,
    NotConfiguredError,
    StorageError,
    ValidationError,
    VersionConflictError,
)

from .config import get_settings
from .database import NOT_CONFIGURED_MESSAGE, get_record_store
from .logging_config import configure_logging, get_logger
from .rate_limit import limiter
from .routes import auth_router, sync_router

logger = get_logger("vocabloop.api")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(f"Starting VocabLoop sync backend (debug={settings.debug})")
    yield
    logger.info("Shutting down VocabLoop sync backend")


app = FastAPI(
    title="VocabLoop Sync API",
    description="Snapshot push/pull/merge for offline vocabulary learning",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.middleware("http")
async def limit_body_and_add_headers(request: Request, call_next):
    """Reject oversized bodies and add security headers to every response."""
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > get_settings().max_body_bytes:
        response = JSONResponse(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            content={"ok": False, "message": "Request body too large."},
        )
    else:
        response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


# =============================================================================
# Error mapping: every failure is {ok: false, message}
# =============================================================================


def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "message": message},
        headers=headers,
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error(status.HTTP_400_BAD_REQUEST, str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return _error(status.HTTP_400_BAD_REQUEST, "Invalid request body.")


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    return _error(status.HTTP_401_UNAUTHORIZED, str(exc) or "Invalid or expired token.")


@app.exception_handler(VersionConflictError)
async def version_conflict_handler(request: Request, exc: VersionConflictError):
    logger.warning(f"Merge conflict: {exc}")
    return _error(
        status.HTTP_409_CONFLICT,
        "Cloud data changed during merge. Please sync again.",
    )


@app.exception_handler(NotConfiguredError)
async def not_configured_handler(request: Request, exc: NotConfiguredError):
    logger.error(f"Record store not configured: {exc}")
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, NOT_CONFIGURED_MESSAGE)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    # Log full error server-side; never leak internals to the client
    logger.error(f"Storage error: {exc!r} (cause: {exc.__cause__!r})")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error.")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


# Include routers
app.include_router(auth_router)
app.include_router(sync_router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "vocabloop-sync",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health")
async def health():
    """Detailed health check with an actual record store read."""
    db_status = "disconnected"
    try:
        store = get_record_store()
        await store.get("__health_check__")
        db_status = "connected"
    except NotConfiguredError:
        db_status = "not configured"
    except Exception as e:
        db_status = f"error: {str(e)[:50]}"

    overall_status = "healthy" if db_status == "connected" else "degraded"

    return {
        "status": overall_status,
        "database": db_status,
    }
