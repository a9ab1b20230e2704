from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
import os
import traceback
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from app.core.config import settings
from app.core.database import get_session, init_db
from app.core.exceptions import (
    FlashcardException,
    ValidationError,
    NotFoundError,
    ConflictError,
    AuthorizationError,
    StoreUnavailable,
)

# Import models to register them with SQLModel
from app import models  # noqa: F401

# Import API router
from app.api.v1 import api_router

logger = logging.getLogger(__name__)

# Check if we're in development mode
IS_DEVELOPMENT = os.getenv("ENVIRONMENT", "production").lower() in ("development", "dev", "local")

app = FastAPI(title="Flashcard Review API", version="1.0.0")


def status_code_for(exc: FlashcardException) -> int:
    """HTTP status code for an application exception."""
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ConflictError):
        return status.HTTP_409_CONFLICT
    elif isinstance(exc, AuthorizationError):
        return status.HTTP_403_FORBIDDEN
    elif isinstance(exc, StoreUnavailable):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def jsonable_errors(exc: RequestValidationError):
    """Validation errors with their (possibly non-JSON) input context stringified."""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


# Add exception handler for validation errors to log details
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log validation errors with full details for debugging."""
    logger.error(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_errors(exc)},
    )


# Add exception handler for custom application exceptions
@app.exception_handler(FlashcardException)
async def flashcard_exception_handler(request: Request, exc: FlashcardException):
    """Handle custom application exceptions."""
    status_code = status_code_for(exc)
    content = {"detail": str(exc), "type": type(exc).__name__}
    for attribute in ("card_id", "session_id", "set_id"):
        value = getattr(exc, attribute, None)
        if value is not None:
            content[attribute] = value

    if isinstance(exc, StoreUnavailable):
        logger.error(f"Store unavailable on {request.method} {request.url.path}: {exc}")
    else:
        logger.warning(f"Application exception on {request.method} {request.url.path}: {type(exc).__name__}: {str(exc)}")
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Turn unhandled errors into a 500 JSON body; tracebacks only in development."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc)

    content = {
        "detail": "An internal server error occurred. Please try again later.",
        "type": "InternalServerError",
    }
    if IS_DEVELOPMENT:
        content = {
            "detail": str(exc),
            "type": type(exc).__name__,
            "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        }
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def create_tables():
    """Create missing tables; schema migrations are managed outside the service."""
    init_db()
    logger.info(f"Flashcard Review API ready under {settings.api_v1_prefix}")


@app.get("/")
async def root():
    return {
        "service": "Flashcard Review API",
        "version": app.version,
        "resources": [f"{settings.api_v1_prefix}/{name}" for name in ("cards", "sets", "sessions")],
        "docs": "/docs",
    }


@app.get("/health")
async def health(session: Session = Depends(get_session)):
    """Liveness plus a round trip to the database."""
    try:
        session.connection().execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check could not reach the database: {e}")
        raise StoreUnavailable(f"Database unreachable: {e}") from e
    return {"status": "healthy", "database": "ok"}


app.include_router(api_router, prefix=settings.api_v1_prefix)
