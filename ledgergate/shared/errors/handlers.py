"""Exception handlers translating errors into the API's JSON error shape."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from .exceptions import ApiException

logger = logging.getLogger(__name__)


async def api_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render an ApiException with its status code and headers."""
    assert isinstance(exc, ApiException)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render request-body validation errors as `validation_failed`."""
    assert isinstance(exc, RequestValidationError)
    errors = [
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}" for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content={"error": "validation_failed", "message": "Request validation failed", "errors": errors},
    )


async def auth_rate_limit_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle per-IP rate limit exceeded errors on the auth endpoints."""
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"error": "rate_limit_exceeded", "message": "Too many requests. Try again later."},
    )


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected errors with full context and return an opaque response."""
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc!r}",
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "message": "An unexpected error occurred"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiException, api_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, auth_rate_limit_handler)
    app.add_exception_handler(Exception, internal_error_handler)
