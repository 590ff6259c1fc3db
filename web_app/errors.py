"""Exception handlers mapping service errors to HTTP responses."""

import math

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shortener.common.logging_config import get_logger
from shortener.exceptions import (
    LinkNotFoundError,
    RateLimitExceededError,
    ShortenerError,
    ValidationError,
)
from shortener.expiry import format_remaining, format_timestamp

logger = get_logger("web.errors")


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message},
    )


async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, exc.error_code, str(exc))


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are reported as 400 rather than FastAPI's default 422."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
        for error in exc.errors()
    )
    return _error(status.HTTP_400_BAD_REQUEST, "invalid_request", f"Malformed request: {problems}")


async def handle_not_found(request: Request, exc: LinkNotFoundError) -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, exc.error_code, str(exc))


async def handle_rate_limit(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    remaining = format_remaining(exc.retry_after)
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        headers={"Retry-After": str(max(0, math.ceil(exc.retry_after.total_seconds())))},
        content={
            "success": False,
            "error": exc.error_code,
            "message": (
                f"Subnet {exc.subnet} has created {exc.limit} short links today. "
                f"Cooldown {remaining}"
            ),
            "limit": exc.limit,
            "subnet": exc.subnet,
            "client_ip": exc.client_ip,
            "cooldown_until": format_timestamp(exc.cooldown_until) if exc.cooldown_until else None,
            "cooldown_remaining": remaining,
        },
    )


async def handle_internal_error(request: Request, exc: ShortenerError) -> JSONResponse:
    """Backend failures are logged with their cause; clients get a generic message."""
    logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}", exc_info=exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the service error handlers to an application.

    Starlette picks the handler of the closest class in the exception's MRO,
    so ShortenerError only catches what the specific handlers do not.
    """
    app.add_exception_handler(ValidationError, handle_validation_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(LinkNotFoundError, handle_not_found)
    app.add_exception_handler(RateLimitExceededError, handle_rate_limit)
    app.add_exception_handler(ShortenerError, handle_internal_error)
