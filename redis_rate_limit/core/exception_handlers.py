"""Global exception handlers for consistent error responses.

Design:
- RateLimitExceededAppError -> 429 with the limiter's rendered body and headers
- StoreAppError -> 500 with the limiter's internal error body
- Other AppError -> 400
- Unexpected Exception -> generic 500 (safety net, never leaks details)
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from redis_rate_limit.core.errors import AppError, RateLimitExceededAppError, StoreAppError
from redis_rate_limit.core.options import DEFAULT_INTERNAL_ERROR_MESSAGE

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors.

    Bodies rendered by a limiter are returned verbatim, since clients rely on
    the configured message shapes.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and body.
    """
    if isinstance(exc, RateLimitExceededAppError):
        return JSONResponse(status_code=429, content=exc.body, headers=exc.headers or None)

    if isinstance(exc, StoreAppError):
        logger.warning(
            "app_error_handled",
            extra={
                "error_code": exc.code,
                "error_message": exc.message,
                "status_code": 500,
                "request_path": request.url.path,
            },
        )
        body = exc.body if exc.body is not None else DEFAULT_INTERNAL_ERROR_MESSAGE
        return JSONResponse(status_code=500, content=body)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": 400,
            "has_details": bool(exc.details),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(status_code=400, content={"error": error_content})


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning the generic
    internal error body. No stack traces reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(status_code=500, content=DEFAULT_INTERNAL_ERROR_MESSAGE)


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
