"""
API Errors

FastAPI handlers that turn raised errors into JSON error envelopes.
"""

from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded

from sportclub.core.errors import ApiError, ErrorCode
from sportclub.monitoring.logging import get_logger
from sportclub.monitoring.metrics import rate_limit_rejections_counter

logger = get_logger(__name__)


class RedirectRequired(Exception):
    """Raised by page guards when the access gate sends the user elsewhere."""

    def __init__(self, location: str):
        super().__init__(location)
        self.location = location


def error_body(code: ErrorCode, message: str) -> dict:
    return {
        "success": False,
        "error": {"code": code.value, "message": message},
        "metadata": {"timestamp": datetime.now(timezone.utc).isoformat()},
    }


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    logger.warning(
        "api_error",
        code=exc.code.value,
        message=exc.message,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message),
        headers=exc.headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors()]
    message = "Missing or invalid fields: " + ", ".join(f for f in fields if f)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(ErrorCode.MISSING_REQUIRED_FIELDS, message),
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render slowapi rejections in the error envelope with Retry-After."""
    rate_limit_rejections_counter.inc()
    logger.warning("rate_limit_exceeded", path=request.url.path, limit=str(exc.detail))
    response = JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=error_body(
            ErrorCode.RATE_LIMIT_EXCEEDED,
            "Too many requests, please try again later",
        ),
    )
    # Same header injection as slowapi's default handler
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)


async def redirect_handler(request: Request, exc: RedirectRequired) -> RedirectResponse:
    return RedirectResponse(url=exc.location, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(ErrorCode.INTERNAL_ERROR, str(exc) or "An unexpected error occurred"),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(RedirectRequired, redirect_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
