"""
Structured Logging Configuration

Configures structured logging with JSON output for production.
"""

import logging
import sys
import time
import uuid

import structlog

from sportclub.config import settings
from sportclub.monitoring.metrics import api_request_duration, api_requests_total

CORRELATION_HEADER = "x-correlation-id"
CAUSATION_HEADER = "x-causation-id"
UNMATCHED_ROUTE = "unmatched"


def setup_logging() -> None:
    """Configure structured logging for the application."""

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Set log levels for noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class RequestLoggingMiddleware:
    """
    Middleware for logging HTTP requests.

    Also binds correlation and causation ids to the structlog context for the
    duration of the request and echoes them back in the ``X-Correlation-ID``
    and ``X-Causation-ID`` headers.
    """

    def __init__(self, app):
        self.app = app
        self.logger = get_logger("api.requests")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.monotonic()
        correlation_id = _header(scope, CORRELATION_HEADER) or str(uuid.uuid4())
        causation_id = _header(scope, CAUSATION_HEADER) or str(uuid.uuid4())
        status_code = 500  # Default in case of error

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = list(message.get("headers", []))
                headers.append((b"x-correlation-id", correlation_id.encode("latin-1")))
                headers.append((b"x-causation-id", causation_id.encode("latin-1")))
                message["headers"] = headers
            await send(message)

        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            causation_id=causation_id,
        )
        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration = time.monotonic() - start_time
            # Routing has run by now, so the matched template is in the scope
            endpoint = route_label(scope)

            api_requests_total.labels(
                method=scope["method"],
                endpoint=endpoint,
                status_code=str(status_code),
            ).inc()
            api_request_duration.labels(
                method=scope["method"],
                endpoint=endpoint,
            ).observe(duration)

            self.logger.info(
                "request_completed",
                method=scope["method"],
                path=scope["path"],
                endpoint=endpoint,
                status_code=status_code,
                duration_ms=round(duration * 1000, 2),
                client=(scope.get("client") or ["unknown"])[0],
            )
            structlog.contextvars.unbind_contextvars("correlation_id", "causation_id")


def route_label(scope) -> str:
    """
    Metric label for a request: the path template of the matched route.

    Raw paths would create one series per distinct URL.
    """
    route = scope.get("route")
    if route is not None and getattr(route, "path", None):
        return route.path
    if scope.get("endpoint") is not None:
        # Mounted sub-application such as /metrics
        return scope.get("root_path") or UNMATCHED_ROUTE
    return UNMATCHED_ROUTE


def _header(scope, name: str):
    for key, value in scope.get("headers", []):
        if key.decode("latin-1").lower() == name:
            return value.decode("latin-1")
    return None
