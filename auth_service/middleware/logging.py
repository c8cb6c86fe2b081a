"""Logging middleware and configuration."""

import logging
import sys
import time
import uuid
from collections.abc import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from auth_service.config import settings

CORRELATION_ID_HEADER = "X-Correlation-ID"


def add_service_context(_logger: object, _method: str, event_dict: dict) -> dict:
    """Tag every event with the service name and environment."""
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def configure_logging() -> None:
    """Configure structured logging with request and user context."""
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        add_service_context,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors = shared_processors + [
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure standard logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )


def get_client_ip(request: Request) -> str | None:
    """Client address, honoring proxy headers (first X-Forwarded-For hop)."""
    for header in ("X-Forwarded-For", "X-Real-IP"):
        value = request.headers.get(header)
        if value and value.lower() != "unknown":
            return value.split(",")[0].strip()
    return request.client.host if request.client else None


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request correlation and request/response logging."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        """
        Bind a correlation ID to the log context and log request details.

        Args:
            request: Request object
            call_next: Next middleware in chain

        Returns:
            Response object
        """
        logger = structlog.get_logger()

        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            request_method=request.method,
            request_path=request.url.path,
            client_ip=get_client_ip(request),
        )

        start_time = time.time()
        logger.info("request_started")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                duration=time.time() - start_time,
            )
            structlog.contextvars.clear_contextvars()
            raise

        duration = time.time() - start_time

        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration=duration,
        )
        structlog.contextvars.clear_contextvars()

        response.headers[CORRELATION_ID_HEADER] = correlation_id
        response.headers["X-Process-Time"] = str(duration)

        return response
