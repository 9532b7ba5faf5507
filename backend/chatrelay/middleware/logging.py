"""Structured logging setup and request middleware with correlation IDs."""
import structlog
import uuid
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable
import time

TRACE_HEADER = "X-Trace-ID"
MAX_TRACE_ID_LENGTH = 128


def configure_logging(json_logs: bool = True, log_level: str = "INFO") -> None:
    """Configure structlog once at startup."""
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False
    )


logger = structlog.get_logger()


def resolve_trace_id(request: Request) -> str:
    """Trace ID sent by the caller (e.g. a proxy or the frontend), else a fresh UUID."""
    incoming = request.headers.get(TRACE_HEADER, "").strip()
    if incoming and len(incoming) <= MAX_TRACE_ID_LENGTH and incoming.isprintable():
        return incoming
    return str(uuid.uuid4())


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Correlates every log line of a request under one trace_id.

    The ID is taken from an incoming X-Trace-ID header when present so a trace
    can span the frontend and this service, and is echoed back on the response.
    Method and path are bound once, so service-level events carry them too.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        trace_id = resolve_trace_id(request)
        request.state.trace_id = trace_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            trace_id=trace_id,
            method=request.method,
            path=request.url.path
        )
        logger.info(
            "request_started",
            client_ip=request.client.host if request.client else None
        )

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=_elapsed_ms(start_time)
            )
            raise

        logger.info(
            "request_completed",
            status_code=response.status_code,
            latency_ms=_elapsed_ms(start_time)
        )
        response.headers[TRACE_HEADER] = trace_id
        return response


def _elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


def get_logger():
    """Get configured structured logger."""
    return logger
