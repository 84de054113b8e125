# app/core/logging.py
import structlog
import logging
import sys
from uuid import uuid4
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

def setup_logging(level: int = logging.INFO):
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory()
    )


def get_logger(component: str):
    """Logger structlog lié à un composant (``backup.exporter``, ``backup.scheduler``...)."""
    return structlog.get_logger().bind(component=component)


logger = structlog.get_logger()

class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid4())
        request.state.correlation_id = correlation_id
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
        try:
            logger.info("HTTP Request", path=request.url.path, method=request.method)
            response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()
        response.headers["X-Correlation-ID"] = correlation_id
        return response
