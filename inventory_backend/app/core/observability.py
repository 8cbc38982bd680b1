"""
Observability.

Correlation IDs for requests, carried into every log record and audit row
written while the request is being handled.
"""

import time
import uuid
import logging
from contextvars import ContextVar
from typing import Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from inventory_backend.app.core.config import settings

logger = logging.getLogger("inventory_ledger")

CORRELATION_HEADER = "X-Correlation-ID"

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def current_correlation_id() -> Optional[str]:
    return _correlation_id.get()


class CorrelationIdFilter(logging.Filter):
    """Stamps `correlation_id` on every record ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = _correlation_id.get() or "-"
        return True


def configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s",
        handlers=[handler],
    )


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER, str(uuid.uuid4()))
        token = _correlation_id.set(correlation_id)

        start_time = time.time()
        try:
            response = await call_next(request)
        finally:
            _correlation_id.reset(token)
        process_time = (time.time() - start_time) * 1000  # ms

        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers["X-Process-Time"] = str(process_time)

        log_data = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(process_time, 2),
        }

        if response.status_code >= 500:
            logger.error("Request failed", extra=log_data)
        elif response.status_code >= 400:
            # Locked periods and protected entries land here
            logger.warning("Request rejected", extra=log_data)
        else:
            logger.info("Request served", extra=log_data)

        return response
