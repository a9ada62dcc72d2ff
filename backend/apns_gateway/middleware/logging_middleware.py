"""
Request correlation and access logging.

Each request gets an id (the caller's X-Request-ID when it sends a usable
one), bound to the logging context for the handler and for any delivery it
queues. One "Request completed" record is written per request, and every
request is counted in the HTTP metrics.
"""
import logging
import time
import uuid
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from apns_gateway.core.logging_config import clear_request_id, scrub, set_request_id
from apns_gateway.core.metrics import record_request_metrics

logger = logging.getLogger(__name__)

MAX_REQUEST_ID_LENGTH = 64

# Counted in metrics, not logged
QUIET_PATHS = frozenset({'/health', '/metrics', '/docs', '/redoc', '/openapi.json'})


def resolve_request_id(incoming: Optional[str]) -> str:
    """Reuse a caller-supplied id (trimmed, at most 64 chars) or mint a uuid4."""
    candidate = scrub(incoming or "").strip()[:MAX_REQUEST_ID_LENGTH]
    return candidate or str(uuid.uuid4())


def level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Binds a request id, echoes it as X-Request-ID and logs the outcome."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = resolve_request_id(request.headers.get("x-request-id"))
        request.state.request_id = request_id
        context_token = set_request_id(request_id)

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response
        except Exception as e:
            logger.error(
                f"Unhandled {type(e).__name__} while serving {request.method} {request.url.path}",
                extra={"event_type": "request_error", "error_message": str(e)},
                exc_info=True,
            )
            raise
        finally:
            elapsed = time.perf_counter() - started
            path = request.url.path
            record_request_metrics(request.method, path, status_code, elapsed)
            if path not in QUIET_PATHS:
                logger.log(
                    level_for(status_code),
                    "Request completed",
                    extra={
                        "event_type": "request_complete",
                        "method": request.method,
                        "path": path,
                        "status_code": status_code,
                        "response_time_ms": round(elapsed * 1000, 2),
                        "client_ip": request.client.host if request.client else "unknown",
                    }
                )
            clear_request_id(context_token)
