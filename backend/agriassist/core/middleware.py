"""
FastAPI middleware for request context, logging and metrics
"""
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

from agriassist.core.logging_config import LoggingConfig
from agriassist.core.metrics import (http_errors_total,
                                     http_request_duration_seconds,
                                     http_requests_total)

logger = LoggingConfig.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
UNMATCHED_ENDPOINT = "unmatched"


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def endpoint_label(request: Request) -> str:
    """Route template of the matched route, so path values do not become labels"""
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", request.url.path)
    return UNMATCHED_ENDPOINT


class LoggingContextMiddleware(BaseHTTPMiddleware):
    """Binds a request id to every log record of a request"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        LoggingConfig.set_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                exc_info=True,
                extra={"error_type": type(e).__name__, "duration_ms": _elapsed_ms(start)}
            )
            raise
        else:
            log = logger.warning if response.status_code >= 500 else logger.info
            log(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={"status_code": response.status_code, "duration_ms": _elapsed_ms(start)}
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            LoggingConfig.clear_context()


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect HTTP request metrics for Prometheus
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start = time.perf_counter()
        status_code = 500
        error_type = "http_error"
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except Exception as e:
            error_type = type(e).__name__
            raise
        finally:
            labels = {
                "method": request.method,
                "endpoint": endpoint_label(request),
                "status_code": str(status_code),
            }
            http_requests_total.labels(**labels).inc()
            http_request_duration_seconds.labels(**labels).observe(time.perf_counter() - start)
            if status_code >= 400:
                http_errors_total.labels(error_type=error_type, **labels).inc()
