"""
Request/response logging middleware for the Sleeper gateway.

Logs each HTTP request with timing and feeds the request counters and
latency timings of the in-process MetricsCollector.
"""

import time
from typing import Callable, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from .logging_config import get_logger
from .metrics import get_metrics_collector
from .tracing import CORRELATION_ID_HEADER

KNOWN_PATHS = ("/health", "/execute")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log HTTP requests and responses with metrics."""

    def __init__(self, app, exclude_paths: Optional[List[str]] = None):
        super().__init__(app)
        self.request_logger = get_logger("sleeper_gateway.requests")
        self.exclude_paths = exclude_paths or []

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        method = request.method
        path = request.url.path
        should_log = path not in self.exclude_paths

        try:
            response = await call_next(request)
        except Exception as e:
            response_time_ms = (time.time() - start_time) * 1000
            if should_log:
                self._log_request(request, 500, response_time_ms, error=str(e))
            self._record_metrics(method, path, 500, response_time_ms)
            raise

        response_time_ms = (time.time() - start_time) * 1000
        if should_log:
            self._log_request(
                request, response.status_code, response_time_ms,
                correlation_id=response.headers.get(CORRELATION_ID_HEADER),
            )
        self._record_metrics(method, path, response.status_code, response_time_ms)
        return response

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host
        return "unknown"

    def _log_request(
        self,
        request: Request,
        status_code: int,
        response_time_ms: float,
        correlation_id: Optional[str] = None,
        error: Optional[str] = None
    ) -> None:
        method = request.method
        path = request.url.path
        fields = {
            "method": method,
            "path": path,
            "status_code": status_code,
            "response_time_ms": round(response_time_ms, 2),
            "user_agent": request.headers.get("user-agent", ""),
            "client_ip": self._get_client_ip(request),
        }
        if correlation_id:
            fields["correlation_id"] = correlation_id

        if error:
            self.request_logger.error(
                f"{method} {path} - {status_code} - {response_time_ms:.2f}ms - ERROR: {error}",
                extra=fields,
            )
        else:
            self.request_logger.info(
                f"{method} {path} - {status_code} - {response_time_ms:.2f}ms",
                extra=fields,
            )

    def _record_metrics(self, method: str, path: str, status_code: int, response_time_ms: float) -> None:
        metrics = get_metrics_collector()
        metric_path = self._normalize_path_for_metrics(path)

        metrics.increment_counter(
            "http_requests_total",
            method=method,
            path=metric_path,
            status_code=str(status_code)
        )
        metrics.record_timing(
            "http_request_duration",
            response_time_ms,
            method=method,
            path=metric_path
        )
        if status_code >= 400:
            metrics.increment_counter(
                "http_errors_total",
                method=method,
                path=metric_path,
                status_code=str(status_code)
            )

    def _normalize_path_for_metrics(self, path: str) -> str:
        """Collapse unknown paths into one label to bound cardinality."""
        return path if path in KNOWN_PATHS else "/other"
