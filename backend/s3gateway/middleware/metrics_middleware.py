"""
ASGI middleware for tracking HTTP request metrics.
Records request count, duration, and errors.
"""
import re
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from s3gateway.utils.metrics import http_requests_total, http_request_duration_seconds, errors_total

# Second path segments under /api/images/ that are routes, not file names
FIXED_IMAGE_ROUTES = {"upload", "list", "info", "validation-info", "bucket-stats", "service-compatibility"}

IMAGE_PATH = re.compile(r'^(/api/images/)([^/]+)(/.*)?$')


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next):
        """Process request and record metrics."""
        start_time = time.time()

        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        normalized_path = self._normalize_path(request.url.path)

        try:
            response = await call_next(request)
        except Exception:
            errors_total.labels(error_type="exception").inc()
            raise

        status_code = response.status_code
        http_requests_total.labels(
            method=method,
            path=normalized_path,
            status=status_code
        ).inc()
        http_request_duration_seconds.labels(
            method=method,
            path=normalized_path
        ).observe(time.time() - start_time)

        # Track errors (4xx and 5xx)
        if status_code >= 400:
            errors_total.labels(error_type=f"{status_code // 100}xx").inc()

        return response

    @staticmethod
    def _normalize_path(path: str) -> str:
        """
        Normalize path to reduce cardinality.
        File names in image paths become {file_name}.
        """
        match = IMAGE_PATH.match(path)
        if not match or match.group(2) in FIXED_IMAGE_ROUTES:
            return path
        return f"{match.group(1)}{{file_name}}{match.group(3) or ''}"
