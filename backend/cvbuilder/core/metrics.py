# cvbuilder/core/metrics.py
import re
import time
from typing import Callable

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint', 'status'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0)
)

http_requests_in_progress = Gauge(
    'http_requests_in_progress',
    'HTTP requests currently being processed',
    ['method', 'endpoint']
)

threats_stripped_total = Counter(
    'cv_sanitizer_threats_stripped_total',
    'Dangerous constructs removed or defanged by the threat stripper',
    ['rule']
)

unsafe_template_values_total = Counter(
    'cv_unsafe_template_values_total',
    'Pre-escaped values that failed the safety check before templating',
    ['field']
)

cv_validation_total = Counter(
    'cv_validation_total',
    'CV validation outcomes',
    ['result']
)

rate_limit_rejections_total = Counter(
    'rate_limit_rejections_total',
    'Requests rejected by the rate limiter',
    ['action']
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        endpoint = self._get_endpoint_name(request)

        if endpoint == "/metrics":
            return await call_next(request)

        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()
        start_time = time.time()
        status = 500

        try:
            response = await call_next(request)
            status = response.status_code
            return response

        finally:
            duration = time.time() - start_time

            http_requests_total.labels(
                method=method,
                endpoint=endpoint,
                status=status
            ).inc()

            http_request_duration_seconds.labels(
                method=method,
                endpoint=endpoint,
                status=status
            ).observe(duration)

            http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()

    def _get_endpoint_name(self, request: Request) -> str:
        path = request.url.path

        path = re.sub(
            r'/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}',
            '/{uuid}',
            path,
            flags=re.IGNORECASE
        )

        path = re.sub(r'/\d+', '/{id}', path)

        return path


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
