"""
Per-request timing.

Every response carries a Server-Timing entry named after the matched route
template (for example ``POST /api/migrate-user``), and the same duration is
recorded in the request-duration histogram when metrics are enabled.
"""

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from nayscake.core.metrics import get_metrics_collector


def route_label(request: Request) -> str:
    """Return "METHOD /route/template", or the raw path for unmatched requests."""
    route = request.scope.get("route")
    path = getattr(route, "path", None) or request.url.path
    return f"{request.method} {path}"


class TimingMiddleware(BaseHTTPMiddleware):
    """Add Server-Timing/X-Request-Duration headers and record request duration."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        label = route_label(request)
        response.headers["Server-Timing"] = f'app;dur={duration_ms:.2f};desc="{label}"'
        response.headers["X-Request-Duration"] = f"{duration_ms:.2f}ms"

        collector = get_metrics_collector()
        if collector:
            collector.record_request(label, response.status_code, duration_ms)
        return response
