"""Prometheus metrics middleware.

The ``endpoint`` label is the route template the engine matched, not the
raw URL path: tests send arbitrary URIs, and unmatched paths would
otherwise grow a new label set each.  Requests answered by an endpoint
hook are labelled ``hook:<name>``; anything else is ``unmatched``.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from oauth_testserver.core.metrics import (
    ACTIVE_REQUESTS,
    REQUEST_COUNT,
    REQUEST_DURATION,
)

METRICS_PATH = "/metrics"


def endpoint_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        return route.path
    if getattr(request.state, "hook_outcome", None) == "answered":
        return f"hook:{request.state.hook}"
    return "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path == METRICS_PATH:
            return await call_next(request)

        status_code = "500"
        ACTIVE_REQUESTS.inc()
        start = time.monotonic()
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        finally:
            ACTIVE_REQUESTS.dec()
            endpoint = endpoint_label(request)
            REQUEST_COUNT.labels(
                method=request.method, endpoint=endpoint, status_code=status_code
            ).inc()
            REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(
                time.monotonic() - start
            )
        return response
