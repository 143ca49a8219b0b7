"""Prometheus metrics for the test server.

All metrics are defined here so there is one inventory of what the
server measures.  Modules import the metric they own and increment it at
the point of action.  Metrics live in the default process-wide registry:
several harness instances in one test run add to the same counters, so
tests assert on deltas, never on absolute values.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # In-process ASGI calls: almost everything lands in the first buckets.
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# OAuth engine metrics
# ---------------------------------------------------------------------------

AUTHORIZATION_CODES_ISSUED = Counter(
    "oauth_authorization_codes_issued_total",
    "Authorization codes minted by the authorize endpoint",
)

TOKEN_REQUESTS = Counter(
    "oauth_token_requests_total",
    "Token endpoint requests by grant type and outcome",
    ["grant_type", "result"],  # result: "issued" or the OAuth error code
)

HOOK_CALLS = Counter(
    "oauth_testserver_hook_calls_total",
    "Endpoint hook invocations by hook name and outcome",
    ["hook", "outcome"],  # outcome: "answered" or "passed" (to the engine)
)
