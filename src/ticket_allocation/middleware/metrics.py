"""Prometheus metrics: HTTP traffic plus allocation and payment-trigger outcomes."""
import re
import time
from typing import Callable

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)
ACTIVE_REQUESTS = Gauge("http_requests_active", "Number of in-flight HTTP requests")

# outcome: assigned, already_assigned, not_paid, not_found, no_stock, conflict, error
ALLOCATION_COUNTER = Counter(
    "allocations_total",
    "Allocation attempts by outcome",
    ["outcome"],
)
ALLOCATION_LATENCY = Histogram(
    "allocation_latency_seconds",
    "Time spent in one allocation call, retries included",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)
# trigger: webhook, client, admin
PAYMENT_TRIGGER_COUNTER = Counter(
    "payment_triggers_total",
    "Payment confirmation triggers by source and outcome",
    ["trigger", "outcome"],
)

_UUID_SEGMENT = re.compile(
    r"/[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}(?=/|$)"
)
_REFERENCE_SEGMENT = re.compile(r"(/by-reference)/[^/]+")


def normalize_path(path: str) -> str:
    """Collapse order/raffle ids and payment references into placeholders.

    Only paths under the API prefix and the two service endpoints keep their
    own label; anything else is reported as ``/other``.
    """
    if path in ("/health", "/metrics"):
        return path
    if not path.startswith("/api/"):
        return "/other"
    path = _REFERENCE_SEGMENT.sub(r"\1/{ref}", path)
    return _UUID_SEGMENT.sub("/{id}", path)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Count and time every HTTP request except the scrape itself."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        endpoint = normalize_path(request.url.path)
        status_code = 500
        ACTIVE_REQUESTS.inc()
        started = time.perf_counter()
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            ACTIVE_REQUESTS.dec()
            REQUEST_COUNT.labels(request.method, endpoint, status_code).inc()
            REQUEST_LATENCY.labels(request.method, endpoint).observe(
                time.perf_counter() - started
            )


async def metrics_endpoint(request: Request) -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def record_allocation(outcome: str, duration: float | None = None) -> None:
    """Record one allocation outcome and, when known, its latency."""
    ALLOCATION_COUNTER.labels(outcome=outcome).inc()
    if duration is not None:
        ALLOCATION_LATENCY.observe(duration)


def record_payment_trigger(trigger: str, outcome: str) -> None:
    PAYMENT_TRIGGER_COUNTER.labels(trigger=trigger, outcome=outcome).inc()
