"""Prometheus metrics middleware and bidding-engine counters."""
import time
from typing import Callable

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


# =============================================================================
# Prometheus Metrics Definitions
# =============================================================================

# Request metrics
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

ACTIVE_REQUESTS = Gauge(
    "http_requests_active",
    "Number of active HTTP requests",
)

# Bid-specific metrics
BID_OUTCOMES = Counter(
    "bids_total",
    "Bid attempts by target kind and outcome",
    ["kind", "outcome"],  # kind: auction, lot; outcome: accepted or a rejection reason
)

BID_LATENCY = Histogram(
    "bid_latency_seconds",
    "Bid processing latency in seconds",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

BID_CAS_CONFLICTS = Counter(
    "bid_cas_conflicts_total",
    "Bid compare-and-set attempts that lost to a concurrent writer",
    ["kind"],
)

ANTI_SNIPE_EXTENSIONS = Counter(
    "auction_anti_snipe_extensions_total",
    "Auction end times pushed back by a late bid",
)

# Lifecycle metrics
LIFECYCLE_TRANSITIONS = Counter(
    "lifecycle_transitions_total",
    "Auction, catalog and lot state transitions",
    ["entity", "to_status", "source"],  # source: scheduler, operator
)

SCHEDULER_SWEEP_LATENCY = Histogram(
    "scheduler_sweep_duration_seconds",
    "Lifecycle sweep duration in seconds",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

# Event delivery metrics
EVENT_PUBLISH_FAILURES = Counter(
    "domain_event_publish_failures_total",
    "Domain events that could not be handed to the event stream",
    ["event_type"],
)


# =============================================================================
# Metrics Middleware
# =============================================================================

class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for all HTTP requests."""

    # Endpoints to normalize for metrics (reduce cardinality)
    ENDPOINT_PATTERNS = {
        "/api/v1/auctions": "/api/v1/auctions",
        "/api/v1/catalogs": "/api/v1/catalogs",
        "/api/v1/vehicles": "/api/v1/vehicles",
        "/api/v1/users": "/api/v1/users",
        "/api/v1/scheduler": "/api/v1/scheduler",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        # Track active requests
        ACTIVE_REQUESTS.inc()
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            status_code = 500
            raise
        finally:
            ACTIVE_REQUESTS.dec()
            latency = time.perf_counter() - start_time

            # Normalize endpoint for metrics (reduce cardinality)
            endpoint = self._normalize_endpoint(request.url.path)

            # Record metrics
            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status=status_code,
            ).inc()

            REQUEST_LATENCY.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(latency)

            if request.method == "POST" and request.url.path.endswith("/bids"):
                BID_LATENCY.observe(latency)

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce metric cardinality."""
        for pattern, normalized in self.ENDPOINT_PATTERNS.items():
            if path.startswith(pattern):
                return normalized

        # Keep health and other endpoints as-is
        if path in ("/health", "/metrics"):
            return path
        if path.startswith("/ws/"):
            return "/ws"

        return "/other"


# =============================================================================
# Metrics Endpoint
# =============================================================================

async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics scrape endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# =============================================================================
# Helper Functions for Manual Metric Recording
# =============================================================================

def record_bid_outcome(kind: str, outcome: str) -> None:
    """Record the outcome of one bid attempt."""
    BID_OUTCOMES.labels(kind=kind, outcome=outcome).inc()


def record_transition(entity: str, to_status: str, source: str, count: int = 1) -> None:
    """Record lifecycle transitions applied by the scheduler or an operator."""
    if count:
        LIFECYCLE_TRANSITIONS.labels(entity=entity, to_status=to_status, source=source).inc(count)
