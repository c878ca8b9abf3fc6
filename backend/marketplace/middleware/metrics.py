"""
Prometheus Metrics Middleware

Provides request/response metrics for monitoring:
- HTTP request latency
- Request count by endpoint and status
- Active request gauge
- Cache hit/miss rates
- Application lifecycle counters (transitions, failures, expiries)

Usage:
    from marketplace.middleware.metrics import setup_metrics

    # In main.py
    app = FastAPI()
    setup_metrics(app)

Metrics Endpoint:
    GET /metrics - Prometheus-format metrics
"""

import time
import logging
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CONTENT_TYPE_LATEST,
    generate_latest,
    REGISTRY,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

logger = logging.getLogger(__name__)

# ==================== Prometheus Metrics ====================

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint", "status"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

ACTIVE_REQUESTS = Gauge(
    "http_requests_active",
    "Number of active HTTP requests",
    ["method"]
)

# Cache metrics
CACHE_HITS = Counter(
    "cache_hits_total",
    "Total cache hits",
    ["namespace"]
)

CACHE_MISSES = Counter(
    "cache_misses_total",
    "Total cache misses",
    ["namespace"]
)

# Application lifecycle metrics
APPLICATION_TRANSITIONS = Counter(
    "application_transitions_total",
    "Committed application status transitions",
    ["from_status", "to_status"]
)

TRANSITION_FAILURES = Counter(
    "application_transition_failures_total",
    "Rejected application operations by error code",
    ["code"]
)

NOTIFICATION_FAILURES = Counter(
    "notification_dispatch_failures_total",
    "Notifications that could not be handed to the delivery queue",
    ["kind"]
)

EXPIRED_APPLICATIONS = Counter(
    "applications_expired_total",
    "Pending applications rejected by the expiry sweep"
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for Prometheus metrics collection.

    Records:
    - Request latency
    - Request count by status code
    - Active request count
    """

    def __init__(self, app: FastAPI, app_name: str = "marketplace"):
        super().__init__(app)
        self.app_name = app_name

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        """Process request and record metrics."""
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        ACTIVE_REQUESTS.labels(method=method).inc()
        start_time = time.perf_counter()
        status = "500"

        try:
            response = await call_next(request)
            status = str(response.status_code)
        except Exception as e:
            logger.error(f"Request error: {e}")
            raise
        finally:
            duration = time.perf_counter() - start_time
            # Resolved after routing, so mounted and included routers are covered
            endpoint = self._get_endpoint(request)

            REQUEST_LATENCY.labels(
                method=method,
                endpoint=endpoint,
                status=status
            ).observe(duration)

            REQUEST_COUNT.labels(
                method=method,
                endpoint=endpoint,
                status=status
            ).inc()

            ACTIVE_REQUESTS.labels(method=method).dec()

        return response

    def _get_endpoint(self, request: Request) -> str:
        """
        Get normalized endpoint path from request.

        Uses route pattern (e.g., /applications/{application_id}) instead of
        actual path to avoid high cardinality. Routes without a path
        template (mounts, included routers on some FastAPI versions) are
        skipped; unmatched requests fall back to the raw path.
        """
        path = getattr(request.scope.get("route"), "path", None)
        if path:
            return path

        for route in request.app.routes:
            path = getattr(route, "path", None)
            if not path:
                continue
            match, _ = route.matches(request.scope)
            if match == Match.FULL:
                return path

        return request.url.path


def metrics_endpoint(request: Request) -> Response:
    """Endpoint handler for Prometheus metrics scraping."""
    return PlainTextResponse(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST
    )


def setup_metrics(app: FastAPI) -> None:
    """
    Configure Prometheus metrics for FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(PrometheusMiddleware, app_name="marketplace")
    app.add_route("/metrics", metrics_endpoint, methods=["GET"])

    logger.info("Prometheus metrics configured")


# ==================== Helper Functions ====================

def record_cache_hit(namespace: str) -> None:
    CACHE_HITS.labels(namespace=namespace).inc()


def record_cache_miss(namespace: str) -> None:
    CACHE_MISSES.labels(namespace=namespace).inc()


def record_transition(from_status: str, to_status: str) -> None:
    APPLICATION_TRANSITIONS.labels(from_status=from_status, to_status=to_status).inc()


def record_transition_failure(code: str) -> None:
    TRANSITION_FAILURES.labels(code=code).inc()


def record_notification_failure(kind: str) -> None:
    NOTIFICATION_FAILURES.labels(kind=kind).inc()


def record_expired(count: int) -> None:
    EXPIRED_APPLICATIONS.inc(count)
