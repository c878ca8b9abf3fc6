"""
Middleware Package

Contains FastAPI middleware for:
- Prometheus metrics collection
- Application lifecycle counters
"""

from marketplace.middleware.metrics import (
    PrometheusMiddleware,
    setup_metrics,
    REQUEST_LATENCY,
    REQUEST_COUNT,
    ACTIVE_REQUESTS,
    CACHE_HITS,
    CACHE_MISSES,
    APPLICATION_TRANSITIONS,
    TRANSITION_FAILURES,
    NOTIFICATION_FAILURES,
    EXPIRED_APPLICATIONS,
)

__all__ = [
    "PrometheusMiddleware",
    "setup_metrics",
    "REQUEST_LATENCY",
    "REQUEST_COUNT",
    "ACTIVE_REQUESTS",
    "CACHE_HITS",
    "CACHE_MISSES",
    "APPLICATION_TRANSITIONS",
    "TRANSITION_FAILURES",
    "NOTIFICATION_FAILURES",
    "EXPIRED_APPLICATIONS",
]
