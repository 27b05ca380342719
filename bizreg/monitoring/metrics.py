"""
Prometheus Metrics

HTTP request metrics recorded by ``MetricsMiddleware`` through Flask
request hooks, query/aggregation timings recorded with ``track_query``, and
the text exposition served at ``/metrics``. Under Gunicorn with
``PROMETHEUS_MULTIPROC_DIR`` set, the exposition aggregates all workers.

Metrics are module-level so that building several applications in one
process (as the test suite does) never registers a collector twice.
"""

import os
import time
from contextlib import contextmanager
from typing import Iterator, Tuple

from flask import Flask, Response, g, request
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    multiprocess,
)

http_requests_total = Counter(
    "bizreg_http_requests_total",
    "HTTP requests by method, endpoint and status",
    ["method", "endpoint", "status"],
)
http_request_duration_seconds = Histogram(
    "bizreg_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint"],
)
queries_total = Counter(
    "bizreg_queries_total",
    "Query and aggregation operations by kind",
    ["kind"],
)
query_duration_seconds = Histogram(
    "bizreg_query_duration_seconds",
    "Query and aggregation duration by kind",
    ["kind"],
)


@contextmanager
def track_query(kind: str) -> Iterator[None]:
    """Count and time one query or aggregation of ``kind``."""
    start_time = time.perf_counter()
    try:
        yield
    finally:
        queries_total.labels(kind=kind).inc()
        query_duration_seconds.labels(kind=kind).observe(time.perf_counter() - start_time)


class MetricsMiddleware:
    """Records request count and latency for every Flask request."""

    def init_app(self, app: Flask) -> None:
        app.before_request(self._before_request)
        app.after_request(self._after_request)

    @staticmethod
    def _before_request():
        g.metrics_start_time = time.perf_counter()

    @staticmethod
    def _after_request(response: Response) -> Response:
        start_time = getattr(g, "metrics_start_time", None)
        if start_time is not None:
            endpoint = request.endpoint or "unknown"
            http_requests_total.labels(
                method=request.method, endpoint=endpoint, status=str(response.status_code)
            ).inc()
            http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(
                time.perf_counter() - start_time
            )
        return response


def get_metrics_registry() -> CollectorRegistry:
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return registry
    return REGISTRY


def generate_metrics_output() -> Tuple[bytes, str]:
    """Exposition body and its content type."""
    return generate_latest(get_metrics_registry()), CONTENT_TYPE_LATEST


__all__ = [
    "http_requests_total",
    "http_request_duration_seconds",
    "queries_total",
    "query_duration_seconds",
    "track_query",
    "MetricsMiddleware",
    "get_metrics_registry",
    "generate_metrics_output",
]
