"""
Monitoring: structlog logging with request correlation and Prometheus metrics.
"""

from flask import Flask

from bizreg.monitoring.logging import init_request_logging, setup_structured_logging
from bizreg.monitoring.metrics import MetricsMiddleware, generate_metrics_output, track_query


def init_monitoring(app: Flask) -> None:
    """Configure logging from ``app.config`` and install request hooks."""
    setup_structured_logging(
        log_level=app.config.get("LOG_LEVEL", "INFO"),
        log_format=app.config.get("LOG_FORMAT", "json"),
        cache_loggers=not app.config.get("TESTING", False),
    )
    init_request_logging(app)
    MetricsMiddleware().init_app(app)


__all__ = [
    "init_monitoring",
    "setup_structured_logging",
    "init_request_logging",
    "MetricsMiddleware",
    "generate_metrics_output",
    "track_query",
]
