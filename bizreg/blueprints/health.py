"""
Health and metrics endpoints for load balancers and Prometheus.

    GET /health    record store ping; 503 while the store is unreachable
    GET /metrics   Prometheus text exposition
"""

import structlog
from flask import Blueprint, Response

from bizreg import __version__
from bizreg.data import get_record_store
from bizreg.data.exceptions import DatabaseException
from bizreg.monitoring.metrics import generate_metrics_output
from bizreg.utils.datetime_utils import to_iso, utc_now

logger = structlog.get_logger(__name__)

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health_check():
    store = get_record_store()
    body = {
        "status": "healthy",
        "version": __version__,
        "timestamp": to_iso(utc_now()),
        "store": {"backend": store.backend_name, "status": "up"},
    }
    try:
        store.ping()
    except DatabaseException as e:
        logger.warning("Health check failed", backend=store.backend_name, error=str(e))
        body["status"] = "unhealthy"
        body["store"]["status"] = "down"
        return body, 503
    return body, 200


@health_bp.route("/metrics", methods=["GET"])
def prometheus_metrics():
    output, content_type = generate_metrics_output()
    return Response(output, content_type=content_type)
