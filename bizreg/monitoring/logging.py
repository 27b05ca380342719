"""
Structured Logging

structlog configured on top of stdlib logging, with JSON output for log
aggregation and a console renderer for development. Every event emitted
while a request is being handled carries the request's correlation id,
taken from the ``X-Correlation-ID`` header (or generated) and echoed back in
the response.

Usage:
    setup_structured_logging(log_level="INFO", log_format="json")
    init_request_logging(app)
    logger = structlog.get_logger(__name__)
"""

import logging
import logging.config
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog
from flask import Flask, Response, g, has_request_context, request

CORRELATION_HEADER = "X-Correlation-ID"

correlation_id_context: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

logger = structlog.get_logger(__name__)


def generate_correlation_id() -> str:
    return uuid.uuid4().hex


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Bind a correlation id to the current context (and ``flask.g`` inside a request)."""
    correlation_id = correlation_id or generate_correlation_id()
    correlation_id_context.set(correlation_id)
    if has_request_context():
        g.correlation_id = correlation_id
    return correlation_id


def get_correlation_id() -> Optional[str]:
    correlation_id = correlation_id_context.get()
    if correlation_id:
        return correlation_id
    if has_request_context():
        return getattr(g, "correlation_id", None)
    return None


def clear_correlation_id() -> None:
    correlation_id_context.set(None)


def add_correlation_id(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor injecting the active correlation id."""
    correlation_id = get_correlation_id()
    if correlation_id and "correlation_id" not in event_dict:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def add_request_context(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    if has_request_context():
        event_dict.setdefault("method", request.method)
        event_dict.setdefault("path", request.path)
    return event_dict


def setup_structured_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    cache_loggers: bool = True,
) -> structlog.stdlib.BoundLogger:
    """
    Configure structlog and the stdlib root logger for the process.

    Args:
        log_level: Root log level name
        log_format: ``json`` or ``console``
        cache_loggers: Cache bound loggers on first use (disabled under test
            so log capture can reconfigure processors)

    Returns:
        Logger for the application
    """
    level = str(log_level or "INFO").upper()

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        add_correlation_id,
        add_request_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=cache_loggers,
    )

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {"format": "%(message)s"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "plain",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "": {"handlers": ["console"], "level": level, "propagate": False},
            "pymongo": {"level": "WARNING"},
        },
    })

    app_logger = structlog.get_logger("bizreg")
    app_logger.info("Structured logging initialized", log_level=level, log_format=log_format)
    return app_logger


def init_request_logging(app: Flask) -> None:
    """Register correlation-id and request timing hooks on ``app``."""

    @app.before_request
    def bind_correlation_id():
        set_correlation_id(request.headers.get(CORRELATION_HEADER))
        g.request_start_time = time.perf_counter()

    @app.after_request
    def log_request_completed(response: Response) -> Response:
        start_time = getattr(g, "request_start_time", None)
        duration_ms = (time.perf_counter() - start_time) * 1000 if start_time else 0.0
        logger.info(
            "Request completed",
            endpoint=request.endpoint,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        correlation_id = get_correlation_id()
        if correlation_id:
            response.headers[CORRELATION_HEADER] = correlation_id
        return response

    @app.teardown_request
    def unbind_correlation_id(exception=None):
        clear_correlation_id()


__all__ = [
    "CORRELATION_HEADER",
    "generate_correlation_id",
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "add_correlation_id",
    "setup_structured_logging",
    "init_request_logging",
]
