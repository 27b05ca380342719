"""
Flask Application Factory

Builds the registration service:

    1. Configuration: environment class from ``get_config``, then keyword
       overrides, then validation
    2. Monitoring: structlog logging with request correlation, Prometheus
       request metrics
    3. Flask-CORS for the admin frontend
    4. Record store (MongoDB or in-process) and the BusinessService
    5. Blueprints and error handlers
    6. CLI commands ``flask sync-counters`` and ``flask ensure-indexes``

Usage:
    app = create_app("production")
    app = create_app("testing", APP_TIMEZONE="Asia/Manila")
"""

from typing import Optional

import click
import structlog
from flask import Flask
from flask_cors import CORS

from bizreg import __version__
from bizreg.blueprints import register_blueprints, register_error_handlers
from bizreg.business import BusinessService, get_business_service, init_business_service
from bizreg.config import get_config, validate_configuration
from bizreg.data import get_record_store, init_database
from bizreg.data.exceptions import ConfigurationError, StorageUnavailable
from bizreg.data.store import RecordStore
from bizreg.monitoring import init_monitoring
from bizreg.utils.datetime_utils import Clock

logger = structlog.get_logger(__name__)


def create_app(
    config_name: Optional[str] = None,
    store: Optional[RecordStore] = None,
    clock: Optional[Clock] = None,
    **config_overrides,
) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config_name: ``development``, ``testing`` or ``production``
            (defaults to ``FLASK_ENV``)
        store: Pre-built record store; built from configuration when omitted
        clock: Application clock; built from ``APP_TIMEZONE`` when omitted
        **config_overrides: Configuration keys overriding the class values

    Raises:
        ConfigurationError: Invalid configuration or unknown store backend
    """
    app = Flask("bizreg")
    app.config.from_object(get_config(config_name))
    app.config.update(config_overrides)

    issues = validate_configuration(app.config)
    if issues:
        raise ConfigurationError(f"Configuration validation failed: {'; '.join(issues)}")

    app.json.sort_keys = app.config.get("JSON_SORT_KEYS", False)

    init_monitoring(app)
    CORS(app, resources={r"/api/*": app.config["CORS_CONFIG"]})

    clock = clock or Clock(app.config["APP_TIMEZONE"])
    store = init_database(app, store=store, clock=clock)
    service = init_business_service(
        app,
        BusinessService(
            store,
            clock=clock,
            default_page_limit=app.config["DEFAULT_PAGE_LIMIT"],
            max_page_limit=app.config["MAX_PAGE_LIMIT"],
            recent_limit=app.config["RECENT_BUSINESSES_LIMIT"],
            trend_window=app.config["YEARLY_TREND_WINDOW"],
        ),
    )

    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)

    if app.config.get("SYNC_COUNTERS_ON_STARTUP"):
        try:
            service.sync_counters()
        except StorageUnavailable as e:
            logger.warning("Counter synchronisation skipped, store unavailable", error=str(e))

    logger.info(
        "Application created",
        version=__version__,
        environment=app.config.get("FLASK_ENV"),
        backend=store.backend_name,
        timezone=clock.timezone_name,
    )
    return app


def register_commands(app: Flask) -> None:
    @app.cli.command("sync-counters")
    def sync_counters_command():
        """Raise year counters to the highest stored sequence per year."""
        floors = get_business_service().sync_counters()
        if not floors:
            click.echo("No control numbers found; counters unchanged.")
            return
        for year, value in floors.items():
            click.echo(f"{year}: counter at {value}")

    @app.cli.command("ensure-indexes")
    def ensure_indexes_command():
        """Create the record store indexes."""
        get_record_store().ensure_indexes()
        click.echo("Indexes ensured.")


__all__ = ["create_app", "register_commands"]
