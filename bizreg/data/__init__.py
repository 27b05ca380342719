"""
Data access layer.

Builds the configured ``RecordStore`` (MongoDB or in-process) and binds it to
the Flask application. Consumers fetch the store for the active application
with ``get_record_store()``.
"""

from typing import Any, Mapping, Optional

import structlog
from flask import Flask, current_app

from bizreg.data.exceptions import (
    ConfigurationError,
    DatabaseException,
    StorageUnavailable,
    UniqueConstraintViolation,
    handle_database_error,
)
from bizreg.data.memory import InMemoryRecordStore
from bizreg.data.mongodb import MongoRecordStore, create_mongodb_store
from bizreg.data.predicates import OPEN_FILTER, RecordFilter
from bizreg.data.store import GroupKey, RecordStore, SortSpec
from bizreg.utils.datetime_utils import Clock

logger = structlog.get_logger(__name__)

EXTENSION_KEY = "record_store"


def create_record_store(config: Mapping[str, Any], clock: Optional[Clock] = None) -> RecordStore:
    """
    Build a record store from application configuration.

    Raises:
        ConfigurationError: If ``RECORD_STORE_BACKEND`` is not recognised
    """
    backend = str(config.get("RECORD_STORE_BACKEND", "mongodb")).lower()
    clock = clock or Clock(config.get("APP_TIMEZONE", "UTC"))

    if backend == "memory":
        store: RecordStore = InMemoryRecordStore(clock=clock)
    elif backend == "mongodb":
        store = create_mongodb_store(
            uri=config["MONGODB_URI"],
            database_name=config["MONGODB_DATABASE"],
            clock=clock,
            server_selection_timeout_ms=int(config.get("MONGODB_SERVER_SELECTION_TIMEOUT_MS", 5000)),
            max_pool_size=int(config.get("MONGODB_MAX_POOL_SIZE", 50)),
            business_collection=config.get("BUSINESS_COLLECTION", "businesses"),
            counter_collection=config.get("COUNTER_COLLECTION", "counters"),
            retry_attempts=int(config.get("STORE_RETRY_ATTEMPTS", 3)),
            retry_wait_seconds=float(config.get("STORE_RETRY_WAIT_SECONDS", 0.2)),
            breaker_fail_max=int(config.get("CIRCUIT_BREAKER_FAIL_MAX", 5)),
            breaker_reset_timeout=float(config.get("CIRCUIT_BREAKER_RESET_TIMEOUT", 30)),
        )
    else:
        raise ConfigurationError(f"Unknown RECORD_STORE_BACKEND: {backend!r}")

    logger.info("Record store created", backend=store.backend_name, timezone=clock.timezone_name)
    return store


def init_database(app: Flask, store: Optional[RecordStore] = None, clock: Optional[Clock] = None) -> RecordStore:
    """
    Attach a record store to ``app``.

    Indexes are ensured at startup when ``ENSURE_INDEXES_ON_STARTUP`` is set;
    a store that is unreachable at that moment is logged, not fatal, so the
    process can still come up and report itself unhealthy.
    """
    if store is None:
        store = create_record_store(app.config, clock=clock)
    app.extensions[EXTENSION_KEY] = store

    if app.config.get("ENSURE_INDEXES_ON_STARTUP", True):
        try:
            store.ensure_indexes()
        except StorageUnavailable as e:
            logger.warning("Index creation skipped, store unavailable", error=str(e))

    return store


def get_record_store(app: Optional[Flask] = None) -> RecordStore:
    app = app or current_app
    try:
        return app.extensions[EXTENSION_KEY]
    except KeyError:
        raise RuntimeError("Record store not initialised; call init_database(app) first") from None


__all__ = [
    "ConfigurationError",
    "DatabaseException",
    "StorageUnavailable",
    "UniqueConstraintViolation",
    "handle_database_error",
    "RecordStore",
    "InMemoryRecordStore",
    "MongoRecordStore",
    "create_mongodb_store",
    "RecordFilter",
    "OPEN_FILTER",
    "GroupKey",
    "SortSpec",
    "create_record_store",
    "init_database",
    "get_record_store",
]
