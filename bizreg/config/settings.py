"""
Flask Configuration Classes

Environment-specific settings (Development, Testing, Production) for the
application factory. Values come from the process environment, with a local
``.env`` file loaded through python-dotenv; ``create_app`` keyword overrides
win over both.

Environment selection: ``FLASK_ENV`` (``development`` | ``testing`` |
``production``), default ``development``.
"""

import os
from typing import List, Optional, Type

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class BaseConfig:
    """Settings shared by every environment."""

    APP_NAME = os.getenv("APP_NAME", "bizreg")
    APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
    FLASK_ENV = os.getenv("FLASK_ENV", "development")

    SECRET_KEY = os.getenv("SECRET_KEY", os.urandom(32).hex())
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", "1048576"))
    JSON_SORT_KEYS = False

    # Flask-CORS
    CORS_CONFIG = {
        "origins": _env_list("CORS_ORIGINS", "*"),
        "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        "allow_headers": ["Content-Type", "Authorization", "X-Requested-With", "X-Correlation-ID"],
        "expose_headers": ["X-Correlation-ID"],
        "max_age": int(os.getenv("CORS_MAX_AGE", "86400")),
    }

    # Record store
    RECORD_STORE_BACKEND = os.getenv("RECORD_STORE_BACKEND", "mongodb")
    MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017/bizreg")
    MONGODB_DATABASE = os.getenv("MONGODB_DATABASE", "bizreg")
    BUSINESS_COLLECTION = os.getenv("BUSINESS_COLLECTION", "businesses")
    COUNTER_COLLECTION = os.getenv("COUNTER_COLLECTION", "counters")
    MONGODB_SERVER_SELECTION_TIMEOUT_MS = int(os.getenv("MONGODB_SERVER_SELECTION_TIMEOUT_MS", "5000"))
    MONGODB_MAX_POOL_SIZE = int(os.getenv("MONGODB_MAX_POOL_SIZE", "50"))
    ENSURE_INDEXES_ON_STARTUP = _env_bool("ENSURE_INDEXES_ON_STARTUP", True)
    SYNC_COUNTERS_ON_STARTUP = _env_bool("SYNC_COUNTERS_ON_STARTUP", False)

    # Resilience (tenacity / pybreaker)
    STORE_RETRY_ATTEMPTS = int(os.getenv("STORE_RETRY_ATTEMPTS", "3"))
    STORE_RETRY_WAIT_SECONDS = float(os.getenv("STORE_RETRY_WAIT_SECONDS", "0.2"))
    CIRCUIT_BREAKER_FAIL_MAX = int(os.getenv("CIRCUIT_BREAKER_FAIL_MAX", "5"))
    CIRCUIT_BREAKER_RESET_TIMEOUT = float(os.getenv("CIRCUIT_BREAKER_RESET_TIMEOUT", "30"))

    # Registration and query behaviour
    APP_TIMEZONE = os.getenv("APP_TIMEZONE", "UTC")
    DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", "20"))
    MAX_PAGE_LIMIT = int(os.getenv("MAX_PAGE_LIMIT", "100"))
    RECENT_BUSINESSES_LIMIT = int(os.getenv("RECENT_BUSINESSES_LIMIT", "5"))
    YEARLY_TREND_WINDOW = int(os.getenv("YEARLY_TREND_WINDOW", "6"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json")

    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Local development: debug on, readable console logs."""

    DEBUG = True
    FLASK_ENV = "development"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()
    LOG_FORMAT = os.getenv("LOG_FORMAT", "console")


class TestingConfig(BaseConfig):
    """
    Automated tests: in-process record store, no startup maintenance, no
    retry back-off.
    """

    TESTING = True
    DEBUG = False
    FLASK_ENV = "testing"
    RECORD_STORE_BACKEND = os.getenv("TEST_RECORD_STORE_BACKEND", "memory")
    MONGODB_URI = os.getenv("TEST_MONGODB_URI", "mongodb://localhost:27017/bizreg_test")
    MONGODB_DATABASE = os.getenv("TEST_MONGODB_DATABASE", "bizreg_test")
    MONGODB_SERVER_SELECTION_TIMEOUT_MS = 1000
    STORE_RETRY_ATTEMPTS = 1
    STORE_RETRY_WAIT_SECONDS = 0.0
    SYNC_COUNTERS_ON_STARTUP = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING").upper()
    LOG_FORMAT = "console"


class ProductionConfig(BaseConfig):
    FLASK_ENV = "production"
    DEBUG = False
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json")


config_map = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "dev": DevelopmentConfig,
    "test": TestingConfig,
    "prod": ProductionConfig,
}


def get_config(environment: Optional[str] = None) -> Type[BaseConfig]:
    """
    Configuration class for ``environment`` (defaults to ``FLASK_ENV``).

    Raises:
        ValueError: If the environment is not supported
    """
    environment = (environment or os.getenv("FLASK_ENV", "development")).lower()
    if environment not in config_map:
        raise ValueError(
            f"Unsupported environment '{environment}'. "
            f"Supported environments: {sorted(config_map)}"
        )
    return config_map[environment]


def validate_configuration(config) -> List[str]:
    """
    Return a list of configuration problems (empty when valid).

    ``config`` is any mapping-like object with the keys above, typically
    ``app.config``.
    """
    issues = []
    if config.get("DEFAULT_PAGE_LIMIT", 1) < 1:
        issues.append("DEFAULT_PAGE_LIMIT must be at least 1")
    if config.get("MAX_PAGE_LIMIT", 1) < config.get("DEFAULT_PAGE_LIMIT", 1):
        issues.append("MAX_PAGE_LIMIT must not be below DEFAULT_PAGE_LIMIT")
    if config.get("YEARLY_TREND_WINDOW", 1) < 1:
        issues.append("YEARLY_TREND_WINDOW must be at least 1")
    if config.get("RECENT_BUSINESSES_LIMIT", 1) < 1:
        issues.append("RECENT_BUSINESSES_LIMIT must be at least 1")
    if config.get("STORE_RETRY_ATTEMPTS", 1) < 1:
        issues.append("STORE_RETRY_ATTEMPTS must be at least 1")
    if config.get("RECORD_STORE_BACKEND") == "mongodb" and not config.get("MONGODB_URI"):
        issues.append("MONGODB_URI is required for the mongodb backend")
    return issues


__all__ = [
    "BaseConfig",
    "DevelopmentConfig",
    "TestingConfig",
    "ProductionConfig",
    "config_map",
    "get_config",
    "validate_configuration",
]
