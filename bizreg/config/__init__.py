"""
Application configuration.
"""

from bizreg.config.settings import (
    BaseConfig,
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    config_map,
    get_config,
    validate_configuration,
)

__all__ = [
    "BaseConfig",
    "DevelopmentConfig",
    "TestingConfig",
    "ProductionConfig",
    "config_map",
    "get_config",
    "validate_configuration",
]
