"""Configuration management."""

from .manager import (
    ConfigManager,
    ConfigurationError,
    DatabaseConfig,
    TableConfig,
    MappingConfig,
    PriceConfig,
    ReportConfig,
    LoggingConfig,
    VerifierConfig,
    create_sample_config,
)

__all__ = [
    "ConfigManager",
    "ConfigurationError",
    "DatabaseConfig",
    "TableConfig",
    "MappingConfig",
    "PriceConfig",
    "ReportConfig",
    "LoggingConfig",
    "VerifierConfig",
    "create_sample_config",
]
