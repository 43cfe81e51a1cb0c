"""Configuration loading and validation."""

from orchid_docstore.config.errors import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigValidationError,
    PlaceholderResolutionError,
)
from orchid_docstore.config.loader import deep_merge, load_config
from orchid_docstore.config.models import (
    AppSettings,
    ClientSettings,
    LoggingSettings,
    PoolSettings,
    ServiceSettings,
)
from orchid_docstore.config.placeholders import resolve_placeholders

__all__ = [
    "AppSettings",
    "ClientSettings",
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigValidationError",
    "LoggingSettings",
    "PlaceholderResolutionError",
    "PoolSettings",
    "ServiceSettings",
    "deep_merge",
    "load_config",
    "resolve_placeholders",
]
