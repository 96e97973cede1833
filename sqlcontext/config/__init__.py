"""Configuration models for sqlcontext."""

from sqlcontext.config.models import (
    DEFAULT_PROTOCOL,
    ContextSettings,
    DatabaseConfig,
    EnvironmentSettings,
    StreamingOptions,
    get_environment_settings,
    resolve_protocol,
)

__all__ = [
    "DEFAULT_PROTOCOL",
    "ContextSettings",
    "DatabaseConfig",
    "EnvironmentSettings",
    "StreamingOptions",
    "get_environment_settings",
    "resolve_protocol",
]
