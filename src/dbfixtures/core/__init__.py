"""Core infrastructure: configuration, errors, logging, registries."""

from dbfixtures.core.config import ConventionSettings, Settings, get_settings, load_conventions
from dbfixtures.core.exceptions import (
    ConfigurationError,
    CyclicDependencyError,
    DataSourceNotFoundError,
    DbFixturesError,
    ExecutionError,
    NotFoundError,
    ParseError,
    RowNotFoundError,
)
from dbfixtures.core.logging import configure_logging, get_logger, log_context

__all__ = [
    "ConfigurationError",
    "ConventionSettings",
    "CyclicDependencyError",
    "DataSourceNotFoundError",
    "DbFixturesError",
    "ExecutionError",
    "NotFoundError",
    "ParseError",
    "RowNotFoundError",
    "Settings",
    "configure_logging",
    "get_logger",
    "get_settings",
    "load_conventions",
    "log_context",
]
