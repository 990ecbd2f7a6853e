"""Application configuration helpers."""

from __future__ import annotations

from .consolidation import (
    ARCHIVE_CONFIRM_PHRASE,
    CONFLICT_CONFIRM_PHRASE,
    UNSCOPED_CONFIRM_PHRASE,
    ConsolidationConfig,
    get_consolidation_config,
    get_initiator,
)
from .env import env_value, positive_int_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .logging import configure_logging, log_level_from_env
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ARCHIVE_CONFIRM_PHRASE",
    "CONFLICT_CONFIRM_PHRASE",
    "UNSCOPED_CONFIRM_PHRASE",
    "ConfigurationError",
    "ConsolidationConfig",
    "DatabaseConfig",
    "MissingConfigurationError",
    "StorageConfig",
    "configure_logging",
    "env_value",
    "get_consolidation_config",
    "get_database_config",
    "get_initiator",
    "get_storage_config",
    "log_level_from_env",
    "positive_int_env",
    "require_env_vars",
]
