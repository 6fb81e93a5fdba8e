"""Core module initialization."""

from .config_manager import (
    ConfigManager,
    ImageStoreConfig,
    LoggingConfig,
    RepositoryConfig,
    StorageConfig,
    StorageType,
)
from .logging_config import (
    setup_logging,
    log_with_context,
    set_correlation_id,
    track_operation,
)

__all__ = [
    "ConfigManager",
    "ImageStoreConfig",
    "LoggingConfig",
    "RepositoryConfig",
    "StorageConfig",
    "StorageType",
    "setup_logging",
    "log_with_context",
    "set_correlation_id",
    "track_operation",
]
