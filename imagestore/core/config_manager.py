"""
Configuration management for ImageStore.

Handles loading, validation, and access to configuration settings.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from enum import Enum

import yaml
from pydantic import BaseModel, Field, field_validator, ValidationError, ConfigDict

logger = logging.getLogger(__name__)

ONE_MIB = 1024 * 1024


class LogLevel(str, Enum):
    """Valid log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StorageType(str, Enum):
    """Supported blob store types."""
    MEMORY = "memory"
    AZURE = "azure"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: LogLevel = LogLevel.INFO
    format: str = "json"
    file: Optional[str] = None
    rotation_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    rotation_count: int = 5
    module_levels: Optional[Dict[str, str]] = Field(
        default=None,
        description="Per-module log levels, e.g., {'imagestore.storage': 'DEBUG'}"
    )


class StorageConfig(BaseModel):
    """Blob store configuration."""
    type: StorageType = StorageType.MEMORY
    account_name: str = "imagestore"
    connection_string: Optional[str] = None
    account_url: Optional[str] = None
    account_key: Optional[str] = None
    copy_delay: float = Field(
        default=0.0,
        ge=0.0,
        description="Seconds before an in-memory copy completes"
    )


class RepositoryConfig(BaseModel):
    """Image repository behaviour."""
    continuation_ttl_seconds: int = Field(
        default=3600,
        gt=0,
        description="Sliding lifetime of a cached listing cursor"
    )
    max_chunk_size: Optional[int] = Field(
        default=ONE_MIB,
        description="Largest accepted chunk in bytes (None = unlimited)"
    )
    default_page_size: int = Field(default=5000, gt=0)

    @field_validator("max_chunk_size")
    @classmethod
    def validate_max_chunk_size(cls, v: Optional[int]) -> Optional[int]:
        """Chunk limit must be positive when set."""
        if v is not None and v <= 0:
            raise ValueError("max_chunk_size must be positive")
        return v


class ImageStoreConfig(BaseModel):
    """Main ImageStore configuration schema."""

    version: str = Field(default="0.1.0", description="Configuration version")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    storage: StorageConfig = Field(default_factory=StorageConfig)

    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Validate version format."""
        parts = v.split(".")
        if len(parts) != 3:
            raise ValueError("Version must be in format x.y.z")
        for part in parts:
            if not part.isdigit():
                raise ValueError("Version components must be numeric")
        return v

    model_config = ConfigDict(use_enum_values=True)


class ConfigManager:
    """
    Manages ImageStore configuration loading and validation.

    Configuration precedence (highest to lowest):
    1. CLI arguments
    2. Environment variables (IMAGESTORE_*)
    3. Configuration file (YAML/JSON)
    4. Defaults
    """

    def __init__(self):
        self._config: Optional[ImageStoreConfig] = None
        self._config_file: Optional[Path] = None

    def load(
        self,
        config_file: Optional[str] = None,
        cli_overrides: Optional[Dict[str, Any]] = None
    ) -> ImageStoreConfig:
        """
        Load and validate configuration from multiple sources.

        Args:
            config_file: Path to configuration file (YAML or JSON)
            cli_overrides: Dictionary of CLI argument overrides

        Returns:
            Validated ImageStoreConfig instance

        Raises:
            ValidationError: If configuration is invalid
            FileNotFoundError: If specified config file doesn't exist
        """
        logger.info("Loading ImageStore configuration")

        config_dict: Dict[str, Any] = {}

        if config_file:
            config_dict = self._load_from_file(config_file)
            self._config_file = Path(config_file)
            logger.info(f"Loaded configuration from file: {config_file}")

        env_config = self._load_from_env()
        config_dict = self._merge_configs(config_dict, env_config)
        if env_config:
            logger.info(f"Applied {len(env_config)} environment variable overrides")

        if cli_overrides:
            config_dict = self._merge_configs(config_dict, cli_overrides)
            logger.info(f"Applied {len(cli_overrides)} CLI argument overrides")

        try:
            self._config = ImageStoreConfig(**config_dict)
            logger.info("Configuration validated successfully")
            self._log_configuration()
            return self._config
        except ValidationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file."""
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(path, 'r') as f:
            if path.suffix in ['.yaml', '.yml']:
                return yaml.safe_load(f) or {}
            elif path.suffix == '.json':
                return json.load(f)
            else:
                raise ValueError(f"Unsupported config file format: {path.suffix}")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        config: Dict[str, Any] = {}

        # Logging configuration
        if log_level := os.getenv("IMAGESTORE_LOG_LEVEL"):
            config.setdefault("logging", {})["level"] = log_level.upper()
        if log_file := os.getenv("IMAGESTORE_LOG_FILE"):
            config.setdefault("logging", {})["file"] = log_file

        # Storage configuration
        if storage_type := os.getenv("IMAGESTORE_STORAGE_TYPE"):
            config.setdefault("storage", {})["type"] = storage_type.lower()
        if account_name := os.getenv("IMAGESTORE_ACCOUNT_NAME"):
            config.setdefault("storage", {})["account_name"] = account_name
        if connection_string := os.getenv("IMAGESTORE_CONNECTION_STRING"):
            config.setdefault("storage", {})["connection_string"] = connection_string
        if account_url := os.getenv("IMAGESTORE_ACCOUNT_URL"):
            config.setdefault("storage", {})["account_url"] = account_url
        if account_key := os.getenv("IMAGESTORE_ACCOUNT_KEY"):
            config.setdefault("storage", {})["account_key"] = account_key

        # Repository configuration
        if ttl := os.getenv("IMAGESTORE_CONTINUATION_TTL"):
            config.setdefault("repository", {})["continuation_ttl_seconds"] = int(ttl)
        if max_chunk := os.getenv("IMAGESTORE_MAX_CHUNK_SIZE"):
            config.setdefault("repository", {})["max_chunk_size"] = (
                None if max_chunk.lower() in ['none', '0', ''] else int(max_chunk)
            )

        return config

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two configuration dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _log_configuration(self) -> None:
        """Log the loaded configuration (with sensitive data redacted)."""
        if not self._config:
            return

        config_dict = self._config.model_dump()

        storage = config_dict.get("storage", {})
        for secret in ("connection_string", "account_key"):
            if storage.get(secret):
                storage[secret] = "***REDACTED***"

        logger.info(f"Active configuration: {json.dumps(config_dict, indent=2)}")

    def get_config(self) -> ImageStoreConfig:
        """
        Get the loaded configuration.

        Returns:
            ImageStoreConfig instance

        Raises:
            RuntimeError: If configuration hasn't been loaded
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call load() first.")
        return self._config

    def reload(self) -> ImageStoreConfig:
        """
        Reload configuration from the same sources.

        Returns:
            Reloaded ImageStoreConfig instance
        """
        config_file = str(self._config_file) if self._config_file else None
        return self.load(config_file=config_file)
