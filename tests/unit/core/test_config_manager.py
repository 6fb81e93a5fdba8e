"""
Tests for ConfigManager.
"""

import json

import pytest
import yaml
from pydantic import ValidationError

from imagestore.core.config_manager import (
    ConfigManager,
    ImageStoreConfig,
    LogLevel,
    RepositoryConfig,
    StorageType,
)

ENV_VARS = [
    "IMAGESTORE_LOG_LEVEL",
    "IMAGESTORE_LOG_FILE",
    "IMAGESTORE_STORAGE_TYPE",
    "IMAGESTORE_ACCOUNT_NAME",
    "IMAGESTORE_CONNECTION_STRING",
    "IMAGESTORE_ACCOUNT_URL",
    "IMAGESTORE_ACCOUNT_KEY",
    "IMAGESTORE_CONTINUATION_TTL",
    "IMAGESTORE_MAX_CHUNK_SIZE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Make sure no IMAGESTORE_* variable leaks in from the environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestConfigManager:
    """Test suite for ConfigManager."""

    def test_load_defaults(self):
        """Test loading default configuration."""
        config = ConfigManager().load()

        assert config.version == "0.1.0"
        assert config.logging.level == LogLevel.INFO
        assert config.storage.type == StorageType.MEMORY
        assert config.storage.account_name == "imagestore"
        assert config.repository.continuation_ttl_seconds == 3600
        assert config.repository.max_chunk_size == 1024 * 1024
        assert config.repository.default_page_size == 5000

    def test_load_from_yaml_file(self, tmp_path):
        """Test loading configuration from YAML file."""
        config_file = tmp_path / "imagestore.yaml"
        config_file.write_text(yaml.dump({
            "version": "1.0.0",
            "logging": {"level": "DEBUG"},
            "storage": {"type": "azure", "account_url": "https://acct.blob.core.windows.net"},
            "repository": {"continuation_ttl_seconds": 60},
        }))

        config = ConfigManager().load(config_file=str(config_file))

        assert config.version == "1.0.0"
        assert config.logging.level == LogLevel.DEBUG
        assert config.storage.type == StorageType.AZURE
        assert config.storage.account_url == "https://acct.blob.core.windows.net"
        assert config.repository.continuation_ttl_seconds == 60

    def test_load_from_json_file(self, tmp_path):
        """Test loading configuration from JSON file."""
        config_file = tmp_path / "imagestore.json"
        config_file.write_text(json.dumps({"version": "2.0.0", "repository": {"default_page_size": 50}}))

        config = ConfigManager().load(config_file=str(config_file))

        assert config.version == "2.0.0"
        assert config.repository.default_page_size == 50

    def test_load_from_env_variables(self, monkeypatch):
        """Test loading configuration from environment variables."""
        monkeypatch.setenv("IMAGESTORE_LOG_LEVEL", "warning")
        monkeypatch.setenv("IMAGESTORE_STORAGE_TYPE", "AZURE")
        monkeypatch.setenv("IMAGESTORE_CONNECTION_STRING", "AccountName=a;AccountKey=k")
        monkeypatch.setenv("IMAGESTORE_CONTINUATION_TTL", "120")
        monkeypatch.setenv("IMAGESTORE_MAX_CHUNK_SIZE", "4096")

        config = ConfigManager().load()

        assert config.logging.level == LogLevel.WARNING
        assert config.storage.type == StorageType.AZURE
        assert config.storage.connection_string == "AccountName=a;AccountKey=k"
        assert config.repository.continuation_ttl_seconds == 120
        assert config.repository.max_chunk_size == 4096

    def test_env_disables_chunk_limit(self, monkeypatch):
        """Test IMAGESTORE_MAX_CHUNK_SIZE=none removes the chunk limit."""
        monkeypatch.setenv("IMAGESTORE_MAX_CHUNK_SIZE", "none")

        assert ConfigManager().load().repository.max_chunk_size is None

    def test_cli_overrides(self):
        """Test CLI argument overrides."""
        config = ConfigManager().load(cli_overrides={
            "logging": {"level": "ERROR"},
            "storage": {"copy_delay": 0.5},
        })

        assert config.logging.level == LogLevel.ERROR
        assert config.storage.copy_delay == 0.5

    def test_configuration_precedence(self, tmp_path, monkeypatch):
        """Test configuration precedence: CLI > ENV > FILE > DEFAULTS."""
        config_file = tmp_path / "imagestore.yaml"
        config_file.write_text(yaml.dump({
            "logging": {"level": "DEBUG"},
            "storage": {"account_name": "fileaccount"},
            "repository": {"default_page_size": 10},
        }))
        monkeypatch.setenv("IMAGESTORE_ACCOUNT_NAME", "envaccount")
        monkeypatch.setenv("IMAGESTORE_LOG_LEVEL", "WARNING")

        config = ConfigManager().load(
            config_file=str(config_file),
            cli_overrides={"logging": {"level": "ERROR"}},
        )

        assert config.logging.level == LogLevel.ERROR
        assert config.storage.account_name == "envaccount"
        assert config.repository.default_page_size == 10

    def test_invalid_version_format(self):
        """Test that invalid version format raises validation error."""
        with pytest.raises(ValidationError) as exc_info:
            ConfigManager().load(cli_overrides={"version": "1.0"})

        assert "Version must be in format x.y.z" in str(exc_info.value)

    def test_invalid_version_non_numeric(self):
        """Test that non-numeric version components raise validation error."""
        with pytest.raises(ValidationError) as exc_info:
            ConfigManager().load(cli_overrides={"version": "1.x.0"})

        assert "Version components must be numeric" in str(exc_info.value)

    def test_file_not_found(self):
        """Test that missing config file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            ConfigManager().load(config_file="/nonexistent/config.yaml")

    def test_unsupported_file_format(self, tmp_path):
        """Test that unsupported file format raises ValueError."""
        config_file = tmp_path / "imagestore.txt"
        config_file.write_text("invalid config")

        with pytest.raises(ValueError) as exc_info:
            ConfigManager().load(config_file=str(config_file))

        assert "Unsupported config file format" in str(exc_info.value)

    def test_get_config_before_load(self):
        """Test that getting config before loading raises RuntimeError."""
        with pytest.raises(RuntimeError) as exc_info:
            ConfigManager().get_config()

        assert "Configuration not loaded" in str(exc_info.value)

    def test_get_config_after_load(self):
        """Test getting config after loading."""
        manager = ConfigManager()
        config = manager.load()

        assert manager.get_config() is config

    def test_reload_configuration(self, tmp_path):
        """Test reloading configuration."""
        config_file = tmp_path / "imagestore.yaml"
        config_file.write_text(yaml.dump({"repository": {"default_page_size": 100}}))

        manager = ConfigManager()
        assert manager.load(config_file=str(config_file)).repository.default_page_size == 100

        config_file.write_text(yaml.dump({"repository": {"default_page_size": 200}}))
        assert manager.reload().repository.default_page_size == 200

    def test_secrets_redacted_in_log(self, caplog):
        """Test the account key never reaches the configuration log."""
        with caplog.at_level("INFO", logger="imagestore.core.config_manager"):
            ConfigManager().load(cli_overrides={"storage": {"account_key": "supersecretkey"}})

        assert "supersecretkey" not in caplog.text
        assert "***REDACTED***" in caplog.text


class TestRepositoryConfig:
    """Test suite for repository settings validation."""

    def test_defaults(self):
        """Test default repository settings."""
        config = RepositoryConfig()
        assert config.continuation_ttl_seconds == 3600
        assert config.max_chunk_size == 1024 * 1024

    def test_chunk_limit_can_be_disabled(self):
        """Test max_chunk_size accepts None."""
        assert RepositoryConfig(max_chunk_size=None).max_chunk_size is None

    @pytest.mark.parametrize("field,value", [
        ("continuation_ttl_seconds", 0),
        ("max_chunk_size", 0),
        ("max_chunk_size", -1),
        ("default_page_size", 0),
    ])
    def test_rejects_non_positive(self, field, value):
        """Test non-positive limits are rejected."""
        with pytest.raises(ValidationError):
            RepositoryConfig(**{field: value})

    def test_negative_copy_delay_rejected(self):
        """Test negative copy delay is rejected."""
        with pytest.raises(ValidationError):
            ImageStoreConfig(storage={"copy_delay": -1})
