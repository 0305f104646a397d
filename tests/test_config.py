"""Tests for configuration module."""

import os
from unittest.mock import patch

import pytest

from core.config import (
    AppConfig,
    ConfigurationError,
    DriveConfig,
    SheetsConfig,
    SMSConfig,
    StorageConfig,
    _mask_secret,
    load_config_from_env,
)


class TestMaskSecret:
    """Tests for secret masking utility."""

    def test_mask_normal_secret(self):
        """Test masking of normal length secret."""
        result = _mask_secret("abcdefghij")
        assert result == "abcd******"

    def test_mask_short_secret(self):
        """Test masking of short secret."""
        result = _mask_secret("abc")
        assert result == "***"

    def test_mask_empty_secret(self):
        """Test masking of empty secret."""
        result = _mask_secret("")
        assert result == "<empty>"


class TestSheetsConfig:
    """Tests for SheetsConfig validation."""

    def test_valid_config(self):
        config = SheetsConfig(spreadsheet_id="abc123")
        assert config.validate() == []

    def test_missing_spreadsheet_id(self):
        errors = SheetsConfig().validate()
        assert any("SHEETS_SPREADSHEET_ID" in e for e in errors)

    def test_unknown_auth_mode(self):
        errors = SheetsConfig(spreadsheet_id="abc", auth_mode="api_key").validate()
        assert any("SHEETS_AUTH_MODE" in e for e in errors)

    def test_probe_timeout_must_be_positive(self):
        errors = SheetsConfig(spreadsheet_id="abc", probe_timeout=0).validate()
        assert len(errors) == 1


class TestSMSConfig:
    """Tests for SMSConfig validation."""

    def test_disabled_needs_nothing(self):
        assert SMSConfig().validate() == []

    def test_enabled_needs_credentials(self):
        errors = SMSConfig(enabled=True).validate()
        assert len(errors) == 3

    def test_repr_masks_password(self):
        config = SMSConfig(enabled=True, username="shop", password="supersecret", sender="3000")
        assert "supersecret" not in repr(config)


class TestStorageConfig:
    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "local.db"
        assert StorageConfig(local_storage_path=str(path)).validate() == []
        assert path.parent.exists()


class TestAppConfig:
    """Tests for AppConfig validation."""

    def test_validate_raises_with_all_errors(self, tmp_path):
        config = AppConfig(
            drive=DriveConfig(task_images_folder=""),
            storage=StorageConfig(local_storage_path=str(tmp_path / "l.db")),
        )
        with pytest.raises(ConfigurationError) as exc:
            config.validate(require_sheets=True)
        assert "SHEETS_SPREADSHEET_ID" in str(exc.value)
        assert "DRIVE_TASK_IMAGES_FOLDER" in str(exc.value)

    def test_sheets_optional(self, tmp_path):
        config = AppConfig(storage=StorageConfig(local_storage_path=str(tmp_path / "l.db")))
        config.validate(require_sheets=False)

    def test_enabled_sms_always_validated(self, tmp_path):
        config = AppConfig(
            sheets=SheetsConfig(spreadsheet_id="abc"),
            sms=SMSConfig(enabled=True),
            storage=StorageConfig(local_storage_path=str(tmp_path / "l.db")),
        )
        with pytest.raises(ConfigurationError):
            config.validate()


class TestLoadConfigFromEnv:
    """Tests for loading config from environment."""

    @patch.dict(os.environ, {
        "SHEETS_SPREADSHEET_ID": "sheet-xyz",
        "SHEETS_AUTH_MODE": "oauth",
        "DRIVE_ENABLED": "false",
        "SMS_ENABLED": "true",
        "SMS_USERNAME": "shop",
        "SMS_COST_PER_MESSAGE": "75",
        "QUEUE_OFFLINE_WRITES": "no",
        "CACHE_MAX_AGE": "60",
        "LOG_LEVEL": "debug",
    }, clear=False)
    @patch("dotenv.load_dotenv")
    def test_load_from_env(self, _load_dotenv):
        config = load_config_from_env()
        assert config.sheets.spreadsheet_id == "sheet-xyz"
        assert config.sheets.auth_mode == "oauth"
        assert config.drive.enabled is False
        assert config.sms.enabled is True
        assert config.sms.username == "shop"
        assert config.sms.cost_per_message == 75.0
        assert config.storage.queue_offline_writes is False
        assert config.storage.cache_max_age == 60
        assert config.log_level == "DEBUG"

    @patch.dict(os.environ, {}, clear=True)
    @patch("dotenv.load_dotenv")
    def test_defaults(self, _load_dotenv):
        config = load_config_from_env()
        assert config.sheets.auth_mode == "service_account"
        assert config.drive.enabled is True
        assert config.sms.enabled is False
        assert config.storage.local_storage_path == "data/local_storage.db"
        assert config.shop_name == "Auto Service Center"
