"""Centralized configuration management with validation."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


def _mask_secret(value: str, visible_chars: int = 4) -> str:
    """Mask a secret value for logging, showing only first few chars."""
    if not value:
        return "<empty>"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class SheetsConfig:
    """Google Sheets (row store) configuration."""
    spreadsheet_id: str = ""
    credentials_file: str = "config/credentials.json"
    token_file: str = "config/token.json"
    auth_mode: str = "service_account"  # "service_account" or "oauth"
    probe_timeout: int = 10

    def validate(self) -> List[str]:
        """Validate sheets configuration, return list of errors."""
        errors = []
        if not self.spreadsheet_id:
            errors.append("SHEETS_SPREADSHEET_ID is required")
        if self.auth_mode not in ("service_account", "oauth"):
            errors.append(f"Unknown SHEETS_AUTH_MODE: {self.auth_mode}")
        elif self.auth_mode == "service_account" and not self.credentials_file:
            errors.append("SHEETS_CREDENTIALS_FILE is required for service_account mode")
        if self.probe_timeout <= 0:
            errors.append("SHEETS_PROBE_TIMEOUT must be positive")
        return errors


@dataclass
class DriveConfig:
    """Google Drive (file store) configuration."""
    enabled: bool = True
    task_images_folder: str = "task-images"
    reception_files_folder: str = "reception-files"
    make_public: bool = True

    def validate(self) -> List[str]:
        errors = []
        if self.enabled and not self.task_images_folder:
            errors.append("DRIVE_TASK_IMAGES_FOLDER must not be empty")
        return errors


@dataclass
class SMSConfig:
    """SMS gateway (Melipayamak) configuration."""
    enabled: bool = False
    username: str = ""
    password: str = ""
    sender: str = ""
    api_base: str = "https://rest.payamak-panel.com/api/SendSMS"
    cost_per_message: float = 50.0

    def validate(self) -> List[str]:
        """Validate SMS configuration, return list of errors."""
        errors = []
        if self.enabled:
            if not self.username:
                errors.append("SMS_USERNAME is required when SMS is enabled")
            if not self.password:
                errors.append("SMS_PASSWORD is required when SMS is enabled")
            if not self.sender:
                errors.append("SMS_SENDER is required when SMS is enabled")
        return errors

    def __repr__(self) -> str:
        return (f"SMSConfig(enabled={self.enabled}, username={self.username}, "
                f"password={_mask_secret(self.password)}, sender={self.sender})")


@dataclass
class StorageConfig:
    """Local device storage and offline behaviour."""
    local_storage_path: str = "data/local_storage.db"
    queue_offline_writes: bool = True
    cache_max_age: int = 300

    def validate(self) -> List[str]:
        """Validate storage configuration, return list of errors."""
        errors = []
        db_parent = Path(self.local_storage_path).parent
        if str(db_parent) != "." and not db_parent.exists():
            try:
                db_parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Cannot create local storage directory: {e}")
        return errors


@dataclass
class AppConfig:
    """Main application configuration."""
    sheets: SheetsConfig = field(default_factory=SheetsConfig)
    drive: DriveConfig = field(default_factory=DriveConfig)
    sms: SMSConfig = field(default_factory=SMSConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    shop_name: str = "Auto Service Center"
    log_level: str = "INFO"
    log_format: str = "text"  # "json" or "text"

    def validate(self, require_sheets: bool = True, require_sms: bool = False) -> None:
        """Validate all configuration, raise ConfigurationError if invalid."""
        errors = []

        if require_sheets:
            errors.extend(self.sheets.validate())
        if require_sms or self.sms.enabled:
            errors.extend(self.sms.validate())

        errors.extend(self.drive.validate())
        errors.extend(self.storage.validate())

        if errors:
            raise ConfigurationError("Configuration errors:\n  - " + "\n  - ".join(errors))

    def __repr__(self) -> str:
        return (f"AppConfig(\n  sheets={self.sheets},\n  drive={self.drive},\n  "
                f"sms={self.sms},\n  storage={self.storage},\n  "
                f"shop_name={self.shop_name}, log_level={self.log_level}\n)")


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables."""
    from dotenv import load_dotenv

    load_dotenv()

    return AppConfig(
        sheets=SheetsConfig(
            spreadsheet_id=os.getenv("SHEETS_SPREADSHEET_ID", ""),
            credentials_file=os.getenv("SHEETS_CREDENTIALS_FILE", "config/credentials.json"),
            token_file=os.getenv("SHEETS_TOKEN_FILE", "config/token.json"),
            auth_mode=os.getenv("SHEETS_AUTH_MODE", "service_account"),
            probe_timeout=int(os.getenv("SHEETS_PROBE_TIMEOUT", "10")),
        ),
        drive=DriveConfig(
            enabled=_env_flag("DRIVE_ENABLED", "true"),
            task_images_folder=os.getenv("DRIVE_TASK_IMAGES_FOLDER", "task-images"),
            reception_files_folder=os.getenv("DRIVE_RECEPTION_FOLDER", "reception-files"),
            make_public=_env_flag("DRIVE_MAKE_PUBLIC", "true"),
        ),
        sms=SMSConfig(
            enabled=_env_flag("SMS_ENABLED"),
            username=os.getenv("SMS_USERNAME", ""),
            password=os.getenv("SMS_PASSWORD", ""),
            sender=os.getenv("SMS_SENDER", ""),
            api_base=os.getenv("SMS_API_BASE", "https://rest.payamak-panel.com/api/SendSMS"),
            cost_per_message=float(os.getenv("SMS_COST_PER_MESSAGE", "50")),
        ),
        storage=StorageConfig(
            local_storage_path=os.getenv("LOCAL_STORAGE_PATH", "data/local_storage.db"),
            queue_offline_writes=_env_flag("QUEUE_OFFLINE_WRITES", "true"),
            cache_max_age=int(os.getenv("CACHE_MAX_AGE", "300")),
        ),
        shop_name=os.getenv("SHOP_NAME", "Auto Service Center"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_format=os.getenv("LOG_FORMAT", "text"),
    )


# Singleton config instance for the CLI and API entry points
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config_from_env()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
