"""
Configuration loading and validation.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

PROVIDERS = ("frankfurter", "yahoo_finance")


class ConfigValidationError(Exception):
    """Raised when configuration is invalid."""

    pass


@dataclass
class DatabaseConfig:
    """Database configuration."""

    path: str = "data/currency_tracker.db"


@dataclass
class DataSourceConfig:
    """Rate source configuration."""

    provider: str = "frankfurter"
    base_url: str = "https://api.frankfurter.app"
    timeout_seconds: float = 10.0
    history_days: int = 30


@dataclass
class NotificationsConfig:
    """Notifications configuration."""

    threshold_delay_seconds: float = 5.0
    channels: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class AdvancedConfig:
    """Advanced configuration."""

    log_level: str = "INFO"


@dataclass
class AppConfig:
    """Main application configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    data_source: DataSourceConfig = field(default_factory=DataSourceConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    advanced: AdvancedConfig = field(default_factory=AdvancedConfig)


def _substitute_env_vars(value: Any) -> Any:
    """Substitute environment variables in string values."""
    if isinstance(value, str):
        # Match ${VAR_NAME} pattern
        pattern = r"\$\{([^}]+)\}"
        matches = re.findall(pattern, value)
        for var_name in matches:
            env_value = os.environ.get(var_name, "")
            value = value.replace(f"${{{var_name}}}", env_value)
        return value
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _validate_config(config_dict: dict[str, Any]) -> None:
    """Validate configuration values."""
    # Check database path is provided
    db_config = config_dict.get("database") or {}
    db_path = db_config.get("path", DatabaseConfig.path)
    if not db_path:
        raise ConfigValidationError("Database path is required")

    path = Path(db_path)
    parent = path.parent
    if parent.exists() and not os.access(parent, os.W_OK):
        raise ConfigValidationError(f"Database path not writable: {parent}")

    ds = config_dict.get("data_source") or {}
    provider = ds.get("provider", DataSourceConfig.provider)
    if provider not in PROVIDERS:
        raise ConfigValidationError(f"Unknown rate provider: {provider}")

    try:
        timeout = float(ds.get("timeout_seconds", DataSourceConfig.timeout_seconds))
        history_days = int(ds.get("history_days", DataSourceConfig.history_days))
        notif = config_dict.get("notifications") or {}
        delay = float(
            notif.get("threshold_delay_seconds", NotificationsConfig.threshold_delay_seconds)
        )
    except (TypeError, ValueError) as e:
        raise ConfigValidationError(f"Invalid numeric setting: {e}")

    if timeout <= 0:
        raise ConfigValidationError("timeout_seconds must be positive")
    if history_days <= 0:
        raise ConfigValidationError("history_days must be positive")
    if delay < 0:
        raise ConfigValidationError("threshold_delay_seconds cannot be negative")

    channels = (config_dict.get("notifications") or {}).get("channels") or []
    if not isinstance(channels, list):
        raise ConfigValidationError("notifications.channels must be a list")


def load_config(config_path: str) -> AppConfig:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        AppConfig instance

    Raises:
        ConfigValidationError: If configuration is invalid
        FileNotFoundError: If config file doesn't exist
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path) as f:
        raw_config = yaml.safe_load(f) or {}

    # Substitute environment variables
    config_dict = _substitute_env_vars(raw_config)

    # Validate
    _validate_config(config_dict)

    database = DatabaseConfig(**(config_dict.get("database") or {}))

    ds_dict = config_dict.get("data_source") or {}
    data_source = DataSourceConfig(
        provider=ds_dict.get("provider", DataSourceConfig.provider),
        base_url=ds_dict.get("base_url", DataSourceConfig.base_url),
        timeout_seconds=float(ds_dict.get("timeout_seconds", DataSourceConfig.timeout_seconds)),
        history_days=int(ds_dict.get("history_days", DataSourceConfig.history_days)),
    )

    notif_dict = config_dict.get("notifications") or {}
    notifications = NotificationsConfig(
        threshold_delay_seconds=float(
            notif_dict.get(
                "threshold_delay_seconds", NotificationsConfig.threshold_delay_seconds
            )
        ),
        channels=list(notif_dict.get("channels") or []),
    )

    advanced = AdvancedConfig(**(config_dict.get("advanced") or {}))

    return AppConfig(
        database=database,
        data_source=data_source,
        notifications=notifications,
        advanced=advanced,
    )
