from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from reminders.logging_config import get_logger
from reminders.mobile import CONFIG_PATH
from reminders.mobile.errors import ConfigurationError

logger = get_logger(__name__)

# FCM rejects multicast messages with more than 500 tokens
MAX_MULTICAST_TOKENS = 500


# =============================================================================
# ReminderConfig (args/reminders.yaml)
# =============================================================================

class ScheduleConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    timezone: str = Field(default="Europe/Kyiv")
    window_minutes: int = Field(default=2, ge=0)

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: {value}") from e
        return value

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class DeliveryConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    batch_size: int = Field(default=MAX_MULTICAST_TOKENS, ge=1, le=MAX_MULTICAST_TOKENS)
    clean_invalid: bool = Field(default=True)


class MessageConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    title: str = Field(default="Reminder")
    body: str = Field(default="")

    def to_payload(self) -> dict[str, str]:
        return {"title": self.title, "body": self.body}


class DatastoreConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    collection: str = Field(default="notifications", min_length=1)


class FirebaseConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    service_account_env: str = Field(default="FIREBASE_SERVICE_ACCOUNT", min_length=1)


class ReminderConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    message: MessageConfig = Field(default_factory=MessageConfig)
    datastore: DatastoreConfig = Field(default_factory=DatastoreConfig)
    firebase: FirebaseConfig = Field(default_factory=FirebaseConfig)


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get("REMINDERS_CONFIG")
    if env_path:
        return Path(env_path)
    return CONFIG_PATH


def load_config(path: str | Path | None = None) -> ReminderConfig:
    """
    Load and validate the reminder configuration.

    A missing file yields the defaults. A file that exists but cannot be
    parsed or validated raises ConfigurationError: running with silently
    substituted settings could fire reminders at the wrong time.
    """
    yaml_path = resolve_config_path(path)

    if not yaml_path.exists():
        logger.info("config_defaults", path=str(yaml_path))
        return ReminderConfig()

    try:
        with open(yaml_path) as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read config {yaml_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config {yaml_path} must be a mapping")

    try:
        return ReminderConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Config validation failed for {yaml_path}: {e}") from e


__all__ = [
    "MAX_MULTICAST_TOKENS",
    "ReminderConfig",
    "ScheduleConfig",
    "DeliveryConfig",
    "MessageConfig",
    "DatastoreConfig",
    "FirebaseConfig",
    "load_config",
    "resolve_config_path",
]
