"""
Settings file loader and helpers.

Provides typed access to `system/settings.yaml`, covering the CalDAV feed,
command dispatch, scheduler storage, and general flags.
"""

from __future__ import annotations

import shutil
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from caltrigger.constants import (
    DEFAULT_DISPATCH_TIMEOUT,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DISPATCH_MODE_LOG,
    REFRESH_MAX,
    REFRESH_MIN,
    VALID_DISPATCH_MODES,
)
from caltrigger.runtime.paths import get_system_root


SETTINGS_TEMPLATE = Path(__file__).parent / "settings.template.yaml"


class SettingsEntry(BaseModel):
    """Single general settings entry."""

    value: Any
    description: str | None = None
    restart_required: bool = False


class CalDavSettings(BaseModel):
    """Connection and polling settings for the CalDAV feed."""

    host: str = ""
    port: Optional[int] = None
    url: str = ""
    username: str = ""
    tls: bool = True
    strict_tls: bool = True
    refresh: int = DEFAULT_REFRESH_INTERVAL
    timezone: str = "UTC"
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @field_validator("refresh")
    @classmethod
    def _check_refresh(cls, value: int) -> int:
        if not REFRESH_MIN <= value <= REFRESH_MAX:
            raise ValueError(f"refresh must be between {REFRESH_MIN} and {REFRESH_MAX} seconds")
        return value

    @property
    def effective_port(self) -> int:
        """Configured port, defaulting to 443 with TLS and 80 without."""
        if self.port:
            return self.port
        return 443 if self.tls else 80

    @property
    def base_url(self) -> str:
        """Absolute URL of the calendar collection."""
        scheme = "https" if self.tls else "http"
        path = self.url if self.url.startswith("/") else f"/{self.url}"
        return f"{scheme}://{self.host}:{self.effective_port}{path}"


class DispatchSettings(BaseModel):
    """Where fired commands are sent."""

    mode: str = DISPATCH_MODE_LOG
    webhook_url: str | None = None
    timeout: float = DEFAULT_DISPATCH_TIMEOUT

    @field_validator("mode")
    @classmethod
    def _check_mode(cls, value: str) -> str:
        normalized = (value or DISPATCH_MODE_LOG).strip().lower()
        if normalized not in VALID_DISPATCH_MODES:
            raise ValueError(f"dispatch mode must be one of {VALID_DISPATCH_MODES}")
        return normalized


class SchedulerSettings(BaseModel):
    """Scheduler storage configuration."""

    job_store_url: str | None = None


class SettingsFile(BaseModel):
    """Root schema for settings.yaml content."""

    settings: Dict[str, SettingsEntry] = Field(default_factory=dict)
    caldav: CalDavSettings = Field(default_factory=CalDavSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)


def _resolve_settings_path() -> Path:
    """Determine the active settings file path."""
    return get_system_root() / "settings.yaml"


def _ensure_settings_file(target_path: Path) -> None:
    """Ensure the settings file exists at the target path, seeding from template if missing."""
    target_path.parent.mkdir(parents=True, exist_ok=True)

    if target_path.exists():
        return

    if not SETTINGS_TEMPLATE.exists():
        raise FileNotFoundError(f"Default settings template missing: {SETTINGS_TEMPLATE}")

    shutil.copyfile(SETTINGS_TEMPLATE, target_path)


@lru_cache(maxsize=1)
def load_settings() -> SettingsFile:
    """
    Load complete settings.yaml configuration with caching.

    Returns:
        SettingsFile model for general settings, feed, dispatch, and scheduler.
    """
    settings_file = get_active_settings_path()

    with open(settings_file, "r", encoding="utf-8") as handle:
        raw_data = yaml.safe_load(handle) or {}

    for section in ("settings", "caldav", "dispatch", "scheduler"):
        if raw_data.get(section) is None:
            raw_data[section] = {}

    try:
        return SettingsFile.model_validate(raw_data)
    except ValidationError as exc:
        raise ValueError(f"Invalid settings.yaml configuration: {exc}") from exc


def refresh_settings_cache() -> None:
    """Clear the settings cache so future calls reload from disk."""
    load_settings.cache_clear()  # type: ignore[attr-defined]


def get_active_settings_path() -> Path:
    """Return the active settings file path, ensuring it exists."""
    path = _resolve_settings_path()
    _ensure_settings_file(path)
    return path


def get_general_settings() -> Dict[str, SettingsEntry]:
    """Get general settings section."""
    return load_settings().settings


def get_caldav_settings() -> CalDavSettings:
    """Get CalDAV feed section."""
    return load_settings().caldav


def get_dispatch_settings() -> DispatchSettings:
    """Get command dispatch section."""
    return load_settings().dispatch


def get_scheduler_settings() -> SchedulerSettings:
    """Get scheduler storage section."""
    return load_settings().scheduler
