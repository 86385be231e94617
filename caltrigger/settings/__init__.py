"""
Application settings and configuration health utilities.

Provides a typed interface for environment-driven settings along with helpers
to diagnose missing or unsafe CalDAV configuration before the poll loop starts.
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from caltrigger.constants import CALDAV_PASSWORD_SECRET, DISPATCH_MODE_WEBHOOK
from caltrigger.runtime.paths import SYSTEM_ROOT_ENV
from caltrigger.settings.secrets_store import secret_has_value
from caltrigger.settings.store import (
    CalDavSettings,
    DispatchSettings,
    get_caldav_settings,
    get_dispatch_settings,
)


class ConfigurationIssue(BaseModel):
    """Represents a configuration validation issue."""

    name: str
    message: str
    severity: str  # 'error' or 'warning'


class ConfigurationStatus(BaseModel):
    """Aggregated configuration validation results."""

    issues: List[ConfigurationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> List[ConfigurationIssue]:
        """Return error-severity issues."""
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> List[ConfigurationIssue]:
        """Return warning-severity issues."""
        return [issue for issue in self.issues if issue.severity == "warning"]

    @property
    def is_healthy(self) -> bool:
        """Return True when no error-severity issues exist."""
        return not self.errors

    def add_issue(self, name: str, message: str, severity: str = "error") -> None:
        """Append an issue to the collection."""
        self.issues.append(ConfigurationIssue(name=name, message=message, severity=severity))


class AppSettings(BaseSettings):
    """
    Infrastructure settings loaded from environment variables.

    Only infrastructure-level values live in the environment. Feed settings are
    in settings.yaml and the password is in the secrets store.
    """

    model_config = SettingsConfigDict(env_file=None, extra="ignore", case_sensitive=True)

    system_root: Optional[Path] = Field(default=None, alias=SYSTEM_ROOT_ENV)
    log_level: str = Field(default="INFO", alias="CALTRIGGER_LOG_LEVEL")

    @field_validator("system_root", mode="before")
    @classmethod
    def _expand_system_root(cls, value):
        """Expand user paths to absolute Path instances."""
        if value in (None, ""):
            return None
        if isinstance(value, Path):
            return value.expanduser()
        return Path(value).expanduser()


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Load application settings from environment variables."""
    return AppSettings()


def validate_settings(
    caldav: Optional[CalDavSettings] = None,
    dispatch: Optional[DispatchSettings] = None,
    password_configured: Optional[bool] = None,
) -> ConfigurationStatus:
    """
    Validate the feed and dispatch configuration.

    Blank connection values are errors because the feed cannot be queried
    without them. Disabled TLS or certificate checking only raise warnings.

    Args:
        caldav: Optional pre-loaded CalDAV settings.
        dispatch: Optional pre-loaded dispatch settings.
        password_configured: Override for the password secret check.

    Returns:
        ConfigurationStatus describing any issues discovered.
    """
    caldav = caldav or get_caldav_settings()
    dispatch = dispatch or get_dispatch_settings()
    if password_configured is None:
        password_configured = secret_has_value(CALDAV_PASSWORD_SECRET)

    status = ConfigurationStatus()

    for field_name in ("username", "host", "url"):
        if not str(getattr(caldav, field_name) or "").strip():
            status.add_issue(
                name=f"caldav:{field_name}",
                message=f"{field_name} must not be blank - configure caldav.{field_name} in settings.yaml",
            )

    if not password_configured:
        status.add_issue(
            name="caldav:password",
            message=f"password must not be blank - configure the {CALDAV_PASSWORD_SECRET} secret",
        )

    if not caldav.tls:
        status.add_issue(
            name="caldav:tls",
            message="TLS is disabled; calendar data and credentials are exchanged unencrypted.",
            severity="warning",
        )
    elif not caldav.strict_tls:
        status.add_issue(
            name="caldav:strict_tls",
            message=(
                "Certificate checking is disabled (strict_tls: false). Any certificate is "
                "accepted, including ones injected by man-in-the-middle attacks. Only use "
                "this for debugging."
            ),
            severity="warning",
        )

    if dispatch.mode == DISPATCH_MODE_WEBHOOK and not (dispatch.webhook_url or "").strip():
        status.add_issue(
            name="dispatch:webhook_url",
            message="dispatch mode is 'webhook' but no webhook_url is configured",
        )

    return status

