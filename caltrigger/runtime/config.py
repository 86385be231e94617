"""
Runtime configuration for CalTrigger bootstrap.

Bundles everything the poll loop needs into one explicit object so no module
keeps feed credentials or the refresh interval in process-wide state.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from caltrigger.constants import CALDAV_PASSWORD_SECRET
from caltrigger.settings.secrets_store import get_secret_value
from caltrigger.settings.store import (
    CalDavSettings,
    DispatchSettings,
    get_caldav_settings,
    get_dispatch_settings,
    get_scheduler_settings,
)


@dataclass
class RuntimeConfig:
    """
    Configuration for CalTrigger runtime bootstrap.

    Attributes:
        system_root: Path for system data (settings, secrets, activity log)
        caldav: CalDAV feed connection and polling settings
        password: CalDAV password
        dispatch: Where fired commands are delivered
        job_store_url: Optional SQLAlchemy URL for persistent event triggers
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        features: Feature flags and configuration overrides
    """

    system_root: Path
    caldav: CalDavSettings = field(default_factory=CalDavSettings)
    password: str = ""
    dispatch: DispatchSettings = field(default_factory=DispatchSettings)
    job_store_url: Optional[str] = None
    log_level: str = "INFO"
    features: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.system_root, str):
            self.system_root = Path(self.system_root)

        try:
            self.system_root.mkdir(parents=True, exist_ok=True)
        except (OSError, PermissionError) as e:
            raise RuntimeConfigError(f"Cannot create required directories: {e}")

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.log_level.upper() not in valid_levels:
            raise RuntimeConfigError(f"Invalid log_level '{self.log_level}'. Must be one of: {valid_levels}")

    @property
    def refresh_interval(self) -> int:
        """Seconds between two poll cycles."""
        return self.caldav.refresh

    @classmethod
    def for_production(cls, system_root: str, log_level: str = "INFO") -> "RuntimeConfig":
        """Create production configuration from settings.yaml and the secrets store."""
        scheduler_settings = get_scheduler_settings()
        return cls(
            system_root=Path(system_root),
            caldav=get_caldav_settings(),
            password=get_secret_value(CALDAV_PASSWORD_SECRET) or "",
            dispatch=get_dispatch_settings(),
            job_store_url=scheduler_settings.job_store_url,
            log_level=log_level,
        )


class RuntimeConfigError(Exception):
    """Raised when runtime configuration is invalid."""
    pass
