"""Unified logger providing technical instrumentation and activity logging."""

from __future__ import annotations

import hashlib
import json
import logging
import os
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, Optional, Tuple

import logfire
from caltrigger import constants as core_constants
from caltrigger.runtime.paths import get_system_root
from caltrigger.settings.secrets_store import get_secret_value
from caltrigger.settings.store import get_general_settings


_activity_logger: Optional[logging.Logger] = None
_activity_log_path: Optional[Path] = None
_activity_logger_lock = Lock()
_logfire_config_state: Optional[Tuple[bool, Optional[str]]] = None
_logfire_instrumented = False
_logger_internal = logging.getLogger(__name__)


def _token_fingerprint(token: Optional[str]) -> Optional[str]:
    """Create a stable fingerprint for secret comparison without storing raw values."""
    if not token:
        return None
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def refresh_logfire_configuration(force: bool = False) -> None:
    """
    Reconfigure the global Logfire client based on current settings and secrets.

    Args:
        force: When True, always reapply configuration even if nothing changed.
    """
    global _logfire_config_state

    try:
        settings = get_general_settings()
        entry = settings.get("logfire")
        enabled = bool(entry and getattr(entry, "value", False))
    except Exception as exc:  # pragma: no cover
        _logger_internal.error("Failed to read logfire setting, defaulting to disabled: %s", exc)
        enabled = False

    token = get_secret_value(core_constants.LOGFIRE_TOKEN_SECRET)
    fingerprint = _token_fingerprint(token)
    desired_state = (enabled, fingerprint)

    # Keep environment token synchronized for downstream libraries.
    if token:
        os.environ["LOGFIRE_TOKEN"] = token
    else:
        os.environ.pop("LOGFIRE_TOKEN", None)

    if not force and _logfire_config_state == desired_state:
        return

    send_option: str | bool = "if-token-present" if enabled else False

    logfire.configure(
        send_to_logfire=send_option,
        scrubbing=False,
    )

    _logfire_config_state = desired_state


# Initialize configuration eagerly so early logging honors current settings.
refresh_logfire_configuration(force=True)


def _ensure_activity_logger() -> logging.Logger:
    """Create or return the process-wide activity logger."""

    global _activity_logger
    global _activity_log_path

    desired_path = get_activity_log_path()

    if _activity_logger and _activity_log_path == desired_path:
        return _activity_logger

    with _activity_logger_lock:
        if _activity_logger and _activity_log_path == desired_path:
            return _activity_logger

        # Tear down existing logger if the target path changes between runs
        if _activity_logger and _activity_log_path != desired_path:
            for handler in list(_activity_logger.handlers):
                _activity_logger.removeHandler(handler)
                handler.close()
            _activity_logger = None

        log_path = desired_path
        log_path.parent.mkdir(parents=True, exist_ok=True)

        handler = RotatingFileHandler(log_path, maxBytes=1_048_576, backupCount=5)
        handler.setFormatter(logging.Formatter("%(message)s"))

        logger = logging.getLogger("caltrigger.activity")
        logger.setLevel(logging.INFO)
        logger.propagate = False

        # Drop handlers left over from a previous target path
        for stale in list(logger.handlers):
            logger.removeHandler(stale)
            stale.close()
        logger.addHandler(handler)

        _activity_logger = logger
        _activity_log_path = log_path
        return logger


def get_activity_log_path() -> Path:
    """Return the activity log path for the active system root."""
    return get_system_root() / "activity.log"


class UnifiedLogger:
    """Unified logger providing instrumentation and persistent activity logging."""

    def __init__(self, tag: str, calendar_context: Optional[str] = None):
        """
        Initialize unified logger for a module or component.

        Args:
            tag: Module or component identifier
            calendar_context: Optional explicit activity context (auto-detected if not provided)
        """
        self.tag = tag
        self.calendar_context = calendar_context
        self._logfire_instance = None  # Lazy initialization

    @property
    def _logfire(self):
        """Lazy-loaded Logfire instance."""
        if self._logfire_instance is None:
            self._logfire_instance = self._setup_logfire()
        return self._logfire_instance

    def _setup_logfire(self):
        """Set up Logfire client with console fallback."""
        refresh_logfire_configuration()
        global _logfire_instrumented
        if not _logfire_instrumented:
            logfire.instrument_pydantic()
            _logfire_instrumented = True
        return logfire

    # Technical Instrumentation Methods

    def info(self, message: str, **extra: Any) -> None:
        """Technical info logging."""
        self._logfire.info(message, **extra)

    def warning(self, message: str, **extra: Any) -> None:
        """Technical warning logging."""
        self._logfire.warning(message, **extra)

    def error(self, message: str, **extra: Any) -> None:
        """Technical error logging."""
        self._logfire.error(message, **extra)

    def debug(self, message: str, **extra: Any) -> None:
        """Technical debug logging."""
        self._logfire.debug(message, **extra)

    @contextmanager
    def span(self, operation: str, **span_data: Any):
        """
        Manual instrumentation span for critical code paths.

        Usage:
            with logger.span("resync", triggers=len(triggers)):
                # critical operation
                pass
        """
        with self._logfire.span(f"{self.tag}:{operation}", **span_data):
            yield

    @asynccontextmanager
    async def async_span(self, operation: str, **span_data: Any):
        """
        Async manual instrumentation span for critical code paths.

        Usage:
            async with logger.async_span("fetch_events", url=url):
                # async critical operation
                pass
        """
        with self._logfire.span(f"{self.tag}:{operation}", **span_data):
            yield

    # Activity Logging

    def activity(
        self,
        message: str,
        *,
        calendar: Optional[str] = None,
        level: str = "info",
        metadata: Optional[Dict[str, Any]] = None,
        **context: Any,
    ) -> None:
        """Record an operational activity entry and mirror it to Logfire.

        Args:
            message: Human-readable description of the activity.
            calendar: Explicit activity context (an event or calendar title). If
                omitted it is derived from the supplied context, falling back to
                the system context.
            level: Activity level; used for Logfire mirroring and stored payload.
            metadata: Optional structured payload persisted alongside the message.
            **context: Additional context used for context detection and persisted.
        """

        resolved_context = (
            calendar
            or self.calendar_context
            or _detect_calendar_context(**context)
            or core_constants.SYSTEM_ACTIVITY_CONTEXT
        )

        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "level": level,
            "tag": self.tag,
            "calendar": resolved_context,
            "message": message,
        }

        if metadata:
            payload["metadata"] = metadata

        if context:
            payload["context"] = context

        activity_logger = _ensure_activity_logger()
        activity_logger.info(json.dumps(payload, ensure_ascii=False, default=str))

        log_method = getattr(self._logfire, level, None)
        if callable(log_method):
            log_method(message, tag=self.tag, calendar=resolved_context, metadata=metadata, **context)
        else:
            self._logfire.info(message, tag=self.tag, calendar=resolved_context, metadata=metadata, level=level, **context)

    # Instrumentation Setup

    def setup_instrumentation(self, app=None) -> None:
        """
        Set up additional automatic instrumentation for the application.

        Note: Basic Logfire configuration and Pydantic instrumentation are
        already set up in _setup_logfire(). This method adds app-specific
        instrumentation like FastAPI and Python logging.

        Args:
            app: Optional FastAPI app instance for request instrumentation
        """
        try:
            if app:
                logfire.instrument_fastapi(app)

            # Capture Python logging for third-party libraries (like APScheduler)
            logging.basicConfig(
                handlers=[self._logfire.LogfireLoggingHandler()],
                level=logging.INFO
            )

        except ImportError as e:
            # Expected failure when optional dependencies aren't available
            self.warning(f"Optional instrumentation dependency unavailable: {e}")
        except Exception as e:
            self.error(f"Failed to set up instrumentation: {e}")
            raise


def _detect_calendar_context(**kwargs: Any) -> Optional[str]:
    """Derive an activity context from common context keys."""

    direct_keys: Iterable[str] = ("calendar_name", "title", "trigger_id")
    for key in direct_keys:
        value = kwargs.get(key)
        if isinstance(value, str) and value:
            return value

    return None
