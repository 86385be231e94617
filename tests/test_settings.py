"""Tests for settings loading and configuration validation."""

import pytest
from pydantic import ValidationError

from caltrigger.constants import CALDAV_PASSWORD_SECRET
from caltrigger.runtime.config import RuntimeConfig, RuntimeConfigError
from caltrigger.settings import validate_settings
from caltrigger.settings.secrets_store import get_secret_value, set_secret_value
from caltrigger.settings.store import (
    CalDavSettings,
    DispatchSettings,
    get_active_settings_path,
    get_caldav_settings,
    refresh_settings_cache,
)


def valid_caldav(**overrides):
    values = {"host": "cal.example.org", "url": "/calendars/home/", "username": "alice"}
    values.update(overrides)
    return CalDavSettings(**values)


def issue_names(issues):
    return sorted(issue.name for issue in issues)


class TestValidateSettings:
    """Tests for configuration health checks."""

    def test_valid_configuration(self):
        """Test complete settings produce no issues."""
        status = validate_settings(
            caldav=valid_caldav(), dispatch=DispatchSettings(), password_configured=True
        )

        assert status.is_healthy
        assert status.issues == []

    def test_blank_connection_values_are_errors(self):
        """Test blank username, host, url and password are each reported."""
        status = validate_settings(
            caldav=CalDavSettings(host="  "), dispatch=DispatchSettings(), password_configured=False
        )

        assert not status.is_healthy
        assert issue_names(status.errors) == [
            "caldav:host", "caldav:password", "caldav:url", "caldav:username",
        ]

    def test_tls_disabled_is_warning(self):
        """Test plain HTTP is allowed with a warning."""
        status = validate_settings(
            caldav=valid_caldav(tls=False), dispatch=DispatchSettings(), password_configured=True
        )

        assert status.is_healthy
        assert issue_names(status.warnings) == ["caldav:tls"]

    def test_strict_tls_disabled_is_warning(self):
        """Test disabled certificate checking is allowed with a warning."""
        status = validate_settings(
            caldav=valid_caldav(strict_tls=False), dispatch=DispatchSettings(), password_configured=True
        )

        assert status.is_healthy
        assert issue_names(status.warnings) == ["caldav:strict_tls"]

    def test_webhook_mode_requires_url(self):
        """Test webhook dispatch without a URL is an error."""
        status = validate_settings(
            caldav=valid_caldav(), dispatch=DispatchSettings(mode="webhook"), password_configured=True
        )

        assert issue_names(status.errors) == ["dispatch:webhook_url"]


class TestCalDavSettings:
    """Tests for CalDAV settings parsing."""

    def test_port_defaults_follow_tls(self):
        """Test default ports for TLS and plain HTTP."""
        assert valid_caldav().effective_port == 443
        assert valid_caldav(tls=False).effective_port == 80
        assert valid_caldav(port=8443).effective_port == 8443

    def test_base_url(self):
        """Test the collection URL is assembled from its parts."""
        assert valid_caldav().base_url == "https://cal.example.org:443/calendars/home/"
        assert valid_caldav(tls=False, url="dav/cal").base_url == "http://cal.example.org:80/dav/cal"

    @pytest.mark.parametrize("refresh", [0, 9, 86401])
    def test_refresh_bounds(self, refresh):
        """Test refresh intervals outside the allowed bounds are rejected."""
        with pytest.raises(ValidationError):
            valid_caldav(refresh=refresh)

    def test_dispatch_mode_normalized(self):
        """Test dispatch modes are case-insensitive and validated."""
        assert DispatchSettings(mode=" Webhook ").mode == "webhook"
        with pytest.raises(ValidationError):
            DispatchSettings(mode="mqtt")


class TestSettingsFile:
    """Tests for settings.yaml seeding and the secrets store."""

    def test_seeded_from_template(self):
        """Test a missing settings file is created with defaults."""
        refresh_settings_cache()

        assert get_active_settings_path().exists()
        caldav = get_caldav_settings()
        assert caldav.refresh == 900
        assert caldav.tls is True

    def test_runtime_config_reads_password_secret(self, tmp_path):
        """Test production config picks the password up from the secrets store."""
        set_secret_value(CALDAV_PASSWORD_SECRET, "  hunter2  ")
        try:
            config = RuntimeConfig.for_production(system_root=str(tmp_path / "system"))

            assert get_secret_value(CALDAV_PASSWORD_SECRET) == "hunter2"
            assert config.password == "hunter2"
            assert config.refresh_interval == 900
            assert (tmp_path / "system").is_dir()
        finally:
            set_secret_value(CALDAV_PASSWORD_SECRET, None)

    def test_invalid_log_level(self, tmp_path):
        """Test unknown log levels are rejected."""
        with pytest.raises(RuntimeConfigError):
            RuntimeConfig(system_root=tmp_path, log_level="LOUD")
