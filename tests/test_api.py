"""Tests for the HTTP API."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.endpoints import register_exception_handlers, router
from caltrigger.logger import UnifiedLogger
from caltrigger.runtime.config import RuntimeConfig
from caltrigger.runtime.context import RuntimeContext
from caltrigger.runtime.state import set_runtime_context
from caltrigger.settings.store import CalDavSettings

from conftest import FakeFeed, RecordingDispatcher, make_event


@pytest.fixture
def client():
    app = FastAPI()
    app.include_router(router)
    register_exception_handlers(app)
    return TestClient(app)


@pytest.fixture
def feed(future):
    return FakeFeed([
        make_event("lamp", "Lamp On", "lamp on modified by { Quiet }", future + timedelta(hours=1)),
        make_event("quiet", "Quiet", None, future, future + timedelta(hours=2)),
        make_event("fan", "Fan", "start { fan on } end { fan off }", future + timedelta(hours=3)),
    ])


@pytest.fixture
def runtime(tmp_path, scheduler, engine, feed):
    context = RuntimeContext(
        config=RuntimeConfig(
            system_root=tmp_path / "system",
            caldav=CalDavSettings(host="cal.example.org", url="/calendars/home/", username="alice"),
            password="secret",
        ),
        scheduler=scheduler,
        engine=engine,
        feed=feed,
        dispatcher=RecordingDispatcher(),
        logger=UnifiedLogger(tag="test-runtime"),
        started_at=datetime.now(timezone.utc),
    )
    set_runtime_context(context)
    return context


class TestHealth:
    """Tests for the health endpoint."""

    def test_starting_without_runtime(self, client):
        """Test health reports startup before bootstrap finishes."""
        response = client.get("/api/health")

        assert response.status_code == 503
        assert response.json()["status"] == "starting"

    def test_healthy(self, client, runtime):
        """Test health reports the scheduler state."""
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "scheduler_running": True}


class TestStatus:
    """Tests for the status endpoint."""

    def test_runtime_unavailable(self, client):
        """Test status needs a bootstrapped runtime."""
        response = client.get("/api/status")

        assert response.status_code == 503
        assert response.json()["error"] == "RuntimeUnavailable"

    def test_lists_triggers_and_calendars(self, client, runtime):
        """Test status shows what the last resync installed."""
        client.post("/api/rescan")

        body = client.get("/api/status").json()

        triggers = {trigger["id"]: trigger for trigger in body["scheduler"]["triggers"]}
        assert set(triggers) == {"lamp_start", "fan_start", "fan_end"}
        assert triggers["lamp_start"]["suppressed"] is True
        assert triggers["lamp_start"]["calendar_name"] == "Quiet"
        assert triggers["lamp_start"]["next_run_time"] is None
        assert triggers["fan_start"]["suppressed"] is False
        assert [calendar["name"] for calendar in body["scheduler"]["calendars"]] == ["Quiet"]
        assert body["last_cycle"]["triggers_suppressed"] == 1
        assert body["system"]["calendar_url"] == "https://cal.example.org:443/calendars/home/"
        assert body["configuration_issues"] == []


class TestRescan:
    """Tests for manual rescans."""

    def test_rescan(self, client, runtime):
        """Test a rescan resyncs and reports the cycle."""
        response = client.post("/api/rescan")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["cycle"]["events_fetched"] == 3
        assert body["cycle"]["triggers_scheduled"] == 2
        assert body["cycle"]["triggers_suppressed"] == 1

    def test_feed_outage(self, client, runtime, feed):
        """Test an unavailable feed is reported as a skipped cycle."""
        feed.error = "server down"

        body = client.post("/api/rescan").json()

        assert body["success"] is False
        assert body["cycle"]["skipped"] is True
        assert "server down" in body["message"]
        assert runtime.last_error == "server down"

    def test_namespace_failure(self, client, runtime, scheduler, monkeypatch):
        """Test a failed job store removal surfaces as a scheduler error."""
        def refuse(jobstore=None):
            raise RuntimeError("store offline")

        monkeypatch.setattr(scheduler, "remove_all_jobs", refuse)

        response = client.post("/api/rescan")

        assert response.status_code == 500
        assert response.json()["error"] == "SchedulerError"
        assert "store offline" in runtime.last_error


class TestActivityLog:
    """Tests for the activity log endpoint."""

    def test_contains_resync_entry(self, client, runtime):
        """Test resyncs are recorded in the activity log."""
        client.post("/api/rescan")

        body = client.get("/api/system/activity-log").json()

        assert "Scheduler resynchronized with calendar" in body["content"]
