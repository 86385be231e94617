"""Tests for runtime bootstrap and lifecycle."""

from datetime import timedelta

import pytest

from caltrigger.constants import POLL_JOB_ID
from caltrigger.runtime.bootstrap import bootstrap_runtime
from caltrigger.runtime.config import RuntimeConfig, RuntimeConfigError
from caltrigger.runtime.state import get_runtime_context, has_runtime_context
from caltrigger.settings.store import CalDavSettings

from conftest import FakeFeed, RecordingDispatcher, make_event


@pytest.fixture
def config(tmp_path):
    return RuntimeConfig(
        system_root=tmp_path / "system",
        caldav=CalDavSettings(host="cal.example.org", url="/calendars/home/", username="alice"),
        password="secret",
    )


class TestBootstrapRuntime:
    """Tests for bringing the runtime up and down."""

    async def test_first_cycle_runs_before_resume(self, config, future):
        """Test bootstrap installs triggers and registers the poll job."""
        feed = FakeFeed([make_event("lamp", "Lamp", "start { on } end { off }", future)])
        dispatcher = RecordingDispatcher()

        runtime = await bootstrap_runtime(config, feed=feed, dispatcher=dispatcher)
        try:
            assert get_runtime_context() is runtime
            assert runtime.scheduler.running
            assert runtime.last_cycle is not None
            assert runtime.last_error is None
            assert sorted(job.id for job in runtime.engine.owned_jobs()) == ["lamp_end", "lamp_start"]

            poll_job = runtime.scheduler.get_job(POLL_JOB_ID, jobstore="default")
            assert poll_job is not None
            assert poll_job.trigger.interval == timedelta(seconds=config.refresh_interval)
        finally:
            await runtime.shutdown()

        assert dispatcher.closed
        assert not has_runtime_context()

    async def test_feed_outage_at_startup(self, config):
        """Test the runtime still starts when the first fetch fails."""
        runtime = await bootstrap_runtime(
            config, feed=FakeFeed(error="server down"), dispatcher=RecordingDispatcher()
        )
        try:
            assert runtime.last_cycle.skipped
            assert runtime.last_error == "server down"
            assert runtime.engine.owned_jobs() == []
        finally:
            await runtime.shutdown()

    async def test_invalid_configuration(self, tmp_path):
        """Test missing connection settings abort bootstrap."""
        config = RuntimeConfig(system_root=tmp_path / "system")

        with pytest.raises(RuntimeConfigError, match="caldav:username"):
            await bootstrap_runtime(config, feed=FakeFeed(), dispatcher=RecordingDispatcher())

        assert not has_runtime_context()
