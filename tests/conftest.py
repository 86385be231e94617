"""Shared test fixtures and factories."""

import os
import tempfile

# Point the system root at a scratch directory before any caltrigger module is
# imported; the logger reads settings and secrets at import time.
os.environ["CALTRIGGER_SYSTEM_ROOT"] = tempfile.mkdtemp(prefix="caltrigger-tests-")
os.environ.pop("SECRETS_PATH", None)

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from caltrigger.errors import FeedUnavailableError
from caltrigger.events.models import CalendarEvent
from caltrigger.runtime import state as runtime_state
from caltrigger.scheduling.database import create_job_stores
from caltrigger.scheduling.dispatch import CommandDispatcher, CommandInvocation
from caltrigger.scheduling.engine import SchedulingEngine

UTC = timezone.utc


# =============================================================================
# Factories
# =============================================================================


def make_event(
    uid: str,
    title: str,
    description: Optional[str],
    start: datetime,
    end: Optional[datetime] = None,
) -> CalendarEvent:
    return CalendarEvent(
        uid=uid,
        title=title,
        description=description,
        start_time=start,
        end_time=end or start + timedelta(hours=1),
    )


class FakeFeed:
    """Event source returning canned events, or failing like an unreachable server."""

    def __init__(self, events: Optional[List[CalendarEvent]] = None, error: Optional[str] = None):
        self.events = list(events or [])
        self.error = error
        self.windows = []

    async def fetch_events(self, window_start, window_end):
        self.windows.append((window_start, window_end))
        if self.error:
            raise FeedUnavailableError(self.error)
        return list(self.events)


class RecordingDispatcher(CommandDispatcher):
    """Dispatcher remembering every invocation it receives."""

    def __init__(self):
        self.invocations: List[CommandInvocation] = []
        self.closed = False

    async def dispatch(self, invocation: CommandInvocation) -> None:
        self.invocations.append(invocation)

    async def aclose(self) -> None:
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def future() -> datetime:
    """A whole hour well ahead of the current time."""
    return (datetime.now(UTC) + timedelta(days=2)).replace(minute=0, second=0, microsecond=0)


@pytest.fixture
def scheduler():
    """Paused background scheduler with the production job store layout."""
    scheduler = BackgroundScheduler(jobstores=create_job_stores(), timezone=UTC)
    scheduler.start(paused=True)
    yield scheduler
    scheduler.shutdown(wait=False)


@pytest.fixture
def engine(scheduler) -> SchedulingEngine:
    return SchedulingEngine(scheduler)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture(autouse=True)
def clean_runtime_state():
    """Make sure no test leaks a registered runtime context."""
    yield
    if runtime_state.has_runtime_context():
        runtime_state.clear_runtime_context()
