"""
Scheduler job functions and the poll cycle.

`execute_commands` is what every event trigger runs; it is referenced by module
path so it also works with a persistent job store. `run_poll_cycle` performs
one fetch -> build -> plan -> resync pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Protocol

from caltrigger.constants import FEED_WINDOW_MULTIPLIER
from caltrigger.errors import FeedUnavailableError
from caltrigger.events.exclusions import build_exclusion_calendars
from caltrigger.events.models import CalendarEvent, PlannedTrigger
from caltrigger.events.planner import plan_triggers, utc_now
from caltrigger.logger import UnifiedLogger
from caltrigger.runtime.state import get_runtime_context
from caltrigger.scheduling.dispatch import CommandInvocation

if TYPE_CHECKING:
    from caltrigger.scheduling.engine import ResyncResult, SchedulingEngine

# Create scheduler job management logger
logger = UnifiedLogger(tag="scheduler-jobs")


class EventFeed(Protocol):
    async def fetch_events(self, window_start: datetime, window_end: datetime) -> List[CalendarEvent]:
        ...


@dataclass
class CycleResult:
    """Summary of one poll cycle."""
    started_at: datetime
    events_fetched: int = 0
    calendars: List[str] = field(default_factory=list)
    triggers_planned: int = 0
    resync: Optional["ResyncResult"] = None
    skipped_reason: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


def create_job_args(trigger: PlannedTrigger) -> Dict[str, Any]:
    """Create picklable job arguments for a planned trigger.

    Returns lightweight, serializable arguments so jobs survive a SQLAlchemy
    job store round trip.
    """
    return {
        'trigger_id': trigger.id,
        'title': trigger.title,
        'phase': trigger.phase,
        'payload': trigger.payload,
        'calendar_name': trigger.exclusion_calendar_ref,
    }


async def execute_commands(job_args: Dict[str, Any]) -> None:
    """Run a fired trigger: check its exclusion calendar, then dispatch the payload."""
    runtime = get_runtime_context()
    fired_at = utc_now()
    calendar_name = job_args.get('calendar_name')

    if runtime.engine.is_suppressed(calendar_name):
        logger.activity(
            "Trigger suppressed at fire time by exclusion calendar",
            calendar=job_args.get('title'),
            metadata={"trigger_id": job_args.get('trigger_id'), "calendar_name": calendar_name},
        )
        return

    invocation = CommandInvocation(
        trigger_id=job_args['trigger_id'],
        title=job_args.get('title', ""),
        phase=job_args.get('phase', ""),
        payload=job_args['payload'],
        fired_at=fired_at,
        calendar_name=calendar_name,
    )
    await runtime.dispatcher.dispatch(invocation)


async def run_poll_cycle(
    feed: EventFeed,
    engine: "SchedulingEngine",
    refresh_interval: int,
    clock: Callable[[], datetime] = utc_now,
) -> CycleResult:
    """
    Fetch the upcoming events and resynchronize the engine with them.

    A feed outage skips the cycle and keeps the existing triggers; a failure to
    clear the engine's namespace propagates to the caller.

    Args:
        feed: Source of calendar events
        engine: Scheduling engine to resync
        refresh_interval: Poll interval in seconds; the fetch window spans two intervals
        clock: Time source

    Returns:
        CycleResult describing what was fetched and installed

    Raises:
        SchedulerNamespaceError: If prior jobs could not be removed
    """
    window_start = clock()
    window_end = window_start + timedelta(seconds=FEED_WINDOW_MULTIPLIER * refresh_interval)
    result = CycleResult(started_at=window_start)

    try:
        events = await feed.fetch_events(window_start, window_end)
    except FeedUnavailableError as e:
        logger.warning(f"Calendar feed unavailable, keeping existing triggers: {e}")
        result.skipped_reason = str(e)
        return result

    result.events_fetched = len(events)
    logger.debug(f"Found {len(events)} calendar events to process")

    calendars = build_exclusion_calendars(events)
    triggers = plan_triggers(events, calendars, clock=clock)
    result.calendars = sorted(calendars)
    result.triggers_planned = len(triggers)

    result.resync = engine.resync(calendars, triggers)
    return result
