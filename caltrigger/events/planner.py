"""
Trigger planning for content-bearing calendar events.

Turns each event with a description into at most two PlannedTriggers (start and
end), linked to an exclusion calendar when the event's 'modified by' clause
names one that exists in the same cycle.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from caltrigger.constants import PHASE_END, PHASE_START
from caltrigger.events.models import CalendarEvent, ExclusionCalendar, PlannedTrigger
from caltrigger.events.parser import parse_event_content
from caltrigger.logger import UnifiedLogger

# Create module logger
logger = UnifiedLogger(tag="trigger-planner")


def utc_now() -> datetime:
    """Default clock: the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def trigger_id_for(event: CalendarEvent, phase: str) -> str:
    """Derive the stable trigger id of an event phase ('<uid>_start' / '<uid>_end')."""
    return f"{event.uid}_{phase}"


def plan_triggers(
    events: Iterable[CalendarEvent],
    calendars: Dict[str, ExclusionCalendar],
    now: Optional[datetime] = None,
    clock: Callable[[], datetime] = utc_now,
) -> List[PlannedTrigger]:
    """Derive the start/end triggers for every event that has content.

    Triggers whose fire time already lies in the past are dropped: a date
    trigger installed with a past run date would fire straight away.

    Args:
        events: Events fetched for the current cycle; marker events are ignored
        calendars: Exclusion calendars built from the same cycle's events
        now: Reference instant for the past-trigger filter (sampled from clock if None)
        clock: Time source used when now is not given

    Returns:
        Planned triggers in event order
    """
    reference = now if now is not None else clock()
    planned: List[PlannedTrigger] = []

    for event in events:
        if event.is_marker:
            continue

        content = parse_event_content(event.description)

        calendar_ref = None
        if content.suppression_marker_name and content.suppression_marker_name in calendars:
            calendar_ref = content.suppression_marker_name
        elif content.suppression_marker_name:
            logger.debug(
                "Event references an unknown marker, scheduling unconditionally",
                title=event.title,
                marker=content.suppression_marker_name,
            )

        candidates = (
            (PHASE_START, event.start_time, content.start_commands),
            (PHASE_END, event.end_time, content.end_commands),
        )

        for phase, fires_at, payload in candidates:
            trigger_id = trigger_id_for(event, phase)

            if not payload.strip():
                logger.debug("No commands for trigger, nothing to plan", trigger_id=trigger_id)
                continue

            if fires_at < reference:
                logger.debug(
                    "Trigger fire time lies in the past, skipping",
                    trigger_id=trigger_id,
                    fires_at=fires_at.isoformat(),
                )
                continue

            planned.append(
                PlannedTrigger(
                    id=trigger_id,
                    fires_at=fires_at,
                    payload=payload,
                    exclusion_calendar_ref=calendar_ref,
                    title=event.title,
                    phase=phase,
                )
            )

    return planned
