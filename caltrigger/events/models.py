"""
Data classes shared by the event interpretation pipeline.

CalendarEvent instances come from the feed, everything else is derived from
them during one poll cycle.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Set


@dataclass(frozen=True)
class CalendarEvent:
    """A single calendar event instance as delivered by the feed.

    Attributes:
        uid: Unique per recurrence instance
        title: Event summary; marker events are grouped by it
        description: Raw command text, None when the event has no description
        start_time: Timezone-aware start instant
        end_time: Timezone-aware end instant
    """
    uid: str
    title: str
    description: Optional[str]
    start_time: datetime
    end_time: datetime

    @property
    def is_marker(self) -> bool:
        """Check if this event has no content and only defines an exclusion window."""
        return not (self.description or "").strip()


@dataclass
class ParsedContent:
    """Commands extracted from an event description."""
    start_commands: str = ""
    end_commands: str = ""
    suppression_marker_name: str = ""


@dataclass(frozen=True)
class TimeRange:
    """Time range used by exclusion calendars; both bounds are inclusive."""
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end


@dataclass
class ExclusionCalendar:
    """Named set of time ranges during which referencing triggers are suppressed."""
    name: str
    ranges: Set[TimeRange] = field(default_factory=set)

    def add_range(self, start: datetime, end: datetime) -> None:
        self.ranges.add(TimeRange(start=start, end=end))

    def excludes(self, instant: datetime) -> bool:
        """Check if the instant falls within any of the calendar's ranges."""
        return any(time_range.contains(instant) for time_range in self.ranges)

    def sorted_ranges(self) -> List[TimeRange]:
        return sorted(self.ranges, key=lambda r: (r.start, r.end))


@dataclass(frozen=True)
class PlannedTrigger:
    """A trigger derived from an event, waiting to be installed.

    Attributes:
        id: Stable identity derived from the event uid and phase
        fires_at: Instant the payload should be dispatched
        payload: Commands forwarded verbatim to the dispatcher
        exclusion_calendar_ref: Name of the calendar suppressing this trigger
        title: Title of the originating event (for logging)
        phase: 'start' or 'end'
    """
    id: str
    fires_at: datetime
    payload: str
    exclusion_calendar_ref: Optional[str] = None
    title: str = ""
    phase: str = "start"
