"""
Exclusion calendar builder.

Events without content are not executed; they mark time ranges instead. All
marker events sharing a title form one exclusion calendar, which content events
reference through their 'modified by { <title> }' clause.
"""

from typing import Dict, Iterable

from caltrigger.events.models import CalendarEvent, ExclusionCalendar
from caltrigger.logger import UnifiedLogger

# Create module logger
logger = UnifiedLogger(tag="exclusion-calendars")


def build_exclusion_calendars(events: Iterable[CalendarEvent]) -> Dict[str, ExclusionCalendar]:
    """Group marker events by title into exclusion calendars.

    Args:
        events: Events fetched for the current cycle; content events are ignored

    Returns:
        Mapping of marker title to its ExclusionCalendar
    """
    calendars: Dict[str, ExclusionCalendar] = {}

    for event in events:
        if not event.is_marker:
            continue

        logger.debug(
            "Found event with no content, adding it to the exclusion calendar of its title",
            title=event.title,
            start=event.start_time.isoformat(),
            end=event.end_time.isoformat(),
        )

        calendar = calendars.get(event.title)
        if calendar is None:
            calendar = ExclusionCalendar(name=event.title)
            calendars[event.title] = calendar
        calendar.add_range(event.start_time, event.end_time)

    return calendars
