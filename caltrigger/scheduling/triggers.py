"""
APScheduler trigger that fires once unless an exclusion calendar covers its run date.

APScheduler has no notion of named calendars, so the trigger carries the
calendar name (for reporting) and a snapshot of the calendar's ranges taken at
install time. Every resync reinstalls all triggers after the calendars, so the
snapshot is always the current cycle's.
"""

from datetime import datetime
from typing import Iterable, Optional, Tuple

from apscheduler.triggers.base import BaseTrigger
from apscheduler.util import datetime_repr

from caltrigger.events.models import TimeRange


class ExclusionDateTrigger(BaseTrigger):
    """
    Triggers once on the given datetime, unless it is excluded.

    A one-shot trigger cannot be rebased to a later opportunity, so an excluded
    run date yields no fire time at all and the job stays pending until the
    next resync removes it.

    :param datetime run_date: the timezone-aware date/time to run the job at
    :param str calendar_name: name of the exclusion calendar, if any
    :param excluded_ranges: ranges of that calendar at install time
    """

    def __init__(
        self,
        run_date: datetime,
        calendar_name: Optional[str] = None,
        excluded_ranges: Iterable[TimeRange] = (),
    ):
        if run_date.tzinfo is None:
            raise ValueError("run_date must be timezone aware")
        self.run_date = run_date
        self.calendar_name = calendar_name
        self.excluded_ranges: Tuple[TimeRange, ...] = tuple(
            sorted(excluded_ranges, key=lambda r: (r.start, r.end))
        )

    def is_excluded(self, instant: datetime) -> bool:
        return any(time_range.contains(instant) for time_range in self.excluded_ranges)

    @property
    def suppressed(self) -> bool:
        """True when the run date falls inside the exclusion calendar."""
        return self.is_excluded(self.run_date)

    def get_next_fire_time(self, previous_fire_time, now):
        if previous_fire_time is not None or self.suppressed:
            return None
        return self.run_date

    def __getstate__(self):
        return {
            'version': 1,
            'run_date': self.run_date,
            'calendar_name': self.calendar_name,
            'excluded_ranges': [(r.start, r.end) for r in self.excluded_ranges],
        }

    def __setstate__(self, state):
        if state.get('version', 1) > 1:
            raise ValueError(
                'Got serialized data for version %s of %s, but only version 1 can be handled' %
                (state['version'], self.__class__.__name__))

        self.run_date = state['run_date']
        self.calendar_name = state['calendar_name']
        self.excluded_ranges = tuple(
            TimeRange(start=start, end=end) for start, end in state['excluded_ranges']
        )

    def __str__(self):
        text = 'date[%s]' % datetime_repr(self.run_date)
        if self.calendar_name:
            text += ' modified by [%s]' % self.calendar_name
        return text

    def __repr__(self):
        return "<%s (run_date='%s', calendar_name=%r)>" % (
            self.__class__.__name__, datetime_repr(self.run_date), self.calendar_name)
