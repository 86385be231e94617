"""
Scheduling engine owning every trigger derived from calendar events.

Each poll cycle performs a full resync: all jobs in the engine's job store are
removed, the cycle's exclusion calendars are installed, then the planned
triggers are added. Calendars must be in place first because triggers resolve
their calendar reference at install time.

Known gap: a trigger due between removal and re-installation of the namespace
can be dropped if removal races the scheduler firing it.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from apscheduler.job import Job
from apscheduler.schedulers.base import BaseScheduler

from caltrigger.constants import CALDAV_JOBSTORE, MAX_TRIGGER_LOGS, MISFIRE_GRACE_TIME
from caltrigger.errors import SchedulerNamespaceError, TriggerInstallError
from caltrigger.events.models import ExclusionCalendar, PlannedTrigger
from caltrigger.events.planner import utc_now
from caltrigger.logger import UnifiedLogger
from caltrigger.scheduling.jobs import create_job_args, execute_commands
from caltrigger.scheduling.triggers import ExclusionDateTrigger

# Create scheduling engine logger
logger = UnifiedLogger(tag="scheduling-engine")


class EngineState(str, Enum):
    IDLE = "idle"
    CALENDARS_INSTALLING = "calendars_installing"
    TRIGGERS_INSTALLING = "triggers_installing"


@dataclass
class ResyncResult:
    """Outcome of one resync."""
    calendars_installed: int = 0
    scheduled: List[str] = field(default_factory=list)
    suppressed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def triggers_installed(self) -> int:
        return len(self.scheduled) + len(self.suppressed)


class SchedulingEngine:
    """Installs exclusion calendars and planned triggers into one job store.

    Args:
        scheduler: APScheduler instance hosting the engine's job store
        jobstore: Alias of the job store owned by this engine
        job_func: Callable run when a trigger fires (receives the job args dict)
        clock: Time source for fire-time suppression checks
    """

    def __init__(
        self,
        scheduler: BaseScheduler,
        jobstore: str = CALDAV_JOBSTORE,
        job_func: Callable = execute_commands,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._scheduler = scheduler
        self._jobstore = jobstore
        self._job_func = job_func
        self._clock = clock
        self._calendars: Dict[str, ExclusionCalendar] = {}
        self._state = EngineState.IDLE
        self._lock = threading.Lock()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def jobstore(self) -> str:
        return self._jobstore

    @property
    def installed_calendars(self) -> Dict[str, ExclusionCalendar]:
        """Copy of the calendars installed by the last resync."""
        return dict(self._calendars)

    def owned_jobs(self) -> List[Job]:
        """Return every job currently in the engine's namespace."""
        return self._scheduler.get_jobs(jobstore=self._jobstore)

    def is_suppressed(self, calendar_name: Optional[str], instant: Optional[datetime] = None) -> bool:
        """Check if the named calendar excludes the instant (defaults to now)."""
        if not calendar_name:
            return False
        calendar = self._calendars.get(calendar_name)
        if calendar is None:
            return False
        return calendar.excludes(instant or self._clock())

    def remove_all_owned_jobs(self) -> None:
        """Remove every job in the namespace and forget the installed calendars.

        Raises:
            SchedulerNamespaceError: If the job store refuses the removal
        """
        try:
            self._scheduler.remove_all_jobs(jobstore=self._jobstore)
        except Exception as e:
            raise SchedulerNamespaceError(
                f"Failed to remove jobs of job store '{self._jobstore}': {e}"
            ) from e
        self._calendars = {}

    def install_calendar(self, calendar: ExclusionCalendar) -> None:
        """Install a calendar, replacing any calendar of the same name."""
        self._calendars[calendar.name] = calendar
        logger.debug(
            "Installed exclusion calendar",
            calendar_name=calendar.name,
            ranges=[(r.start.isoformat(), r.end.isoformat()) for r in calendar.sorted_ranges()],
        )

    def schedule_trigger(self, trigger: PlannedTrigger) -> Job:
        """Add one planned trigger as an APScheduler job.

        Raises:
            TriggerInstallError: If the id is taken, the calendar reference is
                unknown, or the scheduler rejects the job
        """
        calendar = None
        if trigger.exclusion_calendar_ref:
            calendar = self._calendars.get(trigger.exclusion_calendar_ref)
            if calendar is None:
                raise TriggerInstallError(
                    trigger.id, f"unknown exclusion calendar '{trigger.exclusion_calendar_ref}'"
                )

        if self._scheduler.get_job(trigger.id, jobstore=self._jobstore) is not None:
            raise TriggerInstallError(trigger.id, "a job with this id is already scheduled")

        try:
            date_trigger = ExclusionDateTrigger(
                trigger.fires_at,
                calendar_name=trigger.exclusion_calendar_ref,
                excluded_ranges=calendar.ranges if calendar else (),
            )
            return self._scheduler.add_job(
                self._job_func,
                trigger=date_trigger,
                args=[create_job_args(trigger)],
                id=trigger.id,
                name=f"{trigger.title} ({trigger.phase})",
                jobstore=self._jobstore,
                misfire_grace_time=MISFIRE_GRACE_TIME,
                replace_existing=False,
            )
        except Exception as e:
            raise TriggerInstallError(trigger.id, str(e), cause=e) from e

    def resync(
        self,
        calendars: Dict[str, ExclusionCalendar],
        triggers: Iterable[PlannedTrigger],
    ) -> ResyncResult:
        """Replace the namespace with the given calendars and triggers.

        Raises:
            SchedulerNamespaceError: If prior jobs cannot be removed; nothing is
                installed in that case
        """
        triggers = list(triggers)
        result = ResyncResult()

        with self._lock:
            with logger.span("resync", calendars=len(calendars), triggers=len(triggers)):
                self.remove_all_owned_jobs()

                try:
                    self._state = EngineState.CALENDARS_INSTALLING
                    for calendar in calendars.values():
                        self.install_calendar(calendar)
                        result.calendars_installed += 1

                    self._state = EngineState.TRIGGERS_INSTALLING
                    for trigger in triggers:
                        try:
                            job = self.schedule_trigger(trigger)
                        except TriggerInstallError as e:
                            logger.warning(str(e), trigger_id=trigger.id, title=trigger.title)
                            result.failed.append(trigger.id)
                            continue

                        if job.trigger.suppressed:
                            result.suppressed.append(trigger.id)
                            logger.info(
                                "Trigger suppressed by exclusion calendar",
                                trigger_id=trigger.id,
                                calendar_name=trigger.exclusion_calendar_ref,
                                fires_at=trigger.fires_at.isoformat(),
                            )
                        else:
                            result.scheduled.append(trigger.id)
                            logger.info(
                                f"Created new {trigger.phase} job",
                                title=trigger.title,
                                details=describe_job(job),
                            )
                finally:
                    self._state = EngineState.IDLE

        logger.activity(
            "Scheduler resynchronized with calendar",
            metadata={
                "calendars": result.calendars_installed,
                "scheduled": len(result.scheduled),
                "suppressed": len(result.suppressed),
                "failed": result.failed,
                "upcoming": summarize_fire_times(triggers),
            },
        )
        return result


def describe_job(job: Job) -> str:
    """Create a one-line description of a job for logging."""
    trigger = job.trigger
    fires_at = getattr(trigger, "run_date", None)
    calendar_name = getattr(trigger, "calendar_name", None)
    return (
        f"SchedulerJob [id={job.id}, name={job.name}, "
        f"fires_at={fires_at.isoformat() if fires_at else None}, "
        f"calendar={calendar_name}]"
    )


def summarize_fire_times(triggers: List[PlannedTrigger]) -> str:
    """List fire times of the first triggers, capped to keep log lines short."""
    if not triggers:
        return "there are no triggers - probably all events lie in the past"

    ordered = sorted(triggers, key=lambda t: t.fires_at)
    shown = ", ".join(t.fires_at.isoformat() for t in ordered[:MAX_TRIGGER_LOGS])
    if len(ordered) > MAX_TRIGGER_LOGS:
        shown += f" and {len(ordered) - MAX_TRIGGER_LOGS} more ..."
    return shown
