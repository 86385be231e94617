"""
Service layer for API operations.
Handles status reporting, manual rescans, and activity log access.
"""

from typing import List, Optional

from caltrigger.errors import SchedulerNamespaceError
from caltrigger.logger import UnifiedLogger, get_activity_log_path
from caltrigger.runtime.context import RuntimeContext
from caltrigger.runtime.state import get_runtime_context, RuntimeStateError
from caltrigger.scheduling.jobs import CycleResult
from caltrigger.settings import validate_settings

from .exceptions import RuntimeUnavailableError, SchedulerError, SystemConfigurationError
from .models import (
    CalendarInfo,
    ConfigurationIssueInfo,
    CycleInfo,
    SchedulerInfo,
    StatusResponse,
    SystemInfo,
    SystemLogResponse,
    TimeRangeInfo,
    TriggerInfo,
)

logger = UnifiedLogger(tag="api-services")


def _require_runtime() -> RuntimeContext:
    try:
        return get_runtime_context()
    except RuntimeStateError as e:
        raise RuntimeUnavailableError() from e


def cycle_info(result: CycleResult) -> CycleInfo:
    """Convert a poll cycle result into its API representation."""
    resync = result.resync
    return CycleInfo(
        started_at=result.started_at,
        skipped=result.skipped,
        skipped_reason=result.skipped_reason,
        events_fetched=result.events_fetched,
        calendars=list(result.calendars),
        triggers_planned=result.triggers_planned,
        triggers_scheduled=len(resync.scheduled) if resync else 0,
        triggers_suppressed=len(resync.suppressed) if resync else 0,
        triggers_failed=list(resync.failed) if resync else [],
    )


def collect_scheduler_status(runtime: RuntimeContext) -> SchedulerInfo:
    """
    Collect the triggers and calendars owned by the scheduling engine.

    Args:
        runtime: Active runtime context

    Returns:
        SchedulerInfo with trigger and calendar details
    """
    triggers: List[TriggerInfo] = []
    for job in runtime.engine.owned_jobs():
        trigger = job.trigger
        triggers.append(
            TriggerInfo(
                id=job.id,
                name=job.name,
                fires_at=getattr(trigger, "run_date", None),
                next_run_time=getattr(job, "next_run_time", None),
                calendar_name=getattr(trigger, "calendar_name", None),
                suppressed=bool(getattr(trigger, "suppressed", False)),
            )
        )

    calendars = [
        CalendarInfo(
            name=calendar.name,
            ranges=[TimeRangeInfo(start=r.start, end=r.end) for r in calendar.sorted_ranges()],
        )
        for calendar in runtime.engine.installed_calendars.values()
    ]

    return SchedulerInfo(
        running=runtime.scheduler.running,
        engine_state=runtime.engine.state.value,
        total_triggers=len(triggers),
        triggers=sorted(triggers, key=lambda t: (t.fires_at is None, t.fires_at, t.id)),
        calendars=sorted(calendars, key=lambda c: c.name),
    )


async def get_system_status() -> StatusResponse:
    """
    Collect scheduler, system, and configuration status.

    Raises:
        RuntimeUnavailableError: If the runtime is not bootstrapped
    """
    runtime = _require_runtime()
    config = runtime.config

    configuration_status = validate_settings(
        caldav=config.caldav,
        dispatch=config.dispatch,
        password_configured=bool(config.password),
    )

    return StatusResponse(
        scheduler=collect_scheduler_status(runtime),
        system=SystemInfo(
            startup_time=runtime.started_at,
            calendar_url=config.caldav.base_url,
            refresh_interval=config.refresh_interval,
            system_root=str(config.system_root),
        ),
        last_cycle=cycle_info(runtime.last_cycle) if runtime.last_cycle else None,
        last_error=runtime.last_error,
        configuration_issues=[
            ConfigurationIssueInfo(name=issue.name, message=issue.message, severity=issue.severity)
            for issue in configuration_status.issues
        ],
    )


async def rescan_calendar() -> CycleInfo:
    """
    Fetch the calendar now and resynchronize the scheduler.

    Raises:
        RuntimeUnavailableError: If the runtime is not bootstrapped
        SchedulerError: If the engine could not clear its namespace
    """
    runtime = _require_runtime()
    try:
        result = await runtime.run_cycle()
    except SchedulerNamespaceError as e:
        raise SchedulerError(str(e)) from e

    logger.activity(
        "Manual rescan completed",
        metadata={"skipped": result.skipped, "events": result.events_fetched},
    )
    return cycle_info(result)


async def get_system_activity_log(limit_bytes: Optional[int] = 65_536) -> SystemLogResponse:
    """
    Read the system activity log with optional truncation.

    Args:
        limit_bytes: Maximum number of bytes to include from the end of the log.
    """
    log_path = get_activity_log_path()

    if limit_bytes is None or limit_bytes <= 0:
        limit_bytes = 65_536
    limit_bytes = min(limit_bytes, 262_144)

    if not log_path.exists():
        return SystemLogResponse(content="No activity log found yet.")

    try:
        raw_bytes = log_path.read_bytes()
    except OSError as exc:
        raise SystemConfigurationError(f"Failed to read activity log: {exc}") from exc

    size_bytes = len(raw_bytes)
    truncated = size_bytes > limit_bytes
    if truncated:
        raw_bytes = raw_bytes[-limit_bytes:]

    return SystemLogResponse(
        content=raw_bytes.decode("utf-8", errors="replace"),
        truncated=truncated,
        size_bytes=size_bytes,
    )
