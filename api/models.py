"""
Pydantic models for API request and response schemas.
"""

from __future__ import annotations

from typing import List, Dict, Optional
from datetime import datetime
from pydantic import BaseModel, Field


#######################################################################
## Response Models
#######################################################################

class TriggerInfo(BaseModel):
    """A trigger installed in the engine's namespace."""
    id: str = Field(..., description="Trigger id ('<event uid>_start' or '<event uid>_end')")
    name: str = Field(..., description="Event title and phase")
    fires_at: Optional[datetime] = Field(None, description="Planned fire time")
    next_run_time: Optional[datetime] = Field(None, description="Next run time; empty when suppressed")
    calendar_name: Optional[str] = Field(None, description="Exclusion calendar modifying this trigger")
    suppressed: bool = Field(False, description="Whether an exclusion calendar covers the fire time")


class TimeRangeInfo(BaseModel):
    start: datetime
    end: datetime


class CalendarInfo(BaseModel):
    """An installed exclusion calendar."""
    name: str = Field(..., description="Marker event title")
    ranges: List[TimeRangeInfo] = Field(default_factory=list, description="Excluded time ranges")


class SchedulerInfo(BaseModel):
    """Information about the scheduler status."""
    running: bool = Field(..., description="Whether the scheduler is running")
    engine_state: str = Field("idle", description="Scheduling engine state")
    total_triggers: int = Field(0, description="Number of triggers owned by the engine")
    triggers: List[TriggerInfo] = Field(default_factory=list, description="Installed triggers")
    calendars: List[CalendarInfo] = Field(default_factory=list, description="Installed exclusion calendars")


class CycleInfo(BaseModel):
    """Summary of a poll cycle."""
    started_at: datetime
    skipped: bool = Field(False, description="Whether the feed was unavailable and the cycle skipped")
    skipped_reason: Optional[str] = None
    events_fetched: int = 0
    calendars: List[str] = Field(default_factory=list)
    triggers_planned: int = 0
    triggers_scheduled: int = 0
    triggers_suppressed: int = 0
    triggers_failed: List[str] = Field(default_factory=list)


class SystemInfo(BaseModel):
    """Information about system health."""
    startup_time: datetime = Field(..., description="When the system started")
    calendar_url: str = Field("", description="CalDAV collection being polled")
    refresh_interval: int = Field(0, description="Seconds between poll cycles")
    system_root: str = Field(..., description="Directory for settings, secrets, and logs")


class ConfigurationIssueInfo(BaseModel):
    """Configuration issue surfaced to the API."""

    name: str = Field(..., description="Identifier for the issue (e.g., caldav:host)")
    message: str = Field(..., description="Human-readable description of the issue")
    severity: str = Field(..., description="Issue severity (error or warning)")


class StatusResponse(BaseModel):
    """Response model for system status endpoint."""

    scheduler: SchedulerInfo = Field(..., description="Scheduler status information")
    system: SystemInfo = Field(..., description="System health information")
    last_cycle: Optional[CycleInfo] = Field(None, description="Most recent poll cycle")
    last_error: Optional[str] = Field(None, description="Error of the most recent failed or skipped cycle")
    configuration_issues: List[ConfigurationIssueInfo] = Field(default_factory=list, description="Configuration health issues")


class RescanResponse(BaseModel):
    """Response model for the rescan endpoint."""
    success: bool = Field(..., description="Whether the rescan completed")
    cycle: CycleInfo = Field(..., description="Result of the cycle")
    message: str = Field(..., description="Human-readable summary")


class SystemLogResponse(BaseModel):
    """Tail of the activity log."""
    content: str = Field("", description="Log content")
    truncated: bool = Field(False, description="Whether older content was cut off")
    size_bytes: int = Field(0, description="Total log size")


class ErrorResponse(BaseModel):
    """Standard error response model."""
    success: bool = Field(False, description="Always false for error responses")
    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict] = Field(None, description="Additional error details")
