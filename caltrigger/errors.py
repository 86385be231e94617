"""
Error taxonomy for the calendar trigger engine.

Feed and scheduler failures are separated so the poll cycle can decide whether
to skip a cycle, abort it, or carry on past a single bad trigger.
"""

from typing import Optional


class CalTriggerError(Exception):
    """Base class for calendar trigger errors."""
    pass


class FeedUnavailableError(CalTriggerError):
    """Raised when the calendar feed cannot be fetched or decoded.

    The poll cycle treats this as "no update this cycle" and leaves the
    currently installed triggers untouched.
    """
    pass


class SchedulerNamespaceError(CalTriggerError):
    """Raised when the jobs owned by the engine cannot be removed.

    Fatal for the running cycle: nothing is installed on top of stale state.
    """
    pass


class TriggerInstallError(CalTriggerError):
    """Raised when a single planned trigger cannot be installed."""

    def __init__(self, trigger_id: str, message: str, cause: Optional[BaseException] = None):
        self.trigger_id = trigger_id
        self.cause = cause
        super().__init__(f"Cannot install trigger '{trigger_id}': {message}")
