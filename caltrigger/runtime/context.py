"""
Runtime context for CalTrigger.

Provides centralized access to core services and manages lifecycle for the
scheduler, scheduling engine, calendar feed, and command dispatcher.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.base import BaseScheduler

from caltrigger.errors import SchedulerNamespaceError
from caltrigger.logger import UnifiedLogger
from caltrigger.scheduling.dispatch import CommandDispatcher
from caltrigger.scheduling.engine import SchedulingEngine
from caltrigger.scheduling.jobs import CycleResult, EventFeed, run_poll_cycle
from .config import RuntimeConfig


@dataclass
class RuntimeContext:
    """
    Central runtime context for CalTrigger services.

    Attributes:
        config: Runtime configuration
        scheduler: APScheduler instance hosting the poll job and event triggers
        engine: Scheduling engine owning the event trigger namespace
        feed: Calendar event source
        dispatcher: Sink for fired commands
        logger: Unified logger for runtime operations
        started_at: Bootstrap timestamp
        last_cycle: Result of the most recent completed poll cycle
        last_error: Error of the most recent failed poll cycle, cleared on success
    """

    config: RuntimeConfig
    scheduler: BaseScheduler
    engine: SchedulingEngine
    feed: EventFeed
    dispatcher: CommandDispatcher
    logger: UnifiedLogger
    started_at: datetime
    last_cycle: Optional[CycleResult] = None
    last_error: Optional[str] = None

    async def run_cycle(self) -> CycleResult:
        """
        Run one poll cycle and record its outcome.

        Raises:
            SchedulerNamespaceError: If the engine could not clear its namespace
        """
        try:
            result = await run_poll_cycle(self.feed, self.engine, self.config.refresh_interval)
        except SchedulerNamespaceError as e:
            self.last_error = str(e)
            raise

        self.last_cycle = result
        self.last_error = result.skipped_reason
        return result

    async def poll_calendar(self) -> None:
        """Interval job entry point; failures are logged and retried next interval."""
        try:
            await self.run_cycle()
        except SchedulerNamespaceError as e:
            self.logger.error(f"Scheduling jobs failed, retrying next interval: {e}")

    async def shutdown(self):
        """Gracefully shutdown all runtime services and clear global context."""
        self.logger.info("Shutting down runtime context")

        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=True)

        await self.dispatcher.aclose()

        # Clear global runtime context to allow clean restart
        runtime_state.clear_runtime_context()


from . import state as runtime_state
