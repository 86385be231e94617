"""
Runtime bootstrap for CalTrigger.

Provides single entry point for initializing all runtime services
with proper configuration, error handling, and lifecycle management.
"""

from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from caltrigger.constants import POLL_JOB_ID
from caltrigger.feed.caldav import CalDavFeed
from caltrigger.logger import UnifiedLogger
from caltrigger.scheduling.database import create_job_stores
from caltrigger.scheduling.dispatch import CommandDispatcher, create_dispatcher
from caltrigger.scheduling.engine import SchedulingEngine
from caltrigger.scheduling.jobs import EventFeed
from caltrigger.settings import validate_settings
from .config import RuntimeConfig, RuntimeConfigError
from .context import RuntimeContext
from .state import set_runtime_context, clear_runtime_context


async def bootstrap_runtime(
    config: RuntimeConfig,
    feed: Optional[EventFeed] = None,
    dispatcher: Optional[CommandDispatcher] = None,
) -> RuntimeContext:
    """
    Bootstrap CalTrigger runtime with centralized service initialization.

    Starts the scheduler paused, runs a first poll cycle so the trigger
    namespace reflects the calendar before anything can fire, then registers
    the interval poll job and resumes the scheduler.

    Args:
        config: Runtime configuration with paths and settings
        feed: Optional event source override (defaults to the CalDAV feed)
        dispatcher: Optional command sink override (defaults to the configured one)

    Returns:
        RuntimeContext with initialized services

    Raises:
        RuntimeConfigError: If configuration is invalid
        RuntimeStartupError: If service initialization fails
    """
    logger = UnifiedLogger(tag="runtime-bootstrap")
    logger.info("Starting runtime bootstrap", metadata={"system_root": str(config.system_root)})

    scheduler = None
    try:
        config_status = validate_settings(
            caldav=config.caldav,
            dispatch=config.dispatch,
            password_configured=bool(config.password),
        )
        if not config_status.is_healthy:
            error_messages = [f"{issue.name}: {issue.message}" for issue in config_status.errors]
            logger.error(
                "Critical configuration validation failed",
                metadata={"errors": error_messages},
            )
            raise RuntimeConfigError("; ".join(error_messages))

        for warning in config_status.warnings:
            logger.warning(
                warning.message,
                metadata={"issue": warning.name, "severity": warning.severity},
            )

        scheduler = AsyncIOScheduler(
            jobstores=create_job_stores(config.job_store_url),
            timezone=timezone.utc,
        )

        # Start scheduler in paused mode to allow job synchronization
        scheduler.start(paused=True)
        logger.info("Scheduler started in paused mode for job synchronization")

        runtime_context = RuntimeContext(
            config=config,
            scheduler=scheduler,
            engine=SchedulingEngine(scheduler),
            feed=feed or CalDavFeed(config.caldav, config.password),
            dispatcher=dispatcher or create_dispatcher(config.dispatch),
            logger=logger,
            started_at=datetime.now(timezone.utc),
        )

        # Register context globally before job synchronization
        set_runtime_context(runtime_context)

        try:
            await runtime_context.run_cycle()
            logger.info("Calendar fetched and triggers synchronized")

            scheduler.add_job(
                runtime_context.poll_calendar,
                trigger=IntervalTrigger(seconds=config.refresh_interval),
                id=POLL_JOB_ID,
                name="CalDAV poll",
                jobstore="default",
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )

            scheduler.resume()
            logger.info("Scheduler resumed and ready for execution")

        except Exception:
            # If job synchronization fails, clean up and rethrow
            scheduler.shutdown(wait=False)
            clear_runtime_context()
            raise

        logger.activity(
            "Runtime bootstrap completed successfully",
            metadata={
                "calendar_url": config.caldav.base_url,
                "refresh_interval": config.refresh_interval,
                "dispatch_mode": config.dispatch.mode,
                "persistent_job_store": bool(config.job_store_url),
                "features": config.features,
            },
        )

        return runtime_context

    except RuntimeConfigError:
        # Re-raise configuration errors without wrapping
        raise

    except Exception as e:
        logger.error(f"Runtime bootstrap failed: {e}")

        try:
            if scheduler is not None and scheduler.running:
                scheduler.shutdown(wait=False)
        except Exception as cleanup_error:
            logger.error(f"Error during bootstrap cleanup: {cleanup_error}")

        raise RuntimeStartupError(f"Failed to bootstrap runtime: {e}") from e


class RuntimeBootstrapError(Exception):
    """Base exception for runtime bootstrap failures."""
    pass


class RuntimeStartupError(RuntimeBootstrapError):
    """Raised when service initialization fails during bootstrap."""
    pass
