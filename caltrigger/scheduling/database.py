"""
Job store setup for the APScheduler instance.

The poll job always lives in an in-memory default store. Event triggers get
their own store alias, which doubles as the engine's namespace: the engine can
wipe it without touching anything else. Pointing `scheduler.job_store_url` at a
database keeps event triggers across restarts (they are rebuilt by the first
poll cycle anyway).
"""

from typing import Dict, Optional

from apscheduler.jobstores.base import BaseJobStore
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore

from caltrigger.constants import CALDAV_JOBSTORE


def create_job_stores(job_store_url: Optional[str] = None) -> Dict[str, BaseJobStore]:
    """Create the job stores for the scheduler.

    Args:
        job_store_url: Optional SQLAlchemy URL for the event trigger store
            (e.g. 'sqlite:////app/system/scheduler_jobs.db')

    Returns:
        Mapping of job store alias to store instance
    """
    if job_store_url:
        trigger_store: BaseJobStore = SQLAlchemyJobStore(url=job_store_url, tablename="caldav_jobs")
    else:
        trigger_store = MemoryJobStore()

    return {
        "default": MemoryJobStore(),
        CALDAV_JOBSTORE: trigger_store,
    }
