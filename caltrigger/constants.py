"""
Core system constants.

Basic system constants that are used across multiple modules.

Only place true invariants here (job store aliases, job ids, bounds, etc.).
Deployment-specific paths and defaults live in caltrigger.runtime.paths; use
those helpers or RuntimeConfig rather than adding env-derived values here.
"""

from __future__ import annotations


# APScheduler job store alias holding every trigger derived from calendar events.
# Everything inside this store is owned by the scheduling engine and is wiped on
# each resync.
CALDAV_JOBSTORE = "caldav"

# Id of the interval job driving the poll cycle (lives in the default job store)
POLL_JOB_ID = "caldav-poll"

# Default refresh interval in seconds (15 minutes)
DEFAULT_REFRESH_INTERVAL = 900

# The feed window spans now .. now + FEED_WINDOW_MULTIPLIER * refresh interval
FEED_WINDOW_MULTIPLIER = 2

# Refresh interval validation bounds
REFRESH_MIN = 10        # Minimum refresh in seconds
REFRESH_MAX = 86400     # Maximum refresh in seconds (1 day)

# Default timeout for CalDAV requests in seconds
DEFAULT_REQUEST_TIMEOUT = 30.0

# Default timeout for webhook command dispatch in seconds
DEFAULT_DISPATCH_TIMEOUT = 10.0

# Seconds a trigger may run late (e.g. while the scheduler is paused) before it is dropped
MISFIRE_GRACE_TIME = 60

# Maximum trigger fire times listed when logging a resync summary
MAX_TRIGGER_LOGS = 24

# Trigger phases
PHASE_START = "start"
PHASE_END = "end"

# Dispatch modes
DISPATCH_MODE_LOG = "log"
DISPATCH_MODE_WEBHOOK = "webhook"
VALID_DISPATCH_MODES = [DISPATCH_MODE_LOG, DISPATCH_MODE_WEBHOOK]

# Secret names
CALDAV_PASSWORD_SECRET = "CALDAV_PASSWORD"
LOGFIRE_TOKEN_SECRET = "LOGFIRE_TOKEN"

# Activity log context used for system-level entries
SYSTEM_ACTIVITY_CONTEXT = "system"
