"""
Runtime-aware path helpers.

Provides centralized access to the system root, preferring the runtime context
when available and falling back to container defaults.
"""

import os
from pathlib import Path

from caltrigger.runtime.state import get_runtime_context, has_runtime_context

# Default root (env-driven). Kept here to discourage direct import elsewhere.
SYSTEM_ROOT_ENV = "CALTRIGGER_SYSTEM_ROOT"
_DEFAULT_SYSTEM_ROOT = "/app/system"


def get_system_root() -> Path:
    """Return the active system root (settings, secrets, logs, job store DB)."""
    if has_runtime_context():
        try:
            return Path(get_runtime_context().config.system_root)
        except Exception:
            pass
    return Path(os.getenv(SYSTEM_ROOT_ENV, _DEFAULT_SYSTEM_ROOT))
