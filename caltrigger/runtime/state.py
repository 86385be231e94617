"""
Process-wide handle on the active runtime context.

Scheduled jobs are stored by reference (module path plus picklable args), so
when they fire they reach the scheduler, engine, and dispatcher through this
module instead of through captured objects.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .context import RuntimeContext


_runtime_context: Optional["RuntimeContext"] = None


class RuntimeStateError(Exception):
    """Raised when runtime context state is invalid or unavailable."""
    pass


def set_runtime_context(context: Optional["RuntimeContext"]) -> None:
    """
    Register the active runtime context, or clear it by passing None.

    Raises:
        RuntimeStateError: If a different context is already registered
    """
    global _runtime_context

    if context is not None and _runtime_context is not None:
        raise RuntimeStateError(
            "A runtime context is already registered; clear it with "
            "clear_runtime_context() before bootstrapping again."
        )

    _runtime_context = context


def get_runtime_context() -> "RuntimeContext":
    """
    Return the active runtime context.

    Raises:
        RuntimeStateError: If bootstrap_runtime() has not registered one yet
    """
    if _runtime_context is None:
        raise RuntimeStateError(
            "No runtime context available. Ensure bootstrap_runtime() "
            "has completed before firing jobs or serving requests."
        )

    return _runtime_context


def has_runtime_context() -> bool:
    """Return True when a runtime context is registered."""
    return _runtime_context is not None


def clear_runtime_context() -> None:
    """Forget the active runtime context (shutdown and test teardown)."""
    set_runtime_context(None)
