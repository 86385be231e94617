"""
Command dispatchers.

A fired trigger hands its payload to a dispatcher verbatim; what the commands
mean is up to whatever receives them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from caltrigger.constants import DISPATCH_MODE_WEBHOOK
from caltrigger.logger import UnifiedLogger
from caltrigger.settings.store import DispatchSettings

logger = UnifiedLogger(tag="command-dispatch")


@dataclass(frozen=True)
class CommandInvocation:
    """A payload due for execution."""
    trigger_id: str
    title: str
    phase: str
    payload: str
    fired_at: datetime
    calendar_name: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        data = asdict(self)
        data["fired_at"] = self.fired_at.isoformat()
        return data


class CommandDispatcher(ABC):
    """Base class for command sinks."""

    @abstractmethod
    async def dispatch(self, invocation: CommandInvocation) -> None:
        """Deliver the invocation's payload."""

    async def aclose(self) -> None:
        """Release resources held by the dispatcher."""
        return None


class LoggingDispatcher(CommandDispatcher):
    """Records fired commands in the activity log only."""

    async def dispatch(self, invocation: CommandInvocation) -> None:
        logger.activity(
            "Executing commands",
            calendar=invocation.title,
            metadata=invocation.to_json(),
        )


class WebhookDispatcher(CommandDispatcher):
    """POSTs each invocation as JSON to a configured URL."""

    def __init__(self, url: str, timeout: float, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def dispatch(self, invocation: CommandInvocation) -> None:
        try:
            response = await self._client.post(self.url, json=invocation.to_json())
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(
                f"Command webhook failed: {e}",
                trigger_id=invocation.trigger_id,
                url=self.url,
            )
            raise

        logger.activity(
            "Commands delivered to webhook",
            calendar=invocation.title,
            metadata={"trigger_id": invocation.trigger_id, "status_code": response.status_code},
        )

    async def aclose(self) -> None:
        await self._client.aclose()


def create_dispatcher(settings: DispatchSettings) -> CommandDispatcher:
    """Build the dispatcher selected by the dispatch settings."""
    if settings.mode == DISPATCH_MODE_WEBHOOK:
        if not settings.webhook_url:
            raise ValueError("dispatch mode 'webhook' requires webhook_url")
        return WebhookDispatcher(settings.webhook_url, timeout=settings.timeout)
    return LoggingDispatcher()
