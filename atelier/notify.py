"""
Notification sink — fire-and-forget events for the outside world.

Delivery updates and unlock changes are published here. A sink failure never
fails the operation that produced the event: `notify()` logs and moves on.

    sink = LoggingSink()
    await notify(sink, Notification("order.delivery_advanced", order.id, {...}))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from atelier._types import utcnow

logger = logging.getLogger(__name__)

DELIVERY_ADVANCED = "order.delivery_advanced"
UNLOCK_CHANGED = "project.unlock_changed"


@dataclass(frozen=True, slots=True)
class Notification:
    topic: str
    subject_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)


class NotificationSink(Protocol):
    async def publish(self, notification: Notification) -> None:
        ...


class LoggingSink:
    """Writes every notification to the log. Default sink."""

    async def publish(self, notification: Notification) -> None:
        logger.info(
            "notification %s for %s: %s",
            notification.topic,
            notification.subject_id,
            notification.payload,
        )


class MemorySink:
    """Collects notifications in a list. For tests and local runs."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def publish(self, notification: Notification) -> None:
        self.sent.append(notification)

    def topics(self) -> list[str]:
        return [n.topic for n in self.sent]


async def notify(
    sink: NotificationSink,
    notification: Notification,
    timeout: float = 2.0,
) -> bool:
    """Publish with a timeout. Returns False if the sink failed."""
    try:
        await asyncio.wait_for(sink.publish(notification), timeout)
    except Exception:
        logger.exception(
            "notification %s for %s dropped", notification.topic, notification.subject_id
        )
        return False
    return True


__all__ = (
    "Notification",
    "NotificationSink",
    "LoggingSink",
    "MemorySink",
    "notify",
    "DELIVERY_ADVANCED",
    "UNLOCK_CHANGED",
)
