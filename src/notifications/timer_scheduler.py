from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, Optional

from notifications.base import NotificationScheduler

logger = logging.getLogger(__name__)

DeliverFn = Callable[[str, str], None]


def _log_delivery(title: str, body: str) -> None:
    logger.info(f"[{title}] {body}")


class TimerNotificationScheduler(NotificationScheduler):
    """In-process fallback: one event-loop timer per alert.

    Alerts only fire while the process is running.
    """

    def __init__(self, deliver: Optional[DeliverFn] = None):
        self._deliver = deliver or _log_delivery
        self._timers: Dict[str, asyncio.TimerHandle] = {}

    @property
    def pending(self) -> int:
        return len(self._timers)

    async def schedule(self, title: str, body: str, at: datetime) -> str:
        loop = asyncio.get_running_loop()
        delay = (at - datetime.now(at.tzinfo)).total_seconds()
        handle = uuid.uuid4().hex[:12]
        self._timers[handle] = loop.call_later(
            max(0.0, delay), self._fire, handle, title, body
        )
        logger.debug(f"Timer notification {handle} set for {at.isoformat()}")
        return handle

    async def cancel(self, handle: str) -> None:
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.cancel()

    def _fire(self, handle: str, title: str, body: str) -> None:
        self._timers.pop(handle, None)
        try:
            self._deliver(title, body)
        except Exception as e:
            logger.warning(f"Notification delivery failed for {handle}: {e}")

    def shutdown(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
