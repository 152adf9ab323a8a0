from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime


class NotificationScheduler(ABC):
    @abstractmethod
    async def schedule(self, title: str, body: str, at: datetime) -> str:
        """
        Schedule a one-shot alert and return its handle.
        Raise NotificationError if the alert cannot be scheduled.
        """
        raise NotImplementedError

    @abstractmethod
    async def cancel(self, handle: str) -> None:
        """Cancel a scheduled alert. Unknown or already-fired handles are ignored."""
        raise NotImplementedError

    def shutdown(self) -> None:
        pass
