from __future__ import annotations

from abc import ABC, abstractmethod


class BadgePublisher(ABC):
    @abstractmethod
    def set_unread_count(self, count: int) -> None:
        """Show `count` as the app badge. Called fire-and-forget."""
        raise NotImplementedError
