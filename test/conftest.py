import itertools
from datetime import datetime
from typing import Dict, List, Optional

import pytest

from chat_assistant.errors import LinkPreviewError, NotificationError
from chat_assistant.models import CalendarEventRequest, LinkMetadata
from integration.calendar_integration import CalendarSync
from integration.link_preview import LinkMetadataFetcher
from notifications.badge import BadgePublisher
from notifications.base import NotificationScheduler
from security.encryption import EncryptionService
from security.key_store import KeyStore
from storage.message_store import MessageStore


class FakeScheduler(NotificationScheduler):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.active: Dict[str, tuple] = {}
        self.cancelled: List[str] = []
        self._ids = itertools.count(1)

    async def schedule(self, title: str, body: str, at: datetime) -> str:
        if self.fail:
            raise NotificationError("scheduler down")
        handle = f"n{next(self._ids)}"
        self.active[handle] = (title, body, at)
        return handle

    async def cancel(self, handle: str) -> None:
        self.cancelled.append(handle)
        self.active.pop(handle, None)


class FakeCalendar(CalendarSync):
    def __init__(self, fail_add: bool = False, fail_remove: bool = False):
        self.fail_add = fail_add
        self.fail_remove = fail_remove
        self.events: Dict[str, CalendarEventRequest] = {}
        self.removed: List[str] = []
        self._ids = itertools.count(1)

    async def add_event(self, event: CalendarEventRequest) -> Optional[str]:
        if self.fail_add:
            return None
        handle = f"e{next(self._ids)}"
        self.events[handle] = event
        return handle

    async def remove_event(self, handle: str) -> bool:
        if self.fail_remove:
            raise RuntimeError("calendar unreachable")
        self.removed.append(handle)
        return self.events.pop(handle, None) is not None


class FakeFetcher(LinkMetadataFetcher):
    def __init__(self, results: Optional[Dict[str, LinkMetadata]] = None):
        self.results = results or {}
        self.calls: List[str] = []

    async def fetch(self, url: str) -> LinkMetadata:
        self.calls.append(url)
        if url not in self.results:
            raise LinkPreviewError(f"no metadata for {url}")
        return self.results[url]


class FakeBadge(BadgePublisher):
    def __init__(self):
        self.counts: List[int] = []

    def set_unread_count(self, count: int) -> None:
        self.counts.append(count)


class MemoryKeyStore(KeyStore):
    def __init__(self):
        self.values: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def badge():
    return FakeBadge()


@pytest.fixture
def key_store():
    return MemoryKeyStore()


@pytest.fixture
def encryption(key_store):
    return EncryptionService(key_store)


@pytest.fixture
def store(scheduler, calendar, encryption, fetcher, badge):
    return MessageStore(
        notifier=scheduler,
        calendar=calendar,
        encryption=encryption,
        link_fetcher=fetcher,
        badge=badge,
    )
