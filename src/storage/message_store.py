"""
Message store for the chat assistant.

Owns the message collection and the reminder lifecycle. A reminder is either
unscheduled (no reminder_date) or scheduled (reminder_date + notification_id,
calendar_event_id when the calendar mirror could be created). Transitions
talk to the notification scheduler and calendar first and then commit all
reminder fields in one snapshot replacement.

Lifecycle operations on the same message id are serialized with a per-id
asyncio lock so a slow transition can never store a stale external handle
after a newer one finished.
"""

import asyncio
import logging
from contextlib import AsyncExitStack
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from chat_assistant.models import (
    CalendarEventRequest,
    LinkPreview,
    Message,
    MessageType,
)
from extraction.link_detector import placeholder_previews
from integration.calendar_integration import CalendarSync, NullCalendarSync
from integration.link_preview import LinkMetadataFetcher
from notifications.badge import BadgePublisher
from notifications.base import NotificationScheduler
from security.encryption import EncryptionService
from storage.message_repository import JsonMessageRepository

logger = logging.getLogger(__name__)

REMINDER_TITLE = "Reminder"
CALENDAR_NOTES = "Added from App Reminders"

Observer = Callable[[Tuple[Message, ...]], None]


class EncryptionResult(NamedTuple):
    message: Optional[Message]
    error: Optional[str] = None


class MessageStore:

    def __init__(
        self,
        notifier: NotificationScheduler,
        calendar: Optional[CalendarSync] = None,
        encryption: Optional[EncryptionService] = None,
        link_fetcher: Optional[LinkMetadataFetcher] = None,
        badge: Optional[BadgePublisher] = None,
        repository: Optional[JsonMessageRepository] = None,
        reminder_duration_minutes: int = 30,
        calendar_lead_minutes: int = 15,
    ):
        self.notifier = notifier
        self.calendar = calendar or NullCalendarSync()
        self.encryption = encryption
        self.link_fetcher = link_fetcher
        self.badge = badge
        self.repository = repository
        self.reminder_duration = timedelta(minutes=reminder_duration_minutes)
        self.calendar_lead_minutes = calendar_lead_minutes

        self._messages: Tuple[Message, ...] = tuple(repository.load()) if repository else ()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._observers: List[Observer] = []
        self._pending: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------ reads

    @property
    def messages(self) -> List[Message]:
        """All messages, newest first."""
        return list(self._messages)

    def get_message(self, message_id: str) -> Optional[Message]:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def get_filtered_messages(self, message_type: Optional[MessageType] = None) -> List[Message]:
        if message_type is None:
            return list(self._messages)
        return [m for m in self._messages if m.type == message_type]

    def unread_count(self) -> int:
        return sum(1 for m in self._messages if not m.is_read)

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """Call `callback` with the new snapshot after every mutation."""
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------ internals

    def _lock_for(self, message_id: str) -> asyncio.Lock:
        lock = self._locks.get(message_id)
        if lock is None:
            lock = self._locks[message_id] = asyncio.Lock()
        return lock

    def _commit(self, messages: Iterable[Message], unread_changed: bool = False) -> None:
        self._messages = tuple(messages)
        self._persist()
        self._notify_observers()
        if unread_changed:
            self._publish_unread_count()

    def _replace(self, message_id: str, **changes) -> Optional[Message]:
        updated: Optional[Message] = None
        new_messages = []
        for message in self._messages:
            if message.id == message_id:
                updated = message.model_copy(update=changes)
                new_messages.append(updated)
            else:
                new_messages.append(message)
        if updated is None:
            return None
        self._commit(new_messages)
        return updated

    def _persist(self) -> None:
        if self.repository is None:
            return
        try:
            self.repository.save(self._messages)
        except Exception as e:
            logger.error(f"Failed to persist messages: {e}")

    def _notify_observers(self) -> None:
        snapshot = self._messages
        for callback in list(self._observers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Message observer failed")

    def _publish_unread_count(self) -> None:
        if self.badge is None:
            return
        count = self.unread_count()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._set_badge(count)
        else:
            loop.call_soon(self._set_badge, count)

    def _set_badge(self, count: int) -> None:
        try:
            self.badge.set_unread_count(count)
        except Exception as e:
            logger.warning(f"Badge update failed: {e}")

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def wait_for_pending(self) -> None:
        """Wait until all background link enrichment has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _teardown(self, message: Message) -> None:
        """Cancel the alert and remove the calendar entry of `message`, best-effort."""
        if message.notification_id:
            try:
                await self.notifier.cancel(message.notification_id)
            except Exception as e:
                logger.warning(
                    f"Could not cancel notification {message.notification_id} "
                    f"of message {message.id}: {e}"
                )

        if message.calendar_event_id:
            try:
                removed = await self.calendar.remove_event(message.calendar_event_id)
            except Exception as e:
                removed = False
                logger.warning(f"Calendar removal raised for message {message.id}: {e}")
            if not removed:
                logger.warning(
                    f"Calendar event {message.calendar_event_id} of message "
                    f"{message.id} was not removed"
                )

    async def _add_calendar_entry(self, message: Message, date: datetime) -> Optional[str]:
        event = CalendarEventRequest(
            title=message.text,
            start=date,
            end=date + self.reminder_duration,
            notes=CALENDAR_NOTES,
            lead_minutes=self.calendar_lead_minutes,
        )
        try:
            return await self.calendar.add_event(event)
        except Exception as e:
            logger.warning(f"Calendar mirror for message {message.id} failed: {e}")
            return None

    # ------------------------------------------------------------- mutations

    async def add_message(self, text: str, message_type: MessageType) -> Message:
        """
        Create a message and put it in front of the collection.

        Detected links are attached as loading previews right away and
        enriched in the background; the call does not wait for that.
        """
        links = placeholder_previews(text) if self.link_fetcher is not None else []
        message = Message(text=text.strip(), type=message_type, links=links)
        self._commit((message, *self._messages), unread_changed=True)
        logger.info(f"Added {message_type} {message.id} ({len(links)} link(s))")

        for link in links:
            self._spawn(self._enrich_link(message.id, link.url))
        return message

    async def _enrich_link(self, message_id: str, url: str) -> None:
        try:
            meta = await self.link_fetcher.fetch(url)
            preview = LinkPreview(
                url=url,
                title=meta.title,
                description=meta.description,
                image=meta.image_url,
                loading=False,
            )
        except Exception as e:
            logger.warning(f"Link preview for {url} failed: {e}")
            preview = LinkPreview(url=url, loading=False, error=True)
        self.update_link_preview(message_id, preview)

    def update_link_preview(self, message_id: str, preview: LinkPreview) -> Optional[Message]:
        """Resolve the loading preview with the same URL. Unknown messages are ignored."""
        message = self.get_message(message_id)
        if message is None:
            logger.debug(f"Dropping link preview for deleted message {message_id}")
            return None

        changed = False
        links = []
        for link in message.links:
            if link.url == preview.url and link.loading:
                links.append(preview)
                changed = True
            else:
                links.append(link)
        if not changed:
            return message
        return self._replace(message_id, links=links)

    def mark_as_read(self, message_id: str) -> Optional[Message]:
        message = self.get_message(message_id)
        if message is None or message.is_read:
            return message
        updated = self._replace(message_id, is_read=True)
        self._publish_unread_count()
        return updated

    def toggle_completed(self, message_id: str) -> Optional[Message]:
        message = self.get_message(message_id)
        if message is None:
            return None
        return self._replace(message_id, is_completed=not message.is_completed)

    async def set_reminder_date(self, message_id: str, date: datetime) -> Optional[Message]:
        """
        Schedule (or reschedule) the reminder alert of a message.

        An existing alert and calendar entry are torn down first. The calendar
        mirror is optional: its failure leaves calendar_event_id empty but the
        alert stays scheduled.
        """
        async with self._lock_for(message_id):
            message = self.get_message(message_id)
            if message is None:
                return None
            if message.type != "reminder":
                logger.warning(f"Message {message_id} is a {message.type}, not a reminder")
                return message

            await self._teardown(message)

            try:
                notification_id = await self.notifier.schedule(REMINDER_TITLE, message.text, date)
            except Exception as e:
                logger.error(f"Scheduling reminder {message_id} failed: {e}")
                # the previous alert is gone already
                return self._replace(
                    message_id,
                    reminder_date=None,
                    notification_id=None,
                    calendar_event_id=None,
                )

            calendar_event_id = await self._add_calendar_entry(message, date)
            updated = self._replace(
                message_id,
                reminder_date=date,
                notification_id=notification_id,
                calendar_event_id=calendar_event_id,
            )
            logger.info(f"Reminder {message_id} scheduled for {date.isoformat()}")
            return updated

    async def restore_reminders(self, now: Optional[datetime] = None) -> int:
        """
        Re-arm alerts of persisted reminders after a restart.

        Schedulers keep their alerts in memory, so a loaded notification_id
        points at nothing. Future reminders get a fresh alert (the calendar
        entry is kept); reminders whose date has passed become unscheduled.
        Returns the number of re-armed reminders.
        """
        restored = 0
        for message_id in [m.id for m in self._messages if m.is_scheduled]:
            async with self._lock_for(message_id):
                message = self.get_message(message_id)
                if message is None or not message.is_scheduled:
                    continue

                date = message.reminder_date
                current = now if now is not None else datetime.now(date.tzinfo)
                if date <= current:
                    self._replace(
                        message_id,
                        reminder_date=None,
                        notification_id=None,
                        calendar_event_id=None,
                    )
                    logger.info(f"Reminder {message_id} expired while stopped")
                    continue

                try:
                    notification_id = await self.notifier.schedule(
                        REMINDER_TITLE, message.text, date
                    )
                except Exception as e:
                    logger.error(f"Re-arming reminder {message_id} failed: {e}")
                    await self._teardown(message.model_copy(update={"notification_id": None}))
                    self._replace(
                        message_id,
                        reminder_date=None,
                        notification_id=None,
                        calendar_event_id=None,
                    )
                    continue

                self._replace(message_id, notification_id=notification_id)
                restored += 1

        if restored:
            logger.info(f"Re-armed {restored} reminder(s)")
        return restored

    async def cancel_reminder(self, message_id: str) -> Optional[Message]:
        async with self._lock_for(message_id):
            message = self.get_message(message_id)
            if message is None or not message.notification_id:
                return message

            await self._teardown(message)
            updated = self._replace(
                message_id,
                reminder_date=None,
                notification_id=None,
                calendar_event_id=None,
            )
            logger.info(f"Reminder {message_id} cancelled")
            return updated

    async def delete_message(self, message_id: str) -> bool:
        async with self._lock_for(message_id):
            message = self.get_message(message_id)
            if message is None:
                return False

            await self._teardown(message)
            self._commit(
                [m for m in self._messages if m.id != message_id],
                unread_changed=True,
            )
        self._locks.pop(message_id, None)
        logger.info(f"Deleted message {message_id}")
        return True

    async def delete_all_messages(self, message_type: Optional[MessageType] = None) -> int:
        """Delete every message (of one type) after tearing down their reminders."""
        target_ids = sorted(m.id for m in self.get_filtered_messages(message_type))

        async with AsyncExitStack() as stack:
            # sorted acquisition keeps concurrent bulk deletes deadlock-free
            for message_id in target_ids:
                await stack.enter_async_context(self._lock_for(message_id))

            wanted = set(target_ids)
            doomed = [m for m in self._messages if m.id in wanted]
            await asyncio.gather(*(self._teardown(m) for m in doomed))

            doomed_ids = {m.id for m in doomed}
            self._commit(
                [m for m in self._messages if m.id not in doomed_ids],
                unread_changed=True,
            )

        for message_id in doomed_ids:
            self._locks.pop(message_id, None)
        logger.info(f"Deleted {len(doomed_ids)} message(s) (type={message_type or 'all'})")
        return len(doomed_ids)

    async def encrypt_message(self, message_id: str) -> EncryptionResult:
        async with self._lock_for(message_id):
            message = self.get_message(message_id)
            if message is None or message.encrypted:
                return EncryptionResult(message)
            if self.encryption is None:
                return EncryptionResult(message, "Encryption is not configured")

            try:
                ciphertext = await asyncio.to_thread(self.encryption.encrypt, message.text)
            except Exception as e:
                logger.error(f"Failed to encrypt message {message_id}: {e}")
                return EncryptionResult(message, str(e))

            return EncryptionResult(self._replace(message_id, text=ciphertext, encrypted=True))

    async def decrypt_message(self, message_id: str) -> EncryptionResult:
        async with self._lock_for(message_id):
            message = self.get_message(message_id)
            if message is None or not message.encrypted:
                return EncryptionResult(message)
            if self.encryption is None:
                return EncryptionResult(message, "Encryption is not configured")

            try:
                plaintext = await asyncio.to_thread(self.encryption.decrypt, message.text)
            except Exception as e:
                logger.error(f"Failed to decrypt message {message_id}: {e}")
                return EncryptionResult(message, str(e))

            return EncryptionResult(self._replace(message_id, text=plaintext, encrypted=False))
