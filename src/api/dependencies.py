import logging
from typing import Optional

from fastapi import HTTPException
from google.oauth2.credentials import Credentials

from api import state
from api.backend import AssistantBackend
from api.metrics import MetricsBadgePublisher
from chat_assistant.config import AppConfig
from integration.calendar_integration import (
    CalendarSync,
    GoogleCalendarSync,
    IcsCalendarSync,
    NullCalendarSync,
)
from integration.link_preview import MicrolinkFetcher
from notifications.base import NotificationScheduler
from notifications.native_scheduler import NativeNotificationScheduler
from notifications.timer_scheduler import TimerNotificationScheduler
from security.encryption import EncryptionService
from security.key_store import FileKeyStore
from storage.message_repository import JsonMessageRepository
from storage.message_store import MessageStore

logger = logging.getLogger(__name__)

GOOGLE_SCOPES = ["https://www.googleapis.com/auth/calendar.events"]


def build_notification_scheduler(config: AppConfig) -> NotificationScheduler:
    if config.notification_backend == "timer":
        return TimerNotificationScheduler()
    if config.notification_backend != "native":
        logger.warning(
            f"Unknown NOTIFICATION_BACKEND '{config.notification_backend}', using native"
        )
    return NativeNotificationScheduler()


def _load_google_credentials(path: Optional[str]) -> Optional[Credentials]:
    if not path:
        logger.warning("GOOGLE_CREDENTIALS_FILE not set, calendar sync disabled")
        return None
    try:
        return Credentials.from_authorized_user_file(path, scopes=GOOGLE_SCOPES)
    except Exception as e:
        logger.error(f"Could not load Google credentials from {path}: {e}")
        return None


def build_calendar_sync(config: AppConfig) -> CalendarSync:
    if config.calendar_backend == "google":
        return GoogleCalendarSync(
            credentials=_load_google_credentials(config.google_credentials_file),
            calendar_id=config.google_calendar_id,
        )
    if config.calendar_backend == "ics":
        return IcsCalendarSync(directory=str(config.ics_export_dir))
    return NullCalendarSync()


def build_backend(config: AppConfig) -> AssistantBackend:
    """Wire the long-lived services once per process."""
    link_fetcher = None
    if config.link_previews_enabled:
        link_fetcher = MicrolinkFetcher(
            api_url=config.link_preview_api_url,
            timeout_s=config.link_preview_timeout_s,
        )

    store = MessageStore(
        notifier=build_notification_scheduler(config),
        calendar=build_calendar_sync(config),
        encryption=EncryptionService(FileKeyStore(str(config.keystore_path))),
        link_fetcher=link_fetcher,
        badge=MetricsBadgePublisher(),
        repository=JsonMessageRepository(str(config.messages_path)),
        reminder_duration_minutes=config.reminder_duration_minutes,
        calendar_lead_minutes=config.calendar_lead_minutes,
    )
    return AssistantBackend(store)


def get_backend() -> AssistantBackend:
    if state.backend is None:
        raise HTTPException(status_code=503, detail="Assistant not initialized")
    return state.backend


def get_message_store() -> MessageStore:
    return get_backend().store
