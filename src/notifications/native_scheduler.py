from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from plyer import notification

from chat_assistant.errors import NotificationError
from notifications.base import NotificationScheduler

logger = logging.getLogger(__name__)

APP_NAME = "Chat Assistant"


def show_desktop_notification(title: str, body: str, timeout: int = 10) -> None:
    """Best-effort OS notification; failures are only logged."""
    try:
        notification.notify(title=title, message=body, app_name=APP_NAME, timeout=timeout)
    except Exception as e:
        logger.warning(f"Desktop notification failed: {e}")


class NativeNotificationScheduler(NotificationScheduler):
    """
    Schedules alerts on an APScheduler background scheduler and shows them
    as desktop notifications when they fire.
    """

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None):
        self.scheduler = scheduler or BackgroundScheduler()

    def _ensure_started(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Notification scheduler started")

    async def schedule(self, title: str, body: str, at: datetime) -> str:
        handle = f"reminder_{uuid.uuid4().hex[:12]}"
        try:
            self._ensure_started()
            self.scheduler.add_job(
                show_desktop_notification,
                trigger=DateTrigger(run_date=at),
                args=[title, body],
                id=handle,
                replace_existing=True,
                misfire_grace_time=None,
            )
        except Exception as e:
            raise NotificationError(f"Could not schedule notification: {e}") from e
        logger.info(f"Scheduled notification {handle} for {at.isoformat()}")
        return handle

    async def cancel(self, handle: str) -> None:
        try:
            self.scheduler.remove_job(handle)
        except JobLookupError:
            logger.debug(f"Notification {handle} already gone")

    def has_job(self, handle: str) -> bool:
        return self.scheduler.get_job(handle) is not None

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
