from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal, Optional, List

from pydantic import BaseModel, Field, model_validator


MessageType = Literal["todo", "reminder", "note"]

MESSAGE_TYPES = ("todo", "reminder", "note")

CREATED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"


def new_message_id() -> str:
    return uuid.uuid4().hex


class LinkPreview(BaseModel):
    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    loading: bool = False
    error: bool = False

    @property
    def render_state(self) -> str:
        """How a consumer should draw this preview: 'hidden', 'loading' or 'card'."""
        if self.error:
            return "hidden"
        if self.loading:
            return "loading"
        return "card"


class Message(BaseModel):
    id: str = Field(default_factory=new_message_id)
    text: str
    type: MessageType
    created_at: str = Field(
        default_factory=lambda: datetime.now().strftime(CREATED_AT_FORMAT)
    )

    is_read: bool = False
    is_completed: bool = False

    # reminder_date and notification_id are only ever set or cleared together
    reminder_date: Optional[datetime] = None
    notification_id: Optional[str] = None
    calendar_event_id: Optional[str] = None

    links: List[LinkPreview] = Field(default_factory=list)
    encrypted: bool = False

    @model_validator(mode="after")
    def reminder_fields_paired(self) -> "Message":
        if (self.reminder_date is None) != (self.notification_id is None):
            raise ValueError("reminder_date and notification_id must be set together")
        return self

    @property
    def is_scheduled(self) -> bool:
        return self.notification_id is not None


class CalendarEventRequest(BaseModel):
    """Calendar mirror of a scheduled reminder."""
    title: str
    start: datetime
    end: datetime
    notes: str = ""
    lead_minutes: int = Field(15, ge=0)


class LinkMetadata(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
