import logging
import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from api.backend import AssistantBackend
from api.dependencies import get_backend, get_message_store
from api.metrics import MESSAGES_CREATED_TOTAL, REQUESTS_TOTAL, REQUEST_LATENCY_SECONDS
from chat_assistant.errors import InputValidationError
from chat_assistant.models import Message, MessageType
from storage.message_store import EncryptionResult, MessageStore

router = APIRouter(prefix="/messages")
logger = logging.getLogger(__name__)


class MessageIn(BaseModel):
    text: str


class ReminderIn(BaseModel):
    reminder_date: datetime


def _count(endpoint: str, status: str, start: Optional[float] = None) -> None:
    # Prometheus counters (best-effort)
    try:
        REQUESTS_TOTAL.labels(endpoint=endpoint, status=status).inc()
        if start is not None:
            REQUEST_LATENCY_SECONDS.labels(endpoint=endpoint).observe(time.time() - start)
    except Exception:
        pass


def _found(message: Optional[Message]) -> Message:
    if message is None:
        raise HTTPException(status_code=404, detail="Message not found")
    return message


def _encryption_response(result: EncryptionResult) -> Message:
    message = _found(result.message)
    if result.error:
        raise HTTPException(status_code=422, detail=result.error)
    return message


@router.post("")
async def submit_message(
    payload: MessageIn,
    backend: AssistantBackend = Depends(get_backend),
) -> Message:
    start = time.time()
    try:
        message = await backend.submit_message(payload.text)
    except InputValidationError as e:
        _count("/messages", "rejected", start)
        raise HTTPException(
            status_code=422, detail={"reason": e.reason, "message": str(e)}
        )

    _count("/messages", "created", start)
    try:
        MESSAGES_CREATED_TOTAL.labels(type=message.type).inc()
    except Exception:
        pass
    return message


@router.get("")
async def list_messages(
    type: Optional[MessageType] = None,
    store: MessageStore = Depends(get_message_store),
) -> dict:
    """Messages newest first, optionally only one type."""
    messages = store.get_filtered_messages(type)
    return {
        "messages": messages,
        "total": len(messages),
        "unread": store.unread_count(),
    }


@router.delete("")
async def delete_all_messages(
    type: Optional[MessageType] = None,
    store: MessageStore = Depends(get_message_store),
) -> dict:
    deleted = await store.delete_all_messages(type)
    _count("/messages", "deleted_all")
    return {"deleted": deleted}


@router.get("/{message_id}")
async def get_message(
    message_id: str, store: MessageStore = Depends(get_message_store)
) -> Message:
    return _found(store.get_message(message_id))


@router.post("/{message_id}/read")
async def mark_as_read(
    message_id: str, store: MessageStore = Depends(get_message_store)
) -> Message:
    return _found(store.mark_as_read(message_id))


@router.post("/{message_id}/complete")
async def toggle_completed(
    message_id: str, store: MessageStore = Depends(get_message_store)
) -> Message:
    return _found(store.toggle_completed(message_id))


@router.put("/{message_id}/reminder")
async def set_reminder(
    message_id: str,
    payload: ReminderIn,
    store: MessageStore = Depends(get_message_store),
) -> Message:
    return _found(await store.set_reminder_date(message_id, payload.reminder_date))


@router.delete("/{message_id}/reminder")
async def cancel_reminder(
    message_id: str, store: MessageStore = Depends(get_message_store)
) -> Message:
    return _found(await store.cancel_reminder(message_id))


@router.post("/{message_id}/encrypt")
async def encrypt_message(
    message_id: str, store: MessageStore = Depends(get_message_store)
) -> Message:
    return _encryption_response(await store.encrypt_message(message_id))


@router.post("/{message_id}/decrypt")
async def decrypt_message(
    message_id: str, store: MessageStore = Depends(get_message_store)
) -> Message:
    return _encryption_response(await store.decrypt_message(message_id))


@router.delete("/{message_id}")
async def delete_message(
    message_id: str, store: MessageStore = Depends(get_message_store)
) -> dict:
    # deleting an unknown id is a no-op
    deleted = await store.delete_message(message_id)
    return {"deleted": deleted}
