import logging

from fastapi import APIRouter, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from api import state
from api.metrics import UNREAD_MESSAGES

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint for container orchestration."""
    if state.backend is None:
        return {"status": "starting", "messages": 0}

    store = state.backend.store
    return {
        "status": "healthy",
        "messages": len(store.messages),
        "unread": store.unread_count(),
        "notification_backend": type(store.notifier).__name__,
        "calendar_backend": type(store.calendar).__name__,
    }


@router.get("/metrics")
async def metrics() -> Response:
    """
    Prometheus scrape endpoint.
    """
    try:
        if state.backend is not None:
            UNREAD_MESSAGES.set(state.backend.store.unread_count())
    except Exception:
        pass

    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
