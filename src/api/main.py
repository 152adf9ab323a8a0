import logging

from fastapi import FastAPI

from api import state
from api.dependencies import build_backend
from api.routers import messages, ops
from chat_assistant.config import AppConfig

# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Chat Assistant")
app.include_router(messages.router)
app.include_router(ops.router)


@app.on_event("startup")
async def startup() -> None:
    # Tests inject a backend before startup
    if state.backend is None:
        config = AppConfig.from_env()
        state.backend = build_backend(config)
        logger.info(
            f"Assistant started (notifications={config.notification_backend}, "
            f"calendar={config.calendar_backend})"
        )
    await state.backend.store.restore_reminders()


@app.on_event("shutdown")
async def shutdown() -> None:
    if state.backend is None:
        return
    store = state.backend.store
    await store.wait_for_pending()
    try:
        store.notifier.shutdown()
    except Exception as e:
        logger.error(f"Error stopping notification scheduler: {e}")
    logger.info("Assistant stopped")
