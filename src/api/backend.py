import logging
from datetime import datetime
from typing import Callable, Optional

from chat_assistant.models import Message
from classification.message_classifier import MessageClassifier
from classification.sanitizer import validate_and_sanitize
from extraction.time_extractor import extract_reminder_time
from storage.message_store import MessageStore

logger = logging.getLogger(__name__)


class AssistantBackend:
    """Central orchestration component: raw chat text in, stored message out."""

    def __init__(
        self,
        store: MessageStore,
        classifier: Optional[MessageClassifier] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.classifier = classifier or MessageClassifier()
        self.clock = clock

    async def submit_message(self, raw: str) -> Message:
        """Accepts free chat text and runs the classification pipeline.

        Raises InputValidationError before anything is stored.
        """
        # 1. Validate and sanitize input
        text = validate_and_sanitize(raw)

        # 2. Classify and strip trigger words (the result may be empty)
        message_type, cleaned = self.classifier.classify(text)

        # 3. Store the message
        message = await self.store.add_message(cleaned, message_type)

        # 4. Schedule reminders that name a time
        if message_type == "reminder":
            when = extract_reminder_time(text, now=self.clock())
            if when is None:
                logger.info(f"Reminder {message.id} has no time, left unscheduled")
            else:
                scheduled = await self.store.set_reminder_date(message.id, when)
                if scheduled is not None:
                    message = scheduled

        return message
