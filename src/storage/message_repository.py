from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List

from pydantic import ValidationError

from chat_assistant.models import Message

logger = logging.getLogger(__name__)


class JsonMessageRepository:
    """Persists the message collection as a JSON list, newest first."""

    def __init__(self, path: str = "data/messages.json"):
        self.path = Path(path)

    def load(self) -> List[Message]:
        """
        Load messages from disk. Returns an empty list if the file is missing
        or unreadable; single records that fail validation are skipped.
        Optional fields missing from older files take their defaults.
        """
        try:
            if not self.path.exists():
                return []
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Could not read {self.path}: {e}")
            return []

        if isinstance(data, dict):
            data = data.get("messages", [])
        if not isinstance(data, list):
            return []

        messages: List[Message] = []
        for item in data:
            try:
                messages.append(Message.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping invalid stored message: {e.errors()[:1]}")
        return messages

    def save(self, messages: Iterable[Message]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = [m.model_dump(mode="json") for m in messages]
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(
            json.dumps(data, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        tmp.replace(self.path)
