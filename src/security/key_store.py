from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from chat_assistant.errors import EncryptionError

logger = logging.getLogger(__name__)


class KeyStore(ABC):
    """get/set contract of the platform secure storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        raise NotImplementedError


class FileKeyStore(KeyStore):
    """JSON file readable only by the owner (mode 0600)."""

    def __init__(self, path: str = "data/keystore.json"):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        """
        Read all stored keys. Only a missing file counts as empty; an
        unreadable one raises so that a stored key is never overwritten.
        """
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Unreadable key store {self.path}: {e}")
            raise EncryptionError(f"Key store {self.path} is unreadable") from e
        if not isinstance(data, dict):
            logger.error(f"Key store {self.path} does not hold a JSON object")
            raise EncryptionError(f"Key store {self.path} is corrupted")
        return data

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f)
