from __future__ import annotations

import base64
import binascii
import logging
import os
import threading
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from chat_assistant.errors import EncryptionError
from security.key_store import KeyStore

logger = logging.getLogger(__name__)

ENCRYPTION_KEY_NAME = "app-encryption-key"
NONCE_LENGTH = 12


class EncryptionService:
    """
    AES-256-GCM encryption of message text.

    The key is created on first use and kept in the key store for the life of
    the installation. Output is base64(nonce || ciphertext+tag).
    """

    def __init__(self, key_store: KeyStore):
        self.key_store = key_store
        self._cipher: Optional[AESGCM] = None
        self._lock = threading.Lock()

    def _get_cipher(self) -> AESGCM:
        with self._lock:
            if self._cipher is None:
                try:
                    self._cipher = AESGCM(self._load_or_create_key())
                except ValueError as e:
                    raise EncryptionError(f"Invalid encryption key: {e}") from e
            return self._cipher

    def _load_or_create_key(self) -> bytes:
        stored = self.key_store.get(ENCRYPTION_KEY_NAME)
        if stored:
            try:
                return base64.b64decode(stored, validate=True)
            except binascii.Error as e:
                raise EncryptionError(f"Stored encryption key is corrupted: {e}") from e

        key = AESGCM.generate_key(bit_length=256)
        self.key_store.set(ENCRYPTION_KEY_NAME, base64.b64encode(key).decode("ascii"))
        logger.info("Generated new message encryption key")
        return key

    def encrypt(self, plaintext: str) -> str:
        cipher = self._get_cipher()
        nonce = os.urandom(NONCE_LENGTH)
        sealed = cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        cipher = self._get_cipher()
        try:
            raw = base64.b64decode(ciphertext, validate=True)
        except binascii.Error as e:
            raise EncryptionError(f"Ciphertext is not valid base64: {e}") from e
        if len(raw) <= NONCE_LENGTH:
            raise EncryptionError("Ciphertext is too short")

        try:
            plain = cipher.decrypt(raw[:NONCE_LENGTH], raw[NONCE_LENGTH:], None)
        except InvalidTag as e:
            raise EncryptionError("Decryption failed (wrong key or corrupted data)") from e
        return plain.decode("utf-8")
