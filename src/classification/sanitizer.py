from __future__ import annotations

import re

from pydantic import HttpUrl, TypeAdapter, ValidationError

from chat_assistant.errors import EmptyContentError, InvalidUrlError, TooLongError


MAX_MESSAGE_LENGTH = 1000

_ANGLE_BRACKETS = re.compile(r"[<>]")
_UNSAFE_SCHEMES = re.compile(r"javascript:|data:", re.IGNORECASE)
_URL_CANDIDATE = re.compile(r"https?://[^\s]+")

_http_url = TypeAdapter(HttpUrl)


def sanitize(raw: str) -> str:
    """Strip angle brackets and javascript:/data: schemes, then trim.

    Removal repeats until nothing changes, so that fragments glued together by
    a removal ("java<script:") are caught too and the function is idempotent.
    """
    text = raw
    while True:
        cleaned = _UNSAFE_SCHEMES.sub("", _ANGLE_BRACKETS.sub("", text))
        if cleaned == text:
            break
        text = cleaned
    return text.strip()


def validate_length(raw: str, max_length: int = MAX_MESSAGE_LENGTH) -> None:
    if len(raw) > max_length:
        raise TooLongError(f"Message too long (max {max_length} characters)")


def _is_http_url(candidate: str) -> bool:
    try:
        url = _http_url.validate_python(candidate)
    except ValidationError:
        return False
    return url.scheme in {"http", "https"}


def validate_urls(raw: str) -> None:
    for candidate in _URL_CANDIDATE.findall(raw):
        if not _is_http_url(candidate):
            raise InvalidUrlError(f"Invalid URL detected: {candidate}")


def validate_and_sanitize(raw: str) -> str:
    """Run the input checks in order (length, URLs, sanitize, non-empty).

    The first failing check raises; nothing is created on failure.
    """
    validate_length(raw)
    validate_urls(raw)
    text = sanitize(raw)
    if not text:
        raise EmptyContentError("Invalid message content")
    return text
