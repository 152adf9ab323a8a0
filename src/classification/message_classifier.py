from __future__ import annotations

import re
from typing import NamedTuple

from chat_assistant.models import MessageType


# Trigger words in English and German
TODO_TRIGGERS = frozenset({"todo", "td", "t", "aufgabe"})
REMINDER_TRIGGERS = {
    "en": ("reminder", "remind", "rm", "r"),
    "de": ("erinnerung", "erinnere", "erinnern"),
}
# "remind me to ...", "erinnere mich an ... zu ..."
REMINDER_PARTICLES = {
    "en": ("me", "to"),
    "de": ("mich", "an", "zu"),
}
DAY_WORDS = ("today", "heute", "tomorrow", "morgen")

ALL_REMINDER_TRIGGERS = frozenset(
    trigger for triggers in REMINDER_TRIGGERS.values() for trigger in triggers
)


def _trigger_pattern(lang: str) -> re.Pattern:
    triggers = "|".join(REMINDER_TRIGGERS[lang])
    particles = "".join(rf"(?:{p}\b\s*)?" for p in REMINDER_PARTICLES[lang])
    return re.compile(rf"\b(?:{triggers})\b\s*{particles}", re.IGNORECASE)


_TRIGGER_PATTERNS = [_trigger_pattern(lang) for lang in REMINDER_TRIGGERS]
_DAY_WORD_PATTERN = re.compile(rf"\b(?:{'|'.join(DAY_WORDS)})\b", re.IGNORECASE)
# Same clock formats the time extractor understands, with a leading "at"/"um"
_CLOCK_TIME_PATTERN = re.compile(
    r"(?:\b(?:at|um)\s+)?"
    r"(?:\b\d{1,2}(?::\d{2})?\s*(?:am|pm)\b|\b\d{2}:\d{2}\b)",
    re.IGNORECASE,
)
_RESIDUAL_SPACES = re.compile(r"[ \t]{2,}")


class Classification(NamedTuple):
    type: MessageType
    text: str


def _capitalize_first(text: str) -> str:
    if text and text[0].islower():
        return text[0].upper() + text[1:]
    return text


def strip_reminder_words(text: str) -> str:
    cleaned = text
    for pattern in _TRIGGER_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    cleaned = _DAY_WORD_PATTERN.sub("", cleaned)
    cleaned = _CLOCK_TIME_PATTERN.sub("", cleaned)
    return _RESIDUAL_SPACES.sub(" ", cleaned).strip()


class MessageClassifier:

    def classify(self, text: str) -> Classification:
        """Assign a message type from trigger words and strip them from the text.

        `text` must already be sanitized. A todo trigger only counts as the
        first word; a reminder trigger counts anywhere.
        """
        words = text.split()
        lowered = [w.lower() for w in words]

        if lowered and lowered[0] in TODO_TRIGGERS:
            kind: MessageType = "todo"
            cleaned = " ".join(words[1:])
        elif any(w in ALL_REMINDER_TRIGGERS for w in lowered):
            kind = "reminder"
            cleaned = strip_reminder_words(text)
        else:
            kind = "note"
            cleaned = text

        return Classification(kind, _capitalize_first(cleaned.strip()))
