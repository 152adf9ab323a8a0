from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple


TOMORROW_WORDS = ("tomorrow", "morgen")
TODAY_WORDS = ("today", "heute")

_TOMORROW = re.compile(rf"\b(?:{'|'.join(TOMORROW_WORDS)})\b", re.IGNORECASE)
_TODAY = re.compile(rf"\b(?:{'|'.join(TODAY_WORDS)})\b", re.IGNORECASE)


def _to_24h(hours: int, meridiem: str) -> int:
    meridiem = meridiem.lower()
    if meridiem == "pm" and hours != 12:
        return hours + 12
    if meridiem == "am" and hours == 12:
        return 0
    return hours


def _parse_12h_with_minutes(match: re.Match) -> Tuple[int, int]:
    hours, minutes, meridiem = match.groups()
    return _to_24h(int(hours), meridiem), int(minutes or 0)


def _parse_24h(match: re.Match) -> Tuple[int, int]:
    hours, minutes = match.groups()
    return int(hours), int(minutes)


def _parse_12h(match: re.Match) -> Tuple[int, int]:
    hours, meridiem = match.groups()
    return _to_24h(int(hours), meridiem), 0


# Tried in this order; the first pattern that yields a valid time wins.
# "14 Uhr" is deliberately not covered here.
CLOCK_PATTERNS: Tuple[Tuple[re.Pattern, Callable[[re.Match], Tuple[int, int]]], ...] = (
    (re.compile(r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)", re.IGNORECASE), _parse_12h_with_minutes),
    (re.compile(r"(\d{2}):(\d{2})"), _parse_24h),
    (re.compile(r"(\d{1,2})\s*(am|pm)", re.IGNORECASE), _parse_12h),
)


def find_clock_time(text: str) -> Optional[Tuple[int, int]]:
    """Return the first valid (hour, minute) found in `text`, or None."""
    for pattern, parse in CLOCK_PATTERNS:
        for match in pattern.finditer(text):
            hours, minutes = parse(match)
            if 0 <= hours < 24 and 0 <= minutes < 60:
                return hours, minutes
    return None


def extract_reminder_time(text: str, now: datetime) -> Optional[datetime]:
    """
    Resolve the reminder time mentioned in `text` relative to `now`.

    Day words (today/heute, tomorrow/morgen) pick the day, a clock time sets
    hour and minute. Returns None when the text carries neither. A result
    that lies before `now` is moved one day ahead.
    """
    target = now
    has_day_word = False

    if _TOMORROW.search(text):
        target = now + timedelta(days=1)
        has_day_word = True
    elif _TODAY.search(text):
        has_day_word = True

    clock = find_clock_time(text)
    if clock is not None:
        hours, minutes = clock
        target = target.replace(hour=hours, minute=minutes, second=0, microsecond=0)

    if not has_day_word and clock is None:
        return None

    if target < now:
        target += timedelta(days=1)
    return target
