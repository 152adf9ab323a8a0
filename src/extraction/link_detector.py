from __future__ import annotations

from typing import List

from linkify_it import LinkifyIt

from chat_assistant.models import LinkPreview


_linkify = LinkifyIt()


def detect_urls(text: str) -> List[str]:
    """Distinct URLs in order of first occurrence (scheme-less domains included)."""
    matches = _linkify.match(text) or []
    urls: List[str] = []
    for match in matches:
        if match.url not in urls:
            urls.append(match.url)
    return urls


def placeholder_previews(text: str) -> List[LinkPreview]:
    return [LinkPreview(url=url, loading=True) for url in detect_urls(text)]
