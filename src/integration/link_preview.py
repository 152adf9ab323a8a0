from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from chat_assistant.errors import LinkPreviewError
from chat_assistant.models import LinkMetadata

logger = logging.getLogger(__name__)


class LinkMetadataFetcher(ABC):
    @abstractmethod
    async def fetch(self, url: str) -> LinkMetadata:
        """Return page metadata for `url` or raise LinkPreviewError."""
        raise NotImplementedError


class MicrolinkFetcher(LinkMetadataFetcher):
    """Fetches title/description/image through the microlink.io API."""

    def __init__(
        self,
        api_url: str = "https://api.microlink.io",
        timeout_s: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.timeout_s = timeout_s
        self.transport = transport

    async def fetch(self, url: str) -> LinkMetadata:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                r = await client.get(self.api_url, params={"url": url})
                r.raise_for_status()
                payload = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LinkPreviewError(f"metadata fetch failed for {url}: {e}") from e

        if not isinstance(payload, dict) or payload.get("status") != "success":
            raise LinkPreviewError(f"metadata fetch unsuccessful for {url}")

        data = payload.get("data") or {}
        image = data.get("image") or {}
        logger.debug(f"Fetched link metadata for {url}")
        return LinkMetadata(
            title=data.get("title"),
            description=data.get("description"),
            image_url=image.get("url") if isinstance(image, dict) else None,
        )
