"""
TTL cache of wiki documentation enriched with deep-link context.
"""
from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Dict, Mapping, Optional

from ...deeplinks.domain.models import DeepLink, DeepLinkAction
from ...deeplinks.utils.sanitizer import sanitize_amount, sanitize_id, sanitize_text
from ..domain.interfaces import DocumentationClient
from ..domain.models import DocumentationPaths, WikiPage

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TIMEOUT = 300
DEFAULT_MAX_ENTRIES = 1000

ACTION_HELP = {
    DeepLinkAction.PAYMENT: "**Payment Help**: This deep link will initiate a payment process.",
    DeepLinkAction.BOOKING: "**Booking Help**: This deep link will open the booking interface.",
    DeepLinkAction.TIP: "**Tip Help**: This deep link will allow you to leave a tip.",
}


def enhance_content(content: str, deep_link: DeepLink) -> str:
    parts = [content]
    params = deep_link.params
    amount = sanitize_amount(params.get("amount"))
    shop = sanitize_id(params.get("shop"))
    barber = sanitize_id(params.get("barber"))
    if amount:
        parts.append(f"**Current Amount**: ${amount}")
    if shop:
        parts.append(f"**Shop**: {shop}")
    if barber:
        parts.append(f"**Barber**: {barber}")
    help_text = ACTION_HELP.get(deep_link.action)
    if help_text:
        parts.append(help_text)
    return "\n\n".join(parts)


class DocumentationCache:
    def __init__(
        self,
        client: DocumentationClient,
        *,
        enabled: bool = True,
        cache_timeout: float = DEFAULT_CACHE_TIMEOUT,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        paths: DocumentationPaths | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._enabled = enabled
        self._cache_timeout = cache_timeout
        self._max_entries = max(1, max_entries)
        self._paths = paths or DocumentationPaths()
        self._clock = clock
        self._cache: Dict[str, tuple[WikiPage, float]] = {}

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.debug("Wiki cache cleared")

    @staticmethod
    def cache_key(deep_link: DeepLink) -> str:
        return f"{deep_link.action.value}-{json.dumps(dict(deep_link.params), sort_keys=True)}"

    async def get_documentation_for_deep_link(self, deep_link: DeepLink) -> Optional[WikiPage]:
        """
        Return documentation for the link's action, or None.

        Never raises: fetch failures are logged and reported as None.
        """
        if not self._enabled:
            return None

        key = self.cache_key(deep_link)
        cached = self._cache.get(key)
        now = self._clock()
        if cached and now - cached[1] <= self._cache_timeout:
            logger.debug("Wiki documentation cache hit for %s", deep_link.action.value)
            return cached[0]
        if cached:
            del self._cache[key]

        path = self._paths.for_action(deep_link.action)
        try:
            data = await self._client.fetch(path)
            page = self._build_page(data, path, deep_link)
        except Exception:
            logger.exception(
                "Failed to fetch wiki documentation for %s",
                sanitize_text(deep_link.original_url),
            )
            return None

        self._store(key, page)
        return page

    def _store(self, key: str, page: WikiPage) -> None:
        now = self._clock()
        self._cache.pop(key, None)
        if len(self._cache) >= self._max_entries:
            stale = [k for k, (_, stored_at) in self._cache.items() if now - stored_at > self._cache_timeout]
            for k in stale:
                del self._cache[k]
        # Insertion order is age order, so the first key is the oldest.
        while len(self._cache) >= self._max_entries:
            del self._cache[next(iter(self._cache))]
        self._cache[key] = (page, now)

    def _build_page(self, data: Mapping[str, Any], path: str, deep_link: DeepLink) -> WikiPage:
        action = deep_link.action.value
        metadata: Dict[str, Any] = {
            "deepLinkAction": action,
            "deepLinkParams": {k: sanitize_text(v) for k, v in deep_link.params.items()},
        }
        extra = data.get("metadata")
        if isinstance(extra, Mapping):
            metadata.update(extra)
        return WikiPage(
            id=str(data.get("id") or f"{action}-docs"),
            title=str(data.get("title") or f"{action.capitalize()} Documentation"),
            content=enhance_content(str(data.get("content") or ""), deep_link),
            category=str(data.get("category") or "documentation"),
            last_updated=str(data.get("lastUpdated") or datetime.now(UTC).isoformat()),
            url=str(data.get("url") or f"{self._client.base_url}{path}"),
            metadata=metadata,
        )
