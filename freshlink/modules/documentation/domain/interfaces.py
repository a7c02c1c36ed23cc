from __future__ import annotations

from typing import Any, Mapping, Protocol


class DocumentationClient(Protocol):
    @property
    def base_url(self) -> str:
        """Base URL that documentation paths are appended to."""

    async def fetch(self, path: str) -> Mapping[str, Any]:
        """Fetch the raw JSON document stored at ``path``."""
