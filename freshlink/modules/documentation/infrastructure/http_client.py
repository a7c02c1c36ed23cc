"""
HTTP client for the wiki documentation service.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import httpx

from ...deeplinks.domain.errors import DocumentationFetchError


USER_AGENT = "FreshCuts-DeepLink-Integration/1.0"


class HttpDocumentationClient:
    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            headers=self._build_headers(api_key),
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch(self, path: str) -> Mapping[str, Any]:
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as exc:
            raise DocumentationFetchError(f"Wiki request failed: {exc}") from exc
        if response.is_error:
            raise DocumentationFetchError(f"Wiki API error: {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise DocumentationFetchError("Wiki API returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise DocumentationFetchError("Wiki API returned a non-object document")
        return data

    @staticmethod
    def _build_headers(api_key: Optional[str]) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers
