"""
S3-compatible HTTP object storage (PUT / GET / list-type=2 listing).
"""
from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

import httpx

from freshlink.modules.analytics.domain.interfaces import ObjectStorage
from freshlink.modules.analytics.domain.models import ObjectInfo
from freshlink.modules.deeplinks.domain.errors import StorageError


class HttpObjectStorage(ObjectStorage):
    def __init__(
        self,
        base_url: str,
        bucket: str,
        *,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._bucket = bucket
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=self._build_headers(token),
            transport=transport,
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    async def close(self) -> None:
        await self._client.aclose()

    async def put(self, key: str, data: bytes) -> None:
        response = await self._request(
            "PUT",
            f"/{self._bucket}/{key}",
            content=data,
            headers={"Content-Type": "application/json"},
        )
        self._raise_for_status(response, f"upload {key}")

    async def list(self, prefix: str) -> List[ObjectInfo]:
        objects: List[ObjectInfo] = []
        token: Optional[str] = None
        while True:
            params = {"list-type": "2", "prefix": prefix}
            if token:
                params["continuation-token"] = token
            response = await self._request("GET", f"/{self._bucket}", params=params)
            self._raise_for_status(response, f"list {prefix}")
            page, token = self._parse_listing(response.text)
            objects.extend(page)
            if not token:
                break
        return sorted(objects, key=lambda obj: obj.key)

    async def get(self, key: str) -> bytes:
        response = await self._request("GET", f"/{self._bucket}/{key}")
        self._raise_for_status(response, f"download {key}")
        return response.content

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise StorageError(f"Storage request failed: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, operation: str) -> None:
        if response.is_error:
            raise StorageError(
                f"Storage {operation} failed: {response.status_code} {response.reason_phrase}"
            )

    @staticmethod
    def _parse_listing(xml_text: str) -> tuple[List[ObjectInfo], Optional[str]]:
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as exc:
            raise StorageError(f"Invalid listing response: {exc}") from exc

        def local(tag: str) -> str:
            return tag.rsplit("}", 1)[-1]

        objects: List[ObjectInfo] = []
        next_token: Optional[str] = None
        truncated = False
        for child in root:
            name = local(child.tag)
            if name == "Contents":
                fields = {local(item.tag): (item.text or "") for item in child}
                if fields.get("Key"):
                    objects.append(ObjectInfo(key=fields["Key"], size=int(fields.get("Size") or 0)))
            elif name == "IsTruncated":
                truncated = (child.text or "").strip().lower() == "true"
            elif name == "NextContinuationToken":
                next_token = (child.text or "").strip() or None
        return objects, next_token if truncated else None

    @staticmethod
    def _build_headers(token: Optional[str]) -> Dict[str, str]:
        headers = {"User-Agent": "FreshCuts-DeepLink-Integration/1.0"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers
