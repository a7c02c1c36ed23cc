"""
Records dispatch outcomes and persists them to object storage.
"""
from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import List, Optional, Set

from ...deeplinks.domain.models import DeepLink, DeepLinkResult
from ...sessions.domain.models import ClientInfo
from ...sessions.services.session_manager import to_base36
from ...shared.utils.serialization import to_jsonable
from ..domain.interfaces import ObjectStorage
from ..domain.models import AnalyticsSummary, DeepLinkAnalytics
from .analytics_service import DEFAULT_TOP_N, summarize_records

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "analytics/"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def generate_analytics_id(now: datetime) -> str:
    return f"analytics_{int(now.timestamp() * 1000)}_{to_base36(secrets.randbits(52))}"


@dataclass(frozen=True)
class RecordedDispatch:
    result: DeepLinkResult
    analytics: Optional[DeepLinkAnalytics]


class AnalyticsPipeline:
    def __init__(
        self,
        storage: Optional[ObjectStorage],
        *,
        enabled: bool = True,
        prefix: str = DEFAULT_PREFIX,
        await_persist: bool = False,
        top_n: int = DEFAULT_TOP_N,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._storage = storage
        self._enabled = enabled and storage is not None
        self._prefix = prefix
        self._await_persist = await_persist
        self._top_n = top_n
        self._clock = clock
        self._pending: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    def storage_key(self, record: DeepLinkAnalytics) -> str:
        return f"{self._prefix}deep-links/{record.day}/{record.id}.json"

    def day_prefix(self, day: date) -> str:
        return f"{self._prefix}deep-links/{day.isoformat()}/"

    async def record(
        self,
        deep_link: DeepLink,
        session_id: str,
        dispatch: Callable[[], Awaitable[DeepLinkResult]],
        *,
        client: Optional[ClientInfo] = None,
    ) -> RecordedDispatch:
        """
        Run ``dispatch`` and record its outcome.

        A failed dispatch is recorded and its exception re-raised. Storage
        failures never reach the caller.
        """
        if not self._enabled:
            return RecordedDispatch(result=await dispatch(), analytics=None)

        started = time.perf_counter()
        try:
            result = await dispatch()
        except Exception as exc:
            record = self._build_record(deep_link, session_id, started, client, error=str(exc) or type(exc).__name__)
            await self._schedule_persist(record)
            raise

        record = self._build_record(deep_link, session_id, started, client, result=result)
        stored = await self._schedule_persist(record)
        return RecordedDispatch(result=result, analytics=record if stored else None)

    async def flush(self) -> None:
        """Wait for background writes started by :meth:`record`."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def persist(self, record: DeepLinkAnalytics) -> bool:
        if self._storage is None:
            return False
        key = self.storage_key(record)
        try:
            body = json.dumps(record.to_dict(), indent=2, ensure_ascii=False).encode("utf-8")
            await self._storage.put(key, body)
        except Exception:
            logger.exception("Failed to store analytics record %s", key)
            return False
        logger.debug("Analytics stored: %s", key)
        return True

    async def get_analytics(self, start_date: date, end_date: date) -> List[DeepLinkAnalytics]:
        """Return every record stored for the days in [start_date, end_date], newest first."""
        if not self._enabled or self._storage is None:
            return []

        records: List[DeepLinkAnalytics] = []
        day = start_date
        while day <= end_date:
            prefix = self.day_prefix(day)
            try:
                objects = await self._storage.list(prefix)
            except Exception as exc:
                logger.warning("Failed to list analytics for %s: %s", day.isoformat(), exc)
                objects = []
            for obj in objects:
                try:
                    payload = await self._storage.get(obj.key)
                    records.append(DeepLinkAnalytics.from_dict(json.loads(payload)))
                except Exception as exc:
                    logger.warning("Skipping unreadable analytics object %s: %s", obj.key, exc)
            day += timedelta(days=1)

        records.sort(key=lambda record: record.timestamp, reverse=True)
        return records

    async def get_analytics_summary(self, days: int = 7) -> AnalyticsSummary:
        """Summarize the last ``days`` days, today included."""
        if days < 1:
            raise ValueError("days must be at least 1")
        end_date = self._clock().date()
        start_date = end_date - timedelta(days=days - 1)
        records = await self.get_analytics(start_date, end_date)
        return summarize_records(records, start_date=start_date, end_date=end_date, top_n=self._top_n)

    def _build_record(
        self,
        deep_link: DeepLink,
        session_id: str,
        started: float,
        client: Optional[ClientInfo],
        *,
        result: Optional[DeepLinkResult] = None,
        error: Optional[str] = None,
    ) -> DeepLinkAnalytics:
        now = self._clock()
        metadata = {}
        if client is not None:
            metadata = {
                "userAgent": client.user_agent,
                "ipAddress": client.ip_address,
                "referrer": client.referrer,
                "deviceInfo": dict(client.device_info) if client.device_info else None,
            }
        return DeepLinkAnalytics(
            id=generate_analytics_id(now),
            deep_link=deep_link,
            session_id=session_id,
            timestamp=now.isoformat(),
            processing_time=round((time.perf_counter() - started) * 1000, 3),
            result=to_jsonable(result) if error is None else None,
            error=error,
            metadata=metadata,
        )

    async def _schedule_persist(self, record: DeepLinkAnalytics) -> bool:
        if self._await_persist:
            return await self.persist(record)
        task = asyncio.create_task(self.persist(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True
