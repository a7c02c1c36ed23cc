from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Dict, Optional

from ...deeplinks.domain.errors import RateLimitExceededError

logger = logging.getLogger(__name__)


@dataclass
class _WindowState:
    started_at: float
    count: int


class RateLimiter:
    """Fixed-window call counter keyed by caller identifier (session id or IP)."""

    def __init__(
        self,
        max_calls: int = 30,
        window_seconds: float = 60.0,
        *,
        enabled: bool = True,
        prune_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._max_calls = max_calls
        self._window = window_seconds
        self._enabled = enabled
        self._prune_interval = prune_interval
        self._clock = clock
        self._states: Dict[str, _WindowState] = {}
        self._lock = asyncio.Lock()
        self._prune_task: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def max_calls(self) -> int:
        return self._max_calls

    async def start(self) -> None:
        if self._enabled and self._prune_task is None:
            self._prune_task = asyncio.create_task(self._prune_loop())

    async def stop(self) -> None:
        if self._prune_task:
            self._prune_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._prune_task
            self._prune_task = None

    async def acquire(self, identifier: str) -> None:
        """Consume one call from the identifier's quota or raise RateLimitExceededError."""
        if not self._enabled:
            return
        now = self._clock()
        async with self._lock:
            state = self._states.get(identifier)
            if state is None or now - state.started_at >= self._window:
                self._states[identifier] = _WindowState(started_at=now, count=1)
                return
            if state.count >= self._max_calls:
                retry_after = max(0.0, self._window - (now - state.started_at))
                logger.warning("Rate limit exceeded for %s", identifier)
                raise RateLimitExceededError(identifier, retry_after)
            state.count += 1

    def remaining(self, identifier: str) -> int:
        state = self._states.get(identifier)
        if state is None or self._clock() - state.started_at >= self._window:
            return self._max_calls
        return max(0, self._max_calls - state.count)

    async def reset(self, identifier: str) -> None:
        async with self._lock:
            self._states.pop(identifier, None)

    def prune(self) -> int:
        now = self._clock()
        stale = [key for key, state in self._states.items() if now - state.started_at >= self._window]
        for key in stale:
            del self._states[key]
        return len(stale)

    async def _prune_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._prune_interval)
                pruned = self.prune()
                if pruned:
                    logger.debug("Pruned %d rate-limit windows", pruned)
        except asyncio.CancelledError:
            pass
