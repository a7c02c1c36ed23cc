"""
In-memory session lifecycle for deep-link calls.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from http.cookies import SimpleCookie
from typing import Dict, Optional

from ...deeplinks.domain.models import DeepLink, DeepLinkAction
from ...deeplinks.utils.sanitizer import sanitize_id
from ..domain.models import (
    ANONYMOUS_SESSION_ID,
    ClientInfo,
    DeepLinkSession,
    SessionMetadata,
    SessionStats,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 1800
DEFAULT_SWEEP_INTERVAL = 60.0
DEFAULT_COOKIE_NAME = "freshcuts_session"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_session_id(now: datetime) -> str:
    """``<epoch ms base36>_<random base36>``"""
    timestamp = to_base36(int(now.timestamp() * 1000))
    random_part = to_base36(secrets.randbits(52))
    return f"{timestamp}_{random_part}"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionManager:
    def __init__(
        self,
        *,
        enabled: bool = True,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        cookie_name: str = DEFAULT_COOKIE_NAME,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._enabled = enabled
        self._timeout = timedelta(seconds=timeout_seconds)
        self._sweep_interval = sweep_interval
        self._cookie_name = cookie_name
        self._clock = clock
        self._sessions: Dict[str, DeepLinkSession] = {}
        self._sweep_task: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def timeout_seconds(self) -> int:
        return int(self._timeout.total_seconds())

    async def start(self) -> None:
        if self._enabled and self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        if self._sweep_task:
            self._sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweep_task
            self._sweep_task = None

    def get_session(
        self,
        session_id: Optional[str] = None,
        client: Optional[ClientInfo] = None,
    ) -> DeepLinkSession:
        """
        Return the live session for ``session_id`` or start a new one.

        Missing, unknown and expired ids all yield a fresh session under a
        newly generated id. With sessions disabled an unpersisted anonymous
        session is returned.
        """
        if not self._enabled:
            return self._anonymous_session()

        now = self._clock()
        session = self._sessions.get(session_id) if session_id else None
        if session is not None and self._is_expired(session, now):
            logger.debug("Session %s expired", session.id)
            del self._sessions[session.id]
            session = None

        if session is None:
            session = self._create_session(now, client)
            self._sessions[session.id] = session

        session.metadata.last_activity = now
        return session

    def track_deep_link(self, session_id: Optional[str], deep_link: DeepLink) -> DeepLinkSession:
        session = self.get_session(session_id)
        if session.is_anonymous:
            return session

        session.deep_links.append(deep_link)
        shop = sanitize_id(deep_link.params.get("shop"))
        barber = sanitize_id(deep_link.params.get("barber"))
        if shop:
            session.context.current_shop = shop
        if barber:
            session.context.current_barber = barber
        if deep_link.action is DeepLinkAction.PAYMENT:
            session.context.pending_payment = deep_link.original_url
        session.context.navigation_history.append(deep_link.original_url)

        logger.debug(
            "Tracked %s in session %s (%d links)",
            deep_link.action.value,
            session.id,
            len(session.deep_links),
        )
        return session

    def sweep_expired(self) -> int:
        now = self._clock()
        expired = [sid for sid, session in self._sessions.items() if self._is_expired(session, now)]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.debug("Removed %d expired sessions", len(expired))
        return len(expired)

    def get_stats(self) -> SessionStats:
        now = self._clock()
        expired = sum(1 for session in self._sessions.values() if self._is_expired(session, now))
        total = len(self._sessions)
        return SessionStats(total=total, active=total - expired, expired=expired)

    def cookie_header(self, session: DeepLinkSession) -> str:
        cookie: SimpleCookie = SimpleCookie()
        cookie[self._cookie_name] = session.id
        morsel = cookie[self._cookie_name]
        morsel["max-age"] = self.timeout_seconds
        morsel["path"] = "/"
        morsel["httponly"] = True
        morsel["samesite"] = "Lax"
        return morsel.OutputString()

    def _is_expired(self, session: DeepLinkSession, now: datetime) -> bool:
        return now - session.metadata.last_activity > self._timeout

    def _create_session(self, now: datetime, client: Optional[ClientInfo]) -> DeepLinkSession:
        session_id = generate_session_id(now)
        while session_id in self._sessions:
            session_id = generate_session_id(now)
        metadata = SessionMetadata(created_at=now, last_activity=now)
        if client is not None:
            metadata.user_agent = client.user_agent
            metadata.ip_address = client.ip_address
            metadata.device_info = dict(client.device_info) if client.device_info else None
        logger.debug("New session created: %s", session_id)
        return DeepLinkSession(id=session_id, metadata=metadata)

    def _anonymous_session(self) -> DeepLinkSession:
        now = self._clock()
        return DeepLinkSession(
            id=ANONYMOUS_SESSION_ID,
            metadata=SessionMetadata(created_at=now, last_activity=now),
        )

    async def _sweep_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._sweep_interval)
                self.sweep_expired()
        except asyncio.CancelledError:
            pass
