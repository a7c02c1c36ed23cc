"""
Deep-link engine: parse, validate, rate limit, track, document, dispatch, record.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from ...analytics.services.analytics_pipeline import AnalyticsPipeline
from ...documentation.services.documentation_cache import DocumentationCache
from ...sessions.domain.models import ANONYMOUS_SESSION_ID, ClientInfo, DeepLinkSession
from ...sessions.services.session_manager import SessionManager
from ...shared.services.rate_limiter import RateLimiter
from ...shared.utils.serialization import to_jsonable
from ..domain.errors import DeepLinkError
from ..domain.models import DeepLink, DeepLinkAction, DeepLinkResult
from ..utils.parser import DeepLinkParser
from ..utils.sanitizer import sanitize_text, sanitize_url
from ..utils.validation import AMOUNT_PATTERN, validate_params
from .dispatcher import DeepLinkDispatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSnapshot:
    id: str
    context: Dict[str, Any]


@dataclass(frozen=True)
class DocumentationSummary:
    title: str
    content: str
    url: str


@dataclass(frozen=True)
class AnalyticsReceipt:
    id: str
    processing_time: float


@dataclass(frozen=True)
class EngineResult:
    result: DeepLinkResult
    deep_link: DeepLink
    session: SessionSnapshot
    documentation: Optional[DocumentationSummary] = None
    analytics: Optional[AnalyticsReceipt] = None

    def to_dict(self) -> dict[str, Any]:
        data = to_jsonable(self.result)
        data.update(
            {
                "deepLink": self.deep_link.to_dict(),
                "session": {"id": self.session.id, "context": self.session.context},
                "documentation": to_jsonable(self.documentation),
                "analytics": (
                    {"id": self.analytics.id, "processingTime": self.analytics.processing_time}
                    if self.analytics
                    else None
                ),
            }
        )
        return data


def rate_limit_identifier(session_id: Optional[str], client: Optional[ClientInfo]) -> str:
    if client is not None and client.ip_address:
        return client.ip_address
    return session_id or ANONYMOUS_SESSION_ID


def contextual_service_amount(session: DeepLinkSession) -> Optional[Decimal]:
    """Amount of the most recent payment link in the session, if it carried a valid one."""
    for deep_link in reversed(session.deep_links):
        if deep_link.action is not DeepLinkAction.PAYMENT:
            continue
        raw = deep_link.params.get("amount", "")
        if AMOUNT_PATTERN.fullmatch(raw) and Decimal(raw) > 0:
            return Decimal(raw)
    return None


class DeepLinkEngine:
    def __init__(
        self,
        *,
        parser: DeepLinkParser,
        dispatcher: DeepLinkDispatcher,
        sessions: SessionManager,
        rate_limiter: RateLimiter,
        documentation: Optional[DocumentationCache],
        analytics: AnalyticsPipeline,
        storage_backend: str = "none",
        closers: Sequence[Callable[[], Awaitable[None]]] = (),
    ) -> None:
        self._parser = parser
        self._dispatcher = dispatcher
        self._sessions = sessions
        self._rate_limiter = rate_limiter
        self._documentation = documentation
        self._analytics = analytics
        self._storage_backend = storage_backend
        self._closers = tuple(closers)

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def analytics(self) -> AnalyticsPipeline:
        return self._analytics

    async def start(self) -> None:
        await self._sessions.start()
        await self._rate_limiter.start()
        logger.info(
            "Deep link engine started (wiki=%s, sessions=%s, analytics=%s)",
            bool(self._documentation and self._documentation.enabled),
            self._sessions.enabled,
            self._analytics.enabled,
        )

    async def shutdown(self) -> None:
        await self._sessions.stop()
        await self._rate_limiter.stop()
        await self._analytics.flush()
        for close in self._closers:
            try:
                await close()
            except Exception:
                logger.exception("Failed to close engine resource")
        logger.info("Deep link engine stopped")

    async def handle(
        self,
        url: str,
        *,
        session_id: Optional[str] = None,
        client: Optional[ClientInfo] = None,
    ) -> EngineResult:
        started = time.perf_counter()
        try:
            deep_link = self._parser.parse(url)
            validate_params(deep_link)
            await self._rate_limiter.acquire(rate_limit_identifier(session_id, client))

            session = self._sessions.get_session(session_id, client)
            self._sessions.track_deep_link(session.id, deep_link)
            service_amount = contextual_service_amount(session)

            documentation = None
            if self._documentation is not None:
                documentation = await self._documentation.get_documentation_for_deep_link(deep_link)

            recorded = await self._analytics.record(
                deep_link,
                session.id,
                lambda: self._dispatcher.handle(deep_link, service_amount=service_amount),
                client=client,
            )
        except DeepLinkError as exc:
            logger.warning("Deep link rejected (%s): %s", type(exc).__name__, sanitize_text(str(exc)))
            raise
        except Exception:
            logger.exception("Deep link handling failed for %s", sanitize_url(url))
            raise

        logger.info(
            "Deep link processed: action=%s session=%s time=%.1fms documentation=%s",
            deep_link.action.value,
            session.id,
            (time.perf_counter() - started) * 1000,
            documentation is not None,
        )

        return EngineResult(
            result=recorded.result,
            deep_link=deep_link,
            session=SessionSnapshot(id=session.id, context=session.context.to_dict()),
            documentation=(
                DocumentationSummary(title=documentation.title, content=documentation.content, url=documentation.url)
                if documentation
                else None
            ),
            analytics=(
                AnalyticsReceipt(id=recorded.analytics.id, processing_time=recorded.analytics.processing_time)
                if recorded.analytics
                else None
            ),
        )

    async def get_analytics_dashboard(self, days: int = 7) -> Dict[str, Any]:
        summary = await self._analytics.get_analytics_summary(days)
        stats = self._sessions.get_stats()
        dashboard = to_jsonable(summary)
        dashboard["sessions"] = to_jsonable(stats)
        dashboard["integrations"] = {
            "wiki": {
                "enabled": bool(self._documentation and self._documentation.enabled),
                "cacheSize": self._documentation.cache_size if self._documentation else 0,
            },
            "session": {
                "enabled": self._sessions.enabled,
                "timeout": self._sessions.timeout_seconds,
            },
            "analytics": {
                "enabled": self._analytics.enabled,
                "backend": self._storage_backend,
            },
            "rateLimit": {
                "enabled": self._rate_limiter.enabled,
                "maxCalls": self._rate_limiter.max_calls,
            },
        }
        return dashboard
