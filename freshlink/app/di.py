from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import AppConfig
from ..modules.analytics.domain.interfaces import ObjectStorage
from ..modules.analytics.infrastructure.http_storage import HttpObjectStorage
from ..modules.analytics.infrastructure.storage import LocalObjectStorage, SQLiteObjectStorage
from ..modules.analytics.services.analytics_pipeline import AnalyticsPipeline
from ..modules.deeplinks.domain.interfaces import PaymentGateway
from ..modules.deeplinks.services.dispatcher import DeepLinkDispatcher
from ..modules.deeplinks.services.engine import DeepLinkEngine
from ..modules.deeplinks.utils.parser import DeepLinkGenerator, DeepLinkParser
from ..modules.documentation.infrastructure.http_client import HttpDocumentationClient
from ..modules.documentation.services.documentation_cache import DocumentationCache
from ..modules.payments.infrastructure.http_gateway import HttpPaymentGateway, UnconfiguredPaymentGateway
from ..modules.sessions.services.session_manager import SessionManager
from ..modules.shared.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


async def build_storage(config: AppConfig) -> ObjectStorage | None:
    if not config.analytics_enabled:
        return None
    backend = config.analytics_storage_backend
    if backend == "sqlite":
        storage = SQLiteObjectStorage(config.analytics_sqlite_path)
        await storage.initialize()
        return storage
    if backend == "local":
        return LocalObjectStorage(config.analytics_local_dir)
    if not config.analytics_storage_url:
        raise ValueError("ANALYTICS_STORAGE_URL is required for the http analytics backend")
    return HttpObjectStorage(
        config.analytics_storage_url,
        config.analytics_bucket,
        token=config.analytics_storage_token,
    )


@dataclass
class AppContainer:
    config: AppConfig
    parser: DeepLinkParser
    generator: DeepLinkGenerator
    gateway: PaymentGateway
    dispatcher: DeepLinkDispatcher
    sessions: SessionManager
    rate_limiter: RateLimiter
    analytics: AnalyticsPipeline
    engine: DeepLinkEngine
    storage: ObjectStorage | None = None
    documentation: DocumentationCache | None = None
    documentation_client: HttpDocumentationClient | None = None

    @classmethod
    async def build(cls, config: AppConfig) -> "AppContainer":
        closers = []

        parser = DeepLinkParser(
            config.deeplink_scheme,
            max_url_length=config.max_url_length,
            max_query_params=config.max_query_params,
        )
        generator = DeepLinkGenerator(config.deeplink_scheme)

        if config.payment_gateway_url:
            gateway = HttpPaymentGateway(
                config.payment_gateway_url,
                api_token=config.payment_gateway_token,
                timeout=config.payment_gateway_timeout,
            )
            closers.append(gateway.close)
        else:
            logger.warning("PAYMENT_GATEWAY_URL is not set; payment and tip links will fail")
            gateway = UnconfiguredPaymentGateway()
        dispatcher = DeepLinkDispatcher(
            gateway,
            default_service_amount=config.default_service_amount,
            currency=config.default_currency,
        )

        sessions = SessionManager(
            enabled=config.session_enabled,
            timeout_seconds=config.session_timeout,
            sweep_interval=config.session_sweep_interval,
            cookie_name=config.session_cookie_name,
        )
        rate_limiter = RateLimiter(
            config.rate_limit_max_calls,
            config.rate_limit_window_seconds,
            enabled=config.rate_limit_enabled,
        )

        documentation_client = None
        documentation = None
        if config.wiki_enabled:
            documentation_client = HttpDocumentationClient(
                config.wiki_base_url,
                api_key=config.wiki_api_key,
                timeout=config.wiki_request_timeout,
            )
            closers.append(documentation_client.close)
            documentation = DocumentationCache(
                documentation_client,
                cache_timeout=config.wiki_cache_timeout,
                max_entries=config.wiki_cache_max_entries,
                paths=config.documentation_paths,
            )

        storage = await build_storage(config)
        if storage is not None:
            closers.append(storage.close)
        analytics = AnalyticsPipeline(
            storage,
            enabled=config.analytics_enabled,
            prefix=config.analytics_prefix,
            await_persist=config.analytics_await_persist,
            top_n=config.analytics_top_n,
        )

        engine = DeepLinkEngine(
            parser=parser,
            dispatcher=dispatcher,
            sessions=sessions,
            rate_limiter=rate_limiter,
            documentation=documentation,
            analytics=analytics,
            storage_backend=config.analytics_storage_backend if storage is not None else "none",
            closers=closers,
        )

        return cls(
            config=config,
            parser=parser,
            generator=generator,
            gateway=gateway,
            dispatcher=dispatcher,
            sessions=sessions,
            rate_limiter=rate_limiter,
            analytics=analytics,
            engine=engine,
            storage=storage,
            documentation=documentation,
            documentation_client=documentation_client,
        )

    async def on_startup(self) -> None:
        await self.engine.start()

    async def on_shutdown(self) -> None:
        await self.engine.shutdown()
