"""
Integration tests for the composed deep-link engine.
"""
import asyncio
import json

import pytest
import pytest_asyncio

from freshlink.modules.analytics.services.analytics_pipeline import AnalyticsPipeline
from freshlink.modules.deeplinks.domain.errors import (
    HandlerError,
    ParseError,
    RateLimitExceededError,
    ValidationError,
)
from freshlink.modules.deeplinks.services.dispatcher import DeepLinkDispatcher
from freshlink.modules.deeplinks.services.engine import (
    DeepLinkEngine,
    contextual_service_amount,
    rate_limit_identifier,
)
from freshlink.modules.deeplinks.utils.parser import DeepLinkParser
from freshlink.modules.documentation.services.documentation_cache import DocumentationCache
from freshlink.modules.sessions.domain.models import ClientInfo
from freshlink.modules.sessions.services.session_manager import SessionManager
from freshlink.modules.shared.services.rate_limiter import RateLimiter


def build_engine(gateway, docs_client, object_storage, utc_clock, *, max_calls=30, sessions_enabled=True, closers=()):
    return DeepLinkEngine(
        parser=DeepLinkParser("app"),
        dispatcher=DeepLinkDispatcher(gateway),
        sessions=SessionManager(enabled=sessions_enabled, clock=utc_clock),
        rate_limiter=RateLimiter(max_calls=max_calls, window_seconds=60),
        documentation=DocumentationCache(docs_client),
        analytics=AnalyticsPipeline(object_storage, await_persist=True, clock=utc_clock),
        storage_backend="memory",
        closers=closers,
    )


@pytest_asyncio.fixture
async def engine(gateway, docs_client, object_storage, utc_clock):
    engine = build_engine(gateway, docs_client, object_storage, utc_clock)
    await engine.start()
    yield engine
    await engine.shutdown()


class TestEngineHandle:
    """Test the full handle pipeline."""

    @pytest.mark.asyncio
    async def test_payment_end_to_end(self, engine, gateway, object_storage):
        result = await engine.handle("app://payment?amount=45&shop=nyc_01&service=haircut&barber=jb")

        assert result.result.action == "created"
        assert gateway.requests[0].amount_in_minor_units == 4500
        assert result.documentation.title == "Paying with FreshCuts"
        assert "**Current Amount**: $45" in result.documentation.content
        assert result.analytics.id.startswith("analytics_")
        assert len(object_storage.objects) == 1
        assert result.session.context["pendingPayment"] == result.deep_link.original_url

    @pytest.mark.asyncio
    async def test_result_serializes_to_json(self, engine):
        result = await engine.handle("app://tip?barber=jb&percentage=20")

        data = json.loads(json.dumps(result.to_dict()))

        assert data["type"] == "tip"
        assert data["action"] == "created"
        assert data["params"]["percentage"] == "20"
        assert data["deepLink"]["originalUrl"] == "app://tip?barber=jb&percentage=20"
        assert data["session"]["id"] == result.session.id
        assert data["documentation"]["url"] == "https://docs.test/docs/tips"
        assert set(data["analytics"]) == {"id", "processingTime"}

    @pytest.mark.asyncio
    async def test_session_context_across_calls(self, engine):
        url1 = "app://shop?shop=nyc_01"
        url2 = "app://barber?barber=jb"

        first = await engine.handle(url1)
        second = await engine.handle(url2, session_id=first.session.id)

        assert second.session.id == first.session.id
        assert second.session.context == {
            "currentShop": "nyc_01",
            "currentBarber": "jb",
            "pendingPayment": None,
            "navigationHistory": [url1, url2],
        }
        # Earlier results keep their own snapshot
        assert first.session.context["navigationHistory"] == [url1]

    @pytest.mark.asyncio
    async def test_tip_uses_session_payment_amount(self, engine, gateway):
        first = await engine.handle("app://payment?amount=60&shop=nyc_01")
        await engine.handle("app://tip?barber=jb&percentage=20", session_id=first.session.id)
        await engine.handle("app://tip?barber=jb&percentage=20")

        assert [r.amount_in_minor_units for r in gateway.requests] == [6000, 1200, 900]

    @pytest.mark.asyncio
    async def test_documentation_failure_does_not_fail_call(self, engine, docs_client):
        docs_client.fail = True

        result = await engine.handle("app://shop?shop=nyc_01")

        assert result.documentation is None
        assert result.result.data == {"id": "nyc_01", "url": "/shop/nyc_01"}

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_fail_call(self, engine, object_storage):
        object_storage.fail_put = True

        result = await engine.handle("app://shop?shop=nyc_01")

        assert result.result.action == "navigate"
        assert result.analytics is None

    @pytest.mark.asyncio
    async def test_encoded_markup_is_not_echoed(self, engine):
        result = await engine.handle("app://shop?shop=nyc_01&amount=%3Cscript%3E&barber=%3Cjb%3E")

        assert "<" not in result.documentation.content
        assert "Current Amount" not in result.documentation.content
        assert result.session.context["currentBarber"] == "jb"

    @pytest.mark.asyncio
    async def test_disabled_sessions(self, gateway, docs_client, object_storage, utc_clock):
        engine = build_engine(gateway, docs_client, object_storage, utc_clock, sessions_enabled=False)

        result = await engine.handle("app://shop?shop=nyc_01", session_id="abc")

        assert result.session.id == "anonymous"
        assert result.session.context["navigationHistory"] == []


class TestEngineErrors:
    """Test error propagation and what each failure records."""

    @pytest.mark.asyncio
    async def test_parse_error(self, engine, object_storage):
        with pytest.raises(ParseError):
            await engine.handle("https://example.com/payment")

        assert object_storage.objects == {}
        assert engine.sessions.get_stats().total == 0

    @pytest.mark.asyncio
    async def test_validation_error_before_side_effects(self, engine, gateway, object_storage):
        with pytest.raises(ValidationError, match="amount"):
            await engine.handle("app://payment?amount=invalid")

        assert gateway.requests == []
        assert object_storage.objects == {}
        assert engine.sessions.get_stats().total == 0

    @pytest.mark.asyncio
    async def test_handler_error_is_recorded(self, engine, object_storage):
        with pytest.raises(HandlerError, match="Amount is required"):
            await engine.handle("app://payment?shop=nyc_01")

        (body,) = object_storage.objects.values()
        assert json.loads(body)["error"] == "Amount is required for payment deep links"

    @pytest.mark.asyncio
    async def test_rate_limit(self, gateway, docs_client, object_storage, utc_clock):
        engine = build_engine(gateway, docs_client, object_storage, utc_clock, max_calls=2)
        client = ClientInfo(ip_address="203.0.113.9")

        await engine.handle("app://payment?amount=10", client=client)
        await engine.handle("app://payment?amount=10", client=client)
        with pytest.raises(RateLimitExceededError) as exc_info:
            await engine.handle("app://payment?amount=10", client=client)

        assert exc_info.value.identifier == "203.0.113.9"
        assert len(gateway.requests) == 2
        assert len(object_storage.objects) == 2

        # A different caller has its own quota
        await engine.handle("app://payment?amount=10", client=ClientInfo(ip_address="203.0.113.10"))
        assert len(gateway.requests) == 3


class TestEngineConcurrency:
    """Test concurrent calls sharing one session."""

    @pytest.mark.asyncio
    async def test_concurrent_calls_same_session(self, engine):
        session = engine.sessions.get_session()
        urls = ["app://shop?shop=a", "app://barber?barber=jb", "app://shop?shop=b"]

        results = await asyncio.gather(*(engine.handle(url, session_id=session.id) for url in urls))

        assert all(r.session.id == session.id for r in results)
        assert session.context.navigation_history == urls
        assert session.context.current_shop == "b"
        assert session.context.current_barber == "jb"
        assert len(session.deep_links) == 3

    @pytest.mark.asyncio
    async def test_snapshots_follow_completion_order(self, gateway, object_storage, utc_clock):
        docs = GatedDocumentationClient()
        engine = build_engine(gateway, docs, object_storage, utc_clock)
        session_id = engine.sessions.get_session().id
        url1, url2, url3 = "app://shop?shop=a", "app://barber?barber=jb", "app://shop?shop=b"

        slow = asyncio.create_task(engine.handle(url1, session_id=session_id))
        await asyncio.sleep(0)
        assert docs.calls == 1

        second = await engine.handle(url2, session_id=session_id)
        third = await engine.handle(url3, session_id=session_id)
        docs.gate.set()
        first = await slow

        assert second.session.context["navigationHistory"] == [url1, url2]
        assert third.session.context["navigationHistory"] == [url1, url2, url3]
        # The first call finished last and sees every tracked link
        assert first.session.context["navigationHistory"] == [url1, url2, url3]
        assert first.session.context["currentShop"] == "b"


class GatedDocumentationClient:
    """Holds the first fetch until the test opens the gate."""

    base_url = "https://docs.test"

    def __init__(self):
        self.gate = asyncio.Event()
        self.calls = 0

    async def fetch(self, path):
        self.calls += 1
        if self.calls == 1:
            await self.gate.wait()
        return {}


class TestEngineLifecycle:
    """Test dashboard and shutdown."""

    @pytest.mark.asyncio
    async def test_dashboard(self, engine):
        await engine.handle("app://shop?shop=nyc_01")
        await engine.handle("app://barber?barber=jb")

        dashboard = await engine.get_analytics_dashboard(days=7)

        assert dashboard["totalDeepLinks"] == 2
        assert dashboard["actionCounts"] == {"barber": 1, "shop": 1}
        assert dashboard["topShops"] == {"nyc_01": 1}
        assert dashboard["sessions"] == {"total": 2, "active": 2, "expired": 0}
        assert dashboard["integrations"]["wiki"] == {"enabled": True, "cacheSize": 2}
        assert dashboard["integrations"]["session"] == {"enabled": True, "timeout": 1800}
        assert dashboard["integrations"]["analytics"] == {"enabled": True, "backend": "memory"}

    @pytest.mark.asyncio
    async def test_shutdown_closes_resources(self, gateway, docs_client, object_storage, utc_clock):
        closed = []

        async def close_client():
            closed.append("client")

        engine = build_engine(
            gateway,
            docs_client,
            object_storage,
            utc_clock,
            closers=[close_client, object_storage.close],
        )
        await engine.start()
        await engine.shutdown()

        assert closed == ["client"]
        assert object_storage.closed is True


class TestEngineHelpers:
    def test_rate_limit_identifier(self):
        assert rate_limit_identifier("s1", ClientInfo(ip_address="10.0.0.1")) == "10.0.0.1"
        assert rate_limit_identifier("s1", ClientInfo()) == "s1"
        assert rate_limit_identifier(None, None) == "anonymous"

    def test_contextual_service_amount(self, utc_clock):
        sessions = SessionManager(clock=utc_clock)
        session = sessions.get_session()
        parse = DeepLinkParser("app").parse

        assert contextual_service_amount(session) is None

        sessions.track_deep_link(session.id, parse("app://payment?amount=30"))
        sessions.track_deep_link(session.id, parse("app://payment?amount=bogus"))
        sessions.track_deep_link(session.id, parse("app://shop?shop=a"))

        assert str(contextual_service_amount(session)) == "30"
