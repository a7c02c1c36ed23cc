"""
Tests for the HTTP payment gateway client.
"""
import json

import httpx
import pytest

from freshlink.modules.deeplinks.domain.errors import PaymentGatewayError
from freshlink.modules.deeplinks.domain.models import PaymentRequest, SplitPayment
from freshlink.modules.deeplinks.services.dispatcher import DeepLinkDispatcher
from freshlink.modules.deeplinks.utils.parser import DeepLinkParser
from freshlink.modules.payments.infrastructure.http_gateway import HttpPaymentGateway, UnconfiguredPaymentGateway


REQUEST = PaymentRequest(
    amount_in_minor_units=4500,
    currency="USD",
    description="Haircut with jb at nyc_01",
    private_transaction=True,
    metadata={"source": "deep_link", "shop": "nyc_01", "appointment": None},
    merchant_note="Deep link payment from nyc_01",
    split_payment=SplitPayment(),
)


class TestHttpPaymentGateway:
    """Test payment creation over HTTP."""

    @pytest.mark.asyncio
    async def test_posts_payment(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"id": "pay_42", "status": "pending"})

        gateway = HttpPaymentGateway(
            "https://pay.test/api/", api_token="tok", transport=httpx.MockTransport(handler)
        )
        try:
            payment = await gateway.create_payment(REQUEST)
        finally:
            await gateway.close()

        assert payment == {"id": "pay_42", "status": "pending"}
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://pay.test/api/payments"
        assert request.headers["Authorization"] == "Bearer tok"
        assert json.loads(request.content) == {
            "amountInMinorUnits": 4500,
            "currency": "USD",
            "description": "Haircut with jb at nyc_01",
            "privateTransaction": True,
            "metadata": {"source": "deep_link", "shop": "nyc_01"},
            "merchantNote": "Deep link payment from nyc_01",
            "splitPayment": {"enabled": True, "participants": []},
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response, message",
        [
            (httpx.Response(402, json={"error": "declined"}), "402"),
            (httpx.Response(500), "500"),
            (httpx.Response(200, text="ok"), "invalid JSON"),
        ],
    )
    async def test_errors(self, response, message):
        gateway = HttpPaymentGateway("https://pay.test", transport=httpx.MockTransport(lambda request: response))
        with pytest.raises(PaymentGatewayError, match=message):
            await gateway.create_payment(REQUEST)
        await gateway.close()

    @pytest.mark.asyncio
    async def test_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("name resolution failed", request=request)

        gateway = HttpPaymentGateway("https://pay.test", transport=httpx.MockTransport(handler))
        with pytest.raises(PaymentGatewayError, match="unreachable"):
            await gateway.create_payment(REQUEST)
        await gateway.close()

    @pytest.mark.asyncio
    async def test_dispatcher_with_http_gateway(self):
        gateway = HttpPaymentGateway(
            "https://pay.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=json.loads(request.content))),
        )
        dispatcher = DeepLinkDispatcher(gateway)

        result = await dispatcher.handle(DeepLinkParser("app").parse("app://tip?barber=jb&amount=7.25"))
        await gateway.close()

        assert result.action == "created"
        assert result.data["amountInMinorUnits"] == 725
        assert result.data["metadata"] == {"source": "deep_link", "type": "tip", "barber": "jb"}


class TestUnconfiguredPaymentGateway:
    @pytest.mark.asyncio
    async def test_always_fails(self):
        with pytest.raises(PaymentGatewayError, match="not configured"):
            await UnconfiguredPaymentGateway().create_payment(REQUEST)
