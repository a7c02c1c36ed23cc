"""
HTTP client for the payment gateway.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from ...deeplinks.domain.errors import PaymentGatewayError
from ...deeplinks.domain.models import PaymentRequest

logger = logging.getLogger(__name__)


class HttpPaymentGateway:
    """Creates payments with ``POST <base_url>/payments``; one attempt per call."""

    def __init__(
        self,
        base_url: str,
        *,
        api_token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=self._build_headers(api_token),
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def create_payment(self, request: PaymentRequest) -> Mapping[str, Any]:
        try:
            response = await self._client.post("/payments", json=request.to_payload())
        except httpx.HTTPError as exc:
            raise PaymentGatewayError(f"Payment gateway unreachable: {exc}") from exc

        if response.is_error:
            logger.warning("Payment gateway returned %s", response.status_code)
            raise PaymentGatewayError(
                f"Payment gateway error: {response.status_code} {response.reason_phrase}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise PaymentGatewayError("Payment gateway returned invalid JSON") from exc

    @staticmethod
    def _build_headers(api_token: Optional[str]) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        return headers


class UnconfiguredPaymentGateway:
    """Stand-in used when no gateway URL is configured; every payment attempt fails."""

    async def create_payment(self, request: PaymentRequest) -> Mapping[str, Any]:
        raise PaymentGatewayError("Payment gateway is not configured")
