from __future__ import annotations

from typing import Any, Mapping, Protocol

from .models import PaymentRequest


class PaymentGateway(Protocol):
    async def create_payment(self, request: PaymentRequest) -> Mapping[str, Any]:
        """Create a payment and return the gateway's response verbatim."""
