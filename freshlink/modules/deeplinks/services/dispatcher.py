"""
Routes validated deep links to their action handlers.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional
from urllib.parse import quote

from ..domain.errors import DeepLinkError, HandlerError, PaymentGatewayError
from ..domain.interfaces import PaymentGateway
from ..domain.models import (
    DeepLink,
    DeepLinkAction,
    DeepLinkResult,
    PaymentRequest,
    ServiceType,
    SplitPayment,
)
from ..utils.sanitizer import sanitize_text
from ..utils.validation import (
    validate_booking_params,
    validate_navigation_id,
    validate_payment_params,
    validate_tip_params,
)

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_AMOUNT = Decimal("45.00")
DEFAULT_CURRENCY = "USD"
FALLBACK_DESCRIPTION = "FreshCuts Service"
SLOW_DISPATCH_MS = 100.0

_CENT = Decimal("0.01")

Handler = Callable[[DeepLink, Optional[Decimal]], Awaitable[DeepLinkResult]]


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))


def build_description(
    service: ServiceType | None,
    barber: str | None,
    shop: str | None,
) -> str:
    """
    Examples:
        >>> build_description(ServiceType.HAIRCUT, "jb", "nyc_01")
        'Haircut with jb at nyc_01'
        >>> build_description(None, None, None)
        'FreshCuts Service'
    """
    parts: list[str] = []
    if service:
        parts.append(service.value.capitalize())
    if barber:
        parts.append(f"with {barber}")
    if shop:
        parts.append(f"at {shop}")
    return " ".join(parts) if parts else FALLBACK_DESCRIPTION


class DeepLinkDispatcher:
    def __init__(
        self,
        gateway: PaymentGateway,
        *,
        default_service_amount: Decimal = DEFAULT_SERVICE_AMOUNT,
        currency: str = DEFAULT_CURRENCY,
    ) -> None:
        self._gateway = gateway
        self._default_service_amount = default_service_amount
        self._currency = currency
        self._handlers: dict[DeepLinkAction, Handler] = {
            DeepLinkAction.PAYMENT: self._handle_payment,
            DeepLinkAction.BOOKING: self._handle_booking,
            DeepLinkAction.TIP: self._handle_tip,
            DeepLinkAction.SHOP: self._handle_shop,
            DeepLinkAction.BARBER: self._handle_barber,
            DeepLinkAction.REVIEW: self._handle_review,
            DeepLinkAction.PROMOTIONS: self._handle_promotions,
            DeepLinkAction.PROFILE: self._handle_profile,
        }
        missing = set(DeepLinkAction) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler registered for: {sorted(a.value for a in missing)}")

    @property
    def default_service_amount(self) -> Decimal:
        return self._default_service_amount

    async def handle(
        self,
        deep_link: DeepLink,
        *,
        service_amount: Optional[Decimal] = None,
    ) -> DeepLinkResult:
        handler = self._handlers.get(deep_link.action)
        if handler is None:
            raise HandlerError(f"Unsupported action: {deep_link.action}", deep_link.original_url)

        started = time.perf_counter()
        try:
            return await handler(deep_link, service_amount)
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            if elapsed_ms > SLOW_DISPATCH_MS:
                logger.warning(
                    "Slow %s dispatch: %.1fms (threshold %.0fms)",
                    deep_link.action.value,
                    elapsed_ms,
                    SLOW_DISPATCH_MS,
                )

    async def _create_payment(self, request: PaymentRequest) -> Any:
        try:
            return await self._gateway.create_payment(request)
        except DeepLinkError:
            raise
        except Exception as exc:
            raise PaymentGatewayError(f"Payment creation failed: {exc}") from exc

    async def _handle_payment(self, deep_link: DeepLink, service_amount: Optional[Decimal]) -> DeepLinkResult:
        params = validate_payment_params(deep_link.params)
        if params.amount is None:
            raise HandlerError("Amount is required for payment deep links", deep_link.original_url)

        logger.debug("Processing payment deep link: %s", sanitize_text(deep_link.original_url))

        request = PaymentRequest(
            amount_in_minor_units=to_minor_units(params.amount),
            currency=self._currency,
            description=build_description(params.service, params.barber, params.shop),
            merchant_note=f"Deep link payment from {params.shop or 'unknown'}",
            private_transaction=params.private,
            metadata={
                "source": "deep_link",
                "shop": params.shop,
                "service": params.service.value if params.service else None,
                "barber": params.barber,
                "appointment": params.appointment,
            },
            split_payment=SplitPayment() if params.split else None,
        )
        payment = await self._create_payment(request)
        return DeepLinkResult(type=DeepLinkAction.PAYMENT, action="created", data=payment, params=params)

    async def _handle_booking(self, deep_link: DeepLink, service_amount: Optional[Decimal]) -> DeepLinkResult:
        params = validate_booking_params(deep_link.params)
        data = {
            "barber": params.barber,
            "shop": params.shop,
            "service": params.service.value if params.service else None,
            "datetime": params.datetime,
            "duration": params.duration,
            "group": params.group,
            "participants": params.participants,
        }
        return DeepLinkResult(type=DeepLinkAction.BOOKING, action="initiated", data=data, params=params)

    async def _handle_tip(self, deep_link: DeepLink, service_amount: Optional[Decimal]) -> DeepLinkResult:
        params = validate_tip_params(deep_link.params)

        tip_amount = params.amount
        if tip_amount is None and params.percentage is not None:
            base = service_amount if service_amount is not None else self._default_service_amount
            tip_amount = (base * params.percentage / 100).quantize(_CENT, rounding=ROUND_HALF_UP)

        if tip_amount is not None and tip_amount > 0:
            request = PaymentRequest(
                amount_in_minor_units=to_minor_units(tip_amount),
                currency=self._currency,
                description=build_description(None, params.barber, params.shop),
                merchant_note="Tip via deep link",
                private_transaction=True,
                metadata={
                    "source": "deep_link",
                    "type": "tip",
                    "barber": params.barber,
                    "appointment": params.appointment,
                    "shop": params.shop,
                },
            )
            payment = await self._create_payment(request)
            return DeepLinkResult(type=DeepLinkAction.TIP, action="created", data=payment, params=params)

        return DeepLinkResult(
            type=DeepLinkAction.TIP,
            action="prompt",
            data={
                "barber": params.barber,
                "suggestedAmount": tip_amount,
                "percentage": params.percentage,
            },
            params=params,
        )

    async def _navigate(self, deep_link: DeepLink) -> DeepLinkResult:
        entity_id = validate_navigation_id(deep_link, required=True)
        kind = deep_link.action.value
        return DeepLinkResult(
            type=deep_link.action,
            action="navigate",
            data={"id": entity_id, "url": f"/{kind}/{quote(entity_id, safe='')}"},
            params=dict(deep_link.params),
        )

    async def _handle_shop(self, deep_link: DeepLink, service_amount: Optional[Decimal]) -> DeepLinkResult:
        return await self._navigate(deep_link)

    async def _handle_barber(self, deep_link: DeepLink, service_amount: Optional[Decimal]) -> DeepLinkResult:
        return await self._navigate(deep_link)

    async def _handle_review(self, deep_link: DeepLink, service_amount: Optional[Decimal]) -> DeepLinkResult:
        appointment_id = validate_navigation_id(deep_link, required=False)
        url = f"/review/{quote(appointment_id, safe='')}" if appointment_id else "/review"
        return DeepLinkResult(
            type=DeepLinkAction.REVIEW,
            action="prompt",
            data={"id": appointment_id, "url": url},
            params=dict(deep_link.params),
        )

    async def _handle_promotions(self, deep_link: DeepLink, service_amount: Optional[Decimal]) -> DeepLinkResult:
        code = validate_navigation_id(deep_link, required=False)
        return DeepLinkResult(
            type=DeepLinkAction.PROMOTIONS,
            action="apply",
            data={"code": code, "url": "/promotions"},
            params=dict(deep_link.params),
        )

    async def _handle_profile(self, deep_link: DeepLink, service_amount: Optional[Decimal]) -> DeepLinkResult:
        user_id = validate_navigation_id(deep_link, required=False)
        url = f"/profile/{quote(user_id, safe='')}" if user_id else "/profile"
        return DeepLinkResult(
            type=DeepLinkAction.PROFILE,
            action="navigate",
            data={"id": user_id, "url": url},
            params=dict(deep_link.params),
        )
