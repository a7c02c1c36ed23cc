"""
Per-action validation and type casting of raw deep-link parameters.
"""
from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from ..domain.errors import HandlerError, ValidationError
from ..domain.models import (
    ActionParams,
    BookingParams,
    DeepLink,
    DeepLinkAction,
    PaymentParams,
    ServiceType,
    TipParams,
)


# Whole-value patterns, used with fullmatch.
ID_PATTERN = re.compile(r'[a-zA-Z0-9_-]+')
AMOUNT_PATTERN = re.compile(r'[0-9]+(\.[0-9]{1,2})?')
DECIMAL_PATTERN = re.compile(r'[0-9]+(\.[0-9]+)?')
INTEGER_PATTERN = re.compile(r'[0-9]+')

MAX_DURATION_MINUTES = 480
MAX_PARTICIPANTS = 20
MAX_PERCENTAGE = Decimal(100)

VALID_SERVICES = tuple(service.value for service in ServiceType)

# Navigation actions and the single id-shaped field each of them reads.
NAVIGATION_FIELDS: dict[DeepLinkAction, str] = {
    DeepLinkAction.SHOP: "shop",
    DeepLinkAction.BARBER: "barber",
    DeepLinkAction.REVIEW: "appointment",
    DeepLinkAction.PROMOTIONS: "code",
    DeepLinkAction.PROFILE: "user",
}


def validate_id(field: str, value: str) -> str:
    if not ID_PATTERN.fullmatch(value):
        raise ValidationError(
            field,
            f"Invalid {field} ID format. Only alphanumeric characters, underscores, "
            f"and hyphens are allowed.",
        )
    return value


def _optional_id(params: Mapping[str, str], field: str) -> Optional[str]:
    value = params.get(field)
    if not value:
        return None
    return validate_id(field, value)


def _amount(params: Mapping[str, str], field: str, *, allow_zero: bool) -> Optional[Decimal]:
    raw = params.get(field)
    if not raw:
        return None
    bound = "a non-negative" if allow_zero else "a positive"
    message = f"Invalid {field}: must be {bound} number with up to 2 decimal places (e.g. 45 or 45.50)."
    if not AMOUNT_PATTERN.fullmatch(raw):
        raise ValidationError(field, message)
    amount = Decimal(raw)
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(field, message)
    return amount


def _bounded_int(params: Mapping[str, str], field: str, low: int, high: int, unit: str = "") -> Optional[int]:
    raw = params.get(field)
    if not raw:
        return None
    suffix = f" {unit}" if unit else ""
    message = f"Invalid {field}: must be an integer between {low} and {high}{suffix}."
    if not INTEGER_PATTERN.fullmatch(raw):
        raise ValidationError(field, message)
    value = int(raw)
    if value < low or value > high:
        raise ValidationError(field, message)
    return value


def _percentage(params: Mapping[str, str]) -> Optional[Decimal]:
    raw = params.get("percentage")
    if not raw:
        return None
    message = "Invalid percentage: must be a number between 0 and 100."
    if not DECIMAL_PATTERN.fullmatch(raw):
        raise ValidationError("percentage", message)
    try:
        value = Decimal(raw)
    except InvalidOperation as exc:
        raise ValidationError("percentage", message) from exc
    if value > MAX_PERCENTAGE:
        raise ValidationError("percentage", message)
    return value


def _service(params: Mapping[str, str]) -> Optional[ServiceType]:
    raw = params.get("service")
    if not raw:
        return None
    try:
        return ServiceType(raw.lower())
    except ValueError as exc:
        raise ValidationError(
            "service",
            f"Invalid service: {raw}. Valid services: {', '.join(VALID_SERVICES)}.",
        ) from exc


def _datetime(params: Mapping[str, str]) -> Optional[str]:
    raw = params.get("datetime")
    if not raw:
        return None
    try:
        datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(
            "datetime",
            "Invalid datetime format. Use ISO 8601 format (e.g., 2024-01-15T14:30:00Z).",
        ) from exc
    return raw


def validate_payment_params(params: Mapping[str, str]) -> PaymentParams:
    return PaymentParams(
        amount=_amount(params, "amount", allow_zero=False),
        shop=_optional_id(params, "shop"),
        service=_service(params),
        barber=_optional_id(params, "barber"),
        split=params.get("split") == "true",
        private=params.get("private") != "false",
        appointment=_optional_id(params, "appointment"),
    )


def validate_booking_params(params: Mapping[str, str]) -> BookingParams:
    return BookingParams(
        barber=_optional_id(params, "barber"),
        shop=_optional_id(params, "shop"),
        service=_service(params),
        datetime=_datetime(params),
        duration=_bounded_int(params, "duration", 1, MAX_DURATION_MINUTES, "minutes"),
        group=params.get("group") == "true",
        participants=_bounded_int(params, "participants", 1, MAX_PARTICIPANTS),
    )


def validate_tip_params(params: Mapping[str, str]) -> TipParams:
    return TipParams(
        barber=_optional_id(params, "barber"),
        amount=_amount(params, "amount", allow_zero=True),
        percentage=_percentage(params),
        appointment=_optional_id(params, "appointment"),
        shop=_optional_id(params, "shop"),
    )


def validate_navigation_id(deep_link: DeepLink, *, required: bool) -> Optional[str]:
    field = NAVIGATION_FIELDS.get(deep_link.action)
    if field is None:
        raise HandlerError(f"Unsupported action: {deep_link.action.value}", deep_link.original_url)
    value = deep_link.params.get(field)
    if not value:
        if required:
            raise HandlerError(
                f"{field.capitalize()} ID is required for {deep_link.action.value} deep links",
                deep_link.original_url,
            )
        return None
    return validate_id(field, value)


def validate_params(deep_link: DeepLink) -> Optional[ActionParams]:
    """
    Validate the parameters of any action without dispatching it.

    Typed parameters are returned for payment, booking and tip links;
    navigation links only have their id field shape-checked.
    """
    if deep_link.action is DeepLinkAction.PAYMENT:
        return validate_payment_params(deep_link.params)
    if deep_link.action is DeepLinkAction.BOOKING:
        return validate_booking_params(deep_link.params)
    if deep_link.action is DeepLinkAction.TIP:
        return validate_tip_params(deep_link.params)
    validate_navigation_id(deep_link, required=False)
    return None
