"""
Domain models for deep-link processing.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class DeepLinkAction(str, Enum):
    PAYMENT = "payment"
    BOOKING = "booking"
    TIP = "tip"
    SHOP = "shop"
    BARBER = "barber"
    REVIEW = "review"
    PROMOTIONS = "promotions"
    PROFILE = "profile"

    @property
    def is_navigation(self) -> bool:
        return self in NAVIGATION_ACTIONS


NAVIGATION_ACTIONS = frozenset(
    {
        DeepLinkAction.SHOP,
        DeepLinkAction.BARBER,
        DeepLinkAction.REVIEW,
        DeepLinkAction.PROMOTIONS,
        DeepLinkAction.PROFILE,
    }
)


class ServiceType(str, Enum):
    HAIRCUT = "haircut"
    BEARD = "beard"
    TRIM = "trim"
    STYLE = "style"
    COLOR = "color"
    TREATMENT = "treatment"


@dataclass(frozen=True)
class DeepLink:
    scheme: str
    action: DeepLinkAction
    params: Mapping[str, str]
    original_url: str

    def __post_init__(self) -> None:
        if not isinstance(self.params, MappingProxyType):
            object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "scheme": self.scheme,
            "action": self.action.value,
            "params": dict(self.params),
            "originalUrl": self.original_url,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeepLink":
        return cls(
            scheme=data["scheme"],
            action=DeepLinkAction(data["action"]),
            params=dict(data.get("params") or {}),
            original_url=data.get("originalUrl", ""),
        )


@dataclass(frozen=True)
class PaymentParams:
    amount: Optional[Decimal] = None
    shop: Optional[str] = None
    service: Optional[ServiceType] = None
    barber: Optional[str] = None
    split: bool = False
    private: bool = True
    appointment: Optional[str] = None


@dataclass(frozen=True)
class BookingParams:
    barber: Optional[str] = None
    shop: Optional[str] = None
    service: Optional[ServiceType] = None
    datetime: Optional[str] = None
    duration: Optional[int] = None
    group: bool = False
    participants: Optional[int] = None


@dataclass(frozen=True)
class TipParams:
    barber: Optional[str] = None
    amount: Optional[Decimal] = None
    percentage: Optional[Decimal] = None
    appointment: Optional[str] = None
    shop: Optional[str] = None


ActionParams = PaymentParams | BookingParams | TipParams


@dataclass(frozen=True)
class SplitPayment:
    enabled: bool = True
    participants: tuple[str, ...] = ()


@dataclass(frozen=True)
class PaymentRequest:
    amount_in_minor_units: int
    currency: str
    description: str
    private_transaction: bool
    metadata: Mapping[str, Any] = field(default_factory=dict)
    merchant_note: Optional[str] = None
    split_payment: Optional[SplitPayment] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "amountInMinorUnits": self.amount_in_minor_units,
            "currency": self.currency,
            "description": self.description,
            "privateTransaction": self.private_transaction,
            "metadata": {key: value for key, value in self.metadata.items() if value is not None},
        }
        if self.merchant_note is not None:
            payload["merchantNote"] = self.merchant_note
        if self.split_payment is not None:
            payload["splitPayment"] = {
                "enabled": self.split_payment.enabled,
                "participants": list(self.split_payment.participants),
            }
        return payload


@dataclass(frozen=True)
class DeepLinkResult:
    """
    Outcome of dispatching one deep link.

    ``type`` is the action that produced it, ``action`` the outcome verb
    (``created``, ``initiated``, ``prompt``, ``navigate``, ``apply``).
    """

    type: DeepLinkAction
    action: str
    data: Any
    params: Any
