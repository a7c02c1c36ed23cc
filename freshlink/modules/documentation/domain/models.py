from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from ...deeplinks.domain.models import DeepLinkAction


@dataclass(frozen=True)
class DocumentationPaths:
    payments: str = "/docs/payments"
    bookings: str = "/docs/bookings"
    tips: str = "/docs/tips"
    navigation: str = "/docs/navigation"

    def for_action(self, action: DeepLinkAction) -> str:
        if action is DeepLinkAction.PAYMENT:
            return self.payments
        if action is DeepLinkAction.BOOKING:
            return self.bookings
        if action is DeepLinkAction.TIP:
            return self.tips
        return self.navigation


@dataclass(frozen=True)
class WikiPage:
    id: str
    title: str
    content: str
    category: str
    last_updated: str
    url: str
    metadata: Mapping[str, Any] = field(default_factory=dict)
