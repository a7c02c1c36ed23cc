"""
Domain models for deep-link sessions.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from ...deeplinks.domain.models import DeepLink


ANONYMOUS_SESSION_ID = "anonymous"


@dataclass(frozen=True)
class ClientInfo:
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    referrer: Optional[str] = None
    device_info: Optional[Mapping[str, Any]] = None


@dataclass
class SessionMetadata:
    created_at: datetime
    last_activity: datetime
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    device_info: Optional[Dict[str, Any]] = None


@dataclass
class SessionContext:
    current_shop: Optional[str] = None
    current_barber: Optional[str] = None
    pending_payment: Optional[str] = None
    navigation_history: List[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentShop": self.current_shop,
            "currentBarber": self.current_barber,
            "pendingPayment": self.pending_payment,
            "navigationHistory": list(self.navigation_history),
        }


@dataclass
class DeepLinkSession:
    id: str
    metadata: SessionMetadata
    context: SessionContext = field(default_factory=SessionContext)
    deep_links: List[DeepLink] = field(default_factory=list)

    @property
    def is_anonymous(self) -> bool:
        return self.id == ANONYMOUS_SESSION_ID


@dataclass(frozen=True)
class SessionStats:
    total: int
    active: int
    expired: int
