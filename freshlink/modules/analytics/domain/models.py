"""
Domain models for deep-link analytics.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from ...deeplinks.domain.models import DeepLink


@dataclass(frozen=True)
class ObjectInfo:
    key: str
    size: int


@dataclass(frozen=True)
class DeepLinkAnalytics:
    """One dispatch attempt. Exactly one of ``result`` and ``error`` is set."""

    id: str
    deep_link: DeepLink
    session_id: str
    timestamp: str
    processing_time: float
    result: Optional[Mapping[str, Any]] = None
    error: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def day(self) -> str:
        return self.timestamp[:10]

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "deepLink": self.deep_link.to_dict(),
            "sessionId": self.session_id,
            "timestamp": self.timestamp,
            "processingTime": self.processing_time,
            "metadata": {key: value for key, value in self.metadata.items() if value is not None},
        }
        if self.error is None:
            data["result"] = self.result
        else:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeepLinkAnalytics":
        return cls(
            id=data["id"],
            deep_link=DeepLink.from_dict(data["deepLink"]),
            session_id=data.get("sessionId", ""),
            timestamp=data["timestamp"],
            processing_time=float(data.get("processingTime", 0.0)),
            result=data.get("result"),
            error=data.get("error"),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class AnalyticsSummary:
    start_date: date
    end_date: date
    total_deep_links: int = 0
    action_counts: Dict[str, int] = field(default_factory=dict)
    error_rate: float = 0.0
    average_processing_time: float = 0.0
    top_shops: List[tuple[str, int]] = field(default_factory=list)
    top_barbers: List[tuple[str, int]] = field(default_factory=list)
    daily_stats: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "totalDeepLinks": self.total_deep_links,
            "actionCounts": dict(self.action_counts),
            "errorRate": self.error_rate,
            "averageProcessingTime": self.average_processing_time,
            "topShops": dict(self.top_shops),
            "topBarbers": dict(self.top_barbers),
            "dailyStats": dict(self.daily_stats),
        }
