"""
Shared fakes and fixtures for the deep-link tests.
"""
from datetime import UTC, datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

import pytest

from freshlink.modules.analytics.domain.interfaces import ObjectStorage
from freshlink.modules.analytics.domain.models import ObjectInfo
from freshlink.modules.deeplinks.domain.errors import DocumentationFetchError, StorageError
from freshlink.modules.deeplinks.domain.models import PaymentRequest


class FakePaymentGateway:
    """Records payment requests and answers with a pending payment."""

    def __init__(self, error: Optional[Exception] = None):
        self.requests: List[PaymentRequest] = []
        self.error = error

    async def create_payment(self, request: PaymentRequest) -> Mapping[str, Any]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return {
            "id": f"pay_{len(self.requests)}",
            "status": "pending",
            "amountInMinorUnits": request.amount_in_minor_units,
        }


class FakeDocumentationClient:
    base_url = "https://docs.test"

    def __init__(self, pages: Optional[Dict[str, Dict[str, Any]]] = None):
        self.pages = pages or {}
        self.calls: List[str] = []
        self.fail = False

    async def fetch(self, path: str) -> Mapping[str, Any]:
        self.calls.append(path)
        if self.fail:
            raise DocumentationFetchError("Wiki API error: 503")
        return self.pages.get(path, {})


class InMemoryObjectStorage(ObjectStorage):
    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.fail_put = False
        self.fail_list_prefixes: set[str] = set()
        self.closed = False

    async def put(self, key: str, data: bytes) -> None:
        if self.fail_put:
            raise StorageError(f"Failed to store {key}: disk full")
        self.objects[key] = data

    async def list(self, prefix: str) -> List[ObjectInfo]:
        if prefix in self.fail_list_prefixes:
            raise StorageError(f"Failed to list {prefix}")
        return [
            ObjectInfo(key=key, size=len(body))
            for key, body in sorted(self.objects.items())
            if key.startswith(prefix)
        ]

    async def get(self, key: str) -> bytes:
        if key not in self.objects:
            raise StorageError(f"Object not found: {key}")
        return self.objects[key]

    async def close(self) -> None:
        self.closed = True


class ManualClock:
    """Monotonic clock driven by the test."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualUtcClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def docs_client():
    return FakeDocumentationClient(
        {
            "/docs/payments": {
                "id": "payments-guide",
                "title": "Paying with FreshCuts",
                "content": "How payments work.",
                "url": "https://docs.test/docs/payments",
            },
        }
    )


@pytest.fixture
def object_storage():
    return InMemoryObjectStorage()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def utc_clock():
    return ManualUtcClock()
