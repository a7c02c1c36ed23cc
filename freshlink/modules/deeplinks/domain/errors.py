"""
Error taxonomy for deep-link processing.
"""
from __future__ import annotations


class DeepLinkError(Exception):
    """Base class for every error raised while handling a deep link."""


class ParseError(DeepLinkError, ValueError):
    """The raw URL is structurally invalid (scheme, action or query encoding)."""


class ValidationError(DeepLinkError, ValueError):
    """A parameter is well-formed but its value or range is not accepted."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class HandlerError(DeepLinkError):
    """A required parameter is missing or the action cannot be dispatched."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class RateLimitExceededError(DeepLinkError):
    def __init__(self, identifier: str, retry_after: float) -> None:
        super().__init__(f"Rate limit exceeded for {identifier}; retry in {retry_after:.1f}s")
        self.identifier = identifier
        self.retry_after = retry_after


class PaymentGatewayError(DeepLinkError):
    """The payment gateway rejected or failed to create the payment."""


class DocumentationFetchError(DeepLinkError):
    pass


class StorageError(DeepLinkError):
    pass
