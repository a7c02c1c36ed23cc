"""
Parsing and generation of ``<scheme>://<action>?<query>`` deep links.
"""
from __future__ import annotations

import re
from typing import Iterable, Optional
from urllib.parse import quote, unquote, urlencode

from ..domain.errors import ParseError
from ..domain.models import BookingParams, DeepLink, DeepLinkAction, PaymentParams, TipParams
from .sanitizer import sanitize_url


DEFAULT_SCHEME = "freshcuts"
MAX_URL_LENGTH = 2048
MAX_QUERY_PARAMS = 50

VALID_ACTIONS = tuple(action.value for action in DeepLinkAction)

# '%' not followed by two hex digits
_BROKEN_ESCAPE = re.compile(r'%(?![0-9A-Fa-f]{2})')


def decode_component(raw: str) -> Optional[str]:
    """
    Percent-decode one query component.

    Returns None instead of raising when the escape sequences are malformed
    or do not decode to UTF-8. ``+`` is kept literally.
    """
    if _BROKEN_ESCAPE.search(raw):
        return None
    try:
        return unquote(raw, encoding="utf-8", errors="strict")
    except UnicodeDecodeError:
        return None


class DeepLinkParser:
    def __init__(
        self,
        scheme: str = DEFAULT_SCHEME,
        *,
        max_url_length: int = MAX_URL_LENGTH,
        max_query_params: int = MAX_QUERY_PARAMS,
    ) -> None:
        self._scheme = scheme
        self._prefix = f"{scheme}://"
        self._max_url_length = max_url_length
        self._max_query_params = max_query_params

    @property
    def scheme(self) -> str:
        return self._scheme

    def parse(self, url: str) -> DeepLink:
        sanitized = sanitize_url(url)

        if len(sanitized) > self._max_url_length:
            raise ParseError(f"URL exceeds {self._max_url_length} characters")

        if not sanitized.startswith(self._prefix):
            raise ParseError(f"Invalid URL scheme. Expected {self._prefix}")

        action_part, _, query_string = sanitized[len(self._prefix):].partition("?")
        if not action_part:
            raise ParseError("Missing action in URL")

        action_name = action_part.lower()
        if action_name not in VALID_ACTIONS:
            raise ParseError(
                f"Invalid action: {action_name}. Valid actions: {', '.join(VALID_ACTIONS)}"
            )

        params = self.parse_query_string(query_string)

        return DeepLink(
            scheme=self._scheme,
            action=DeepLinkAction(action_name),
            params=params,
            original_url=sanitized,
        )

    def parse_query_string(self, query_string: str) -> dict[str, str]:
        params: dict[str, str] = {}
        if not query_string:
            return params

        segments = [segment for segment in query_string.split("&") if segment]
        if len(segments) > self._max_query_params:
            raise ParseError(f"Too many query parameters (max {self._max_query_params})")

        for segment in segments:
            parts = segment.split("=")
            if len(parts) != 2:
                raise ParseError(
                    f"Invalid query parameter format: {segment}. Expected key=value format."
                )
            raw_key, raw_value = parts
            if not raw_key:
                raise ParseError(f"Missing parameter name in: {segment}")

            key = decode_component(raw_key)
            value = decode_component(raw_value)
            if key is None or value is None:
                raise ParseError(f"Invalid URL encoding in parameter: {segment}")
            params[key] = value

        return params


class DeepLinkGenerator:
    """Builds deep links that :class:`DeepLinkParser` parses back to the same params."""

    def __init__(self, scheme: str = DEFAULT_SCHEME) -> None:
        self._base = f"{scheme}://"

    def build(self, action: DeepLinkAction | str, pairs: Iterable[tuple[str, str]] = ()) -> str:
        action_name = DeepLinkAction(action).value
        query = urlencode(list(pairs), quote_via=quote)
        if query:
            return f"{self._base}{action_name}?{query}"
        return f"{self._base}{action_name}"

    def payment(self, params: PaymentParams) -> str:
        pairs: list[tuple[str, str]] = []
        if params.amount is not None:
            pairs.append(("amount", str(params.amount)))
        if params.shop:
            pairs.append(("shop", params.shop))
        if params.service:
            pairs.append(("service", params.service.value))
        if params.barber:
            pairs.append(("barber", params.barber))
        if params.appointment:
            pairs.append(("appointment", params.appointment))
        if params.split:
            pairs.append(("split", "true"))
        if not params.private:
            pairs.append(("private", "false"))
        return self.build(DeepLinkAction.PAYMENT, pairs)

    def booking(self, params: BookingParams) -> str:
        pairs: list[tuple[str, str]] = []
        if params.barber:
            pairs.append(("barber", params.barber))
        if params.shop:
            pairs.append(("shop", params.shop))
        if params.service:
            pairs.append(("service", params.service.value))
        if params.datetime:
            pairs.append(("datetime", params.datetime))
        if params.duration is not None:
            pairs.append(("duration", str(params.duration)))
        if params.group:
            pairs.append(("group", "true"))
        if params.participants is not None:
            pairs.append(("participants", str(params.participants)))
        return self.build(DeepLinkAction.BOOKING, pairs)

    def tip(self, params: TipParams) -> str:
        pairs: list[tuple[str, str]] = []
        if params.barber:
            pairs.append(("barber", params.barber))
        if params.amount is not None:
            pairs.append(("amount", str(params.amount)))
        if params.percentage is not None:
            pairs.append(("percentage", str(params.percentage)))
        if params.appointment:
            pairs.append(("appointment", params.appointment))
        if params.shop:
            pairs.append(("shop", params.shop))
        return self.build(DeepLinkAction.TIP, pairs)

    def shop(self, shop_id: str) -> str:
        return self.build(DeepLinkAction.SHOP, [("shop", shop_id)])

    def barber(self, barber_id: str) -> str:
        return self.build(DeepLinkAction.BARBER, [("barber", barber_id)])

    def review(self, appointment_id: str | None = None) -> str:
        return self.build(DeepLinkAction.REVIEW, [("appointment", appointment_id)] if appointment_id else [])

    def promotions(self, promo_code: str | None = None) -> str:
        return self.build(DeepLinkAction.PROMOTIONS, [("code", promo_code)] if promo_code else [])

    def profile(self, user_id: str | None = None) -> str:
        return self.build(DeepLinkAction.PROFILE, [("user", user_id)] if user_id else [])
