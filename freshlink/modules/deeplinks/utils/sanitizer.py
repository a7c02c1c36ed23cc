"""
Input sanitization helpers.

All functions are total: they never raise and return an empty string for
empty input. They run before parsing and before values reach log lines.
"""
import re


_ID_STRIP = re.compile(r'[^a-zA-Z0-9_-]')
_AMOUNT_STRIP = re.compile(r'[^0-9.]')
_URL_STRIP = re.compile(r'[<>"\'\\]')
_TEXT_STRIP = re.compile(r'[<>]')
_SERVICE_STRIP = re.compile(r'[^a-z]')


def sanitize_id(value: str | None) -> str:
    """
    Keep only characters allowed in identifiers.

    Examples:
        >>> sanitize_id(" nyc_01<script> ")
        'nyc_01script'
    """
    if not value:
        return ""
    return _ID_STRIP.sub("", value.strip())


def sanitize_amount(value: str | None) -> str:
    """
    Keep only digits and dots.

    Examples:
        >>> sanitize_amount("$45.50")
        '45.50'
    """
    if not value:
        return ""
    return _AMOUNT_STRIP.sub("", value.strip())


def sanitize_url(value: str | None) -> str:
    if not value:
        return ""
    return _URL_STRIP.sub("", value.strip())


def sanitize_text(value: str | None) -> str:
    if not value:
        return ""
    return _TEXT_STRIP.sub("", value.strip())


def sanitize_service(value: str | None) -> str:
    if not value:
        return ""
    return _SERVICE_STRIP.sub("", value.strip().lower())
