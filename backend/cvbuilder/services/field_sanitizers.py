# cvbuilder/services/field_sanitizers.py
"""
Typed sanitizers for individual CV fields.

Every function here is total: any input, including non-strings, yields a
string and nothing is raised. Invalid values degrade to "" and it is left to
the validator to decide whether that is acceptable.
"""
import logging
import re
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import HttpUrl, TypeAdapter, ValidationError

from cvbuilder.core.config import settings
from cvbuilder.core.security import (
    decode_input,
    escape_html,
    sanitize_html,
    strip_threats,
)
from cvbuilder.models.sanitization import PLAIN_TEXT, SanitizationOptions

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

# A trailing fragment that truncation may have split: "<stro" or "&am"
_PARTIAL_TAIL = re.compile(r"(?:<[^>]*|&[#\w]*)$")

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_PHONE_DISALLOWED = re.compile(r"[^0-9 ()+\-.]")

_FILENAME_DISALLOWED = re.compile(r"[^A-Za-z0-9_.\-]")

_HTTP_URL = TypeAdapter(HttpUrl)

# Raw characters allowed per output character before decoding
_ENCODED_EXPANSION = 10

_RICH_TEXT_REFITS = 5


def _normalize_whitespace(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


def _cap_length(value: str, max_length: Optional[int]) -> str:
    """Cut value to max_length without leaving half an entity or tag behind."""
    if max_length is None or len(value) <= max_length:
        return value
    return _PARTIAL_TAIL.sub("", value[:max_length])


def _raw_input_limit(max_length: Optional[int]) -> int:
    limit = settings.SANITIZER_MAX_INPUT_LENGTH
    if max_length is not None:
        # Leaves room for values that shrink when decoded
        limit = min(limit, max_length * _ENCODED_EXPANSION)
    return limit


def _fit_rich_text(text: str, opts: SanitizationOptions) -> str:
    """
    Allow-list sanitize text so the result fits max_length with balanced tags.

    The input is shortened by the overflow and cleaned again, since cutting
    bleach output would drop closing tags. If that does not converge the
    value falls back to its text content.
    """
    sanitized = sanitize_html(text, opts.allowed_tags, opts.allowed_attributes)
    if opts.max_length is None:
        return sanitized

    for _ in range(_RICH_TEXT_REFITS):
        overflow = len(sanitized) - opts.max_length
        if overflow <= 0:
            return sanitized
        text = text[:max(len(text) - overflow, 0)]
        sanitized = sanitize_html(text, opts.allowed_tags, opts.allowed_attributes)

    if len(sanitized) <= opts.max_length:
        return sanitized

    logger.debug("Rich text did not fit after refits, keeping text content only")
    return _cap_length(sanitize_html(text, frozenset()), opts.max_length)


def _decode_and_strip(value: str) -> str:
    text = value
    for _ in range(settings.SANITIZER_DECODE_PASSES):
        flattened = strip_threats(decode_input(text, passes=1))
        if flattened == text:
            break
        text = flattened
    return text.replace("\x00", "")


def sanitize_text(value: Any, options: Optional[SanitizationOptions] = None) -> str:
    """
    Sanitize free text.

    Pipeline: decode -> strip threats -> whitespace normalization ->
    truncation -> escape (plain text) or allow-list sanitize (rich text).

    Args:
        value: Raw value from the client
        options: Per-call options; defaults to plain text with whitespace stripping

    Returns:
        Sanitized string, "" for empty or non-string input. When
        options.max_length is set the result is never longer than it.
    """
    if not value or not isinstance(value, str):
        return ""

    opts = options or PLAIN_TEXT

    text = _decode_and_strip(value[:_raw_input_limit(opts.max_length)])

    if opts.strip_whitespace:
        text = _normalize_whitespace(text)

    if opts.max_length is not None:
        text = text[:opts.max_length]

    if opts.allow_html:
        return _fit_rich_text(text, opts)

    return _cap_length(escape_html(text), opts.max_length)


_EMAIL_OPTIONS = SanitizationOptions(strip_whitespace=True)


def sanitize_email(value: Any) -> str:
    """
    Sanitize an email address.

    The address is rejected rather than repaired: anything the text sanitizer
    had to strip or escape makes the result "".

    Returns:
        Lower-cased address, or "" if it is not a plain local@domain.tld
    """
    if not value or not isinstance(value, str):
        return ""

    sanitized = sanitize_text(value, _EMAIL_OPTIONS)
    if sanitized != _normalize_whitespace(decode_input(value)):
        logger.debug("Rejected email address containing markup or unsafe content")
        return ""

    if not _EMAIL.match(sanitized):
        return ""

    return sanitized.lower()


def sanitize_phone(value: Any) -> str:
    """Keep digits, spaces, parentheses, plus, hyphen and dot."""
    if not value or not isinstance(value, str):
        return ""
    return _PHONE_DISALLOWED.sub("", value).strip()


def sanitize_url(value: Any) -> str:
    """
    Accept only absolute http(s) URLs.

    The value is parsed rather than pattern-matched, so javascript:, data:
    and other schemes are refused structurally.

    Returns:
        Canonical serialization of the URL, or "" if parsing fails or the
        scheme is not allowed
    """
    if not value or not isinstance(value, str):
        return ""

    try:
        return str(_HTTP_URL.validate_python(value.strip()))
    except ValidationError:
        return ""


def sanitize_file_path(value: Any) -> str:
    """
    Reduce a value to a bare filename safe to join onto a base directory.

    Only [A-Za-z0-9_.-] survive, which also drops every path separator, and
    ".." sequences are removed until none remain.
    """
    if not value or not isinstance(value, str):
        return ""

    name = _FILENAME_DISALLOWED.sub("", value)
    while ".." in name:
        name = name.replace("..", "")
    return name


class FieldKind(str, Enum):
    """Semantic type of a CV leaf field."""
    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    URL = "url"
    FILE_PATH = "file_path"


FieldSanitizer = Callable[[Any, Optional[SanitizationOptions]], str]

FIELD_SANITIZERS: Dict[FieldKind, FieldSanitizer] = {
    FieldKind.TEXT: sanitize_text,
    FieldKind.EMAIL: lambda value, options=None: sanitize_email(value),
    FieldKind.PHONE: lambda value, options=None: sanitize_phone(value),
    FieldKind.URL: lambda value, options=None: sanitize_url(value),
    FieldKind.FILE_PATH: lambda value, options=None: sanitize_file_path(value),
}


def sanitize_field(kind: FieldKind, value: Any, options: Optional[SanitizationOptions] = None) -> str:
    """Dispatch value to the sanitizer registered for kind."""
    return FIELD_SANITIZERS[kind](value, options)
