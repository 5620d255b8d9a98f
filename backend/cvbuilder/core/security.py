# cvbuilder/core/security.py
"""
Low-level XSS defenses shared by every field sanitizer.

Stages, in the order the field sanitizers apply them:
- decode_input: flatten percent-encoding and HTML entities so obfuscated
  payloads are visible to the filters
- strip_threats: remove or defang dangerous markup, URI schemes and API calls
- escape_html / sanitize_html: final encoding for plain or rich text

is_safe_content is a read-only check built on the same decoder. It never
modifies its input and is not a substitute for the stages above.
"""
import logging
import re
from functools import lru_cache
from typing import Callable, List, Mapping, NamedTuple, Optional, Pattern, Tuple, Union
from urllib.parse import unquote

import bleach

from cvbuilder.core.config import settings
from cvbuilder.core.metrics import threats_stripped_total

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------

# A '%' that does not start a two-digit hex escape makes the whole value
# undecodable, matching the behaviour of a strict URI component decoder.
_MALFORMED_PERCENT = re.compile(r"%(?![0-9A-Fa-f]{2})")

_ENTITY = re.compile(r"&(?:#(\d+)|#[xX]([0-9A-Fa-f]+)|(lt|gt|quot|amp));")

_NAMED_ENTITIES = {
    "lt": "<",
    "gt": ">",
    "quot": '"',
    "amp": "&",
}


def percent_decode(value: str) -> str:
    """Reverse one layer of %XX encoding, or return value unchanged if malformed."""
    if "%" not in value or _MALFORMED_PERCENT.search(value):
        return value

    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return value


def _replace_entity(match: "re.Match[str]") -> str:
    decimal, hexadecimal, name = match.groups()
    if name:
        return _NAMED_ENTITIES[name]

    try:
        codepoint = int(decimal) if decimal else int(hexadecimal, 16)
        if 0xD800 <= codepoint <= 0xDFFF:
            return match.group(0)
        return chr(codepoint)
    except (ValueError, OverflowError):
        return match.group(0)


def decode_entities(value: str) -> str:
    """Decode numeric entities and the named entities lt, gt, quot and amp."""
    if "&" not in value:
        return value
    return _ENTITY.sub(_replace_entity, value)


def decode_input(value: str, passes: Optional[int] = None) -> str:
    """
    Flatten percent-encoding and HTML entities.

    Each round runs percent-decoding first and entity decoding second, so
    that ``%26lt%3B`` becomes ``&lt;`` and then ``<``.

    Args:
        value: Raw string
        passes: Maximum number of rounds. Defaults to SANITIZER_DECODE_PASSES.
            Decoding stops early once a round leaves the text unchanged.

    Returns:
        Decoded string. Never raises.
    """
    if not value:
        return value

    rounds = passes if passes is not None else settings.SANITIZER_DECODE_PASSES
    decoded = value
    for _ in range(max(rounds, 1)):
        flattened = decode_entities(percent_decode(decoded))
        if flattened == decoded:
            break
        decoded = flattened

    return decoded


# ---------------------------------------------------------------------------
# Threat stripper
# ---------------------------------------------------------------------------

class ThreatRule(NamedTuple):
    name: str
    pattern: Pattern[str]
    replacement: Union[str, Callable[["re.Match[str]"], str]]
    # pattern matches only the opening tag; the rule removes through the close
    element: bool = False


_CASELESS = re.IGNORECASE

# Order matters: schemes are rewritten before the elements that may contain
# them are removed, and whole elements go before attribute-level rules.
THREAT_RULES: Tuple[ThreatRule, ...] = (
    ThreatRule(
        "script_element",
        re.compile(r"<(script)\b", _CASELESS),
        "",
        element=True,
    ),
    ThreatRule(
        "script_scheme",
        re.compile(r"(?:java|vb)script\s*:", _CASELESS),
        "blocked:",
    ),
    ThreatRule(
        "data_uri",
        re.compile(r"data\s*:\s*(?:text/html|application/javascript|text/javascript)", _CASELESS),
        "blocked:data",
    ),
    ThreatRule(
        "embedded_element",
        re.compile(r"<(iframe|object|style|svg)\b", _CASELESS),
        "",
        element=True,
    ),
    # Opening tags without a matching close, and stray closing tags
    ThreatRule(
        "unterminated_element",
        re.compile(r"</?(?:script|iframe|object|style|svg)\b[^>]*>?", _CASELESS),
        "",
    ),
    ThreatRule(
        "void_element",
        re.compile(r"<(?:embed|link|meta)\b[^>]*>?", _CASELESS),
        "",
    ),
    ThreatRule(
        "event_handler",
        re.compile(r"\bon\w+\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s>]*)", _CASELESS),
        "",
    ),
    ThreatRule(
        "dangerous_call",
        re.compile(r"\b(?:alert|eval)(?=\s*\()", _CASELESS),
        r"blocked_\g<0>",
    ),
    ThreatRule(
        "dangerous_global",
        re.compile(r"\b(?:document|window)\b", _CASELESS),
        r"blocked_\g<0>",
    ),
)


@lru_cache(maxsize=None)
def _closing_tag(tag: str) -> Pattern[str]:
    return re.compile(rf"</{tag}\s*>", _CASELESS)


def _remove_elements(opening: Pattern[str], text: str) -> Tuple[str, int]:
    """
    Remove each opening tag through the nearest matching close.

    Runs in linear time: once a tag name has no close after some point, no
    later opening of that name can have one, so it is never searched again.
    Unclosed openings are left for the unterminated_element rule.
    """
    pieces: List[str] = []
    kept_from = scan = count = 0
    unclosed = set()

    while True:
        start = opening.search(text, scan)
        if start is None:
            break

        tag = start.group(1).lower()
        end = None if tag in unclosed else _closing_tag(tag).search(text, start.end())
        if end is None:
            unclosed.add(tag)
            scan = start.end()
            continue

        pieces.append(text[kept_from:start.start()])
        kept_from = scan = end.end()
        count += 1

    if not count:
        return text, 0
    pieces.append(text[kept_from:])
    return "".join(pieces), count


def _apply_rules(text: str) -> Tuple[str, bool]:
    """Run one pass over THREAT_RULES; report whether anything matched."""
    changed = False
    for rule in THREAT_RULES:
        if rule.element:
            text, count = _remove_elements(rule.pattern, text)
        else:
            text, count = rule.pattern.subn(rule.replacement, text)
        if count:
            changed = True
            threats_stripped_total.labels(rule=rule.name).inc(count)
            logger.debug(f"Threat rule '{rule.name}' matched {count} time(s)")
    return text, changed


def strip_threats(value: str, max_passes: Optional[int] = None) -> str:
    """
    Remove or defang dangerous constructs in already-decoded text.

    The rule table is re-run until a full pass changes nothing, so removals
    cannot leave behind a freshly assembled payload such as
    ``<scr<script></script>ipt>``.

    Args:
        value: Decoded text
        max_passes: Upper bound on table passes. Defaults to SANITIZER_STRIP_PASSES.

    Returns:
        Text with every rule in THREAT_RULES applied, or "" when the text is
        still changing after max_passes passes.
    """
    if not value:
        return value

    limit = max_passes if max_passes is not None else settings.SANITIZER_STRIP_PASSES
    stripped = value

    for _ in range(max(limit, 1)):
        stripped, changed = _apply_rules(stripped)
        if not changed:
            return stripped

    # The last allowed pass may have been the one that settled it
    _, changed = _apply_rules(stripped)
    if changed:
        logger.warning(f"Threat stripping did not settle after {limit} passes, dropping value")
        return ""

    return stripped


# ---------------------------------------------------------------------------
# Encoder / escaper
# ---------------------------------------------------------------------------

_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
}

_HTML_ESCAPE_RE = re.compile(r"[&<>\"'/]")


def escape_html(value: str) -> str:
    """Entity-escape & < > \" ' and / so no markup survives."""
    if not value:
        return value
    return _HTML_ESCAPE_RE.sub(lambda m: _HTML_ESCAPES[m.group(0)], value)


def sanitize_html(
    html_content: str,
    allowed_tags: Optional[frozenset] = None,
    allowed_attributes: Optional[Mapping[str, frozenset]] = None,
) -> str:
    """
    Sanitize HTML against an allow-list.

    Tags outside the allow-list are removed but their text content is kept
    (bleach ``strip=True``). Comments are dropped.

    Args:
        html_content: HTML that already went through strip_threats
        allowed_tags: Permitted tag names
        allowed_attributes: Permitted attribute names per tag

    Returns:
        Sanitized HTML with only allow-listed tags and attributes
    """
    if not html_content:
        return ""

    return bleach.clean(
        html_content,
        tags=set(allowed_tags or ()),
        attributes={tag: list(attrs) for tag, attrs in (allowed_attributes or {}).items()},
        protocols={"http", "https", "mailto"},
        strip=True,
        strip_comments=True,
    )


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------

DANGEROUS_PATTERNS: Tuple[Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"<script\b",
        r"<iframe\b",
        r"<object\b",
        r"<embed\b",
        r"<link\b",
        r"<style\b",
        r"<meta\b",
        r"<svg\b",
        r"javascript\s*:",
        r"vbscript\s*:",
        r"data\s*:\s*text/html",
        r"\bon\w+\s*=",
        r"\balert\s*\(",
        r"\beval\s*\(",
        r"\bdocument\b",
        r"\bwindow\b",
    )
)


def detect_threats(content: str) -> List[str]:
    """Return the dangerous patterns found in the decoded content."""
    if not content or not isinstance(content, str):
        return []

    decoded = decode_input(content)
    return [pattern.pattern for pattern in DANGEROUS_PATTERNS if pattern.search(decoded)]


def is_safe_content(content: str) -> bool:
    """
    Check whether content still looks executable after decoding.

    Advisory only: used by tests and as an assertion before a value is
    placed into an HTML template.
    """
    return not detect_threats(content)
