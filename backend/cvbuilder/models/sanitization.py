# cvbuilder/models/sanitization.py
"""
Per-call sanitization options.
"""
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Formatting tags permitted in rich-text CV fields (summary, descriptions)
RICH_TEXT_TAGS: FrozenSet[str] = frozenset({"p", "br", "strong", "em", "ul", "ol", "li"})


class SanitizationOptions(BaseModel):
    """
    Options for a single sanitize_text call.

    Instances are frozen; derive variants with ``model_copy(update=...)``.
    """
    model_config = ConfigDict(frozen=True)

    allow_html: bool = Field(False, description="Keep allow-listed markup instead of escaping everything")
    allowed_tags: FrozenSet[str] = Field(default_factory=frozenset)
    allowed_attributes: Dict[str, FrozenSet[str]] = Field(default_factory=dict)
    max_length: Optional[int] = Field(None, gt=0, description="Cap on the sanitized output length")
    strip_whitespace: bool = Field(True, description="Trim and collapse whitespace runs")

    @field_validator('allowed_tags', mode='before')
    @classmethod
    def normalize_tags(cls, v):
        """Accept any iterable of tag names; compare case-insensitively."""
        return frozenset(tag.lower() for tag in (v or ()))

    @field_validator('allowed_attributes', mode='before')
    @classmethod
    def normalize_attributes(cls, v):
        """Lower-case tag and attribute names."""
        return {
            tag.lower(): frozenset(attr.lower() for attr in attrs)
            for tag, attrs in (v or {}).items()
        }


PLAIN_TEXT = SanitizationOptions()


def plain_text(max_length: Optional[int] = None) -> SanitizationOptions:
    """Options for a field that must never contain markup."""
    return SanitizationOptions(max_length=max_length)


def rich_text(max_length: Optional[int] = None) -> SanitizationOptions:
    """Options for a field that may keep the basic formatting tags."""
    return SanitizationOptions(allow_html=True, allowed_tags=RICH_TEXT_TAGS, max_length=max_length)
