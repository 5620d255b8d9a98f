# cvbuilder/models/__init__.py
from .cv import (
    CVRecord,
    CertificationEntry,
    EducationEntry,
    ExperienceEntry,
    PersonalInfo,
    ProjectEntry,
    ValidationResult,
)
from .sanitization import PLAIN_TEXT, RICH_TEXT_TAGS, SanitizationOptions, plain_text, rich_text
from .user import UserRegistration

__all__ = [
    "CVRecord",
    "CertificationEntry",
    "EducationEntry",
    "ExperienceEntry",
    "PersonalInfo",
    "ProjectEntry",
    "ValidationResult",
    "PLAIN_TEXT",
    "RICH_TEXT_TAGS",
    "SanitizationOptions",
    "plain_text",
    "rich_text",
    "UserRegistration",
]
