# cvbuilder/services/validation.py
"""
Request-level validation for CV and registration payloads.

Validation is separate from sanitization: required-field checks look at the
raw payload, so "never provided" and "provided but unusable" produce
different messages. Errors are returned as data, never raised.
"""
import logging
import re
from typing import Any, List

from cvbuilder.core.metrics import cv_validation_total
from cvbuilder.models.cv import ValidationResult
from cvbuilder.models.sanitization import plain_text
from cvbuilder.models.user import UserRegistration
from cvbuilder.services.cv_sanitizer import sanitize_cv_data
from cvbuilder.services.field_sanitizers import sanitize_email, sanitize_text

logger = logging.getLogger(__name__)

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def _is_present(value: Any) -> bool:
    """Presence as JSON clients mean it: an empty object or array is still there."""
    if isinstance(value, (dict, list)):
        return True
    return bool(value)


def _is_present_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def _invalid(errors: List[str]) -> ValidationResult:
    cv_validation_total.labels(result="invalid").inc()
    return ValidationResult(is_valid=False, errors=errors)


def validate_and_sanitize_cv_data(data: Any) -> ValidationResult:
    """
    Validate a CV payload and, if it is structurally sound, sanitize it.

    Checks run in a fixed order (title, personal info, name, email, array
    fields) and every failing check contributes one message.

    Args:
        data: Parsed request body

    Returns:
        ValidationResult; sanitized_data is set only when is_valid is True
    """
    if not isinstance(data, dict):
        return _invalid(["Invalid data format"])

    errors: List[str] = []

    if not _is_present_string(data.get("title")):
        errors.append("CV title is required and must be a string")

    personal_info = data.get("personalInfo")
    if not isinstance(personal_info, dict):
        errors.append("Personal information is required")
    else:
        if not _is_present_string(personal_info.get("name")):
            errors.append("Name is required and must be a string")
        if not _is_present_string(personal_info.get("email")):
            errors.append("Email is required and must be a string")

    for field, label in (("experience", "Experience"), ("education", "Education"), ("skills", "Skills")):
        if _is_present(data.get(field)) and not isinstance(data[field], list):
            errors.append(f"{label} must be an array")

    if errors:
        logger.info(f"CV validation failed with {len(errors)} error(s)")
        return _invalid(errors)

    record = sanitize_cv_data(data)

    # Provided, but nothing usable survived sanitization
    if not record.personal_info.email:
        return _invalid(["Email address is invalid"])

    cv_validation_total.labels(result="valid").inc()
    return ValidationResult(is_valid=True, errors=[], sanitized_data=record)


def validate_user_registration(data: Any) -> ValidationResult:
    """
    Validate and sanitize a registration payload (name, email, password).

    Returns:
        ValidationResult whose sanitized_data is a UserRegistration
    """
    if not isinstance(data, dict):
        return _invalid(["Invalid data format"])

    errors: List[str] = []

    name = data.get("name")
    if not _is_present_string(name):
        errors.append("Name is required and must be a string")
    elif len(name) < NAME_MIN_LENGTH:
        errors.append(f"Name must be at least {NAME_MIN_LENGTH} characters long")
    elif len(name) > NAME_MAX_LENGTH:
        errors.append(f"Name must be less than {NAME_MAX_LENGTH} characters long")

    email = data.get("email")
    if not _is_present_string(email):
        errors.append("Email is required and must be a string")
    elif not _EMAIL.match(email):
        errors.append("Invalid email format")

    password = data.get("password")
    if not _is_present_string(password):
        errors.append("Password is required and must be a string")
    elif len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    elif len(password) > PASSWORD_MAX_LENGTH:
        errors.append(f"Password must be less than {PASSWORD_MAX_LENGTH} characters long")

    if errors:
        return _invalid(errors)

    sanitized_email = sanitize_email(email)
    if not sanitized_email:
        return _invalid(["Invalid email format"])

    registration = UserRegistration(
        name=sanitize_text(name, plain_text(NAME_MAX_LENGTH)),
        email=sanitized_email,
        password=password,
    )

    cv_validation_total.labels(result="valid").inc()
    return ValidationResult(is_valid=True, errors=[], sanitized_data=registration)
