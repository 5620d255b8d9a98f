# cvbuilder/api/v1/sanitization_middleware.py
"""
Request dependencies that turn raw JSON bodies into sanitized records.

Route handlers depend on these instead of reading the body themselves, so
nothing downstream ever sees unsanitized client input.
"""
import asyncio
import json
import logging
from typing import Any

from fastapi import HTTPException, Request, status

from cvbuilder.models.cv import CVRecord
from cvbuilder.models.user import UserRegistration
from cvbuilder.services.validation import validate_and_sanitize_cv_data, validate_user_registration

logger = logging.getLogger(__name__)


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.info(f"Rejected malformed JSON body on {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid JSON body", "errors": ["Request body must be valid JSON"]}
        )


async def get_sanitized_cv(request: Request) -> CVRecord:
    """
    Validate and sanitize the CV in the request body.

    Raises:
        HTTPException: 400 with the list of validation errors
    """
    # Sanitizing is CPU bound, keep it off the event loop
    result = await asyncio.to_thread(validate_and_sanitize_cv_data, await _read_json(request))
    if not result.is_valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Validation failed", "errors": result.errors}
        )
    return result.sanitized_data


async def get_sanitized_registration(request: Request) -> UserRegistration:
    """Validate and sanitize a registration body (name, email, password)."""
    result = await asyncio.to_thread(validate_user_registration, await _read_json(request))
    if not result.is_valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Validation failed", "errors": result.errors}
        )
    return result.sanitized_data
