# cvbuilder/api/v1/cv.py
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import HTMLResponse
import logging

from cvbuilder.api.v1.sanitization_middleware import get_sanitized_cv
from cvbuilder.middleware.rate_limit import rate_limit
from cvbuilder.models.cv import CVRecord, ValidationResult
from cvbuilder.services.html_renderer import CVRenderError, get_html_renderer

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/cv/validate",
    response_model=ValidationResult,
    response_model_by_alias=True,
    dependencies=[Depends(rate_limit("cv_create"))]
)
async def validate_cv(record: CVRecord = Depends(get_sanitized_cv)):
    """
    Validate and sanitize a CV payload.

    Returns:
        ValidationResult with the sanitized CV. Invalid payloads get a 400
        whose detail lists every error.
    """
    return ValidationResult(is_valid=True, errors=[], sanitized_data=record)


@router.post(
    "/cv/preview",
    response_class=HTMLResponse,
    dependencies=[Depends(rate_limit("general"))]
)
async def preview_cv(record: CVRecord = Depends(get_sanitized_cv)):
    """Render a sanitized CV to HTML."""
    try:
        html_content = get_html_renderer().render_cv(record)
    except CVRenderError as e:
        logger.error(f"CV preview failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to render CV preview"
        )

    return HTMLResponse(content=html_content)
