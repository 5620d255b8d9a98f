# cvbuilder/services/__init__.py
from .field_sanitizers import (
    FIELD_SANITIZERS,
    FieldKind,
    sanitize_email,
    sanitize_field,
    sanitize_file_path,
    sanitize_phone,
    sanitize_text,
    sanitize_url,
)
from .cv_sanitizer import CV_SCHEMA, sanitize_cv_data
from .validation import validate_and_sanitize_cv_data, validate_user_registration
from .html_renderer import CVHTMLRenderer, CVRenderError, get_html_renderer
from .cv_export import CVExportService, PDFEngine, PDFExportError, build_pdf_filename

__all__ = [
    "FIELD_SANITIZERS",
    "FieldKind",
    "sanitize_email",
    "sanitize_field",
    "sanitize_file_path",
    "sanitize_phone",
    "sanitize_text",
    "sanitize_url",
    "CV_SCHEMA",
    "sanitize_cv_data",
    "validate_and_sanitize_cv_data",
    "validate_user_registration",
    "CVHTMLRenderer",
    "CVRenderError",
    "get_html_renderer",
    "CVExportService",
    "PDFEngine",
    "PDFExportError",
    "build_pdf_filename",
]
