# cvbuilder/services/cv_export.py
"""
CV to PDF export.

Rasterization itself is done by an external engine supplied by the caller
(headless browser, WeasyPrint, a remote service). This module owns only the
steps around it: sanitize, render HTML, hand the HTML to the engine, and
produce a filename that is safe to join onto a storage directory.
"""
import logging
import uuid
from typing import Any, NamedTuple, Optional, Protocol

from cvbuilder.core.security import decode_entities
from cvbuilder.models.cv import CVRecord
from cvbuilder.services.cv_sanitizer import sanitize_cv_data
from cvbuilder.services.field_sanitizers import sanitize_file_path
from cvbuilder.services.html_renderer import CVHTMLRenderer, get_html_renderer

logger = logging.getLogger(__name__)

FILENAME_MAX_LENGTH = 100


class PDFExportError(Exception):
    """Exception raised when PDF export fails."""
    pass


class PDFEngine(Protocol):
    """Anything that can turn an HTML document into PDF bytes."""

    async def render_pdf(self, html_content: str) -> bytes:
        ...


class ExportedPDF(NamedTuple):
    filename: str
    content: bytes
    html: str


def build_pdf_filename(title: str, cv_id: Optional[str] = None) -> str:
    """
    Build a download filename from a CV title.

    The title is reduced with sanitize_file_path, so the name carries no
    separators or traversal sequences. A random suffix keeps names unique.
    """
    base = sanitize_file_path(title.replace(" ", "-"))[:FILENAME_MAX_LENGTH].strip(".-") or "cv"
    suffix = sanitize_file_path(cv_id) if cv_id else uuid.uuid4().hex[:12]
    return f"{base}-{suffix}.pdf"


class CVExportService:
    """
    Renders CVs to PDF through an injected engine.

    Usage:
        service = CVExportService(engine)
        exported = await service.export_pdf(raw_body)
    """

    def __init__(self, engine: PDFEngine, renderer: Optional[CVHTMLRenderer] = None):
        self.engine = engine
        self.renderer = renderer or get_html_renderer()

    async def export_pdf(self, data: Any, cv_id: Optional[str] = None) -> ExportedPDF:
        """
        Sanitize, render and rasterize a CV.

        Args:
            data: A CVRecord, or a raw payload that will be sanitized first
            cv_id: Identifier used in the filename

        Returns:
            ExportedPDF with filename, PDF bytes and the HTML that was rendered

        Raises:
            PDFExportError: If rendering or rasterization fails
        """
        record = data if isinstance(data, CVRecord) else sanitize_cv_data(data)

        try:
            html_content = self.renderer.render_cv(record)
            pdf_bytes = await self.engine.render_pdf(html_content)
        except Exception as e:
            logger.error(f"PDF export failed: {e}", exc_info=True)
            raise PDFExportError(f"PDF export failed: {str(e)}") from e

        if not pdf_bytes:
            raise PDFExportError("PDF engine returned no content")

        filename = build_pdf_filename(decode_entities(record.title), cv_id)
        logger.info(f"Exported CV to PDF {filename} ({len(pdf_bytes)} bytes)")
        return ExportedPDF(filename=filename, content=pdf_bytes, html=html_content)
