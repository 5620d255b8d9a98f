# cvbuilder/services/html_renderer.py
"""
HTML rendering service using Jinja2 templates.

Input is always a sanitized CVRecord. Text fields arrive already escaped (or
allow-list sanitized), so they are marked safe for the template; before
that, each one is checked with is_safe_content and anything that fails is
escaped a second time instead. URL fields are plain values and go through
Jinja2's autoescaping.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from cvbuilder.core.metrics import unsafe_template_values_total
from cvbuilder.core.security import detect_threats
from cvbuilder.models.cv import CVRecord

logger = logging.getLogger(__name__)


class CVRenderError(Exception):
    """Raised when a CV template cannot be rendered."""
    pass


class CVHTMLRenderer:
    """Service for rendering HTML from sanitized CV records using Jinja2 templates."""

    def __init__(self, template_dir: Optional[str] = None):
        """
        Initialize HTML renderer with template directory.

        Args:
            template_dir: Path to template directory. Defaults to cvbuilder/templates
        """
        if template_dir is None:
            package_dir = Path(__file__).parent.parent
            template_dir = str(package_dir / "templates")

        self.template_dir = template_dir

        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(['html', 'xml']),
            trim_blocks=True,
            lstrip_blocks=True
        )

        logger.info(f"HTML renderer initialized with template_dir={template_dir}")

    def _trusted(self, value: str, field: str) -> Union[Markup, str]:
        """Mark a sanitized value safe, or leave it to autoescaping if it looks live."""
        threats = detect_threats(value)
        if not threats:
            return Markup(value)

        unsafe_template_values_total.labels(field=field).inc()
        logger.warning(
            f"Field '{field}' failed the pre-template safety check; escaping it again",
            extra={"extra": {"field": field, "patterns": threats}}
        )
        return value

    def build_context(self, record: CVRecord) -> Dict[str, Any]:
        """Map a CVRecord onto the variables the template expects."""
        info = record.personal_info
        trusted = self._trusted

        return {
            "title": trusted(record.title or info.name or "CV", "title"),
            "personal": {
                "name": trusted(info.name, "personalInfo.name"),
                "email": trusted(info.email, "personalInfo.email"),
                "phone": info.phone,
                "location": trusted(info.location, "personalInfo.location"),
                "linkedin": info.linkedin,
                "github": info.github,
            },
            "summary": trusted(record.summary, "summary"),
            "experience": [
                {
                    "position": trusted(entry.position, "experience.position"),
                    "company": trusted(entry.company, "experience.company"),
                    "duration": trusted(entry.duration, "experience.duration"),
                    "description": trusted(entry.description, "experience.description"),
                }
                for entry in record.experience
            ],
            "education": [
                {
                    "degree": trusted(entry.degree, "education.degree"),
                    "institution": trusted(entry.institution, "education.institution"),
                    "year": trusted(entry.year, "education.year"),
                    "description": trusted(entry.description, "education.description"),
                }
                for entry in record.education
            ],
            "skills": [trusted(skill, "skills") for skill in record.skills],
            "projects": [
                {
                    "name": trusted(entry.name, "projects.name"),
                    "description": trusted(entry.description, "projects.description"),
                    "technologies": [trusted(tech, "projects.technologies") for tech in entry.technologies],
                    "url": entry.url,
                }
                for entry in record.projects
            ],
            "certifications": [
                {
                    "name": trusted(entry.name, "certifications.name"),
                    "issuer": trusted(entry.issuer, "certifications.issuer"),
                    "date": trusted(entry.date, "certifications.date"),
                    "url": entry.url,
                }
                for entry in record.certifications
            ],
        }

    def render_cv(self, record: CVRecord, template_name: str = "cv_template.html") -> str:
        """
        Render CV HTML from a sanitized record.

        Args:
            record: Output of sanitize_cv_data
            template_name: Template file name

        Returns:
            Rendered HTML string

        Raises:
            CVRenderError: If the template is missing or fails to render
        """
        try:
            template = self.env.get_template(template_name)
            html_content = template.render(**self.build_context(record))
        except Exception as e:
            logger.error(f"Failed to render HTML: {e}", exc_info=True)
            raise CVRenderError(f"HTML rendering failed: {str(e)}") from e

        logger.info(f"Rendered CV HTML (length={len(html_content)})")
        return html_content


def get_html_renderer() -> CVHTMLRenderer:
    """Get singleton HTML renderer instance."""
    if not hasattr(get_html_renderer, '_instance'):
        get_html_renderer._instance = CVHTMLRenderer()
    return get_html_renderer._instance
