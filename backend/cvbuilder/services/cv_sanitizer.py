# cvbuilder/services/cv_sanitizer.py
"""
Structural sanitizer for CV request bodies.

The CV shape is described once, in CV_SCHEMA, as a tree of field
descriptors. sanitize_cv_data folds that tree over whatever the client sent:
each leaf goes through exactly one field sanitizer, missing or wrong-typed
values become "" / [] and the result is always a complete CVRecord.
"""
import logging
from typing import Any, Dict, NamedTuple, Optional, Union

from cvbuilder.models.cv import CVRecord
from cvbuilder.models.sanitization import SanitizationOptions, plain_text, rich_text
from cvbuilder.services.field_sanitizers import FieldKind, sanitize_field

logger = logging.getLogger(__name__)


class FieldSpec(NamedTuple):
    """A leaf: which sanitizer to run and with what options."""
    kind: FieldKind
    options: Optional[SanitizationOptions] = None


class ListSpec(NamedTuple):
    """An array whose elements all follow the same descriptor."""
    item: "Spec"
    drop_empty: bool = False


# A dict maps object keys to the descriptor of each value
Spec = Union[FieldSpec, ListSpec, Dict[str, Any]]


def text(max_length: int) -> FieldSpec:
    return FieldSpec(FieldKind.TEXT, plain_text(max_length))


def rich(max_length: int) -> FieldSpec:
    return FieldSpec(FieldKind.TEXT, rich_text(max_length))


EMAIL = FieldSpec(FieldKind.EMAIL)
PHONE = FieldSpec(FieldKind.PHONE)
URL = FieldSpec(FieldKind.URL)


CV_SCHEMA: Dict[str, Spec] = {
    "title": text(200),
    "personalInfo": {
        "name": text(100),
        "email": EMAIL,
        "phone": PHONE,
        "location": text(200),
        "linkedin": URL,
        "github": URL,
    },
    "summary": rich(2000),
    "experience": ListSpec({
        "position": text(200),
        "company": text(200),
        "duration": text(100),
        "description": rich(1000),
    }),
    "education": ListSpec({
        "degree": text(200),
        "institution": text(200),
        "year": text(50),
        "description": rich(1000),
    }),
    "skills": ListSpec(text(100), drop_empty=True),
    "projects": ListSpec({
        "name": text(200),
        "description": rich(1000),
        "technologies": ListSpec(text(50), drop_empty=True),
        "url": URL,
    }),
    "certifications": ListSpec({
        "name": text(200),
        "issuer": text(200),
        "date": text(50),
        "url": URL,
    }),
}


def sanitize_node(spec: Spec, value: Any) -> Any:
    """Sanitize value against a descriptor, substituting defaults for shape mismatches."""
    if isinstance(spec, FieldSpec):
        return sanitize_field(spec.kind, value, spec.options)

    if isinstance(spec, ListSpec):
        if not isinstance(value, (list, tuple)):
            return []
        items = [sanitize_node(spec.item, element) for element in value]
        if spec.drop_empty:
            items = [item for item in items if item]
        return items

    source = value if isinstance(value, dict) else {}
    return {key: sanitize_node(child, source.get(key)) for key, child in spec.items()}


def sanitize_cv_data(data: Any) -> CVRecord:
    """
    Sanitize a parsed CV request body.

    Args:
        data: Anything; normally the dict parsed from a JSON body

    Returns:
        CVRecord with every field populated. Never raises.
    """
    if not isinstance(data, dict):
        logger.debug(f"CV payload is {type(data).__name__}, not an object; using defaults")

    record = CVRecord.model_validate(sanitize_node(CV_SCHEMA, data))

    logger.debug(
        f"Sanitized CV with {len(record.experience)} experience, "
        f"{len(record.education)} education and {len(record.skills)} skill entries"
    )
    return record
