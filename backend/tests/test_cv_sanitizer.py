# tests/test_cv_sanitizer.py
import pytest

from cvbuilder.core.security import is_safe_content
from cvbuilder.models.cv import CVRecord
from cvbuilder.services.cv_sanitizer import CV_SCHEMA, FieldSpec, ListSpec, sanitize_cv_data, sanitize_node
from cvbuilder.services.field_sanitizers import FieldKind


def _walk_strings(value):
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from _walk_strings(item)
    elif isinstance(value, list):
        for item in value:
            yield from _walk_strings(item)


class TestStructuralCompleteness:
    """Test that every field is always present"""

    @pytest.mark.parametrize("data", [{}, None, [], "cv", 42])
    def test_empty_or_wrong_type_yields_defaults(self, data):
        dumped = sanitize_cv_data(data).model_dump(by_alias=True)

        assert dumped == {
            "title": "",
            "personalInfo": {
                "name": "",
                "email": "",
                "phone": "",
                "location": "",
                "linkedin": "",
                "github": "",
            },
            "summary": "",
            "experience": [],
            "education": [],
            "skills": [],
            "projects": [],
            "certifications": [],
        }

    def test_wrong_typed_sections_replaced(self):
        record = sanitize_cv_data({
            "personalInfo": "Jane",
            "experience": {"position": "x"},
            "skills": "Python",
            "projects": [{"technologies": "Go"}],
        })

        assert record.personal_info.name == ""
        assert record.experience == []
        assert record.skills == []
        assert record.projects[0].technologies == []

    def test_non_object_entries_become_blank_entries(self):
        record = sanitize_cv_data({"experience": ["oops", None]})

        assert len(record.experience) == 2
        assert record.experience[0].position == ""

    def test_unknown_keys_dropped(self):
        record = sanitize_cv_data({"title": "CV", "isAdmin": True, "personalInfo": {"ssn": "1"}})
        assert "isAdmin" not in record.model_dump(by_alias=True)
        assert "ssn" not in record.personal_info.model_dump()

    def test_returns_record(self, sample_cv):
        assert isinstance(sanitize_cv_data(sample_cv), CVRecord)


class TestFieldRouting:
    """Test that each field goes through the right sanitizer"""

    def test_benign_cv_preserved(self, sample_cv):
        record = sanitize_cv_data(sample_cv)

        assert record.title == "Backend Engineer"
        assert record.personal_info.email == "jane.doe@example.com"
        assert record.personal_info.phone == "+1 (555) 010-0200"
        assert record.personal_info.linkedin == "https://www.linkedin.com/in/janedoe"
        assert record.summary == "<p>Engineer focused on <strong>reliable</strong> APIs.</p>"
        assert record.experience[0].company == "Acme &amp; Sons"
        assert record.experience[0].description == "<ul><li>Led the billing rewrite</li></ul>"
        assert record.projects[0].technologies == ["Python", "SQLAlchemy"]
        assert record.certifications[0].url == "https://www.cncf.io/certification/cka/"

    def test_plain_fields_escape_formatting(self):
        record = sanitize_cv_data({"title": "<strong>Lead</strong>", "summary": "<strong>Lead</strong>"})

        assert record.title == "&lt;strong&gt;Lead&lt;&#x2F;strong&gt;"
        assert record.summary == "<strong>Lead</strong>"

    def test_script_and_handler_removed(self):
        record = sanitize_cv_data({
            "title": "CV <script>alert(1)</script>",
            "personalInfo": {"name": "A<img src=x onerror=alert(1)>B", "email": "a@b.com"},
        })

        assert "<script" not in record.title
        assert "onerror=" not in record.personal_info.name
        assert record.personal_info.email == "a@b.com"

    def test_javascript_linkedin_cleared(self):
        record = sanitize_cv_data({"personalInfo": {"linkedin": "javascript:alert(1)"}})
        assert record.personal_info.linkedin == ""

    def test_skills_blank_entries_dropped(self):
        record = sanitize_cv_data({"skills": ["Go", "", "  ", "Rust<script>"]})

        assert record.skills[0] == "Go"
        assert len(record.skills) == 2
        assert record.skills[1].startswith("Rust")
        assert "<script" not in record.skills[1]

    def test_non_string_skills_dropped(self):
        record = sanitize_cv_data({"skills": ["SQL", 3, None, {"name": "x"}]})
        assert record.skills == ["SQL"]

    def test_technologies_capped_and_filtered(self):
        record = sanitize_cv_data({"projects": [{"technologies": ["x" * 80, "", "Go"]}]})

        assert record.projects[0].technologies == ["x" * 50, "Go"]

    def test_field_length_limits(self):
        record = sanitize_cv_data({
            "title": "t" * 500,
            "personalInfo": {"name": "n" * 500},
            "summary": "s" * 5000,
            "education": [{"year": "y" * 80}],
        })

        assert len(record.title) == 200
        assert len(record.personal_info.name) == 100
        assert len(record.summary) == 2000
        assert len(record.education[0].year) == 50

    def test_payload_in_every_field_is_neutralized(self, xss_payload, sample_cv):
        data = {
            "title": xss_payload,
            "personalInfo": {key: xss_payload for key in sample_cv["personalInfo"]},
            "summary": xss_payload,
            "experience": [{key: xss_payload for key in sample_cv["experience"][0]}],
            "education": [{key: xss_payload for key in sample_cv["education"][0]}],
            "skills": [xss_payload],
            "projects": [{
                "name": xss_payload,
                "description": xss_payload,
                "technologies": [xss_payload],
                "url": xss_payload,
            }],
            "certifications": [{key: xss_payload for key in sample_cv["certifications"][0]}],
        }

        dumped = sanitize_cv_data(data).model_dump(by_alias=True)

        for value in _walk_strings(dumped):
            assert is_safe_content(value), value


class TestSchemaFold:
    """Test the descriptor-driven fold directly"""

    def test_field_descriptor(self):
        assert sanitize_node(FieldSpec(FieldKind.URL), "javascript:x") == ""

    def test_list_descriptor_accepts_tuples(self):
        spec = ListSpec(FieldSpec(FieldKind.PHONE), drop_empty=True)
        assert sanitize_node(spec, ("555", "abc")) == ["555"]

    def test_object_descriptor(self):
        spec = {"a": FieldSpec(FieldKind.EMAIL), "b": ListSpec(FieldSpec(FieldKind.TEXT))}
        assert sanitize_node(spec, {"a": "X@Y.io"}) == {"a": "x@y.io", "b": []}

    def test_schema_covers_record_fields(self):
        assert set(CV_SCHEMA) == {field.alias or name for name, field in CVRecord.model_fields.items()}
