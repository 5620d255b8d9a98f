# tests/test_field_sanitizers.py
import time

import pytest
from pydantic import ValidationError

from cvbuilder.core.config import settings
from cvbuilder.core.security import is_safe_content
from cvbuilder.models.sanitization import SanitizationOptions, plain_text, rich_text
from cvbuilder.services.field_sanitizers import (
    FieldKind,
    sanitize_email,
    sanitize_field,
    sanitize_file_path,
    sanitize_phone,
    sanitize_text,
    sanitize_url,
)


class TestSanitizeText:
    """Test the free-text pipeline"""

    @pytest.mark.parametrize("value", [None, "", 42, ["<b>"], {"a": 1}])
    def test_non_string_or_empty_yields_empty(self, value):
        assert sanitize_text(value) == ""

    def test_escapes_markup(self):
        assert sanitize_text("Tom & Jerry <3") == "Tom &amp; Jerry &lt;3"

    def test_collapses_whitespace(self):
        assert sanitize_text("  Hello \n\t World  ") == "Hello World"

    def test_keeps_whitespace_when_asked(self):
        options = SanitizationOptions(strip_whitespace=False)
        assert sanitize_text("  a  b ", options) == "  a  b "

    def test_removes_null_bytes(self):
        assert sanitize_text("hello\x00world") == "helloworld"

    def test_plain_text_payloads_are_neutralized(self, xss_payload):
        sanitized = sanitize_text(xss_payload)

        assert is_safe_content(sanitized)
        assert "<" not in sanitized
        assert "javascript:" not in sanitized.lower()

    def test_rich_text_payloads_are_neutralized(self, xss_payload):
        sanitized = sanitize_text(xss_payload, rich_text())

        assert is_safe_content(sanitized)
        assert "<script" not in sanitized.lower()

    def test_rich_text_keeps_formatting(self):
        html = '<p onclick="x">Hi <b>there</b>, <strong>you</strong></p><script>x</script>'
        assert sanitize_text(html, rich_text()) == "<p>Hi there, <strong>you</strong></p>"

    def test_entity_encoded_script_removed(self):
        assert sanitize_text("Hi &#60;script&#62;alert(1)&#60;/script&#62;there") == "Hi there"

    @pytest.mark.parametrize("value", [
        "Tom & Jerry <b>\"quoted\"</b> it's a/b",
        "Senior Engineer @ Acme (2020-2024)",
        '<img src="x" onerror="alert(1)">',
        '"><script>alert("XSS")</script>',
    ])
    def test_sanitizing_twice_changes_nothing(self, value):
        once = sanitize_text(value)
        assert sanitize_text(once) == once

    @pytest.mark.parametrize("max_length", [1, 5, 10, 37])
    @pytest.mark.parametrize("value", [
        "a&b" * 50,
        "<<<<>>>>" * 20,
        "<p>" + "word " * 100 + "</p>",
        '"\'/' * 40,
    ])
    def test_output_never_exceeds_max_length(self, value, max_length):
        assert len(sanitize_text(value, plain_text(max_length))) <= max_length
        assert len(sanitize_text(value, rich_text(max_length))) <= max_length

    def test_truncation_does_not_split_entities(self):
        assert sanitize_text("a&b" * 50, plain_text(10)) == "a&amp;ba"

    @pytest.mark.parametrize("max_length", [20, 40, 55])
    def test_rich_text_truncation_keeps_tags_balanced(self, max_length):
        value = "<p><strong>" + "a" * 60 + "</strong></p>"
        sanitized = sanitize_text(value, rich_text(max_length))

        assert len(sanitized) <= max_length
        assert sanitized.count("<strong>") == sanitized.count("</strong>")
        assert sanitized.count("<p>") == sanitized.count("</p>")

    def test_rich_text_fitting_keeps_markup(self):
        sanitized = sanitize_text("<strong>" + "a" * 60 + "</strong>", rich_text(40))
        assert sanitized == "<strong>" + "a" * 23 + "</strong>"

    def test_raw_input_capped_before_decoding(self, monkeypatch):
        monkeypatch.setattr(settings, "SANITIZER_MAX_INPUT_LENGTH", 10)
        assert sanitize_text("a" * 50) == "a" * 10

    def test_large_hostile_input_is_fast(self):
        started = time.perf_counter()
        sanitized = sanitize_text("<script" * 20000)

        assert time.perf_counter() - started < 1.0
        assert sanitized == ""

    def test_nested_encoding_single_pass(self):
        """One decode round leaves a doubly encoded payload as inert literal text"""
        payload = "&#37;3Cscript&#37;3Ealert(1)&#37;3C/script&#37;3E"
        sanitized = sanitize_text(payload)

        assert "<" not in sanitized
        assert sanitized.startswith("%3Cscript%3Ealert(1)")

    def test_nested_encoding_fixed_point(self, monkeypatch):
        monkeypatch.setattr(settings, "SANITIZER_DECODE_PASSES", 3)
        payload = "&#37;3Cscript&#37;3Ealert(1)&#37;3C/script&#37;3E"

        assert sanitize_text(payload) == ""


class TestSanitizeEmail:
    """Test email normalization and rejection"""

    def test_valid_address_is_lowercased(self):
        assert sanitize_email("user@example.com") == "user@example.com"
        assert sanitize_email("User@Example.COM") == "user@example.com"

    def test_surrounding_whitespace_trimmed(self):
        assert sanitize_email("  user@example.com ") == "user@example.com"

    @pytest.mark.parametrize("value", [
        "<script>alert(1)</script>@x.com",
        "user@example.com<script>",
        "not-an-email",
        "a b@c.com",
        "user@localhost",
        "o'brien@example.com",
        None,
        "",
    ])
    def test_invalid_addresses_rejected(self, value):
        assert sanitize_email(value) == ""


class TestSanitizePhone:
    """Test phone number filtering"""

    def test_keeps_phone_characters(self):
        assert sanitize_phone(" +1 (555) 010-0200 ") == "+1 (555) 010-0200"

    def test_drops_everything_else(self):
        assert sanitize_phone("+49 30<script>123</script>") == "+49 30123"

    def test_non_string(self):
        assert sanitize_phone(5550100) == ""


class TestSanitizeUrl:
    """Test http(s) URL allow-listing"""

    def test_accepts_https(self):
        assert sanitize_url("https://example.com/a") == "https://example.com/a"

    def test_trims_whitespace(self):
        assert sanitize_url("  https://example.com/a  ") == "https://example.com/a"

    def test_bare_domain_gets_root_path(self):
        assert sanitize_url("https://example.com") == "https://example.com/"

    @pytest.mark.parametrize("value", [
        "javascript:alert(1)",
        "JavaScript:alert(1)",
        "data:text/html,<script>alert(1)</script>",
        "vbscript:msgbox",
        "ftp://example.com/file",
        "example.com",
        "//example.com",
        None,
    ])
    def test_rejects_other_schemes(self, value):
        assert sanitize_url(value) == ""


class TestSanitizeFilePath:
    """Test filename reduction"""

    def test_removes_traversal(self):
        assert sanitize_file_path("../../etc/passwd") == "etcpasswd"

    def test_removes_separators_and_spaces(self):
        assert sanitize_file_path("my cv\\final.pdf") == "mycvfinal.pdf"

    def test_collapses_dot_runs(self):
        assert sanitize_file_path("a...b") == "a.b"
        assert ".." not in sanitize_file_path("....//....//x")

    def test_keeps_safe_names(self):
        assert sanitize_file_path("Jane_Doe-CV.v2.pdf") == "Jane_Doe-CV.v2.pdf"


class TestFieldDispatch:
    """Test the field-kind dispatch table"""

    def test_dispatches_by_kind(self):
        assert sanitize_field(FieldKind.TEXT, "<b>", plain_text()) == "&lt;b&gt;"
        assert sanitize_field(FieldKind.EMAIL, "A@B.com") == "a@b.com"
        assert sanitize_field(FieldKind.PHONE, "555-0100x") == "555-0100"
        assert sanitize_field(FieldKind.URL, "javascript:x") == ""
        assert sanitize_field(FieldKind.FILE_PATH, "../x") == "x"

    def test_every_kind_has_a_sanitizer(self):
        for kind in FieldKind:
            assert sanitize_field(kind, None) == ""


class TestSanitizationOptions:
    """Test option model validation"""

    def test_tag_names_lowercased(self):
        options = SanitizationOptions(allowed_tags=["P", "Br"], allowed_attributes={"A": ["HREF"]})

        assert options.allowed_tags == frozenset({"p", "br"})
        assert options.allowed_attributes == {"a": frozenset({"href"})}

    def test_max_length_must_be_positive(self):
        with pytest.raises(ValidationError):
            SanitizationOptions(max_length=0)

    def test_options_are_frozen(self):
        with pytest.raises(ValidationError):
            plain_text(10).max_length = 20
