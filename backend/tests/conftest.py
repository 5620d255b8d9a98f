# tests/conftest.py
import re
from typing import Any, AsyncGenerator, Dict

import pytest
from httpx import ASGITransport, AsyncClient

from cvbuilder.main import app
from cvbuilder.middleware.rate_limit import InMemoryRateLimitStore, RateLimiter, get_rate_limiter


# Known XSS vectors: raw markup, event handlers, URI schemes and
# single-layer percent/entity encodings of the same.
XSS_PAYLOADS = [
    '<script>alert("XSS")</script>',
    '<img src="x" onerror="alert(\'XSS\')">',
    'javascript:alert("XSS")',
    '<svg onload="alert(\'XSS\')">',
    '<iframe src="javascript:alert(\'XSS\')"></iframe>',
    '<object data="javascript:alert(\'XSS\')"></object>',
    '<embed src="javascript:alert(\'XSS\')">',
    '<link rel="stylesheet" href="javascript:alert(\'XSS\')">',
    '<style>@import "javascript:alert(\'XSS\')"</style>',
    '<meta http-equiv="refresh" content="0;url=javascript:alert(\'XSS\')">',
    '<form><input type="submit" formaction="javascript:alert(\'XSS\')">',
    '<details open ontoggle="alert(\'XSS\')">',
    '<marquee onstart="alert(\'XSS\')">',
    '<video><source onerror="alert(\'XSS\')">',
    '<audio src="x" onerror="alert(\'XSS\')">',
    'data:text/html,<script>alert("XSS")</script>',
    '&#60;script&#62;alert("XSS")&#60;/script&#62;',
    '%3Cscript%3Ealert("XSS")%3C/script%3E',
    '"><script>alert("XSS")</script>',
    '\'-alert("XSS")-\'',
    '&lt;script&gt;alert("XSS")&lt;/script&gt;',
]

LIVE_SCRIPT = re.compile(r"<script", re.IGNORECASE)
LIVE_SCHEME = re.compile(r"javascript\s*:", re.IGNORECASE)
LIVE_HANDLER = re.compile(r"\son\w+\s*=", re.IGNORECASE)


def _assert_no_live_markup(html: str) -> None:
    assert not LIVE_SCRIPT.search(html), "unescaped <script in output"
    assert not LIVE_SCHEME.search(html), "active javascript: scheme in output"
    assert not LIVE_HANDLER.search(html), "event handler attribute in output"


@pytest.fixture
def assert_no_live_markup():
    """Checker that fails if rendered HTML contains anything a browser would execute."""
    return _assert_no_live_markup


@pytest.fixture(params=XSS_PAYLOADS, ids=range(len(XSS_PAYLOADS)))
def xss_payload(request) -> str:
    """Each payload of the XSS corpus in turn."""
    return request.param


@pytest.fixture
def sample_cv() -> Dict[str, Any]:
    """A complete, benign CV payload in wire (camelCase) form."""
    return {
        "title": "Backend Engineer",
        "personalInfo": {
            "name": "Jane Doe",
            "email": "Jane.Doe@Example.com",
            "phone": "+1 (555) 010-0200",
            "location": "Berlin, Germany",
            "linkedin": "https://www.linkedin.com/in/janedoe",
            "github": "https://github.com/janedoe"
        },
        "summary": "<p>Engineer focused on <strong>reliable</strong> APIs.</p>",
        "experience": [
            {
                "position": "Senior Engineer",
                "company": "Acme & Sons",
                "duration": "2020 - 2024",
                "description": "<ul><li>Led the billing rewrite</li></ul>"
            }
        ],
        "education": [
            {
                "degree": "BSc Computer Science",
                "institution": "TU Berlin",
                "year": "2016",
                "description": ""
            }
        ],
        "skills": ["Python", "PostgreSQL"],
        "projects": [
            {
                "name": "ledger",
                "description": "<p>Double-entry bookkeeping library</p>",
                "technologies": ["Python", "SQLAlchemy"],
                "url": "https://github.com/janedoe/ledger"
            }
        ],
        "certifications": [
            {
                "name": "CKA",
                "issuer": "CNCF",
                "date": "2023",
                "url": "https://www.cncf.io/certification/cka/"
            }
        ]
    }


@pytest.fixture
def rate_limiter() -> RateLimiter:
    """Enabled limiter with a private in-memory store."""
    return RateLimiter(InMemoryRateLimitStore(), enabled=True)


@pytest.fixture
async def test_client(rate_limiter) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with an isolated rate limiter."""
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
