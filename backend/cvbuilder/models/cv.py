# cvbuilder/models/cv.py
"""
Sanitized CV record models.

These describe the output of the structural sanitizer, not client input:
every field is always present and every string has already been sanitized.
Field names use snake_case in Python and the camelCase wire names as aliases.
"""
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from cvbuilder.models.user import UserRegistration


class _CVModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PersonalInfo(_CVModel):
    """Contact block at the top of a CV."""
    name: str = ""
    email: str = ""
    phone: str = ""
    location: str = ""
    linkedin: str = ""
    github: str = ""


class ExperienceEntry(_CVModel):
    """Single work experience entry."""
    position: str = ""
    company: str = ""
    duration: str = ""
    description: str = ""


class EducationEntry(_CVModel):
    """Single education entry."""
    degree: str = ""
    institution: str = ""
    year: str = ""
    description: str = ""


class ProjectEntry(_CVModel):
    """Single project entry."""
    name: str = ""
    description: str = ""
    technologies: List[str] = Field(default_factory=list)
    url: str = ""


class CertificationEntry(_CVModel):
    """Certification or license."""
    name: str = ""
    issuer: str = ""
    date: str = ""
    url: str = ""


class CVRecord(_CVModel):
    """
    A fully sanitized CV.

    ``model_dump(by_alias=True)`` yields the JSON shape handed to the
    persistence layer and the HTML renderer.
    """
    title: str = ""
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo, alias="personalInfo")
    summary: str = ""
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    projects: List[ProjectEntry] = Field(default_factory=list)
    certifications: List[CertificationEntry] = Field(default_factory=list)

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "title": "Backend Engineer",
                "personalInfo": {
                    "name": "Jane Doe",
                    "email": "jane@example.com",
                    "phone": "+1 555 0100",
                    "location": "Berlin",
                    "linkedin": "https://www.linkedin.com/in/janedoe",
                    "github": "https://github.com/janedoe"
                },
                "summary": "<p>Engineer focused on <strong>reliable</strong> APIs.</p>",
                "experience": [
                    {
                        "position": "Senior Engineer",
                        "company": "Acme",
                        "duration": "2020 - 2024",
                        "description": "<ul><li>Led the billing rewrite</li></ul>"
                    }
                ],
                "education": [],
                "skills": ["Python", "PostgreSQL"],
                "projects": [],
                "certifications": []
            }
        }
    )


class ValidationResult(BaseModel):
    """
    Outcome of validating and sanitizing a request body.

    Terminal report: instances are frozen once built.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_valid: bool = Field(..., alias="isValid")
    errors: List[str] = Field(default_factory=list)
    sanitized_data: Optional[Union[CVRecord, UserRegistration]] = Field(None, alias="sanitizedData")
