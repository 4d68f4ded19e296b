"""
Validation schemas for the editor sections and the AI generation inputs.

Each section schema declares the slice of ``ResumeDraft`` its form edits.
Field names match the draft so a validated section can be applied onto the
draft field by field.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from resume_builder.editor.models import (
    BorderStyles,
    Education,
    WorkExperience,
    clean_optional_str,
    clean_skills,
)


class SectionValues(BaseModel):
    @field_validator("*", mode="before")
    @classmethod
    def clean_text(cls, v: Any) -> Any:
        return clean_optional_str(v)


class GeneralInfoValues(SectionValues):
    title: Optional[str] = None
    description: Optional[str] = None


class PersonalInfoValues(SectionValues):
    # The photo is set through the upload endpoint, never in a patch
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    job_title: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class WorkExperienceValues(BaseModel):
    work_experiences: List[WorkExperience] = Field(default_factory=list)


class EducationValues(BaseModel):
    educations: List[Education] = Field(default_factory=list)


class SkillsValues(BaseModel):
    skills: List[str] = Field(default_factory=list)

    @field_validator("skills", mode="before")
    @classmethod
    def split_skills(cls, v: Any) -> List[str]:
        return clean_skills(v)


class SummaryValues(SectionValues):
    summary: Optional[str] = None


class StyleValues(SectionValues):
    color_hex: Optional[str] = None
    border_style: Optional[str] = None

    @field_validator("color_hex")
    @classmethod
    def hex_color(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        digits = v[1:] if v.startswith("#") else v
        if len(digits) not in (3, 6) or any(c not in "0123456789abcdefABCDEF" for c in digits):
            raise ValueError("Must be a hex colour like #1a2b3c")
        return "#" + digits.lower()

    @field_validator("border_style")
    @classmethod
    def known_border_style(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in BorderStyles.ALL:
            raise ValueError(f"Must be one of: {', '.join(BorderStyles.ALL)}")
        return v


class GenerateWorkExperienceInput(BaseModel):
    description: str

    @field_validator("description", mode="before")
    @classmethod
    def long_enough(cls, v: Any) -> str:
        v = str(v or "").strip()
        if not v:
            raise ValueError("Required")
        if len(v) < 20:
            raise ValueError("Must be at least 20 characters")
        return v


class GenerateSummaryInput(BaseModel):
    job_title: Optional[str] = None
    work_experiences: List[WorkExperience] = Field(default_factory=list)
    educations: List[Education] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)

    @field_validator("job_title", mode="before")
    @classmethod
    def clean_title(cls, v: Any) -> Any:
        return clean_optional_str(v)

    @field_validator("skills", mode="before")
    @classmethod
    def split_skills(cls, v: Any) -> List[str]:
        return clean_skills(v)
