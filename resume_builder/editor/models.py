from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from resume_builder.core.config import settings


class BorderStyles:
    SQUARE = "square"
    CIRCLE = "circle"
    SQUIRCLE = "squircle"

    ALL = (SQUARE, CIRCLE, SQUIRCLE)


def clean_optional_str(value: Any) -> Any:
    """Trim strings and turn empty ones into None."""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def clean_iso_date(value: Any) -> Optional[str]:
    value = clean_optional_str(value)
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return date.fromisoformat(str(value)).isoformat()
    except ValueError:
        raise ValueError("Must be a date in YYYY-MM-DD format")


FileDescriptor = Tuple[str, int, str, int]


class PhotoFile(BaseModel):
    """An uploaded, not yet persisted photo."""

    name: str
    size: int
    content_type: str
    last_modified: int = 0  # ms since epoch, as reported by the browser
    data: bytes = Field(default=b"", repr=False)

    @field_validator("content_type")
    @classmethod
    def must_be_image(cls, v: str) -> str:
        if not (v or "").lower().startswith("image/"):
            raise ValueError("Must be an image file")
        return v.lower()

    @field_validator("size")
    @classmethod
    def max_size(cls, v: int) -> int:
        if v > settings.PHOTO_MAX_BYTES:
            raise ValueError(f"File must be less than {settings.PHOTO_MAX_BYTES // (1024 * 1024)}MB")
        return v

    def descriptor(self) -> FileDescriptor:
        return (self.name, self.size, self.content_type, self.last_modified)


Photo = Union[PhotoFile, str, None]


def photo_descriptor(photo: Photo) -> Union[FileDescriptor, str, None]:
    """Comparable stand-in for a photo that never touches the raw bytes."""
    if isinstance(photo, PhotoFile):
        return photo.descriptor()
    return photo


class WorkExperience(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    position: Optional[str] = None
    company: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    description: Optional[str] = None

    @field_validator("position", "company", "description", mode="before")
    @classmethod
    def clean_text(cls, v: Any) -> Any:
        return clean_optional_str(v)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def clean_dates(cls, v: Any) -> Optional[str]:
        return clean_iso_date(v)

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in type(self).model_fields)


class Education(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    degree: Optional[str] = None
    school: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @field_validator("degree", "school", mode="before")
    @classmethod
    def clean_text(cls, v: Any) -> Any:
        return clean_optional_str(v)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def clean_dates(cls, v: Any) -> Optional[str]:
        return clean_iso_date(v)

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in type(self).model_fields)


def clean_skills(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    skills: List[str] = []
    for skill in value:
        if skill is None:
            continue
        skill = str(skill).strip()
        if skill and skill not in skills:
            skills.append(skill)
    return skills


class ResumeDraft(BaseModel):
    """The client-held, possibly unsaved resume."""

    model_config = ConfigDict(validate_assignment=True)

    id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    photo: Photo = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    job_title: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    work_experiences: List[WorkExperience] = Field(default_factory=list)
    educations: List[Education] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    color_hex: Optional[str] = None
    border_style: Optional[str] = None
    summary: Optional[str] = None

    @field_validator(
        "title", "description", "first_name", "last_name", "job_title", "city", "country",
        "phone", "email", "color_hex", "border_style", "summary",
        mode="before",
    )
    @classmethod
    def clean_text(cls, v: Any) -> Any:
        return clean_optional_str(v)

    @field_validator("photo", mode="before")
    @classmethod
    def clean_photo(cls, v: Any) -> Any:
        return clean_optional_str(v)

    @field_validator("skills", mode="before")
    @classmethod
    def clean_skill_list(cls, v: Any) -> List[str]:
        return clean_skills(v)


def draft_snapshot(draft: ResumeDraft) -> dict:
    """Plain comparable form of a draft: photo as descriptor, id left out."""
    data = draft.model_dump(exclude={"id", "photo"})
    data["photo"] = photo_descriptor(draft.photo)
    return data


def drafts_equal(a: Optional[ResumeDraft], b: Optional[ResumeDraft]) -> bool:
    if a is None or b is None:
        return a is b
    return draft_snapshot(a) == draft_snapshot(b)


class SavedResume(BaseModel):
    """Server-side projection of a persisted resume."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: int
    title: Optional[str] = None
    description: Optional[str] = None
    photo_url: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    job_title: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    work_experiences: List[WorkExperience] = Field(default_factory=list)
    educations: List[Education] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    color_hex: Optional[str] = None
    border_style: Optional[str] = None
    summary: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def was_updated(self) -> bool:
        return self.updated_at is not None and self.updated_at != self.created_at

    def to_draft(self) -> ResumeDraft:
        data = self.model_dump(exclude={"user_id", "photo_url", "created_at", "updated_at"})
        data["photo"] = self.photo_url
        return ResumeDraft.model_validate(data)
