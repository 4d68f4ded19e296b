"""
Persistence of resumes: the store behind autosave and the list view.

``save_resume`` creates when the payload has no id and updates otherwise;
children (work experiences, educations) are replaced wholesale. The ``photo``
key of a payload follows the autosave contract: absent means "unchanged",
``None`` means "remove", a ``PhotoFile`` means "replace".
"""

import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resume_builder.core.blob import LocalBlobStore, get_blob_store, normalize_photo, photo_blob_name
from resume_builder.core.db import AsyncSessionLocal
from resume_builder.core.exceptions import NotAuthenticatedError, ResumeNotFoundError
from resume_builder.core.models.resume import Education, Resume, WorkExperience
from resume_builder.editor.models import PhotoFile, ResumeDraft, SavedResume

logger = logging.getLogger(__name__)

DEFAULT_COLOR_HEX = "#000000"
DEFAULT_BORDER_STYLE = "squircle"

_SCALAR_FIELDS = (
    "title", "description", "first_name", "last_name", "job_title",
    "city", "country", "phone", "email", "summary",
)


def _to_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


async def _find_owned(session: AsyncSession, user_id: int, resume_id: str) -> Optional[Resume]:
    result = await session.execute(select(Resume).where(Resume.id == resume_id, Resume.user_id == user_id))
    return result.scalar_one_or_none()


async def get_resume(session: AsyncSession, user_id: int, resume_id: str) -> SavedResume:
    resume = await _find_owned(session, user_id, resume_id)
    if not resume:
        raise ResumeNotFoundError()
    return SavedResume.model_validate(resume)


async def list_resumes(session: AsyncSession, user_id: int) -> List[SavedResume]:
    result = await session.execute(
        select(Resume).where(Resume.user_id == user_id).order_by(Resume.updated_at.desc())
    )
    return [SavedResume.model_validate(r) for r in result.scalars().all()]


async def save_resume(
    session: AsyncSession,
    user_id: Optional[int],
    payload: dict,
    blobs: LocalBlobStore = None,
) -> SavedResume:
    if not user_id:
        raise NotAuthenticatedError()
    blobs = blobs or get_blob_store()

    resume_id = payload.get("id")
    values = ResumeDraft.model_validate({k: v for k, v in payload.items() if k != "photo"})

    existing = await _find_owned(session, user_id, resume_id) if resume_id else None
    if resume_id and not existing:
        raise ResumeNotFoundError()

    # Photo lifecycle: the new blob is written before the row points at it,
    # the old one is deleted only once the row no longer does
    old_photo_url = existing.photo_url if existing else None
    new_photo_url = old_photo_url
    written_url: Optional[str] = None
    if "photo" in payload:
        photo = payload["photo"]
        if isinstance(photo, dict):
            photo = PhotoFile.model_validate(photo)
        if isinstance(photo, PhotoFile):
            data = normalize_photo(photo.data)
            written_url = await blobs.put(photo_blob_name(), data)
            new_photo_url = written_url
        elif photo is None:
            new_photo_url = None
        # a plain URL string is the already stored photo; leave it as is

    try:
        resume = await _store(session, existing, user_id, values, new_photo_url)
    except Exception:
        await session.rollback()
        if written_url:
            await blobs.delete(written_url)
        raise

    if old_photo_url and old_photo_url != new_photo_url:
        await blobs.delete(old_photo_url)
    logger.info("%s resume %s for user %s", "Updated" if existing else "Created", resume.id, user_id)
    return SavedResume.model_validate(resume)


async def _store(
    session: AsyncSession,
    existing: Optional[Resume],
    user_id: int,
    values: ResumeDraft,
    photo_url: Optional[str],
) -> Resume:
    now = datetime.now(timezone.utc)
    resume = existing or Resume(user_id=user_id, created_at=now)
    for name in _SCALAR_FIELDS:
        setattr(resume, name, getattr(values, name))
    resume.skills = list(values.skills)
    resume.color_hex = values.color_hex or DEFAULT_COLOR_HEX
    resume.border_style = values.border_style or DEFAULT_BORDER_STYLE
    resume.photo_url = photo_url
    resume.updated_at = now
    resume.work_experiences = [
        WorkExperience(
            position_index=i,
            position=exp.position,
            company=exp.company,
            start_date=_to_date(exp.start_date),
            end_date=_to_date(exp.end_date),
            description=exp.description,
        )
        for i, exp in enumerate(values.work_experiences)
    ]
    resume.educations = [
        Education(
            position_index=i,
            degree=edu.degree,
            school=edu.school,
            start_date=_to_date(edu.start_date),
            end_date=_to_date(edu.end_date),
        )
        for i, edu in enumerate(values.educations)
    ]
    if not existing:
        session.add(resume)
    await session.commit()
    await session.refresh(resume)
    return resume


async def delete_resume(
    session: AsyncSession,
    user_id: Optional[int],
    resume_id: str,
    blobs: LocalBlobStore = None,
) -> None:
    if not user_id:
        raise NotAuthenticatedError()
    blobs = blobs or get_blob_store()

    resume = await _find_owned(session, user_id, resume_id)
    if not resume:
        raise ResumeNotFoundError()
    if resume.photo_url:
        await blobs.delete(resume.photo_url)
    await session.delete(resume)
    await session.commit()
    logger.info("Deleted resume %s for user %s", resume_id, user_id)


def resume_saver(user_id: int, blobs: LocalBlobStore = None, session_factory=AsyncSessionLocal):
    """Bind the store to one user; the result is an autosave ``save`` function."""

    async def save(payload: dict) -> SavedResume:
        async with session_factory() as session:
            return await save_resume(session, user_id, payload, blobs)

    return save
