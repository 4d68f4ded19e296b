import io
import logging
from functools import partial
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from resume_builder.core.db import get_session
from resume_builder.core.exceptions import EditorSessionNotFoundError
from resume_builder.core.models.user import User
from resume_builder.core.security import current_user, login_url, require_user_api
from resume_builder.editor.models import PhotoFile
from resume_builder.editor.preview import DESIGN_WIDTH_PX
from resume_builder.editor.session import EditorSession, get_editor_sessions
from resume_builder.editor.wizard import STEPS, NavigationState, PatchResult, next_border_style
from resume_builder.services.resumes import get_resume

logger = logging.getLogger(__name__)

router = APIRouter()

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


class PatchRequest(BaseModel):
    section: str
    values: Dict[str, Any] = Field(default_factory=dict)


def _step_url(session: EditorSession, key: str) -> str:
    navigation = NavigationState(step=key, resume_id=session.autosave.resume_id)
    return "/editor" + navigation.to_query(session=session.id)


def _patch_response(session: EditorSession, result: PatchResult, width: Optional[float]) -> dict:
    return {
        "applied": result.applied,
        "errors": result.errors,
        "preview": session.preview(DESIGN_WIDTH_PX if width is None else width),
        "status": session.status(),
        "next_border_style": next_border_style(session.draft.border_style),
    }


@router.get("/editor", response_class=HTMLResponse)
async def editor_page(
    request: Request,
    resumeId: Optional[str] = None,
    step: Optional[str] = None,
    session: Optional[str] = None,
    db: AsyncSession = Depends(get_session),
):
    user: Optional[User] = current_user(request)
    if not user:
        return RedirectResponse(url=login_url(request), status_code=302)

    registry = get_editor_sessions()
    editor: Optional[EditorSession] = None
    if session:
        try:
            editor = registry.get(session, user.id)
        except EditorSessionNotFoundError:
            logger.info("Editor session %s is gone; opening a new one", session)

    if editor is None:
        draft = None
        if resumeId:
            saved = await get_resume(db, user.id, resumeId)
            draft = saved.to_draft()
        editor = registry.create(user.id, draft, step)
        return RedirectResponse(url="/editor" + editor.location(), status_code=303)

    if step and step != editor.wizard.navigation.step:
        try:
            editor.wizard.set_step(step)
        except KeyError:
            pass
        return RedirectResponse(url="/editor" + editor.location(), status_code=303)

    wizard = editor.wizard
    ctx = {
        "request": request,
        "title": "Design your resume",
        "editor": editor,
        "draft": editor.draft,
        "steps": STEPS,
        "step_url": partial(_step_url, editor),
        "step": wizard.current_step,
        "previous_step": wizard.previous_step(),
        "next_step": wizard.next_step(),
        "next_border_style": next_border_style(editor.draft.border_style),
        "preview_html": editor.preview(),
        "summary_input": editor.draft.model_dump(include={"job_title", "work_experiences", "educations", "skills"}),
        "status": editor.status(),
    }
    return templates.TemplateResponse(request, "editor.html", ctx)


@router.post("/editor/{session_id}/patch")
async def patch_section(
    session_id: str,
    body: PatchRequest,
    width: Optional[float] = None,
    user: User = Depends(require_user_api),
):
    editor = get_editor_sessions().get(session_id, user.id)
    result = editor.wizard.apply_patch(body.section, body.values)
    return _patch_response(editor, result, width)


@router.post("/editor/{session_id}/photo")
async def upload_photo(
    session_id: str,
    file: UploadFile = File(...),
    last_modified: int = Form(default=0),
    width: Optional[float] = None,
    user: User = Depends(require_user_api),
):
    editor = get_editor_sessions().get(session_id, user.id)
    data = await file.read()
    try:
        photo = PhotoFile(
            name=file.filename or "photo",
            size=len(data),
            content_type=file.content_type or "",
            last_modified=last_modified,
            data=data,
        )
        # A declared image type is not enough; the bytes must decode
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except ValidationError as exc:
        errors = [{"loc": ["photo"], "msg": e["msg"]} for e in exc.errors()]
        return JSONResponse(_patch_response(editor, PatchResult(False, errors), width), status_code=422)
    except (UnidentifiedImageError, OSError):
        errors = [{"loc": ["photo"], "msg": "Must be an image file"}]
        return JSONResponse(_patch_response(editor, PatchResult(False, errors), width), status_code=422)

    editor.wizard.set_photo(photo)
    return _patch_response(editor, PatchResult(True), width)


@router.delete("/editor/{session_id}/photo")
async def remove_photo(
    session_id: str,
    width: Optional[float] = None,
    user: User = Depends(require_user_api),
):
    editor = get_editor_sessions().get(session_id, user.id)
    editor.wizard.set_photo(None)
    return _patch_response(editor, PatchResult(True), width)


@router.get("/editor/{session_id}/preview", response_class=HTMLResponse)
async def preview(
    session_id: str,
    width: Optional[float] = None,
    user: User = Depends(require_user_api),
):
    editor = get_editor_sessions().get(session_id, user.id)
    return HTMLResponse(editor.preview(DESIGN_WIDTH_PX if width is None else width))


@router.get("/editor/{session_id}/status")
async def status(session_id: str, user: User = Depends(require_user_api)):
    return get_editor_sessions().get(session_id, user.id).status()


@router.post("/editor/{session_id}/retry")
async def retry(session_id: str, user: User = Depends(require_user_api)):
    editor = get_editor_sessions().get(session_id, user.id)
    await editor.autosave.retry()
    return editor.status()


@router.post("/editor/{session_id}/close")
async def close(session_id: str, user: User = Depends(require_user_api)):
    editor = await get_editor_sessions().close(session_id, user.id)
    return {**editor.status(), "redirect": "/resumes"}
