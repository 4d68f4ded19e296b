from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.ext.asyncio import AsyncSession

from resume_builder.core.db import get_session
from resume_builder.core.models.user import User
from resume_builder.core.security import current_user, login_url
from resume_builder.editor.preview import render_preview
from resume_builder.services.resumes import delete_resume, get_resume, list_resumes

router = APIRouter()

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

# Thumbnail width of a preview card on the list page
CARD_PREVIEW_WIDTH = 200


def _format_date(value) -> str:
    return f"{value:%b %d, %Y %I:%M %p}" if value else ""


@router.get("/resumes", response_class=HTMLResponse)
async def resumes_list(request: Request, session: AsyncSession = Depends(get_session)):
    user: Optional[User] = current_user(request)
    if not user:
        return RedirectResponse(url=login_url(request), status_code=302)

    resumes = await list_resumes(session, user.id)
    cards = [
        {
            "resume": r,
            "preview_html": render_preview(r.to_draft(), CARD_PREVIEW_WIDTH, element_id=f"resumePreview-{r.id}"),
            "date_label": "Updated on" if r.was_updated else "Created on",
            "date": _format_date(r.updated_at if r.was_updated else r.created_at),
        }
        for r in resumes
    ]
    ctx = {
        "request": request,
        "title": "Your resumes",
        "cards": cards,
        "total": len(resumes),
    }
    return templates.TemplateResponse(request, "resumes.html", ctx)


@router.get("/resumes/{resume_id}/delete", response_class=HTMLResponse)
async def resume_delete_confirm(request: Request, resume_id: str, session: AsyncSession = Depends(get_session)):
    user: Optional[User] = current_user(request)
    if not user:
        return RedirectResponse(url=login_url(request), status_code=302)
    resume = await get_resume(session, user.id, resume_id)
    ctx = {
        "request": request,
        "title": "Delete resume?",
        "resume": resume,
    }
    return templates.TemplateResponse(request, "resume_delete.html", ctx)


@router.post("/resumes/{resume_id}/delete")
async def resume_delete(
    request: Request,
    resume_id: str,
    confirm: str = Form(default=""),
    session: AsyncSession = Depends(get_session),
):
    user: Optional[User] = current_user(request)
    if not user:
        return RedirectResponse(url=login_url(request), status_code=302)
    if confirm != "yes":
        raise HTTPException(status_code=400, detail="Deletion must be confirmed.")
    await delete_resume(session, user.id, resume_id)
    return RedirectResponse(url="/resumes", status_code=303)


@router.get("/resumes/{resume_id}/print", response_class=HTMLResponse)
async def resume_print(request: Request, resume_id: str, session: AsyncSession = Depends(get_session)):
    user: Optional[User] = current_user(request)
    if not user:
        return RedirectResponse(url=login_url(request), status_code=302)
    resume = await get_resume(session, user.id, resume_id)
    ctx = {
        "request": request,
        "title": resume.title or "Resume",
        "resume": resume,
        "preview_html": render_preview(resume.to_draft(), element_id="resumePrint"),
    }
    return templates.TemplateResponse(request, "resume_print.html", ctx)
