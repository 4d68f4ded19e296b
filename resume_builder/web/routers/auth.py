from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resume_builder.core.config import settings
from resume_builder.core.db import get_session
from resume_builder.core.models.user import User
from resume_builder.core.security import (
    create_access_token,
    get_password_hash,
    verify_password,
)

router = APIRouter()

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def _safe_next(next_url: Optional[str]) -> str:
    # Only local paths; never bounce to another host
    if not next_url or not next_url.startswith("/") or next_url.startswith("//"):
        return "/resumes"
    return next_url


def _login_response(user: User, next_url: Optional[str]) -> RedirectResponse:
    token = create_access_token(str(user.id))
    resp = RedirectResponse(url=_safe_next(next_url), status_code=302)
    resp.set_cookie(
        settings.JWT_COOKIE_NAME,
        token,
        httponly=True,
        secure=settings.JWT_COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )
    return resp


@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, next: Optional[str] = None):
    return templates.TemplateResponse(request, "login.html", {"title": "Login", "next": _safe_next(next)})


@router.post("/login")
async def login_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    next: Optional[str] = Form(default=None),
    session: AsyncSession = Depends(get_session),
):
    result = await session.execute(select(User).where(User.email == email.strip().lower()))
    user = result.scalar_one_or_none()
    if not user or not verify_password(password, user.password_hash):
        return templates.TemplateResponse(
            request,
            "login.html",
            {"title": "Login", "error": "Invalid email or password.", "next": _safe_next(next)},
            status_code=400,
        )
    return _login_response(user, next)


@router.get("/register", response_class=HTMLResponse)
async def register_page(request: Request, next: Optional[str] = None):
    return templates.TemplateResponse(request, "register.html", {"title": "Register", "next": _safe_next(next)})


@router.post("/register")
async def register_submit(
    request: Request,
    email: str = Form(...),
    name: Optional[str] = Form(default=None),
    password: str = Form(...),
    next: Optional[str] = Form(default=None),
    session: AsyncSession = Depends(get_session),
):
    email = email.strip().lower()
    error = None
    if not email or not password:
        error = "Email and password are required."
    elif len(password) < 8:
        error = "Password must be at least 8 characters."
    else:
        existing = (await session.execute(select(User).where(User.email == email))).scalar_one_or_none()
        if existing:
            error = "Email is already registered."
    if error:
        return templates.TemplateResponse(
            request,
            "register.html",
            {"title": "Register", "error": error, "next": _safe_next(next)},
            status_code=400,
        )

    user = User(email=email, name=(name or "").strip() or None, password_hash=get_password_hash(password))
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return _login_response(user, next)


@router.get("/logout")
async def logout():
    resp = RedirectResponse(url="/", status_code=302)
    resp.delete_cookie(settings.JWT_COOKIE_NAME, path="/")
    return resp
