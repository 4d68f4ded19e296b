from pathlib import Path
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from resume_builder.core.security import current_user

router = APIRouter()

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


@router.get("/", response_class=HTMLResponse)
async def landing(request: Request):
    # Signed-in users go straight to their resumes
    if current_user(request):
        return RedirectResponse(url="/resumes", status_code=302)
    return templates.TemplateResponse(request, "index.html", {"title": "Create a perfect resume in minutes"})
