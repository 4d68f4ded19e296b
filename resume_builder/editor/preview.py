import base64
from datetime import date
from pathlib import Path
from typing import List, Optional

import bleach
from bs4 import BeautifulSoup
from fastapi.templating import Jinja2Templates
from markdown_it import MarkdownIt
from markupsafe import Markup

from resume_builder.editor.models import BorderStyles, PhotoFile, ResumeDraft

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "web" / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

# A4 at 96 dpi; the preview is laid out at this width and zoomed to fit
DESIGN_WIDTH_PX = 794
PAGE_ASPECT = (210, 297)

SECTION_ORDER = ("header", "summary", "work_experience", "education", "skills")

# Markdown rendering and sanitization for summary and descriptions
_md = MarkdownIt()
_ALLOWED_TAGS = [
    "p", "br", "ul", "ol", "li",
    "em", "strong", "del", "a", "code",
]
_ALLOWED_ATTRS = {"a": ["href", "title", "target", "rel"]}


def _force_links_new_tab(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for a in soup.find_all("a"):
        if not (a.get("href") or "").strip():
            continue
        a["target"] = "_blank"
        a["rel"] = "noopener nofollow"
    return str(soup)


def render_markdown(text: Optional[str]) -> Markup:
    html = _md.render(text or "")
    html = _force_links_new_tab(html)
    return Markup(bleach.clean(html, tags=_ALLOWED_TAGS, attributes=_ALLOWED_ATTRS, strip=True, protocols=["http", "https", "mailto"]))


def scale_factor(container_width: Optional[float]) -> float:
    if not container_width or container_width <= 0:
        return 0.0
    return container_width / DESIGN_WIDTH_PX


def format_month(value: Optional[str]) -> str:
    if not value:
        return ""
    d = date.fromisoformat(value)
    return f"{d:%m/%Y}"


def work_date_range(start: Optional[str], end: Optional[str]) -> str:
    if not start:
        return ""
    return f"{format_month(start)} - {format_month(end) if end else 'Present'}"


def education_date_range(start: Optional[str], end: Optional[str]) -> str:
    if not start:
        return ""
    return f"{format_month(start)} - {format_month(end)}" if end else format_month(start)


def photo_radius(border_style: Optional[str]) -> str:
    if border_style == BorderStyles.SQUARE:
        return "0px"
    if border_style == BorderStyles.CIRCLE:
        return "9999px"
    return "10%"


def badge_radius(border_style: Optional[str]) -> str:
    if border_style == BorderStyles.SQUARE:
        return "0px"
    if border_style == BorderStyles.CIRCLE:
        return "9999px"
    return "8px"


def photo_src(photo) -> Optional[str]:
    if isinstance(photo, PhotoFile):
        if not photo.data:
            return None
        return f"data:{photo.content_type};base64,{base64.b64encode(photo.data).decode('ascii')}"
    return photo or None


def contact_line(draft: ResumeDraft) -> str:
    location = ", ".join(p for p in (draft.city, draft.country) if p)
    contact = " • ".join(p for p in (draft.phone, draft.email) if p)
    return " • ".join(p for p in (location, contact) if p)


def visible_sections(draft: ResumeDraft) -> List[str]:
    sections = ["header"]
    if draft.summary:
        sections.append("summary")
    if any(not exp.is_empty() for exp in draft.work_experiences):
        sections.append("work_experience")
    if any(not edu.is_empty() for edu in draft.educations):
        sections.append("education")
    if draft.skills:
        sections.append("skills")
    return sections


def render_preview(draft: ResumeDraft, container_width: Optional[float] = DESIGN_WIDTH_PX, element_id: str = "resumePreviewContent") -> str:
    """Render the draft as the A4 preview document, zoomed to ``container_width``."""
    ctx = {
        "draft": draft,
        "sections": visible_sections(draft),
        "scale": scale_factor(container_width),
        "aspect": PAGE_ASPECT,
        "element_id": element_id,
        "full_name": " ".join(p for p in (draft.first_name, draft.last_name) if p),
        "contact": contact_line(draft),
        "photo_src": photo_src(draft.photo),
        "photo_radius": photo_radius(draft.border_style),
        "badge_radius": badge_radius(draft.border_style),
        "summary_html": render_markdown(draft.summary),
        "work_experiences": [
            {
                "position": exp.position,
                "company": exp.company,
                "dates": work_date_range(exp.start_date, exp.end_date),
                "description_html": render_markdown(exp.description),
            }
            for exp in draft.work_experiences
            if not exp.is_empty()
        ],
        "educations": [
            {
                "degree": edu.degree,
                "school": edu.school,
                "dates": education_date_range(edu.start_date, edu.end_date),
            }
            for edu in draft.educations
            if not edu.is_empty()
        ],
    }
    return templates.get_template("partials/_preview.html").render(ctx)
