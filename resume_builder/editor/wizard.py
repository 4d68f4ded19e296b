import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Type
from urllib.parse import urlencode

from pydantic import BaseModel, ValidationError

from resume_builder.editor.models import BorderStyles, PhotoFile, ResumeDraft, SavedResume
from resume_builder.editor.validation import (
    EducationValues,
    GeneralInfoValues,
    PersonalInfoValues,
    SkillsValues,
    StyleValues,
    SummaryValues,
    WorkExperienceValues,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Step:
    key: str
    title: str
    schema: Type[BaseModel]


STEPS: List[Step] = [
    Step("general-info", "General info", GeneralInfoValues),
    Step("personal-info", "Personal info", PersonalInfoValues),
    Step("work-experience", "Work experience", WorkExperienceValues),
    Step("education", "Education", EducationValues),
    Step("skills", "Skills", SkillsValues),
    Step("summary", "Summary", SummaryValues),
]
STEP_KEYS = [s.key for s in STEPS]

# Sections that can be patched; "style" is edited from the preview toolbar, not a step
SECTION_SCHEMAS: Dict[str, Type[BaseModel]] = {s.key: s.schema for s in STEPS}
SECTION_SCHEMAS["style"] = StyleValues


def get_step(key: str) -> Step:
    for step in STEPS:
        if step.key == key:
            return step
    raise KeyError(key)


def next_border_style(current: Optional[str]) -> str:
    styles = BorderStyles.ALL
    index = styles.index(current) if current in styles else 0
    return styles[(index + 1) % len(styles)]


@dataclass
class NavigationState:
    """Where the editor is: round-trips through the ?step=&resumeId= query."""

    step: str = STEPS[0].key
    resume_id: Optional[str] = None

    def to_query(self, **extra: Any) -> str:
        params = {"step": self.step}
        if self.resume_id:
            params["resumeId"] = self.resume_id
        params.update({k: v for k, v in extra.items() if v is not None})
        return "?" + urlencode(params)

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "NavigationState":
        step = params.get("step")
        if step not in STEP_KEYS:
            step = STEPS[0].key
        return cls(step=step, resume_id=params.get("resumeId") or None)


@dataclass
class PatchResult:
    applied: bool
    errors: List[dict] = field(default_factory=list)


Listener = Callable[[ResumeDraft], None]


class FormWizard:
    """
    Single owner of the in-memory draft.

    Section forms send patches; each patch is validated against its section
    schema and, when valid, applied and pushed to every subscriber right away.
    An invalid patch changes nothing.
    """

    def __init__(self, draft: Optional[ResumeDraft] = None, step: Optional[str] = None):
        self.draft = draft or ResumeDraft()
        self.navigation = NavigationState(step=step if step in STEP_KEYS else STEPS[0].key, resume_id=self.draft.id)
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    @property
    def current_step(self) -> Step:
        return get_step(self.navigation.step)

    def set_step(self, key: str) -> Step:
        step = get_step(key)
        self.navigation.step = step.key
        return step

    def next_step(self) -> Optional[Step]:
        index = STEP_KEYS.index(self.navigation.step)
        return STEPS[index + 1] if index + 1 < len(STEPS) else None

    def previous_step(self) -> Optional[Step]:
        index = STEP_KEYS.index(self.navigation.step)
        return STEPS[index - 1] if index > 0 else None

    def apply_patch(self, section: str, values: Mapping[str, Any]) -> PatchResult:
        schema = SECTION_SCHEMAS.get(section)
        if schema is None:
            return PatchResult(False, [{"loc": ["section"], "msg": f"Unknown section: {section}"}])
        try:
            validated = schema.model_validate(dict(values))
        except ValidationError as exc:
            errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
            logger.debug("Rejected %s patch: %s", section, errors)
            return PatchResult(False, errors)

        update = {name: getattr(validated, name) for name in validated.model_fields_set}
        if update:
            self._update(update)
        return PatchResult(True)

    def set_photo(self, photo: Optional[PhotoFile]) -> None:
        """Attach an already checked upload, or ``None`` to remove the photo."""
        self._update({"photo": photo})

    def _update(self, update: Dict[str, Any]) -> None:
        self.draft = self.draft.model_copy(update=update)
        for listener in self._listeners:
            listener(self.draft)

    def adopt_saved(self, saved: SavedResume) -> None:
        """Record the persisted id. Not a content change, so nobody is notified."""
        self.draft = self.draft.model_copy(update={"id": saved.id})
        self.navigation.resume_id = saved.id
