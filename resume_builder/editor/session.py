import logging
import time
from typing import Callable, Dict, Optional
from uuid import uuid4

from resume_builder.core.config import settings
from resume_builder.core.exceptions import EditorSessionNotFoundError
from resume_builder.editor.autosave import AutoSaveController, SaveFunc
from resume_builder.editor.models import ResumeDraft
from resume_builder.editor.preview import DESIGN_WIDTH_PX, render_preview
from resume_builder.editor.wizard import FormWizard
from resume_builder.services.resumes import resume_saver

logger = logging.getLogger(__name__)


class EditorSession:
    """One open editor: a wizard whose draft is autosaved and previewed."""

    def __init__(
        self,
        user_id: int,
        save: SaveFunc,
        draft: Optional[ResumeDraft] = None,
        step: Optional[str] = None,
        delay: float = None,
    ):
        self.id = uuid4().hex
        self.user_id = user_id
        self.touched_at = time.monotonic()
        self.wizard = FormWizard(draft, step)
        self.autosave = AutoSaveController(
            self.wizard.draft,
            save,
            delay=settings.AUTOSAVE_DEBOUNCE_SECONDS if delay is None else delay,
            on_saved=self.wizard.adopt_saved,
        )
        self.wizard.subscribe(self.autosave.observe)

    @property
    def draft(self) -> ResumeDraft:
        return self.wizard.draft

    def touch(self) -> None:
        self.touched_at = time.monotonic()

    def location(self) -> str:
        return self.wizard.navigation.to_query(session=self.id)

    def preview(self, width: float = DESIGN_WIDTH_PX) -> str:
        return render_preview(self.draft, width)

    def status(self) -> dict:
        error = self.autosave.last_error
        return {
            "state": self.autosave.state.value,
            "resume_id": self.autosave.resume_id,
            "has_unsaved_changes": self.autosave.has_unsaved_changes(),
            "error": "Could not save changes." if error else None,
            "location": self.location(),
        }


class EditorSessionRegistry:
    def __init__(self, saver_factory: Callable[[int], SaveFunc], ttl: float = None):
        self._saver_factory = saver_factory
        self.ttl = settings.EDITOR_SESSION_TTL_SECONDS if ttl is None else ttl
        self._sessions: Dict[str, EditorSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, user_id: int, draft: Optional[ResumeDraft] = None, step: Optional[str] = None) -> EditorSession:
        self.prune()
        session = EditorSession(user_id, self._saver_factory(user_id), draft, step)
        self._sessions[session.id] = session
        logger.info("Opened editor session %s for user %s (resume %s)", session.id, user_id, session.draft.id or "<new>")
        return session

    def get(self, session_id: str, user_id: Optional[int]) -> EditorSession:
        session = self._sessions.get(session_id)
        if session is None or user_id is None or session.user_id != user_id:
            raise EditorSessionNotFoundError()
        session.touch()
        return session

    async def close(self, session_id: str, user_id: Optional[int]) -> EditorSession:
        session = self.get(session_id, user_id)
        await session.autosave.flush()
        session.autosave.close()
        self._sessions.pop(session_id, None)
        logger.info("Closed editor session %s", session_id)
        return session

    def prune(self) -> int:
        cutoff = time.monotonic() - self.ttl
        stale = [
            sid for sid, s in self._sessions.items()
            if s.touched_at < cutoff and not s.autosave.is_saving
        ]
        for sid in stale:
            self._sessions.pop(sid).autosave.close()
        if stale:
            logger.info("Pruned %d idle editor sessions", len(stale))
        return len(stale)


_registry: Optional[EditorSessionRegistry] = None


def get_editor_sessions() -> EditorSessionRegistry:
    global _registry
    if _registry is None:
        _registry = EditorSessionRegistry(resume_saver)
    return _registry
