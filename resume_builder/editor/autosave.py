"""
Autosave for the resume editor.

The controller keeps the persisted copy of a draft eventually consistent with
the in-memory one:

- changes are observed through a debouncer, so a burst of edits produces one
  save with the last value;
- at most one save is in flight; changes arriving meanwhile are picked up
  when it settles;
- a failed save parks the controller in ``ERROR`` until the user retries or
  the debounced draft changes again. Nothing is retried on a timer.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from resume_builder.editor.debounce import Debouncer
from resume_builder.editor.models import ResumeDraft, SavedResume, drafts_equal, photo_descriptor

logger = logging.getLogger(__name__)

SaveFunc = Callable[[dict], Awaitable[SavedResume]]


class SaveState(str, Enum):
    IDLE = "idle"
    SAVING = "saving"
    ERROR = "error"


class AutoSaveController:
    def __init__(
        self,
        draft: ResumeDraft,
        save: SaveFunc,
        *,
        delay: float = 1.5,
        on_saved: Optional[Callable[[SavedResume], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._save_fn = save
        self._on_saved = on_saved
        self._on_error = on_error

        self.resume_id: Optional[str] = draft.id
        self.last_saved: ResumeDraft = draft.model_copy(deep=True)
        self.current: ResumeDraft = self.last_saved
        self.debounced: ResumeDraft = self.last_saved
        self.state = SaveState.IDLE
        self.last_error: Optional[Exception] = None

        self._failed_draft: Optional[ResumeDraft] = None
        self._task: Optional[asyncio.Task] = None
        self._debouncer: Debouncer[ResumeDraft] = Debouncer(delay, self._on_debounced, initial=self.debounced)

    @property
    def is_saving(self) -> bool:
        return self.state is SaveState.SAVING

    @property
    def is_error(self) -> bool:
        return self.state is SaveState.ERROR

    def has_unsaved_changes(self) -> bool:
        return not drafts_equal(self.current, self.last_saved)

    def observe(self, draft: ResumeDraft) -> None:
        """Feed the latest draft. Safe to call on every keystroke."""
        self.current = draft.model_copy(deep=True)
        self._debouncer.push(self.current)

    def build_payload(self, draft: ResumeDraft) -> dict:
        payload = draft.model_dump(exclude={"photo"})
        if photo_descriptor(draft.photo) != photo_descriptor(self.last_saved.photo):
            # raw PhotoFile, URL, or None for "remove"
            payload["photo"] = draft.photo
        payload["id"] = self.resume_id
        return payload

    async def retry(self) -> None:
        """Re-send the payload of the failed attempt."""
        if self.state is not SaveState.ERROR or self._failed_draft is None:
            return
        self.state = SaveState.SAVING
        self._task = asyncio.get_running_loop().create_task(self._save(self._failed_draft))
        await self._task

    async def flush(self) -> None:
        """Settle any pending change and wait until no save is in flight."""
        self._debouncer.flush()
        while self._task is not None and not self._task.done():
            await self._task

    def close(self) -> None:
        self._debouncer.cancel()

    def _on_debounced(self, draft: ResumeDraft) -> None:
        if not drafts_equal(draft, self.debounced) and self.state is SaveState.ERROR:
            logger.debug("Draft changed after a failed save; clearing error state")
            self.state = SaveState.IDLE
            self.last_error = None
        self.debounced = draft
        self._evaluate()

    def _evaluate(self) -> None:
        if self.state is not SaveState.IDLE:
            return
        if drafts_equal(self.debounced, self.last_saved):
            return
        self.state = SaveState.SAVING
        self._task = asyncio.get_running_loop().create_task(self._save(self.debounced))

    async def _save(self, draft: ResumeDraft) -> None:
        payload = self.build_payload(draft)
        try:
            saved = await self._save_fn(payload)
        except Exception as exc:
            logger.warning("Autosave of resume %s failed: %s", self.resume_id or "<new>", exc)
            self.state = SaveState.ERROR
            self.last_error = exc
            self._failed_draft = draft
            if self._on_error:
                self._on_error(exc)
            return

        if self.resume_id != saved.id:
            logger.info("Resume %s created by autosave", saved.id)
        self.resume_id = saved.id
        self.last_saved = draft
        self._failed_draft = None
        self.last_error = None
        self.state = SaveState.IDLE
        if self._on_saved:
            self._on_saved(saved)
        self._evaluate()
