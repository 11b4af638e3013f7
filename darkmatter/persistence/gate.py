from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from .collaborators import Decision, UnsavedChangesPrompt

LOGGER = logging.getLogger(__name__)

__all__ = ["UnsavedChangesGate"]

SaveCallable = Callable[[], Awaitable[bool]]


class UnsavedChangesGate:
    """Ask before discarding dirty work; optionally save first.

    ``save`` runs the save pipeline under the guard the caller already holds.
    """

    def __init__(
        self, prompt: Optional[UnsavedChangesPrompt], save: SaveCallable
    ) -> None:
        self.prompt = prompt
        self._save = save

    async def confirm_discard(
        self, active_scene: Any, *, prompt: Optional[UnsavedChangesPrompt] = None
    ) -> Decision:
        if active_scene is None or not getattr(active_scene, "dirty", False):
            return Decision.DISCARD

        asker = prompt or self.prompt
        if asker is None:
            LOGGER.warning("Unsaved changes but no prompt is available; cancelling")
            return Decision.CANCEL

        decision = Decision(await asker.ask_unsaved_changes(active_scene))
        if decision is not Decision.SAVE:
            return decision

        try:
            saved = await self._save()
        except Exception:
            LOGGER.exception("Save before discard failed")
            return Decision.CANCEL
        if not saved:
            LOGGER.info("Save before discard did not complete; cancelling")
            return Decision.CANCEL
        return Decision.SAVE
