from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Union

from .collaborators import Decision

__all__ = ["ScriptedPrompt"]


@dataclass
class ScriptedPrompt:
    """Prompt that answers from preset values.

    Used by the HTTP surface, where the answers arrive with the request, and
    by headless callers.  ``asked`` records which questions were put.
    """

    decision: Decision = Decision.DISCARD
    project_name: Optional[str] = None
    archive: Optional[Union[Path, bytes]] = None
    asked: List[str] = field(default_factory=list)

    async def ask_unsaved_changes(self, scene: Any) -> Decision:
        self.asked.append("unsaved_changes")
        return self.decision

    async def ask_project_name(self, default: str) -> Optional[str]:
        self.asked.append("project_name")
        return self.project_name if self.project_name is not None else default

    async def choose_archive(self) -> Optional[Union[Path, bytes]]:
        self.asked.append("archive")
        return self.archive

    @classmethod
    def cancelling(cls) -> "ScriptedPrompt":
        return _CancellingPrompt(decision=Decision.CANCEL)


@dataclass
class _CancellingPrompt(ScriptedPrompt):
    async def ask_project_name(self, default: str) -> Optional[str]:
        self.asked.append("project_name")
        return None
