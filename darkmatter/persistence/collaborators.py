"""Interfaces the persistence core expects from the rest of the editor."""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

from .models import AssetRecord

__all__ = [
    "AssetStore",
    "Decision",
    "EditorState",
    "NotificationSink",
    "ProjectPrompt",
    "UnsavedChangesPrompt",
]


class Decision(str, enum.Enum):
    SAVE = "save"
    DISCARD = "discard"
    CANCEL = "cancel"


class NotificationSink(Protocol):
    def toast(self, level: str, msg: str, *, meta: Optional[Dict] = None) -> Any:
        """Surface ``msg`` to the user with severity ``level``."""


class AssetStore(Protocol):
    """Virtual file system holding project assets."""

    async def get_all_entries(self) -> List[AssetRecord]:
        """Return every entry, including the root placeholder."""

    async def reset(self) -> None:
        """Drop every entry and recreate the empty root."""

    async def write_file(
        self,
        path: str,
        content: Union[bytes, str],
        *,
        created_at: Optional[int] = None,
        modified_at: Optional[int] = None,
    ) -> None:
        """Create or overwrite a file, creating parent folders as needed."""

    async def create_directory(self, path: str) -> None:
        """Create a folder (and its parents) if missing."""


class EditorState(Protocol):
    """The live editor: scenes, camera, grid, selection and UI blobs."""

    scenes: List[Any]
    active_scene: Any
    camera: Any
    grid: Any
    selected_object: Any
    inspector_collapse_states: Dict[str, Any]
    inspector_folder_collapse_states: Dict[str, Any]
    active_bottom_tab: Optional[str]
    active_canvas_tab: Optional[str]

    def clear_scenes(self) -> None:
        ...

    def create_default_scene(self) -> Any:
        ...

    def set_active_scene(self, scene: Any) -> None:
        ...

    def select_object(self, obj: Any) -> None:
        ...


class UnsavedChangesPrompt(Protocol):
    async def ask_unsaved_changes(self, scene: Any) -> Decision:
        """Ask whether dirty changes in ``scene`` should be saved first."""


class ProjectPrompt(UnsavedChangesPrompt, Protocol):
    async def ask_project_name(self, default: str) -> Optional[str]:
        """Return the name to save under, or ``None`` to cancel."""

    async def choose_archive(self) -> Optional[Union[Path, bytes]]:
        """Return the archive to open, or ``None`` to cancel."""
