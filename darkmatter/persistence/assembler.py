from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .collaborators import AssetStore, EditorState
from .models import (
    ROOT_PATH,
    AssetRecord,
    CameraSettings,
    EditorSettings,
    GridSettings,
    ProjectSnapshot,
)

LOGGER = logging.getLogger(__name__)

__all__ = ["SnapshotAssembler"]


def _camera_settings(camera: Any) -> Optional[CameraSettings]:
    if camera is None:
        return None
    position = getattr(camera, "position", None)
    return CameraSettings(
        x=getattr(position, "x", None),
        y=getattr(position, "y", None),
        zoom=getattr(camera, "zoom", None),
    )


def _grid_settings(grid: Any) -> Optional[GridSettings]:
    if grid is None:
        return None
    return GridSettings(
        show_grid=getattr(grid, "show_grid", None),
        grid_size=getattr(grid, "grid_size", None),
        snap_to_grid=getattr(grid, "snap_to_grid", None),
    )


class SnapshotAssembler:
    """Read the editor and asset store into an immutable ``ProjectSnapshot``.

    Assembly never mutates its sources.  A failure while listing assets does
    not abort the save: the snapshot is produced without assets and flagged
    with ``assets_complete=False`` so callers can tell the user.
    """

    def __init__(self, editor: EditorState, asset_store: AssetStore) -> None:
        self.editor = editor
        self.asset_store = asset_store

    def editor_settings(self) -> EditorSettings:
        editor = self.editor
        active = getattr(editor, "active_scene", None)
        selected = getattr(editor, "selected_object", None)
        return EditorSettings(
            active_scene_name=getattr(active, "name", None),
            camera=_camera_settings(getattr(editor, "camera", None)),
            grid=_grid_settings(getattr(editor, "grid", None)),
            selected_object_id=getattr(selected, "id", None),
            inspector_collapse_states=dict(
                getattr(editor, "inspector_collapse_states", None) or {}
            ),
            inspector_folder_collapse_states=dict(
                getattr(editor, "inspector_folder_collapse_states", None) or {}
            ),
            active_bottom_tab=getattr(editor, "active_bottom_tab", None),
            active_canvas_tab=getattr(editor, "active_canvas_tab", None),
        )

    def scene_payloads(self) -> List[Dict[str, Any]]:
        return [scene.to_portable() for scene in self.editor.scenes]

    async def collect_assets(self) -> Optional[List[AssetRecord]]:
        """Return every non-root asset, or ``None`` when listing failed."""

        try:
            entries = await self.asset_store.get_all_entries()
        except Exception as exc:
            LOGGER.warning(
                "Asset enumeration failed; saving without assets",
                extra={"error": repr(exc)},
            )
            return None
        return [entry for entry in entries if entry.path != ROOT_PATH]

    async def assemble(self, project_name: str) -> ProjectSnapshot:
        settings = self.editor_settings()
        scenes = self.scene_payloads()
        assets = await self.collect_assets()
        snapshot = ProjectSnapshot(
            project_name=project_name,
            editor_settings=settings,
            scenes=tuple(scenes),
            assets=tuple(assets or ()),
            assets_complete=assets is not None,
        )
        LOGGER.debug(
            "Assembled snapshot %s",
            project_name,
            extra={
                "scenes": len(snapshot.scenes),
                "assets": len(snapshot.assets),
                "assets_complete": snapshot.assets_complete,
            },
        )
        return snapshot
