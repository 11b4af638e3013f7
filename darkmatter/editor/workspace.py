from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .scene import Scene, Vector2

DEFAULT_SCENE_NAME = "Main Scene"


@dataclass
class Camera:
    position: Vector2 = field(default_factory=Vector2)
    zoom: float = 1.0


@dataclass
class GridSettings:
    show_grid: bool = True
    grid_size: int = 32
    snap_to_grid: bool = False


class EditorWorkspace:
    """Live editor state: scenes, view settings and UI blobs."""

    def __init__(self) -> None:
        self.scenes: List[Any] = []
        self.active_scene: Any = None
        self.camera = Camera()
        self.grid = GridSettings()
        self.selected_object: Any = None
        self.inspector_collapse_states: Dict[str, Any] = {}
        self.inspector_folder_collapse_states: Dict[str, Any] = {}
        self.active_bottom_tab: Optional[str] = None
        self.active_canvas_tab: Optional[str] = None

    def clear_scenes(self) -> None:
        self.scenes = []
        self.active_scene = None
        self.selected_object = None

    def create_default_scene(self) -> Scene:
        name = DEFAULT_SCENE_NAME
        existing = {scene.name for scene in self.scenes}
        index = 1
        while name in existing:
            index += 1
            name = f"{DEFAULT_SCENE_NAME} {index}"
        scene = Scene(name)
        self.scenes.append(scene)
        self.set_active_scene(scene)
        return scene

    def add_scene(self, scene: Any) -> Any:
        if any(existing.name == scene.name for existing in self.scenes):
            raise ValueError(f"scene already exists: {scene.name}")
        self.scenes.append(scene)
        return scene

    def set_active_scene(self, scene: Any) -> None:
        if scene is not None and scene not in self.scenes:
            self.scenes.append(scene)
        self.active_scene = scene
        self.selected_object = None

    def select_object(self, obj: Any) -> None:
        self.selected_object = obj

    def find_scene(self, name: str) -> Optional[Any]:
        return next((scene for scene in self.scenes if scene.name == name), None)

    def summary(self) -> Dict[str, Any]:
        return {
            "scenes": [scene.name for scene in self.scenes],
            "active_scene": getattr(self.active_scene, "name", None),
            "dirty": any(getattr(scene, "dirty", False) for scene in self.scenes),
            "degraded": [
                scene.name
                for scene in self.scenes
                if getattr(scene, "degraded", False)
            ],
            "selected_object": getattr(self.selected_object, "id", None),
            "camera": {
                "x": self.camera.position.x,
                "y": self.camera.position.y,
                "zoom": self.camera.zoom,
            },
            "grid": {
                "show_grid": self.grid.show_grid,
                "grid_size": self.grid.grid_size,
                "snap_to_grid": self.grid.snap_to_grid,
            },
        }
