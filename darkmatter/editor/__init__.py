"""Live editor state consumed by the persistence core."""

from darkmatter.editor.asset_store import VirtualFileSystem
from darkmatter.editor.scene import GameObject, Module, Scene, Vector2
from darkmatter.editor.workspace import Camera, EditorWorkspace, GridSettings

__all__ = [
    "Camera",
    "EditorWorkspace",
    "GameObject",
    "GridSettings",
    "Module",
    "Scene",
    "Vector2",
    "VirtualFileSystem",
]
