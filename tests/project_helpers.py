"""Sample projects shared by the persistence tests."""

from __future__ import annotations

from darkmatter.editor.asset_store import VirtualFileSystem
from darkmatter.editor.scene import (
    GameObject,
    Module,
    Scene,
    Vector2,
    register_core_types,
)
from darkmatter.editor.workspace import EditorWorkspace
from darkmatter.persistence.registry import TypeRegistry

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x01binary\xff\xfe"
SCRIPT_SOURCE = "class Player extends Module {}\n"


class SpriteRenderer(Module):
    """Module type registered on top of the core types."""


def make_registry(*, with_sprite: bool = True) -> TypeRegistry:
    registry = register_core_types(TypeRegistry())
    if with_sprite:
        registry.register("SpriteRenderer", SpriteRenderer)
    return registry


def make_sample_workspace() -> EditorWorkspace:
    workspace = EditorWorkspace()
    level = Scene("Level 1")
    player = GameObject("Player", Vector2(10, 20))
    player.id = "player-1"
    player.tags = ["hero"]
    player.add_module(SpriteRenderer("Sprite", {"image": "/images/hero.png"}))
    weapon = GameObject("Weapon", Vector2(1, 2))
    weapon.id = "weapon-1"
    player.add_child(weapon)
    level.add(player)
    menu = Scene("Menu")
    workspace.add_scene(level)
    workspace.add_scene(menu)
    workspace.set_active_scene(level)
    workspace.select_object(weapon)
    workspace.camera.position.set(5, -3)
    workspace.camera.zoom = 2.0
    workspace.grid.grid_size = 16
    workspace.grid.snap_to_grid = True
    workspace.inspector_collapse_states = {"Sprite": True}
    workspace.inspector_folder_collapse_states = {"Rendering": False}
    workspace.active_bottom_tab = "console"
    workspace.active_canvas_tab = "game"
    return workspace


async def populate_assets(store: VirtualFileSystem) -> VirtualFileSystem:
    await store.write_file("/scripts/player.js", SCRIPT_SOURCE, created_at=1000)
    await store.write_file("/images/hero.png", PNG_BYTES)
    await store.create_directory("/empty")
    return store
