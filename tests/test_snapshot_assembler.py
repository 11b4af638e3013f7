from __future__ import annotations

import asyncio
import logging

import pytest

from darkmatter.editor.asset_store import VirtualFileSystem
from darkmatter.editor.scene import Scene
from darkmatter.persistence.assembler import SnapshotAssembler
from darkmatter.persistence.errors import SnapshotInvariantError
from project_helpers import PNG_BYTES


class _BrokenStore(VirtualFileSystem):
    async def get_all_entries(self):
        raise OSError("index unavailable")


def test_assemble_captures_editor_state(workspace, asset_store):
    snapshot = asyncio.run(SnapshotAssembler(workspace, asset_store).assemble("Demo"))

    settings = snapshot.editor_settings
    assert snapshot.project_name == "Demo"
    assert snapshot.format_version == "1.0"
    assert snapshot.assets_complete is True
    assert settings.active_scene_name == "Level 1"
    assert settings.selected_object_id == "weapon-1"
    assert (settings.camera.x, settings.camera.y, settings.camera.zoom) == (
        5.0,
        -3.0,
        2.0,
    )
    assert settings.grid.grid_size == 16
    assert settings.grid.snap_to_grid is True
    assert settings.grid.show_grid is True
    assert settings.inspector_collapse_states == {"Sprite": True}
    assert settings.inspector_folder_collapse_states == {"Rendering": False}
    assert settings.active_bottom_tab == "console"
    assert settings.active_canvas_tab == "game"

    assert snapshot.scene_names() == ["Level 1", "Menu"]
    player = snapshot.scenes[0]["gameObjects"][0]
    assert player["id"] == "player-1"
    assert player["modules"][0]["type"] == "SpriteRenderer"
    assert player["children"][0]["id"] == "weapon-1"


def test_assemble_drops_root_and_keeps_content(workspace, asset_store):
    snapshot = asyncio.run(SnapshotAssembler(workspace, asset_store).assemble("Demo"))

    assert "/" not in snapshot.asset_paths()
    assert sorted(snapshot.asset_paths()) == [
        "/empty",
        "/images",
        "/images/hero.png",
        "/scripts",
        "/scripts/player.js",
    ]
    assert snapshot.find_asset("/images/hero.png").content == PNG_BYTES


def test_assemble_is_read_only_and_repeatable(workspace, asset_store):
    assembler = SnapshotAssembler(workspace, asset_store)
    dirty_before = [scene.dirty for scene in workspace.scenes]

    first = asyncio.run(assembler.assemble("Demo"))
    second = asyncio.run(assembler.assemble("Demo"))

    assert [scene.dirty for scene in workspace.scenes] == dirty_before
    assert first.scenes == second.scenes
    assert first.asset_paths() == second.asset_paths()
    assert workspace.selected_object.id == "weapon-1"


def test_asset_enumeration_failure_degrades(workspace, caplog):
    caplog.set_level(logging.WARNING, logger="darkmatter.persistence.assembler")

    assembler = SnapshotAssembler(workspace, _BrokenStore())
    snapshot = asyncio.run(assembler.assemble("Demo"))

    assert snapshot.assets == ()
    assert snapshot.assets_complete is False
    assert snapshot.scene_names() == ["Level 1", "Menu"]
    assert any("Asset enumeration failed" in rec.message for rec in caplog.records)


def test_duplicate_scene_names_violate_snapshot(workspace, asset_store):
    workspace.scenes.append(Scene("Menu"))

    with pytest.raises(SnapshotInvariantError):
        asyncio.run(SnapshotAssembler(workspace, asset_store).assemble("Demo"))


def test_snapshot_is_frozen(workspace, asset_store):
    snapshot = asyncio.run(SnapshotAssembler(workspace, asset_store).assemble("Demo"))

    with pytest.raises(Exception):
        snapshot.project_name = "Other"
