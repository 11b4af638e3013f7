from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from darkmatter.config.persistence import PersistenceSettings
from darkmatter.core.notifier import Notifier
from darkmatter.editor.asset_store import VirtualFileSystem
from darkmatter.editor.scene import GameObject
from darkmatter.editor.workspace import EditorWorkspace
from darkmatter.persistence.collaborators import Decision
from darkmatter.persistence.errors import ArchiveFormatError
from darkmatter.persistence.guard import TIMEOUT_MESSAGE
from darkmatter.persistence.prompts import ScriptedPrompt
from darkmatter.persistence.service import (
    BUSY_MESSAGE,
    PersistenceService,
    archive_file_name,
)
from project_helpers import (
    PNG_BYTES,
    make_registry,
    make_sample_workspace,
    populate_assets,
)


class _BlockingPrompt(ScriptedPrompt):
    """Hangs on the project name question until released."""

    def __init__(self, project_name=None) -> None:
        super().__init__(project_name=project_name)
        self.waiting = asyncio.Event()
        self.release = asyncio.Event()

    async def ask_project_name(self, default):
        self.asked.append("project_name")
        self.waiting.set()
        await self.release.wait()
        return self.project_name


@pytest.fixture()
def projects_dir(tmp_path: Path) -> Path:
    return tmp_path / "projects"


def _service(
    projects_dir: Path,
    settings_manager,
    *,
    workspace=None,
    store=None,
    prompt=None,
    watchdog_ms: int = 30_000,
):
    store = store or asyncio.run(populate_assets(VirtualFileSystem()))
    return PersistenceService(
        workspace or make_sample_workspace(),
        store,
        make_registry(),
        Notifier(),
        prompt=prompt,
        settings_manager=settings_manager,
        settings=PersistenceSettings(
            watchdog_timeout_ms=watchdog_ms, projects_dir=projects_dir
        ),
    )


def test_save_writes_archive_and_marks_clean(projects_dir, settings_manager):
    service = _service(projects_dir, settings_manager)
    service.context.last_successful_save_at = 0

    result = asyncio.run(
        service.save_project(prompt=ScriptedPrompt(project_name="My Game"))
    )

    target = projects_dir / "My Game.dmproj"
    assert result.ok and result.status == "completed"
    assert result.archive_path == target
    assert target.is_file()
    assert not list(projects_dir.glob(".*"))
    assert all(scene.dirty is False for scene in service.editor.scenes)
    assert service.context.current_project_name == "My Game"
    assert service.context.last_archive_handle == target
    assert service.context.last_successful_save_at > 0
    assert settings_manager.get("last_project_path") == str(target)
    assert service.notifier.messages("success") == ["Project saved successfully!"]
    assert service.context.guard_held is False


def test_save_then_load_round_trip(projects_dir, settings_manager):
    service = _service(projects_dir, settings_manager)
    prompt = ScriptedPrompt(project_name="Demo")
    saved = asyncio.run(service.save_project(prompt=prompt))
    asyncio.run(service.new_project())
    assert [scene.name for scene in service.editor.scenes] == ["Main Scene"]

    result = asyncio.run(service.load_project(saved.archive_path))

    assert result.ok
    assert result.report.scenes_restored == ["Level 1", "Menu"]
    assert service.editor.selected_object.id == "weapon-1"
    assert asyncio.run(service.asset_store.read_file("/images/hero.png")) == PNG_BYTES
    assert service.context.current_project_name == "Demo"
    assert service.notifier.messages("success")[-1] == "Project loaded successfully!"


def test_save_cancelled_by_name_prompt(projects_dir, settings_manager):
    service = _service(projects_dir, settings_manager)

    result = asyncio.run(service.save_project(prompt=ScriptedPrompt.cancelling()))

    assert result.cancelled
    assert result.message == "Save cancelled."
    assert service.notifier.messages("info") == ["Save cancelled."]
    assert not projects_dir.exists() or not list(projects_dir.iterdir())
    assert service.editor.active_scene.dirty is True


def test_save_reuses_loaded_archive_path(tmp_path, projects_dir, settings_manager):
    service = _service(projects_dir, settings_manager)
    elsewhere = tmp_path / "elsewhere" / "Demo.dmproj"
    elsewhere.parent.mkdir()
    _, data = asyncio.run(service.export_archive())
    elsewhere.write_bytes(data)
    asyncio.run(
        service.load_project(
            elsewhere, prompt=ScriptedPrompt(decision=Decision.DISCARD)
        )
    )

    result = asyncio.run(service.save_project(prompt=ScriptedPrompt()))
    as_copy = asyncio.run(service.save_project_as(prompt=ScriptedPrompt()))

    assert result.archive_path == elsewhere
    assert as_copy.archive_path == projects_dir / archive_file_name("UntitledProject")


def test_second_operation_is_rejected_while_busy(projects_dir, settings_manager):
    service = _service(projects_dir, settings_manager)
    scenes_before = list(service.editor.scenes)

    async def scenario():
        prompt = _BlockingPrompt(project_name="Slow")
        saving = asyncio.create_task(service.save_project(prompt=prompt))
        await prompt.waiting.wait()
        rejected = await service.new_project(
            prompt=ScriptedPrompt(decision=Decision.DISCARD)
        )
        prompt.release.set()
        return rejected, await saving

    rejected, saved = asyncio.run(scenario())

    assert rejected.status == "busy"
    assert service.notifier.messages("warn") == [BUSY_MESSAGE]
    assert service.editor.scenes == scenes_before
    assert saved.ok


def test_watchdog_unblocks_stuck_operation(projects_dir, settings_manager):
    service = _service(projects_dir, settings_manager, watchdog_ms=20)

    async def scenario():
        prompt = _BlockingPrompt(project_name=None)
        stuck = asyncio.create_task(service.save_project(prompt=prompt))
        await prompt.waiting.wait()
        await asyncio.sleep(0.1)
        assert service.context.guard_held is False
        fresh = await service.new_project(
            prompt=ScriptedPrompt(decision=Decision.DISCARD)
        )
        prompt.release.set()
        return fresh, await stuck

    fresh, stuck = asyncio.run(scenario())

    assert service.notifier.messages("warn") == [TIMEOUT_MESSAGE]
    assert fresh.ok
    assert stuck.cancelled
    assert service.context.guard_held is False


def test_new_project_cancelled_at_gate(projects_dir, settings_manager):
    service = _service(projects_dir, settings_manager)
    scenes_before = list(service.editor.scenes)

    result = asyncio.run(
        service.new_project(prompt=ScriptedPrompt(decision=Decision.CANCEL))
    )

    assert result.cancelled
    assert service.editor.scenes == scenes_before
    assert service.editor.camera.zoom == 2.0
    assert service.asset_store.exists("/images/hero.png")
    assert service.context.guard_held is False
    assert service.notifier.messages("info") == ["Cancelled."]


def test_new_project_saves_first_when_asked(projects_dir, settings_manager):
    service = _service(projects_dir, settings_manager)

    result = asyncio.run(
        service.new_project(
            prompt=ScriptedPrompt(decision=Decision.SAVE, project_name="Before")
        )
    )

    assert result.ok
    assert (projects_dir / "Before.dmproj").is_file()
    editor = service.editor
    assert [scene.name for scene in editor.scenes] == ["Main Scene"]
    assert editor.active_scene is editor.scenes[0]
    assert (editor.camera.position.x, editor.camera.position.y) == (0.0, 0.0)
    assert editor.camera.zoom == 1.0
    assert (editor.grid.show_grid, editor.grid.grid_size) == (True, 32)
    assert editor.grid.snap_to_grid is False
    assert editor.selected_object is None
    assert service.context.current_project_name == "UntitledProject"
    assert not service.asset_store.exists("/images/hero.png")
    assert service.notifier.messages("success")[-1] == "New project created."


def test_new_project_cancelled_when_nested_save_declined(
    projects_dir, settings_manager
):
    service = _service(projects_dir, settings_manager)
    prompt = ScriptedPrompt.cancelling()
    prompt.decision = Decision.SAVE

    result = asyncio.run(service.new_project(prompt=prompt))

    assert result.cancelled
    assert [scene.name for scene in service.editor.scenes] == ["Level 1", "Menu"]


def test_failed_load_falls_back_to_new_project(projects_dir, settings_manager):
    service = _service(projects_dir, settings_manager)

    result = asyncio.run(
        service.load_project(
            b"not an archive", prompt=ScriptedPrompt(decision=Decision.DISCARD)
        )
    )

    assert result.status == "failed"
    assert isinstance(result.error, ArchiveFormatError)
    assert [scene.name for scene in service.editor.scenes] == ["Main Scene"]
    assert service.context.current_project_name == "UntitledProject"
    errors = service.notifier.messages("error")
    assert len(errors) == 1 and errors[0].startswith("Error loading project")
    assert service.context.guard_held is False


def _project_state(service):
    snapshot = asyncio.run(service.assembler.assemble("Check"))
    manifest = snapshot.to_manifest()
    manifest.pop("timestamp")
    contents = {asset.path: asset.content for asset in snapshot.assets}
    return manifest, contents


def test_load_cancelled_at_gate_keeps_project(tmp_path, projects_dir, settings_manager):
    service = _service(projects_dir, settings_manager)
    archive = tmp_path / "Other.dmproj"
    archive.write_bytes(asyncio.run(service.export_archive())[1])
    service.editor.active_scene.add(GameObject("Unsaved"))
    before = _project_state(service)

    result = asyncio.run(
        service.load_project(archive, prompt=ScriptedPrompt(decision=Decision.CANCEL))
    )

    assert result.cancelled
    assert _project_state(service) == before
    assert service.editor.active_scene.dirty is True
    assert service.notifier.messages("info") == ["Cancelled."]
    assert service.context.last_archive_handle is None


def test_load_cancelled_when_no_archive_chosen(projects_dir, settings_manager):
    service = _service(projects_dir, settings_manager)
    scenes_before = list(service.editor.scenes)

    result = asyncio.run(
        service.load_project(prompt=ScriptedPrompt(decision=Decision.DISCARD))
    )

    assert result.cancelled
    assert result.message == "Load cancelled."
    assert service.editor.scenes == scenes_before


def test_unreadable_path_leaves_state_untouched(
    tmp_path, projects_dir, settings_manager
):
    service = _service(projects_dir, settings_manager)
    scenes_before = list(service.editor.scenes)

    result = asyncio.run(
        service.load_project(
            tmp_path / "missing.dmproj",
            prompt=ScriptedPrompt(decision=Decision.DISCARD),
        )
    )

    assert result.status == "failed"
    assert service.editor.scenes == scenes_before


def test_auto_open_last_project(projects_dir, settings_manager):
    first = _service(projects_dir, settings_manager)
    assert asyncio.run(first.try_auto_open_last_project()) is False
    asyncio.run(first.save_project(prompt=ScriptedPrompt(project_name="Resume")))

    workspace = EditorWorkspace()
    workspace.create_default_scene()
    second = _service(
        projects_dir,
        settings_manager,
        workspace=workspace,
        store=VirtualFileSystem(),
    )

    assert asyncio.run(second.try_auto_open_last_project()) is True
    assert [scene.name for scene in second.editor.scenes] == ["Level 1", "Menu"]
    assert second.context.current_project_name == "Resume"


def test_auto_open_skips_missing_file(projects_dir, settings_manager, tmp_path):
    settings_manager.remember_project(tmp_path / "vanished.dmproj", "Gone")
    service = _service(projects_dir, settings_manager)

    assert asyncio.run(service.try_auto_open_last_project()) is False


def test_stand_ins_are_reported_on_load(projects_dir, settings_manager):
    service = _service(projects_dir, settings_manager)
    _, data = asyncio.run(service.export_archive())

    workspace = EditorWorkspace()
    bare = PersistenceService(
        workspace,
        VirtualFileSystem(),
        make_registry(with_sprite=False),
        Notifier(),
        settings=PersistenceSettings(projects_dir=projects_dir),
    )
    result = asyncio.run(bare.load_project(data))

    assert result.ok
    assert result.report.degraded_scenes == ["Level 1"]
    warnings = bare.notifier.messages("warn")
    assert len(warnings) == 1 and "SpriteRenderer" in warnings[0]
    assert bare.status()["stand_ins"] == ["SpriteRenderer"]


def test_dirty_scene_marked_by_edit_is_detected(projects_dir, settings_manager):
    service = _service(projects_dir, settings_manager)
    asyncio.run(service.save_project(prompt=ScriptedPrompt(project_name="Demo")))
    service.editor.active_scene.add(GameObject("Late addition"))

    result = asyncio.run(
        service.new_project(prompt=ScriptedPrompt(decision=Decision.CANCEL))
    )

    assert result.cancelled


def test_unexpected_save_error_is_reported(projects_dir, settings_manager):
    service = _service(projects_dir, settings_manager)
    service.editor.active_scene.settings["handle"] = object()

    result = asyncio.run(
        service.save_project(prompt=ScriptedPrompt(project_name="Broken"))
    )

    assert result.status == "failed"
    assert result.error is not None
    errors = service.notifier.messages("error")
    assert len(errors) == 1 and errors[0].startswith("Error saving project")
    assert service.context.guard_held is False
    assert not (projects_dir / "Broken.dmproj").exists()
    assert service.editor.active_scene.dirty is True


def test_unexpected_error_in_save_first_cancels_discard(
    projects_dir, settings_manager
):
    service = _service(projects_dir, settings_manager)
    service.editor.active_scene.settings["handle"] = object()

    result = asyncio.run(
        service.new_project(
            prompt=ScriptedPrompt(decision=Decision.SAVE, project_name="Broken")
        )
    )

    assert result.cancelled
    assert [scene.name for scene in service.editor.scenes] == ["Level 1", "Menu"]
    assert len(service.notifier.messages("error")) == 1
    assert service.context.guard_held is False


def test_collapse_states_seeded_from_local_settings(projects_dir, settings_manager):
    settings_manager.merge(
        {
            "inspector_collapse_states": {"Physics": True},
            "inspector_folder_collapse_states": {"Audio": False},
        }
    )
    workspace = EditorWorkspace()

    service = _service(projects_dir, settings_manager, workspace=workspace)

    assert service.editor.inspector_collapse_states == {"Physics": True}
    assert service.editor.inspector_folder_collapse_states == {"Audio": False}
