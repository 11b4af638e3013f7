"""Apply a project archive to the live editor in a fixed, safe order.

Steps, in order:

1. clear scenes, the active scene pointer and the selection
2. reset the asset store root
3. decode the archive (fatal on failure)
4. make every referenced type available (fatal if any stays unresolved)
5. write assets concurrently; each failed or unreadable asset is one warning
6. rebuild scenes; a pending scene is retried once, then dropped
7. apply editor settings, keeping current values for absent fields
8. pick the active scene and restore the selection

Only steps 3 and 4 raise; everything after them degrades and reports.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

from .codec import ArchiveCodec, DecodedArchive
from .collaborators import AssetStore, EditorState, NotificationSink
from .errors import RestoreInProgressError
from .models import AssetRecord, EditorSettings
from .portable import Materialized, RawPending, required_types
from .registry import TypeRegistry
from .resolver import DependencyResolver

LOGGER = logging.getLogger(__name__)

__all__ = ["RestoreOrchestrator", "RestoreReport"]


@dataclass
class RestoreReport:
    project_name: str
    scenes_restored: List[str] = field(default_factory=list)
    degraded_scenes: List[str] = field(default_factory=list)
    dropped_scenes: List[str] = field(default_factory=list)
    assets_restored: int = 0
    asset_warnings: List[str] = field(default_factory=list)
    stand_ins: List[str] = field(default_factory=list)
    derived_types: List[str] = field(default_factory=list)
    active_scene: Optional[str] = None
    selection_restored: bool = False

    @property
    def degraded(self) -> bool:
        return bool(
            self.degraded_scenes or self.dropped_scenes or self.asset_warnings
        )

    def as_dict(self) -> dict:
        return {
            "project_name": self.project_name,
            "scenes_restored": list(self.scenes_restored),
            "degraded_scenes": list(self.degraded_scenes),
            "dropped_scenes": list(self.dropped_scenes),
            "assets_restored": self.assets_restored,
            "asset_warnings": list(self.asset_warnings),
            "stand_ins": list(self.stand_ins),
            "derived_types": list(self.derived_types),
            "active_scene": self.active_scene,
            "selection_restored": self.selection_restored,
        }


class RestoreOrchestrator:
    def __init__(
        self,
        editor: EditorState,
        asset_store: AssetStore,
        codec: ArchiveCodec,
        resolver: DependencyResolver,
        registry: TypeRegistry,
        notifier: Optional[NotificationSink] = None,
        *,
        settings_store: Any = None,
    ) -> None:
        self.editor = editor
        self.asset_store = asset_store
        self.codec = codec
        self.resolver = resolver
        self.registry = registry
        self.notifier = notifier
        self.settings_store = settings_store
        self._running = False
        self.cleared = False

    @property
    def running(self) -> bool:
        return self._running

    async def restore(self, data: Union[bytes, DecodedArchive]) -> RestoreReport:
        if self._running:
            raise RestoreInProgressError("a restore is already running")
        self._running = True
        self.cleared = False
        try:
            return await self._restore(data)
        finally:
            self._running = False

    async def _restore(self, data: Union[bytes, DecodedArchive]) -> RestoreReport:
        live_instances = list(getattr(self.editor, "scenes", None) or [])

        # 1-2
        self._clear_editor()
        await self.asset_store.reset()
        self.cleared = True

        # 3
        decoded = data if isinstance(data, DecodedArchive) else self.codec.decode(data)
        manifest = decoded.manifest
        report = RestoreReport(project_name=manifest.project_name)
        LOGGER.info(
            "Restoring project %s",
            manifest.project_name,
            extra={"scenes": len(manifest.scenes), "assets": len(manifest.assets)},
        )

        # 4
        resolved = self.resolver.ensure_available(
            required_types(manifest.scenes), live_instances
        )
        resolved.raise_for_unresolved()
        report.stand_ins = list(resolved.stand_ins)
        report.derived_types = list(resolved.derived)

        # 5
        await self._restore_assets(decoded, report)

        # 6
        scenes = self._restore_scenes(manifest.scenes, live_instances, report)
        self.editor.scenes = scenes

        # 7
        self._restore_settings(manifest.editor_settings)

        # 8
        self._restore_active_scene(manifest.editor_settings, report)
        return report

    def _clear_editor(self) -> None:
        self.editor.clear_scenes()
        self.editor.active_scene = None
        self.editor.select_object(None)

    async def _restore_assets(
        self, decoded: DecodedArchive, report: RestoreReport
    ) -> None:
        manifest = decoded.manifest
        for folder in sorted(manifest.folder_assets(), key=lambda item: item.path):
            try:
                await self.asset_store.create_directory(folder.path)
            except Exception as exc:
                self._asset_warning(report, folder.path, f"folder not created: {exc}")

        jobs: List[Tuple[str, Any]] = []
        for asset in manifest.file_assets():
            if asset.path in decoded.unreadable:
                self._asset_warning(report, asset.path, "archive entry is unreadable")
                continue
            content = decoded.content_for(asset.path)
            if content is None:
                self._asset_warning(report, asset.path, "missing from the archive")
                continue
            jobs.append((asset.path, self._write_asset(asset, content)))

        declared = set(manifest.asset_paths())
        for path in decoded.unreadable:
            if path not in declared:
                self._asset_warning(report, path, "archive entry is unreadable")
        for path in decoded.extras():
            extra = AssetRecord(path=path)
            jobs.append((path, self._write_asset(extra, decoded.contents[path])))

        results = await asyncio.gather(
            *(job for _, job in jobs), return_exceptions=True
        )
        for (path, _), outcome in zip(jobs, results):
            if isinstance(outcome, BaseException):
                self._asset_warning(report, path, f"write failed: {outcome}")
            else:
                report.assets_restored += 1

    async def _write_asset(self, asset: AssetRecord, content: Any) -> None:
        await self.asset_store.write_file(
            asset.path,
            content,
            created_at=asset.created_at,
            modified_at=asset.modified_at,
        )

    def _asset_warning(self, report: RestoreReport, path: str, reason: str) -> None:
        message = f"Asset {path} was not restored: {reason}"
        report.asset_warnings.append(path)
        LOGGER.warning(message)
        self._notify("warn", message)

    def _restore_scenes(
        self,
        payloads: Sequence[Any],
        live_instances: Sequence[Any],
        report: RestoreReport,
    ) -> List[Any]:
        restored: List[Any] = []
        seen: Set[str] = set()
        for index, payload in enumerate(payloads):
            if not isinstance(payload, Mapping):
                self._drop_scene(report, f"#{index}", "scene entry is not an object")
                continue
            pending = RawPending(payload)
            label = pending.name or "<unnamed>"
            if pending.name is not None and pending.name in seen:
                self._drop_scene(report, label, "duplicate scene name")
                continue
            if pending.name is not None:
                seen.add(pending.name)
            try:
                outcome = pending.try_materialize(self.registry)
                if isinstance(outcome, RawPending):
                    retry = self.resolver.ensure_available(
                        outcome.missing, live_instances
                    )
                    retry.raise_for_unresolved()
                    report.stand_ins.extend(
                        name for name in retry.stand_ins if name not in report.stand_ins
                    )
                    outcome = outcome.try_materialize(self.registry)
            except Exception as exc:
                LOGGER.exception("Scene %s could not be rebuilt", label)
                self._drop_scene(report, label, str(exc))
                continue

            if not isinstance(outcome, Materialized):
                self._drop_scene(
                    report, label, f"missing types: {', '.join(outcome.missing)}"
                )
                continue

            scene = outcome.scene
            scene.dirty = False
            restored.append(scene)
            report.scenes_restored.append(scene.name)
            if outcome.degraded or getattr(scene, "degraded", False):
                report.degraded_scenes.append(scene.name)
                LOGGER.warning(
                    "Scene %s restored with stand-in types",
                    scene.name,
                    extra={"stand_ins": sorted(outcome.stand_ins)},
                )
        return restored

    def _drop_scene(self, report: RestoreReport, label: str, reason: str) -> None:
        report.dropped_scenes.append(label)
        self._notify("error", f"Error loading scene {label}: {reason}")

    def _restore_settings(self, settings: EditorSettings) -> None:
        editor = self.editor
        camera = getattr(editor, "camera", None)
        if settings.camera is not None and camera is not None:
            position = camera.position
            x = settings.camera.x if settings.camera.x is not None else position.x
            y = settings.camera.y if settings.camera.y is not None else position.y
            if hasattr(position, "set"):
                position.set(x, y)
            else:
                position.x, position.y = x, y
            if settings.camera.zoom is not None:
                camera.zoom = settings.camera.zoom

        grid = getattr(editor, "grid", None)
        if settings.grid is not None and grid is not None:
            for name in ("show_grid", "grid_size", "snap_to_grid"):
                value = getattr(settings.grid, name)
                if value is not None:
                    setattr(grid, name, value)

        for name in ("inspector_collapse_states", "inspector_folder_collapse_states"):
            value = getattr(settings, name)
            if value is None:
                continue
            setattr(editor, name, dict(value))
            if self.settings_store is None:
                continue
            # Replaced wholesale; the archive is the source of truth.
            try:
                self.settings_store.patch(name, dict(value))
            except OSError as exc:
                LOGGER.warning("Could not persist %s: %s", name, exc)

        for name in ("active_bottom_tab", "active_canvas_tab"):
            value = getattr(settings, name)
            if value is not None:
                setattr(editor, name, value)

    def _restore_active_scene(
        self, settings: EditorSettings, report: RestoreReport
    ) -> None:
        editor = self.editor
        scenes = list(editor.scenes)
        active = next(
            (scene for scene in scenes if scene.name == settings.active_scene_name),
            None,
        )
        if active is None and scenes:
            active = scenes[0]
        if active is None:
            active = editor.create_default_scene()
        else:
            editor.set_active_scene(active)
        report.active_scene = getattr(editor.active_scene, "name", None)

        selected = None
        if settings.selected_object_id and editor.active_scene is not None:
            selected = _find_object(
                getattr(editor.active_scene, "game_objects", None) or [],
                settings.selected_object_id,
            )
        editor.select_object(selected)
        report.selection_restored = selected is not None

    def _notify(self, level: str, message: str) -> None:
        if self.notifier is not None:
            self.notifier.toast(level, message)


def _walk(objects: Sequence[Any]) -> Iterator[Any]:
    for obj in objects:
        yield obj
        yield from _walk(getattr(obj, "children", None) or [])


def _find_object(objects: Sequence[Any], object_id: str) -> Optional[Any]:
    return next((obj for obj in _walk(objects) if obj.id == object_id), None)
