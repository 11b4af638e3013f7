"""Project persistence entry points: new, save, save as, load, auto-open.

Every public operation runs under the :class:`OperationGuard`; failures are
reported to the user here and nowhere else, and the guard is always released
on the way out.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import time
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from darkmatter.config import runtime_paths
from darkmatter.config.persistence import ARCHIVE_SUFFIX, PersistenceSettings

from .assembler import SnapshotAssembler
from .codec import ArchiveCodec
from .collaborators import (
    AssetStore,
    Decision,
    EditorState,
    NotificationSink,
    ProjectPrompt,
)
from .errors import (
    ArchiveError,
    OperationInProgressError,
    PersistenceError,
    RestoreInProgressError,
    UnresolvedTypesError,
)
from .gate import UnsavedChangesGate
from .guard import OperationGuard
from .models import DEFAULT_PROJECT_NAME
from .registry import TypeRegistry
from .reminder import SaveReminderScheduler
from .resolver import DependencyResolver
from .restore import RestoreOrchestrator, RestoreReport
from .session import SessionContext

LOGGER = logging.getLogger(__name__)

__all__ = ["OperationResult", "PersistenceService"]

BUSY_MESSAGE = "Operation in progress. Please wait."
SAVED_MESSAGE = "Project saved successfully!"
LOADED_MESSAGE = "Project loaded successfully!"
CREATED_MESSAGE = "New project created."
SAVE_CANCELLED_MESSAGE = "Save cancelled."
LOAD_CANCELLED_MESSAGE = "Load cancelled."
CANCELLED_MESSAGE = "Cancelled."

ArchiveSource = Union[str, os.PathLike, bytes]

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9._ -]+")


@dataclass
class OperationResult:
    ok: bool
    status: str
    message: str = ""
    project_name: Optional[str] = None
    archive_path: Optional[Path] = None
    report: Optional[RestoreReport] = None
    error: Optional[BaseException] = None

    @property
    def cancelled(self) -> bool:
        return self.status == "cancelled"

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "ok": self.ok,
            "status": self.status,
            "message": self.message,
            "project_name": self.project_name,
            "archive_path": str(self.archive_path) if self.archive_path else None,
        }
        if self.cancelled:
            payload["cancelled"] = True
        if self.report is not None:
            payload["report"] = self.report.as_dict()
        return payload


def archive_file_name(project_name: str) -> str:
    safe = _UNSAFE_NAME.sub("_", project_name).strip(" .")
    return f"{safe or DEFAULT_PROJECT_NAME}{ARCHIVE_SUFFIX}"


def _log_save_failure(message: str, exc: Exception) -> None:
    if isinstance(exc, (PersistenceError, OSError)):
        LOGGER.warning("%s: %s", message, exc)
    else:
        LOGGER.exception(message)


def _write_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with NamedTemporaryFile(
        mode="wb", dir=str(path.parent), prefix=f".{path.stem}.", delete=False
    ) as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    try:
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


class PersistenceService:
    def __init__(
        self,
        editor: EditorState,
        asset_store: AssetStore,
        registry: TypeRegistry,
        notifier: Optional[NotificationSink] = None,
        *,
        prompt: Optional[ProjectPrompt] = None,
        settings_manager: Any = None,
        settings: Optional[PersistenceSettings] = None,
        context: Optional[SessionContext] = None,
        codec: Optional[ArchiveCodec] = None,
    ) -> None:
        self.editor = editor
        self.asset_store = asset_store
        self.registry = registry
        self.notifier = notifier
        self.prompt = prompt
        self.settings_manager = settings_manager
        self.settings = settings or PersistenceSettings()
        self.context = context or SessionContext()
        self.codec = codec or ArchiveCodec()

        self.context.reminder_enabled = self.settings.reminder_enabled and bool(
            self._local_setting("save_reminder_enabled", True)
        )
        for name in ("inspector_collapse_states", "inspector_folder_collapse_states"):
            stored = self._local_setting(name)
            if stored and hasattr(editor, name):
                setattr(editor, name, dict(stored))

        self.guard = OperationGuard(
            self.context, notifier, timeout_ms=self.settings.watchdog_timeout_ms
        )
        self.assembler = SnapshotAssembler(editor, asset_store)
        self.resolver = DependencyResolver(registry)
        self.orchestrator = RestoreOrchestrator(
            editor,
            asset_store,
            self.codec,
            self.resolver,
            registry,
            notifier,
            settings_store=settings_manager,
        )
        self.reminder = SaveReminderScheduler(
            self.context,
            notifier,
            threshold_s=self.settings.reminder_threshold_s,
            period_s=self.settings.reminder_period_s,
        )

    def start(self) -> None:
        self.reminder.start()

    async def shutdown(self) -> None:
        await self.reminder.stop()
        self.guard.shutdown()

    def projects_dir(self) -> Path:
        if self.settings.projects_dir is not None:
            return self.settings.projects_dir
        return runtime_paths.projects_dir()

    def status(self) -> Dict[str, Any]:
        payload = self.context.as_dict()
        summary = getattr(self.editor, "summary", None)
        if callable(summary):
            payload["editor"] = summary()
        payload["stand_ins"] = self.registry.stand_ins()
        return payload

    def set_reminder_enabled(self, enabled: bool) -> None:
        self.reminder.set_enabled(enabled)
        if self.settings_manager is not None:
            self.settings_manager.merge({"save_reminder_enabled": bool(enabled)})

    async def new_project(
        self, *, prompt: Optional[ProjectPrompt] = None
    ) -> OperationResult:
        async def action() -> OperationResult:
            if not await self._confirm_discard(prompt):
                return OperationResult(False, "cancelled", CANCELLED_MESSAGE)
            await self._reset_to_new_project()
            self._notify("success", CREATED_MESSAGE)
            return OperationResult(
                True, "completed", CREATED_MESSAGE, DEFAULT_PROJECT_NAME
            )

        return await self._guarded("new", action)

    async def save_project(
        self, *, prompt: Optional[ProjectPrompt] = None
    ) -> OperationResult:
        return await self._guarded(
            "save", partial(self._save_operation, prompt, save_as=False)
        )

    async def save_project_as(
        self, *, prompt: Optional[ProjectPrompt] = None
    ) -> OperationResult:
        return await self._guarded(
            "save_as", partial(self._save_operation, prompt, save_as=True)
        )

    async def load_project(
        self,
        source: Optional[ArchiveSource] = None,
        *,
        prompt: Optional[ProjectPrompt] = None,
    ) -> OperationResult:
        return await self._guarded(
            "load", partial(self._load_operation, source, prompt)
        )

    async def try_auto_open_last_project(self) -> bool:
        last = self._local_setting("last_project_path")
        if not last:
            return False
        path = Path(last)
        if not path.is_file():
            LOGGER.info("Last project %s no longer exists", path)
            return False
        result = await self.load_project(path)
        return result.ok

    async def export_archive(self) -> tuple[str, bytes]:
        """Assemble and encode the open project without writing it anywhere."""

        async with self.guard.hold("export"):
            name = self.context.current_project_name
            snapshot = await self.assembler.assemble(name)
            return name, self.codec.encode(snapshot)

    async def _guarded(
        self, operation: str, action: Callable[[], Awaitable[OperationResult]]
    ) -> OperationResult:
        try:
            async with self.guard.hold(operation):
                return await action()
        except OperationInProgressError as exc:
            LOGGER.warning("Rejected %s: %s", operation, exc)
            self._notify("warn", BUSY_MESSAGE)
            return OperationResult(False, "busy", BUSY_MESSAGE, error=exc)

    async def _confirm_discard(self, prompt: Optional[ProjectPrompt]) -> bool:
        asker = prompt or self.prompt
        gate = UnsavedChangesGate(asker, partial(self._save_reporting, asker))
        decision = await gate.confirm_discard(self.editor.active_scene)
        if decision is Decision.CANCEL:
            LOGGER.info("Operation cancelled at the unsaved changes prompt")
            self._notify("info", CANCELLED_MESSAGE)
            return False
        return True

    async def _save_operation(
        self, prompt: Optional[ProjectPrompt], *, save_as: bool
    ) -> OperationResult:
        try:
            path = await self._save_pipeline(prompt, save_as=save_as)
        except Exception as exc:
            _log_save_failure("Saving project failed", exc)
            message = f"Error saving project: {exc}"
            self._notify("error", message)
            return OperationResult(False, "failed", message, error=exc)
        if path is None:
            return OperationResult(False, "cancelled", SAVE_CANCELLED_MESSAGE)
        return OperationResult(
            True,
            "completed",
            SAVED_MESSAGE,
            self.context.current_project_name,
            archive_path=path,
        )

    async def _save_reporting(self, prompt: Optional[ProjectPrompt]) -> bool:
        """Save pipeline used from inside another guarded operation."""

        try:
            return await self._save_pipeline(prompt, save_as=False) is not None
        except Exception as exc:
            _log_save_failure("Saving project before discard failed", exc)
            self._notify("error", f"Error saving project: {exc}")
            return False

    async def _save_pipeline(
        self, prompt: Optional[ProjectPrompt], *, save_as: bool
    ) -> Optional[Path]:
        """Assemble, encode and write the project; ``None`` when cancelled.

        Runs under a guard already held by the caller.
        """

        current = self.context.current_project_name
        asker = prompt or self.prompt
        name: Optional[str] = current
        if asker is not None:
            name = await asker.ask_project_name(current)
        name = name.strip() if isinstance(name, str) else None
        if not name:
            self._notify("info", SAVE_CANCELLED_MESSAGE)
            return None

        snapshot = await self.assembler.assemble(name)
        data = self.codec.encode(snapshot)

        handle = self.context.last_archive_handle
        if not save_as and handle is not None and name == current:
            target = handle
        else:
            target = self.projects_dir() / archive_file_name(name)
        await asyncio.to_thread(_write_atomic, target, data)

        for scene in self.editor.scenes:
            scene.dirty = False
        self.context.current_project_name = name
        self.context.last_archive_handle = target
        self.context.last_successful_save_at = time.time()
        self.reminder.dismiss()
        self._remember(target, name)
        LOGGER.info(
            "Project saved", extra={"project": name, "path": str(target)}
        )

        if not snapshot.assets_complete:
            self._notify(
                "warn", "Project saved without assets: the asset list was unavailable."
            )
        self._notify("success", SAVED_MESSAGE)
        return target

    async def _load_operation(
        self, source: Optional[ArchiveSource], prompt: Optional[ProjectPrompt]
    ) -> OperationResult:
        asker = prompt or self.prompt
        if not await self._confirm_discard(prompt):
            return OperationResult(False, "cancelled", CANCELLED_MESSAGE)

        if source is None:
            source = await asker.choose_archive() if asker is not None else None
            if source is None:
                self._notify("info", LOAD_CANCELLED_MESSAGE)
                return OperationResult(False, "cancelled", LOAD_CANCELLED_MESSAGE)

        path: Optional[Path] = None
        if isinstance(source, (bytes, bytearray)):
            data = bytes(source)
        else:
            path = Path(source)
            try:
                data = await asyncio.to_thread(path.read_bytes)
            except OSError as exc:
                message = f"Error loading project: {exc}"
                LOGGER.warning("Could not read archive %s: %s", path, exc)
                self._notify("error", message)
                return OperationResult(False, "failed", message, error=exc)

        try:
            report = await self.orchestrator.restore(data)
        except RestoreInProgressError as exc:
            self._notify("warn", BUSY_MESSAGE)
            return OperationResult(False, "busy", BUSY_MESSAGE, error=exc)
        except Exception as exc:
            if isinstance(exc, (ArchiveError, UnresolvedTypesError)):
                LOGGER.warning("Loading project failed: %s", exc)
            else:
                LOGGER.exception("Loading project failed")
            message = f"Error loading project: {exc}"
            self._notify("error", message)
            if self.orchestrator.cleared:
                await self._reset_to_new_project()
            return OperationResult(False, "failed", message, error=exc)

        self.context.current_project_name = report.project_name
        self.context.last_archive_handle = path
        self.context.last_successful_save_at = time.time()
        self.reminder.dismiss()
        if path is not None:
            self._remember(path, report.project_name)
        if report.stand_ins:
            self._notify(
                "warn",
                "Some types were unavailable and were replaced with placeholders: "
                + ", ".join(report.stand_ins),
            )
        self._notify("success", LOADED_MESSAGE)
        return OperationResult(
            True,
            "completed",
            LOADED_MESSAGE,
            report.project_name,
            archive_path=path,
            report=report,
        )

    async def _reset_to_new_project(self) -> None:
        """Replace everything with an empty project; caller holds the guard."""

        await self.asset_store.reset()
        editor = self.editor
        editor.clear_scenes()
        editor.create_default_scene()
        camera = editor.camera
        camera.position.set(0.0, 0.0)
        camera.zoom = 1.0
        grid = editor.grid
        grid.show_grid = True
        grid.grid_size = 32
        grid.snap_to_grid = False
        editor.select_object(None)
        self.context.current_project_name = DEFAULT_PROJECT_NAME
        self.context.last_archive_handle = None
        self.context.last_successful_save_at = time.time()
        self.reminder.dismiss()

    def _remember(self, path: Path, name: str) -> None:
        if self.settings_manager is None:
            return
        try:
            self.settings_manager.remember_project(path, name)
        except OSError as exc:
            LOGGER.warning("Could not record last project: %s", exc)

    def _local_setting(self, key: str, default: Any = None) -> Any:
        if self.settings_manager is None:
            return default
        return self.settings_manager.get(key, default)

    def _notify(self, level: str, message: str) -> None:
        if self.notifier is not None:
            self.notifier.toast(level, message)
