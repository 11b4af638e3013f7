from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from darkmatter.config.runtime_paths import reset_runtime_roots  # noqa: E402
from darkmatter.core.notifier import Notifier  # noqa: E402
from darkmatter.core.settings_manager import SettingsManager  # noqa: E402
from darkmatter.editor.asset_store import VirtualFileSystem  # noqa: E402
from darkmatter.editor.workspace import EditorWorkspace  # noqa: E402
from darkmatter.persistence.registry import TypeRegistry  # noqa: E402
from project_helpers import (  # noqa: E402
    make_registry,
    make_sample_workspace,
    populate_assets,
)


@pytest.fixture(autouse=True)
def runtime_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    root = tmp_path / "runtime"
    monkeypatch.setenv("DARKMATTER_RUNTIME_ROOT", str(root))
    for name in (
        "DARKMATTER_DATA_DIR",
        "DARKMATTER_CONFIG_DIR",
        "DARKMATTER_LOG_DIR",
        "DARKMATTER_PROJECTS_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_runtime_roots()
    yield root
    reset_runtime_roots()


@pytest.fixture()
def registry() -> TypeRegistry:
    return make_registry()


@pytest.fixture()
def workspace() -> EditorWorkspace:
    return make_sample_workspace()


@pytest.fixture()
def asset_store() -> VirtualFileSystem:
    return asyncio.run(populate_assets(VirtualFileSystem()))


@pytest.fixture()
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture()
def settings_manager(tmp_path: Path) -> SettingsManager:
    return SettingsManager(tmp_path / "config" / "settings.json")
