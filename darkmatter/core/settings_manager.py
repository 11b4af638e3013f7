"""Per-user local settings: last opened project and persisted UI blobs."""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from darkmatter.config.runtime_paths import settings_file

LOGGER = logging.getLogger(__name__)


class LocalSettingsModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    last_project_path: Optional[str] = None
    last_project_name: Optional[str] = None
    inspector_collapse_states: dict[str, Any] = Field(default_factory=dict)
    inspector_folder_collapse_states: dict[str, Any] = Field(default_factory=dict)
    save_reminder_enabled: bool = True


def _deep_merge(
    base: MutableMapping[str, Any], updates: Mapping[str, Any]
) -> MutableMapping[str, Any]:
    for key, value in updates.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), MutableMapping):
            base[key] = _deep_merge(base[key], value)  # type: ignore[index]
        else:
            base[key] = copy.deepcopy(value)
    return base


def _load_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        LOGGER.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return {}
    return payload if isinstance(payload, dict) else {}


class SettingsManager:
    """JSON-file backed store for :class:`LocalSettingsModel`."""

    def __init__(self, path: str | Path | None = None):
        self.path = (
            Path(path) if path is not None else Path(settings_file("settings.json"))
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._cached_payload: dict[str, Any] | None = None

    def _write_file(self, payload: Mapping[str, Any]) -> None:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _persist(self, model: LocalSettingsModel) -> None:
        payload = model.model_dump(mode="json")
        if self._cached_payload == payload:
            return
        self._write_file(payload)
        self._cached_payload = copy.deepcopy(payload)

    def load_model(self) -> LocalSettingsModel:
        base = LocalSettingsModel().model_dump(mode="python")
        merged = _deep_merge(base, _load_json(self.path))
        return LocalSettingsModel.model_validate(merged)

    def load(self) -> dict[str, Any]:
        return self.load_model().model_dump(mode="python")

    def save(self, data: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
        if isinstance(data, LocalSettingsModel):
            model = data
        elif isinstance(data, BaseModel):
            model = LocalSettingsModel.model_validate(data.model_dump())
        else:
            model = LocalSettingsModel.model_validate(dict(data))
        self._persist(model)
        return model.model_dump(mode="python")

    def get(self, key: str, default: Any | None = None) -> Any:
        return self.load().get(key, default)

    def patch(self, key: str, value: Any) -> dict[str, Any]:
        current = self.load()
        current[key] = value
        return self.save(current)

    def merge(self, updates: Mapping[str, Any]) -> dict[str, Any]:
        current = self.load()
        merged = _deep_merge(copy.deepcopy(current), updates)
        return self.save(merged)

    def remember_project(self, path: str | Path, name: str) -> dict[str, Any]:
        return self.merge(
            {"last_project_path": str(path), "last_project_name": name}
        )

    def forget_project(self) -> dict[str, Any]:
        return self.merge({"last_project_path": None, "last_project_name": None})

    def defaults(self) -> dict[str, Any]:
        return LocalSettingsModel().model_dump(mode="python")


__all__ = ["LocalSettingsModel", "SettingsManager"]
