"""Pydantic models describing a project snapshot and its archive manifest.

A :class:`ProjectSnapshot` is the immutable, in-memory picture of everything a
project archive persists: editor settings, the portable form of every scene and
the virtual file-system listing.  The manifest written to ``project.json`` is
the same structure with file asset content stripped out.
"""

from __future__ import annotations

import posixpath
import time
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Literal,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import SnapshotInvariantError

__all__ = [
    "AssetRecord",
    "CameraSettings",
    "DEFAULT_PROJECT_NAME",
    "EditorSettings",
    "FORMAT_VERSION",
    "GridSettings",
    "ProjectSnapshot",
    "ROOT_PATH",
    "SUPPORTED_FORMAT_VERSIONS",
    "normalise_asset_path",
    "now_ms",
]

FORMAT_VERSION = "1.0"
SUPPORTED_FORMAT_VERSIONS = frozenset({FORMAT_VERSION})
DEFAULT_PROJECT_NAME = "UntitledProject"
ROOT_PATH = "/"

AssetKind = Literal["file", "folder"]
AssetContent = Union[bytes, str, None]


def now_ms() -> int:
    return int(time.time() * 1000)


def normalise_asset_path(path: str) -> str:
    """Return ``path`` as an absolute, normalised posix path.

    ``..`` segments are rejected since the path is later used to name archive
    entries and virtual file-system nodes.
    """

    if not isinstance(path, str) or not path.strip():
        raise SnapshotInvariantError("asset path must be a non-empty string")
    candidate = path.strip().replace("\\", "/")
    if ".." in candidate.split("/"):
        raise SnapshotInvariantError(f"asset path escapes the project root: {path!r}")
    normalised = posixpath.normpath("/" + candidate.lstrip("/"))
    if normalised.startswith("//"):
        normalised = "/" + normalised.lstrip("/")
    return normalised


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class CameraSettings(_FrozenModel):
    x: Optional[float] = None
    y: Optional[float] = None
    zoom: Optional[float] = None


class GridSettings(_FrozenModel):
    show_grid: Optional[bool] = Field(default=None, alias="showGrid")
    grid_size: Optional[int] = Field(default=None, alias="gridSize")
    snap_to_grid: Optional[bool] = Field(default=None, alias="snapToGrid")


class EditorSettings(_FrozenModel):
    """Editor/UI state persisted alongside the scenes.

    Every field is optional: manifests written by older builds simply omit
    what they did not know about, and restore keeps the current value for
    anything left as ``None``.
    """

    active_scene_name: Optional[str] = Field(default=None, alias="activeSceneName")
    camera: Optional[CameraSettings] = None
    grid: Optional[GridSettings] = None
    selected_object_id: Optional[str] = Field(default=None, alias="selectedObjectId")
    inspector_collapse_states: Optional[Dict[str, Any]] = Field(
        default=None, alias="inspectorCollapseStates"
    )
    inspector_folder_collapse_states: Optional[Dict[str, Any]] = Field(
        default=None, alias="inspectorFolderCollapseStates"
    )
    active_bottom_tab: Optional[str] = Field(default=None, alias="activeBottomTab")
    active_canvas_tab: Optional[str] = Field(default=None, alias="activeCanvasTab")


class AssetRecord(_FrozenModel):
    path: str
    kind: AssetKind = "file"
    content: AssetContent = None
    created_at: Optional[int] = Field(default=None, alias="createdAt")
    modified_at: Optional[int] = Field(default=None, alias="modifiedAt")

    @field_validator("path", mode="before")
    @classmethod
    def _normalise_path(cls, value: Any) -> str:
        return normalise_asset_path(value)

    @model_validator(mode="after")
    def _folders_carry_no_content(self) -> "AssetRecord":
        if self.kind == "folder" and self.content is not None:
            raise SnapshotInvariantError(
                f"folder asset {self.path} cannot carry content"
            )
        return self

    @property
    def is_file(self) -> bool:
        return self.kind == "file"

    @property
    def encoding(self) -> str:
        return "binary" if isinstance(self.content, bytes) else "text"

    @property
    def entry_path(self) -> str:
        """Path relative to the archive's ``assets/`` folder."""

        return self.path.lstrip("/")

    def content_bytes(self) -> bytes:
        if self.content is None:
            return b""
        if isinstance(self.content, bytes):
            return self.content
        return self.content.encode("utf-8")

    def manifest_entry(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "path": self.path,
            "kind": self.kind,
            "createdAt": self.created_at,
            "modifiedAt": self.modified_at,
        }
        if self.is_file:
            entry["encoding"] = self.encoding
        return entry


class ProjectSnapshot(_FrozenModel):
    """Immutable picture of the whole persistable project state."""

    project_name: str = Field(default=DEFAULT_PROJECT_NAME, alias="projectName")
    format_version: str = Field(default=FORMAT_VERSION, alias="formatVersion")
    created_at: int = Field(default_factory=now_ms, alias="timestamp")
    editor_settings: EditorSettings = Field(
        default_factory=EditorSettings, alias="editorSettings"
    )
    assets_complete: bool = Field(default=True, alias="assetsComplete")
    scenes: Tuple[Dict[str, Any], ...] = ()
    assets: Tuple[AssetRecord, ...] = ()

    @model_validator(mode="after")
    def _check_invariants(self) -> "ProjectSnapshot":
        seen_paths: set[str] = set()
        for asset in self.assets:
            if asset.path in seen_paths:
                raise SnapshotInvariantError(f"duplicate asset path: {asset.path}")
            seen_paths.add(asset.path)

        seen_names: set[str] = set()
        for name in self.scene_names():
            if name in seen_names:
                raise SnapshotInvariantError(f"duplicate scene name: {name}")
            seen_names.add(name)
        return self

    def scene_names(self) -> List[str]:
        names: List[str] = []
        for scene in self.scenes:
            name = scene.get("name") if isinstance(scene, Mapping) else None
            if isinstance(name, str):
                names.append(name)
        return names

    def asset_paths(self) -> List[str]:
        return [asset.path for asset in self.assets]

    def file_assets(self) -> Iterator[AssetRecord]:
        return (asset for asset in self.assets if asset.is_file)

    def folder_assets(self) -> Iterator[AssetRecord]:
        return (asset for asset in self.assets if not asset.is_file)

    def find_asset(self, path: str) -> Optional[AssetRecord]:
        target = normalise_asset_path(path)
        for asset in self.assets:
            if asset.path == target:
                return asset
        return None

    def to_manifest(self) -> Dict[str, Any]:
        """Return the ``project.json`` payload (file content excluded)."""

        payload = self.model_dump(mode="json", by_alias=True, exclude={"assets"})
        payload["assets"] = [asset.manifest_entry() for asset in self.assets]
        return payload

    @classmethod
    def from_manifest(cls, payload: Mapping[str, Any]) -> "ProjectSnapshot":
        return cls.model_validate(payload)
