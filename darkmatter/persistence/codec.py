"""Encode and decode ``.dmproj`` project archives.

An archive is a DEFLATE zip holding ``project.json`` (the manifest, with file
content stripped) and one ``assets/<path>`` entry per file asset.  Folders
are written as directory entries so empty ones survive a round trip.
"""

from __future__ import annotations

import io
import json
import logging
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from .errors import (
    ArchiveFormatError,
    ManifestMissingError,
    SnapshotInvariantError,
    UnsupportedFormatVersionError,
)
from .models import (
    SUPPORTED_FORMAT_VERSIONS,
    AssetRecord,
    ProjectSnapshot,
    normalise_asset_path,
)

LOGGER = logging.getLogger(__name__)

__all__ = ["ASSETS_PREFIX", "ArchiveCodec", "DecodedArchive", "MANIFEST_NAME"]

MANIFEST_NAME = "project.json"
ASSETS_PREFIX = "assets/"

AssetContent = Union[bytes, str]


@dataclass(frozen=True)
class DecodedArchive:
    """A parsed archive.

    ``manifest`` carries no file content; ``contents`` maps asset paths to the
    bytes (or text) read from the container and ``unreadable`` lists paths
    whose entries existed but could not be read.
    """

    manifest: ProjectSnapshot
    contents: Mapping[str, AssetContent] = field(default_factory=dict)
    unreadable: List[str] = field(default_factory=list)

    def content_for(self, path: str) -> Optional[AssetContent]:
        return self.contents.get(path)

    def missing(self) -> List[str]:
        return [
            asset.path
            for asset in self.manifest.file_assets()
            if asset.path not in self.contents and asset.path not in self.unreadable
        ]

    def extras(self) -> List[str]:
        declared = set(self.manifest.asset_paths())
        return sorted(path for path in self.contents if path not in declared)


class ArchiveCodec:
    def __init__(
        self,
        *,
        compression: int = zipfile.ZIP_DEFLATED,
        supported_versions: Iterable[str] = SUPPORTED_FORMAT_VERSIONS,
    ) -> None:
        self.compression = compression
        self.supported_versions = frozenset(supported_versions)

    def encode(self, snapshot: ProjectSnapshot) -> bytes:
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", self.compression) as archive:
            archive.writestr(
                MANIFEST_NAME, json.dumps(snapshot.to_manifest(), indent=2)
            )
            for asset in snapshot.assets:
                if asset.is_file:
                    archive.writestr(
                        ASSETS_PREFIX + asset.entry_path, asset.content_bytes()
                    )
                else:
                    archive.writestr(ASSETS_PREFIX + asset.entry_path + "/", b"")
        LOGGER.debug(
            "Encoded archive %s",
            snapshot.project_name,
            extra={"bytes": buf.tell(), "assets": len(snapshot.assets)},
        )
        return buf.getvalue()

    def decode(self, data: bytes) -> DecodedArchive:
        try:
            archive = zipfile.ZipFile(io.BytesIO(data))
        except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as exc:
            raise ArchiveFormatError(f"not a project archive: {exc}") from exc

        with archive:
            manifest, encodings = self._read_manifest(archive)
            contents: Dict[str, AssetContent] = {}
            unreadable: List[str] = []
            folders: List[str] = []
            for info in archive.infolist():
                if not info.filename.startswith(ASSETS_PREFIX):
                    continue
                relative = info.filename[len(ASSETS_PREFIX) :]
                if not relative.strip("/"):
                    continue
                try:
                    path = normalise_asset_path(relative)
                except SnapshotInvariantError:
                    LOGGER.warning("Skipping archive entry %s", info.filename)
                    continue
                if info.is_dir():
                    folders.append(path)
                    continue
                try:
                    raw = archive.read(info)
                except (zipfile.BadZipFile, zlib.error, EOFError, OSError) as exc:
                    LOGGER.warning(
                        "Unreadable archive entry %s: %s", info.filename, exc
                    )
                    unreadable.append(path)
                    continue
                contents[path] = self._decode_content(raw, encodings.get(path))

        manifest = self._add_undeclared_folders(manifest, folders)
        return DecodedArchive(
            manifest=manifest, contents=contents, unreadable=unreadable
        )

    def _read_manifest(
        self, archive: zipfile.ZipFile
    ) -> Tuple[ProjectSnapshot, Dict[str, str]]:
        try:
            raw = archive.read(MANIFEST_NAME)
        except KeyError as exc:
            raise ManifestMissingError("archive has no project.json") from exc
        except (zipfile.BadZipFile, zlib.error, EOFError, OSError) as exc:
            raise ArchiveFormatError(f"project.json unreadable: {exc}") from exc

        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise ArchiveFormatError(f"project.json is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ArchiveFormatError("project.json must contain an object")

        version = payload.get("formatVersion", payload.get("version"))
        if version is None:
            raise ArchiveFormatError("project.json has no formatVersion")
        if str(version) not in self.supported_versions:
            raise UnsupportedFormatVersionError(version, self.supported_versions)

        payload = dict(payload)
        payload["formatVersion"] = str(version)
        assets = payload.get("assets") or []
        if not isinstance(assets, list):
            raise ArchiveFormatError("project.json assets must be a list")
        scenes = payload.get("scenes") or []
        if not isinstance(scenes, list):
            raise ArchiveFormatError("project.json scenes must be a list")
        # Scene entries are checked one at a time when they are rebuilt.
        payload["scenes"] = []
        entries = [item for item in assets if isinstance(item, Mapping)]
        payload["assets"] = [_strip_content(item) for item in entries]

        try:
            manifest = ProjectSnapshot.from_manifest(payload)
        except (ValidationError, SnapshotInvariantError) as exc:
            raise ArchiveFormatError(f"invalid project manifest: {exc}") from exc
        manifest = manifest.model_copy(update={"scenes": tuple(scenes)})
        encodings = {
            asset.path: _declared_encoding(raw)
            for asset, raw in zip(manifest.assets, entries)
        }
        return manifest, encodings

    @staticmethod
    def _decode_content(raw: bytes, encoding: Optional[str]) -> AssetContent:
        if encoding == "binary":
            return raw
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return raw

    @staticmethod
    def _add_undeclared_folders(
        manifest: ProjectSnapshot, folders: List[str]
    ) -> ProjectSnapshot:
        known = set(manifest.asset_paths())
        extra = [
            AssetRecord(path=path, kind="folder")
            for path in dict.fromkeys(folders)
            if path not in known
        ]
        if not extra:
            return manifest
        return manifest.model_copy(update={"assets": manifest.assets + tuple(extra)})


def _strip_content(entry: Mapping[str, Any]) -> Dict[str, Any]:
    stripped = {key: value for key, value in entry.items() if key != "content"}
    if "kind" not in stripped and "type" in stripped:
        stripped["kind"] = stripped.pop("type")
    for legacy, current in (("created", "createdAt"), ("modified", "modifiedAt")):
        if legacy in stripped and current not in stripped:
            stripped[current] = stripped.pop(legacy)
    return stripped


def _declared_encoding(entry: Mapping[str, Any]) -> str:
    encoding = entry.get("encoding")
    return encoding if encoding in {"text", "binary"} else "text"
