"""In-memory virtual file system backing the editor's asset browser."""

from __future__ import annotations

import asyncio
import logging
import posixpath
from typing import Dict, List, Optional, Union

from darkmatter.persistence.models import (
    ROOT_PATH,
    AssetRecord,
    normalise_asset_path,
    now_ms,
)

LOGGER = logging.getLogger(__name__)

__all__ = ["VirtualFileSystem"]


class VirtualFileSystem:
    """Asset store keyed by absolute posix path.

    Every mutation runs under an ``asyncio.Lock`` so concurrent writes from a
    restore cannot interleave folder creation.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, AssetRecord] = {}
        self._lock = asyncio.Lock()
        self._ensure_root()

    def _ensure_root(self) -> None:
        self._entries.setdefault(
            ROOT_PATH, AssetRecord(path=ROOT_PATH, kind="folder", created_at=now_ms())
        )

    def _make_parents(self, path: str) -> None:
        parent = posixpath.dirname(path)
        missing: List[str] = []
        while parent and parent not in self._entries:
            missing.append(parent)
            parent = posixpath.dirname(parent)
        for folder in reversed(missing):
            existing = self._entries.get(folder)
            if existing is not None and existing.is_file:
                raise NotADirectoryError(folder)
            self._entries[folder] = AssetRecord(
                path=folder, kind="folder", created_at=now_ms()
            )
        direct = self._entries.get(posixpath.dirname(path))
        if direct is not None and direct.is_file:
            raise NotADirectoryError(direct.path)

    async def get_all_entries(self) -> List[AssetRecord]:
        async with self._lock:
            return [self._entries[key] for key in sorted(self._entries)]

    async def reset(self) -> None:
        async with self._lock:
            self._entries.clear()
            self._ensure_root()
        LOGGER.debug("Asset store reset")

    async def write_file(
        self,
        path: str,
        content: Union[bytes, str],
        *,
        created_at: Optional[int] = None,
        modified_at: Optional[int] = None,
    ) -> None:
        target = normalise_asset_path(path)
        if target == ROOT_PATH:
            raise IsADirectoryError(target)
        async with self._lock:
            existing = self._entries.get(target)
            if existing is not None and not existing.is_file:
                raise IsADirectoryError(target)
            self._make_parents(target)
            stamp = now_ms()
            self._entries[target] = AssetRecord(
                path=target,
                kind="file",
                content=content,
                created_at=created_at or (existing.created_at if existing else stamp),
                modified_at=modified_at or stamp,
            )

    async def create_directory(self, path: str) -> None:
        target = normalise_asset_path(path)
        async with self._lock:
            existing = self._entries.get(target)
            if existing is not None:
                if existing.is_file:
                    raise NotADirectoryError(target)
                return
            self._make_parents(target)
            self._entries[target] = AssetRecord(
                path=target, kind="folder", created_at=now_ms()
            )

    async def read_file(self, path: str) -> Union[bytes, str, None]:
        target = normalise_asset_path(path)
        async with self._lock:
            entry = self._entries.get(target)
        if entry is None or not entry.is_file:
            raise FileNotFoundError(target)
        return entry.content

    def exists(self, path: str) -> bool:
        return normalise_asset_path(path) in self._entries
