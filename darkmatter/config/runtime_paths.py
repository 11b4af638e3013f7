"""
Runtime paths helpers for Dark Matter Studio.

This module centralises access to mutable directories (data, config, logs,
projects) and redirects them to OS-appropriate locations using
``platformdirs``.  ``DARKMATTER_RUNTIME_ROOT`` keeps everything under one
portable folder; the per-directory variables override single roots.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from platformdirs import PlatformDirs

APP_NAME = os.getenv("DARKMATTER_APP_NAME", "Dark Matter Studio")
APP_AUTHOR = os.getenv("DARKMATTER_APP_AUTHOR", "DarkMatter")


def _expand(path: Optional[str]) -> Optional[Path]:
    if not path:
        return None
    return Path(path).expanduser().resolve()


@dataclass(frozen=True)
class _RuntimeRoots:
    data: Path
    config: Path
    logs: Path


@lru_cache(maxsize=1)
def _runtime_roots() -> _RuntimeRoots:
    override_root = _expand(os.getenv("DARKMATTER_RUNTIME_ROOT"))
    if override_root:
        data = override_root / "data"
        config = override_root / "config"
        logs = override_root / "logs"
    else:
        dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=False)
        data = Path(dirs.user_data_path)
        config = Path(dirs.user_config_path)
        logs = Path(dirs.user_log_path)

    data = _expand(os.getenv("DARKMATTER_DATA_DIR")) or data
    config = _expand(os.getenv("DARKMATTER_CONFIG_DIR")) or config
    logs = _expand(os.getenv("DARKMATTER_LOG_DIR")) or logs

    for root in (data, config, logs):
        if root.exists() and not root.is_dir():
            raise RuntimeError(
                f"Runtime path {root} exists but is not a directory. "
                "Remove or relocate the conflicting file and retry."
            )
        root.mkdir(parents=True, exist_ok=True)

    return _RuntimeRoots(data=data, config=config, logs=logs)


def reset_runtime_roots() -> None:
    """Forget cached roots so environment changes take effect."""

    _runtime_roots.cache_clear()


def data_dir(*parts: str) -> Path:
    return _runtime_roots().data.joinpath(*parts)


def config_dir(*parts: str) -> Path:
    return _runtime_roots().config.joinpath(*parts)


def logs_dir(*parts: str) -> Path:
    return _runtime_roots().logs.joinpath(*parts)


def settings_file(name: str = "settings.json") -> Path:
    return config_dir(name)


def projects_dir() -> Path:
    override = _expand(os.getenv("DARKMATTER_PROJECTS_DIR"))
    path = override or data_dir("projects")
    path.mkdir(parents=True, exist_ok=True)
    return path
