"""Tunables for the project persistence core."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_WATCHDOG_TIMEOUT_MS = 30_000
DEFAULT_REMINDER_PERIOD_S = 60.0
DEFAULT_REMINDER_THRESHOLD_S = 5 * 60.0
ARCHIVE_SUFFIX = ".dmproj"


def _positive_number(
    source: Mapping[str, str], name: str, default: float, *, integer: bool = False
) -> float:
    raw = source.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip()) if integer else float(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a positive number.") from exc
    if value <= 0:
        raise ValueError(f"{name} must be greater than zero.")
    return value


def _flag(source: Mapping[str, str], name: str, default: bool) -> bool:
    raw = source.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class PersistenceSettings:
    """Deployment settings for project save/load.

    Values come from ``DARKMATTER_*`` environment variables; empty strings are
    treated as unset.
    """

    watchdog_timeout_ms: int = DEFAULT_WATCHDOG_TIMEOUT_MS
    reminder_period_s: float = DEFAULT_REMINDER_PERIOD_S
    reminder_threshold_s: float = DEFAULT_REMINDER_THRESHOLD_S
    reminder_enabled: bool = True
    projects_dir: Optional[Path] = None

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None
    ) -> "PersistenceSettings":
        source = environ if environ is not None else os.environ

        projects_raw = (source.get("DARKMATTER_PROJECTS_DIR") or "").strip()
        projects_dir = Path(projects_raw).expanduser() if projects_raw else None

        return cls(
            watchdog_timeout_ms=int(
                _positive_number(
                    source,
                    "DARKMATTER_WATCHDOG_TIMEOUT_MS",
                    DEFAULT_WATCHDOG_TIMEOUT_MS,
                    integer=True,
                )
            ),
            reminder_period_s=_positive_number(
                source, "DARKMATTER_REMINDER_PERIOD_S", DEFAULT_REMINDER_PERIOD_S
            ),
            reminder_threshold_s=_positive_number(
                source, "DARKMATTER_REMINDER_THRESHOLD_S", DEFAULT_REMINDER_THRESHOLD_S
            ),
            reminder_enabled=_flag(source, "DARKMATTER_SAVE_REMINDER", True),
            projects_dir=projects_dir,
        )


__all__ = ["ARCHIVE_SUFFIX", "PersistenceSettings"]
