from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .models import DEFAULT_PROJECT_NAME

__all__ = ["SessionContext"]


@dataclass
class SessionContext:
    """Process-wide session state owned by one ``PersistenceService``.

    Only the operation guard and the save reminder write to it; the service
    updates the save timestamp and project identity after successful work.
    """

    guard_held: bool = False
    guard_acquired_at: Optional[float] = None
    guard_operation: Optional[str] = None
    last_successful_save_at: float = field(default_factory=time.time)
    reminder_enabled: bool = True
    reminder_visible: bool = False
    last_archive_handle: Optional[Path] = None
    current_project_name: str = DEFAULT_PROJECT_NAME

    def as_dict(self) -> Dict[str, Any]:
        return {
            "guard_held": self.guard_held,
            "guard_acquired_at": self.guard_acquired_at,
            "guard_operation": self.guard_operation,
            "last_successful_save_at": self.last_successful_save_at,
            "reminder_enabled": self.reminder_enabled,
            "reminder_visible": self.reminder_visible,
            "last_archive_handle": (
                str(self.last_archive_handle) if self.last_archive_handle else None
            ),
            "current_project_name": self.current_project_name,
        }
