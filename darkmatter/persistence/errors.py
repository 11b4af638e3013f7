from __future__ import annotations

from typing import Iterable, Tuple

__all__ = [
    "ArchiveError",
    "ArchiveFormatError",
    "ManifestMissingError",
    "OperationInProgressError",
    "PersistenceError",
    "RestoreInProgressError",
    "SnapshotInvariantError",
    "UnresolvedTypesError",
    "UnsupportedFormatVersionError",
]


class PersistenceError(RuntimeError):
    """Base class for every failure raised by the project persistence core."""


class OperationInProgressError(PersistenceError):
    """Raised when a save/load/new operation is attempted while another runs."""

    def __init__(self, operation: str, holder: str | None = None) -> None:
        self.operation = operation
        self.holder = holder
        detail = f" (held by {holder})" if holder else ""
        super().__init__(f"cannot start {operation}: operation in progress{detail}")


class SnapshotInvariantError(PersistenceError):
    """Raised when a snapshot would violate one of its structural invariants."""


class ArchiveError(PersistenceError):
    """Raised when a project archive cannot be decoded."""


class ArchiveFormatError(ArchiveError):
    """The container is not a readable archive or its manifest is malformed."""


class ManifestMissingError(ArchiveError):
    """The container has no ``project.json`` entry."""


class UnsupportedFormatVersionError(ArchiveError):
    """The manifest declares a format version this build cannot read."""

    def __init__(self, version: object, supported: Iterable[str]) -> None:
        self.version = version
        self.supported: Tuple[str, ...] = tuple(sorted(supported))
        super().__init__(
            f"unsupported project format version {version!r} "
            f"(supported: {', '.join(self.supported)})"
        )


class UnresolvedTypesError(PersistenceError):
    """One or more required domain types could not be made available."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names: Tuple[str, ...] = tuple(names)
        super().__init__(f"unresolved types: {', '.join(self.names)}")


class RestoreInProgressError(PersistenceError):
    """Raised when a restore is started while the orchestrator is already running."""
