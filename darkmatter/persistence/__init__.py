"""Project persistence core: snapshot, archive, restore and the operation guard."""

from darkmatter.persistence.assembler import SnapshotAssembler
from darkmatter.persistence.codec import ArchiveCodec, DecodedArchive
from darkmatter.persistence.collaborators import Decision
from darkmatter.persistence.errors import (
    ArchiveError,
    ArchiveFormatError,
    ManifestMissingError,
    OperationInProgressError,
    PersistenceError,
    RestoreInProgressError,
    SnapshotInvariantError,
    UnresolvedTypesError,
    UnsupportedFormatVersionError,
)
from darkmatter.persistence.gate import UnsavedChangesGate
from darkmatter.persistence.guard import OperationGuard
from darkmatter.persistence.models import (
    AssetRecord,
    EditorSettings,
    ProjectSnapshot,
)
from darkmatter.persistence.portable import Materialized, PortableScene, RawPending
from darkmatter.persistence.registry import TypeRegistry
from darkmatter.persistence.reminder import SaveReminderScheduler
from darkmatter.persistence.resolver import DependencyResolver, ResolveResult
from darkmatter.persistence.restore import RestoreOrchestrator, RestoreReport
from darkmatter.persistence.service import OperationResult, PersistenceService
from darkmatter.persistence.session import SessionContext

__all__ = [
    "ArchiveCodec",
    "ArchiveError",
    "ArchiveFormatError",
    "AssetRecord",
    "DecodedArchive",
    "Decision",
    "DependencyResolver",
    "EditorSettings",
    "ManifestMissingError",
    "Materialized",
    "OperationGuard",
    "OperationInProgressError",
    "OperationResult",
    "PersistenceError",
    "PersistenceService",
    "PortableScene",
    "ProjectSnapshot",
    "RawPending",
    "ResolveResult",
    "RestoreInProgressError",
    "RestoreOrchestrator",
    "RestoreReport",
    "SaveReminderScheduler",
    "SessionContext",
    "SnapshotAssembler",
    "SnapshotInvariantError",
    "TypeRegistry",
    "UnresolvedTypesError",
    "UnsavedChangesGate",
    "UnsupportedFormatVersionError",
]
