"""Data models for the migration toolkit."""

from .external_id import (
    ExternalIdSpec,
    KeyPart,
    lookup_path,
)
from .graph import (
    BusinessFilter,
    ObjectRole,
    PhaseDefinition,
    PhaseEntry,
    PhaseGraph,
    Relationship,
)
from .plan import (
    Operation,
    OrgDescriptor,
    Plan,
    PlanObject,
    SelectedRecord,
    SkippedObject,
)
from .backup import (
    BackupManifest,
    BackupObject,
)
from .rollback import (
    RollbackObject,
    RollbackPlan,
)
from .migration import (
    CustomFilter,
    HistoryEntry,
    HistoryObject,
    MigrationConfig,
    MigrationMode,
    ObjectConfig,
    RunStatus,
)

__all__ = [
    "ExternalIdSpec",
    "KeyPart",
    "lookup_path",
    "BusinessFilter",
    "ObjectRole",
    "PhaseDefinition",
    "PhaseEntry",
    "PhaseGraph",
    "Relationship",
    "Operation",
    "OrgDescriptor",
    "Plan",
    "PlanObject",
    "SelectedRecord",
    "SkippedObject",
    "BackupManifest",
    "BackupObject",
    "RollbackObject",
    "RollbackPlan",
    "CustomFilter",
    "HistoryEntry",
    "HistoryObject",
    "MigrationConfig",
    "MigrationMode",
    "ObjectConfig",
    "RunStatus",
]
