"""Planning, backup, reconciliation and rollback services."""

from .external_ids import ExternalIdResolver
from .query_builder import QueryBuilder, BuiltQuery, SlaveLink, external_id_condition
from .plan_assembler import PlanAssembler
from .field_cache import FieldListCache
from .backup import BackupEngine, BackupResult, list_backups
from .reconciliation import ReconciliationEngine, ReconciliationResult
from .rollback import RollbackPlanner
from .history import MigrationHistory

__all__ = [
    "ExternalIdResolver",
    "QueryBuilder",
    "BuiltQuery",
    "SlaveLink",
    "external_id_condition",
    "PlanAssembler",
    "FieldListCache",
    "BackupEngine",
    "BackupResult",
    "list_backups",
    "ReconciliationEngine",
    "ReconciliationResult",
    "RollbackPlanner",
    "MigrationHistory",
]
