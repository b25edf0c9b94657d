"""Migration configuration and run history models."""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..errors import ConfigurationError
from .plan import Operation, OrgDescriptor, SelectedRecord

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class MigrationMode(str, Enum):
    STANDARD = "standard"
    CPQ = "cpq"
    RCA = "rca"


class RunStatus(str, Enum):
    """Outcome of a transfer run."""
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class ObjectConfig:
    """One object of a non-phased migration."""
    object_name: str
    external_id: str
    where_clause: Optional[str] = None
    selected_fields: List[str] = field(default_factory=list)
    order_by: Optional[str] = None
    limit: Optional[int] = None
    operation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "object_name": self.object_name,
            "external_id": self.external_id,
            "where_clause": self.where_clause,
            "selected_fields": self.selected_fields,
            "order_by": self.order_by,
            "limit": self.limit,
            "operation": self.operation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ObjectConfig":
        return cls(
            object_name=data["object_name"],
            external_id=data.get("external_id", ""),
            where_clause=data.get("where_clause"),
            selected_fields=data.get("selected_fields", []),
            order_by=data.get("order_by"),
            limit=data.get("limit"),
            operation=data.get("operation"),
        )


@dataclass
class CustomFilter:
    object_name: str
    where_clause: str


@dataclass
class MigrationConfig:
    """Complete configuration of a migration."""
    name: str
    mode: MigrationMode = MigrationMode.STANDARD
    output_dir: str = "./output"
    source_org: OrgDescriptor = field(default_factory=OrgDescriptor)
    target_org: OrgDescriptor = field(default_factory=OrgDescriptor)

    # Operations
    operation: Optional[str] = None
    phase_operations: Dict[int, str] = field(default_factory=dict)

    # Standard mode
    objects: List[ObjectConfig] = field(default_factory=list)

    # Phased modes
    selected_phases: List[int] = field(default_factory=list)
    include_product2: bool = False
    excluded_objects: Optional[List[str]] = None
    excluded_objects_by_phase: Dict[int, List[str]] = field(default_factory=dict)
    selected_master_records: Dict[int, Dict[str, List[SelectedRecord]]] = field(default_factory=dict)

    # Filters
    modified_since: Optional[str] = None
    custom_filters: List[CustomFilter] = field(default_factory=list)

    # Reconciliation
    allow_imprecise_actor: bool = False

    def __post_init__(self):
        if self.modified_since and not DATE_PATTERN.match(self.modified_since):
            raise ConfigurationError(
                f"modified_since must be YYYY-MM-DD, got {self.modified_since!r}"
            )
        if self.operation:
            Operation.parse(self.operation)
        for op in self.phase_operations.values():
            Operation.parse(op)

    @property
    def is_phased(self) -> bool:
        return self.mode != MigrationMode.STANDARD

    def operation_for(self, phase_number: Optional[int] = None) -> Operation:
        """Per-phase override, then the global operation, then Upsert."""
        if phase_number is not None and self.phase_operations.get(phase_number):
            return Operation.parse(self.phase_operations[phase_number])
        if self.operation:
            return Operation.parse(self.operation)
        return Operation.UPSERT

    def selections_for(self, phase_number: int) -> Dict[str, List[SelectedRecord]]:
        return self.selected_master_records.get(phase_number, {})

    def custom_filter_for(self, object_name: str) -> Optional[str]:
        for custom in self.custom_filters:
            if custom.object_name == object_name and custom.where_clause:
                return custom.where_clause
        return None

    def opted_in_objects(self) -> List[str]:
        return ["Product2"] if self.include_product2 else []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "mode": self.mode.value,
            "output_dir": self.output_dir,
            "source_org": self.source_org.to_dict(),
            "target_org": self.target_org.to_dict(),
            "operation": self.operation,
            "phase_operations": {str(k): v for k, v in self.phase_operations.items()},
            "objects": [obj.to_dict() for obj in self.objects],
            "selected_phases": self.selected_phases,
            "include_product2": self.include_product2,
            "excluded_objects": self.excluded_objects,
            "excluded_objects_by_phase": {
                str(k): v for k, v in self.excluded_objects_by_phase.items()
            },
            "selected_master_records": {
                str(phase): {
                    obj: [record.to_dict() for record in records]
                    for obj, records in selections.items()
                }
                for phase, selections in self.selected_master_records.items()
            },
            "modified_since": self.modified_since,
            "custom_filters": [
                {"object_name": c.object_name, "where_clause": c.where_clause}
                for c in self.custom_filters
            ],
            "allow_imprecise_actor": self.allow_imprecise_actor,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationConfig":
        try:
            mode = MigrationMode(data.get("mode", "standard"))
        except ValueError:
            raise ConfigurationError(f"Unknown migration mode: {data.get('mode')!r}")

        selections: Dict[int, Dict[str, List[SelectedRecord]]] = {}
        for phase, objects in (data.get("selected_master_records") or {}).items():
            selections[int(phase)] = {}
            for object_name, values in objects.items():
                records = [SelectedRecord.from_value(v) for v in values or []]
                selections[int(phase)][object_name] = [r for r in records if r]

        if not data.get("name"):
            raise ConfigurationError("Migration config requires a name")

        return cls(
            name=data["name"],
            mode=mode,
            output_dir=data.get("output_dir", "./output"),
            source_org=OrgDescriptor.from_dict(data.get("source_org")),
            target_org=OrgDescriptor.from_dict(data.get("target_org")),
            operation=data.get("operation"),
            phase_operations={int(k): v for k, v in (data.get("phase_operations") or {}).items()},
            objects=[ObjectConfig.from_dict(obj) for obj in data.get("objects", [])],
            selected_phases=[int(p) for p in data.get("selected_phases", [])],
            include_product2=data.get("include_product2", False),
            excluded_objects=data.get("excluded_objects"),
            excluded_objects_by_phase={
                int(k): v for k, v in (data.get("excluded_objects_by_phase") or {}).items()
            },
            selected_master_records=selections,
            modified_since=data.get("modified_since"),
            custom_filters=[
                CustomFilter(object_name=c["object_name"], where_clause=c.get("where_clause", ""))
                for c in data.get("custom_filters", [])
            ],
            allow_imprecise_actor=data.get("allow_imprecise_actor", False),
        )

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "MigrationConfig":
        try:
            with open(path) as f:
                return cls.from_dict(json.load(f))
        except FileNotFoundError:
            raise ConfigurationError(f"Config file not found: {path}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Config file {path} is not valid JSON: {e}")


@dataclass
class HistoryObject:
    """Per-object record counts of a transfer run."""
    object_name: str
    operation: str
    external_id: str
    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "object_name": self.object_name,
            "operation": self.operation,
            "external_id": self.external_id,
            "inserted": self.inserted,
            "updated": self.updated,
            "deleted": self.deleted,
            "failed": self.failed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryObject":
        return cls(
            object_name=data["object_name"],
            operation=data.get("operation", ""),
            external_id=data.get("external_id", ""),
            inserted=data.get("inserted", 0),
            updated=data.get("updated", 0),
            deleted=data.get("deleted", 0),
            failed=data.get("failed", 0),
        )


@dataclass
class HistoryEntry:
    """One recorded migration run."""
    id: str
    config_name: str
    mode: str
    status: RunStatus
    timestamp: datetime
    phase_number: Optional[int] = None
    operation: Optional[str] = None
    source_org: OrgDescriptor = field(default_factory=OrgDescriptor)
    target_org: OrgDescriptor = field(default_factory=OrgDescriptor)
    backup_location: Optional[str] = None
    records_processed: int = 0
    objects: List[HistoryObject] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "config_name": self.config_name,
            "mode": self.mode,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "phase_number": self.phase_number,
            "operation": self.operation,
            "source_org": self.source_org.to_dict(),
            "target_org": self.target_org.to_dict(),
            "backup_location": self.backup_location,
            "records_processed": self.records_processed,
            "objects": [obj.to_dict() for obj in self.objects],
            "errors": self.errors,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        return cls(
            id=data["id"],
            config_name=data.get("config_name", ""),
            mode=data.get("mode", "standard"),
            status=RunStatus(data.get("status", "failed")),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            phase_number=data.get("phase_number"),
            operation=data.get("operation"),
            source_org=OrgDescriptor.from_dict(data.get("source_org")),
            target_org=OrgDescriptor.from_dict(data.get("target_org")),
            backup_location=data.get("backup_location"),
            records_processed=data.get("records_processed", 0),
            objects=[HistoryObject.from_dict(obj) for obj in data.get("objects", [])],
            errors=data.get("errors", []),
        )
