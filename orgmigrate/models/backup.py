"""Backup manifest models."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..errors import ConfigurationError
from .plan import OrgDescriptor

MANIFEST_FILE = "metadata.json"


@dataclass
class BackupObject:
    """Snapshot of one planned object taken before a migration."""
    object_type: str
    operation: str
    external_id: str
    original_query: str
    backup_file: Optional[str] = None
    record_count: int = 0
    fields: List[str] = field(default_factory=list)
    error: Optional[str] = None

    # Filled in once, after the migration, for objects that were inserted
    post_migration_file: Optional[str] = None
    post_migration_record_count: Optional[int] = None

    @property
    def reconciled(self) -> bool:
        return self.post_migration_file is not None

    def record_post_migration(self, file_name: str, record_count: int):
        if self.reconciled:
            raise ValueError(f"{self.object_type} already has a post-migration snapshot")
        self.post_migration_file = file_name
        self.post_migration_record_count = record_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "object_type": self.object_type,
            "operation": self.operation,
            "external_id": self.external_id,
            "backup_file": self.backup_file,
            "record_count": self.record_count,
            "fields": self.fields,
            "original_query": self.original_query,
            "error": self.error,
            "post_migration_file": self.post_migration_file,
            "post_migration_record_count": self.post_migration_record_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BackupObject":
        return cls(
            object_type=data["object_type"],
            operation=data.get("operation", "Upsert"),
            external_id=data.get("external_id", ""),
            original_query=data.get("original_query", ""),
            backup_file=data.get("backup_file"),
            record_count=data.get("record_count", 0),
            fields=data.get("fields", []),
            error=data.get("error"),
            post_migration_file=data.get("post_migration_file"),
            post_migration_record_count=data.get("post_migration_record_count"),
        )


@dataclass
class BackupManifest:
    """Describes one backup directory."""
    timestamp: datetime
    objects: List[BackupObject] = field(default_factory=list)
    description: str = ""
    config_name: str = ""
    mode: str = "standard"
    phase_number: Optional[int] = None
    source_org: OrgDescriptor = field(default_factory=OrgDescriptor)
    target_org: OrgDescriptor = field(default_factory=OrgDescriptor)
    warnings: List[str] = field(default_factory=list)

    @property
    def total_records(self) -> int:
        return sum(obj.record_count for obj in self.objects)

    def get(self, object_type: str) -> Optional[BackupObject]:
        for obj in self.objects:
            if obj.object_type == object_type:
                return obj
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "description": self.description,
            "config_name": self.config_name,
            "mode": self.mode,
            "phase_number": self.phase_number,
            "source_org": self.source_org.to_dict(),
            "target_org": self.target_org.to_dict(),
            "objects": [obj.to_dict() for obj in self.objects],
            "warnings": self.warnings,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BackupManifest":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            objects=[BackupObject.from_dict(obj) for obj in data.get("objects", [])],
            description=data.get("description", ""),
            config_name=data.get("config_name", ""),
            mode=data.get("mode", "standard"),
            phase_number=data.get("phase_number"),
            source_org=OrgDescriptor.from_dict(data.get("source_org")),
            target_org=OrgDescriptor.from_dict(data.get("target_org")),
            warnings=data.get("warnings", []),
        )

    def save(self, backup_dir: Union[str, Path]) -> Path:
        path = Path(backup_dir) / MANIFEST_FILE
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        return path

    @classmethod
    def load(cls, backup_dir: Union[str, Path]) -> "BackupManifest":
        path = Path(backup_dir) / MANIFEST_FILE
        if not path.exists():
            raise ConfigurationError(f"Backup manifest not found: {path}")
        try:
            with open(path) as f:
                return cls.from_dict(json.load(f))
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            raise ConfigurationError(f"Invalid backup manifest {path}: {e}")
