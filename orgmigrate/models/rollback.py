"""Rollback plan models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .plan import Operation, OrgDescriptor, SkippedObject

CSV_SOURCE = {"username": "csvfile"}


@dataclass
class RollbackObject:
    """Inverse of one migrated object."""
    object_type: str
    original_operation: Operation
    rollback_operation: Operation
    external_id: str
    query: str
    snapshot_file: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "object_type": self.object_type,
            "original_operation": self.original_operation.value,
            "rollback_operation": self.rollback_operation.value,
            "external_id": self.external_id,
            "query": self.query,
            "snapshot_file": self.snapshot_file,
        }


@dataclass
class RollbackPlan:
    """
    Objects in reverse migration order with inverted operations.

    In snapshot mode every object reads its records from a snapshot file
    in the rollback directory; otherwise each object re-runs its recorded
    query against the live org.
    """
    objects: List[RollbackObject] = field(default_factory=list)
    skipped: List[SkippedObject] = field(default_factory=list)
    snapshot_mode: bool = False
    exclude_ids_from_files: bool = False
    target_org: OrgDescriptor = field(default_factory=OrgDescriptor)

    @property
    def object_types(self) -> List[str]:
        return [obj.object_type for obj in self.objects]

    def to_document(self) -> Dict[str, Any]:
        """Plan document for the transfer tool."""
        document: Dict[str, Any] = {
            "objects": [
                {
                    "query": obj.query,
                    "operation": obj.rollback_operation.value,
                    "externalId": obj.external_id,
                }
                for obj in self.objects
            ],
            "excludedObjects": [],
        }
        target = self.target_org.to_plan_dict()
        if self.snapshot_mode:
            document["sourceOrg"] = dict(CSV_SOURCE)
        elif target:
            document["sourceOrg"] = target
        if target:
            document["targetOrg"] = target
        if self.exclude_ids_from_files:
            document["excludeIdsFromCSVFiles"] = True
        return document

    def to_dict(self) -> Dict[str, Any]:
        return {
            "snapshot_mode": self.snapshot_mode,
            "exclude_ids_from_files": self.exclude_ids_from_files,
            "objects": [obj.to_dict() for obj in self.objects],
            "skipped": [s.to_dict() for s in self.skipped],
        }
