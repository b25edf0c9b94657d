"""Build the inverse plan of a completed migration from its backup."""

import json
import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..errors import ConfigurationError
from ..models.backup import BackupManifest, BackupObject
from ..models.plan import PLAN_FILE, Operation, SkippedObject
from ..models.rollback import RollbackObject, RollbackPlan
from ..soql import object_from_query, replace_select_fields
from .field_cache import ID_FIELD
from .snapshots import count_rows, read_header, repair_csv

logger = logging.getLogger(__name__)

ROLLBACK_DIR = "rollback"

INVERSE_OPERATIONS = {
    Operation.INSERT: Operation.DELETE,
    Operation.UPDATE: Operation.UPDATE,
    Operation.UPSERT: Operation.UPDATE,
    Operation.DELETE: Operation.INSERT,
    Operation.DELETE_HIERARCHY: Operation.INSERT,
}


class RollbackPlanner:
    """
    Derives a rollback plan from a backup directory.

    - object order is the reverse of the migration order
    - inserts are undone by deleting the reconciled ids
    - updates are undone by restoring the pre-migration snapshot
    - deletes are undone by re-inserting the pre-migration snapshot
    """

    def __init__(self, backup_dir: Union[str, Path]):
        self.backup_dir = Path(backup_dir)
        self.rollback_dir = self.backup_dir / ROLLBACK_DIR

    def _snapshot_for(self, obj: BackupObject, rollback_op: Operation) -> Optional[str]:
        """The usable snapshot file backing an object's rollback, if any."""
        file_name = obj.post_migration_file if rollback_op == Operation.DELETE else obj.backup_file
        if not file_name:
            return None
        path = self.backup_dir / file_name
        if not path.exists():
            logger.warning(f"{obj.object_type}: snapshot {file_name} is missing")
            return None
        if count_rows(path) == 0:
            return None
        return file_name

    def build(self, manifest: Optional[BackupManifest] = None) -> RollbackPlan:
        """Plan the rollback without touching the filesystem."""
        manifest = manifest or BackupManifest.load(self.backup_dir)
        plan = RollbackPlan(target_org=manifest.target_org)
        candidates: List[Tuple[RollbackObject, BackupObject]] = []

        for obj in reversed(manifest.objects):
            try:
                original = Operation.parse(obj.operation)
            except ConfigurationError as e:
                plan.skipped.append(SkippedObject(obj.object_type, e.message))
                continue

            rollback_op = INVERSE_OPERATIONS.get(original)
            if rollback_op is None:
                plan.skipped.append(SkippedObject(
                    obj.object_type, f"operation {original.value} has no inverse"
                ))
                continue

            snapshot = self._snapshot_for(obj, rollback_op)
            if rollback_op == Operation.DELETE and snapshot is None:
                plan.skipped.append(SkippedObject(
                    obj.object_type, "no post-migration id snapshot; refusing to delete by query"
                ))
                continue
            if rollback_op == Operation.INSERT and snapshot is None:
                plan.skipped.append(SkippedObject(
                    obj.object_type, "no pre-migration snapshot to restore deleted records from"
                ))
                continue

            candidates.append((
                RollbackObject(
                    object_type=obj.object_type,
                    original_operation=original,
                    rollback_operation=rollback_op,
                    external_id=obj.external_id,
                    query=obj.original_query,
                    snapshot_file=snapshot,
                ),
                obj,
            ))

        plan.snapshot_mode = any(r.snapshot_file for r, _ in candidates)

        for rollback_object, obj in candidates:
            if plan.snapshot_mode:
                if not rollback_object.snapshot_file:
                    plan.skipped.append(SkippedObject(
                        obj.object_type,
                        "no snapshot file; mixing file and query sources is not supported",
                    ))
                    continue
                header = read_header(self.backup_dir / rollback_object.snapshot_file)
                if ID_FIELD not in header:
                    plan.exclude_ids_from_files = True
                fields = [ID_FIELD] if rollback_object.rollback_operation == Operation.DELETE else header
                rollback_object.query = f"SELECT {', '.join(fields)} FROM {obj.object_type}"
            else:
                if not object_from_query(obj.original_query):
                    plan.skipped.append(SkippedObject(obj.object_type, "original query is unknown"))
                    continue
                if rollback_object.rollback_operation == Operation.DELETE:
                    rollback_object.query = replace_select_fields(obj.original_query, [ID_FIELD])
            plan.objects.append(rollback_object)

        for skipped in plan.skipped:
            logger.warning(f"Rollback skips {skipped.object_type}: {skipped.reason}")
        return plan

    def prepare(self, manifest: Optional[BackupManifest] = None) -> Tuple[RollbackPlan, Path]:
        """
        Build the plan, copy repaired snapshots into the rollback directory
        and write the plan document there.

        Returns:
            (plan, path of the written plan document)
        """
        plan = self.build(manifest)
        if not plan.objects:
            raise ConfigurationError("Nothing to roll back: every object was skipped")

        self.rollback_dir.mkdir(parents=True, exist_ok=True)
        if plan.snapshot_mode:
            for obj in plan.objects:
                _, rows = repair_csv(
                    self.backup_dir / obj.snapshot_file,
                    self.rollback_dir / f"{obj.object_type}.csv",
                )
                logger.info(f"Prepared {rows} {obj.object_type} row(s) for rollback")

        path = self.rollback_dir / PLAN_FILE
        with open(path, "w") as f:
            json.dump(plan.to_document(), f, indent=2)
        logger.info(f"Rollback plan with {len(plan.objects)} object(s) written to {path}")
        return plan, path
