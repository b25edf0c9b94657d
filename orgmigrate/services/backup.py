"""Pre-migration snapshots of the target org."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..errors import BackupError, ConfigurationError, MigrationError
from ..models.backup import BackupManifest, BackupObject, MANIFEST_FILE
from ..models.migration import MigrationConfig
from ..models.plan import Operation, OrgDescriptor, Plan, PlanObject
from ..soql import replace_select_fields, select_fields
from ..stores.base import BaseStore
from .field_cache import FieldListCache
from .plan_assembler import PlanAssembler
from .snapshots import backup_file_name, write_records

logger = logging.getLogger(__name__)

BACKUPS_DIR = "backups"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S"


def backups_root(output_dir: Union[str, Path], phase_number: Optional[int] = None) -> Path:
    base = Path(output_dir)
    if phase_number is not None:
        base = base / f"Phase {phase_number}"
    return base / BACKUPS_DIR


@dataclass
class BackupResult:
    manifest: BackupManifest
    directory: Path
    warnings: List[str] = field(default_factory=list)

    @property
    def objects_backed_up(self) -> int:
        return sum(1 for obj in self.manifest.objects if obj.error is None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "directory": str(self.directory),
            "objects": len(self.manifest.objects),
            "objects_backed_up": self.objects_backed_up,
            "total_records": self.manifest.total_records,
            "warnings": self.warnings,
        }


class BackupEngine:
    """
    Snapshots every planned object from the target org before a run.

    The backup query is the plan query with only its field list swapped for
    every field of the object, so the snapshot covers exactly the records
    the migration will touch.
    """

    def __init__(
        self,
        target_store: BaseStore,
        output_dir: Union[str, Path],
        field_cache: Optional[FieldListCache] = None,
    ):
        self.store = target_store
        self.output_dir = Path(output_dir)
        self.field_cache = field_cache or FieldListCache()

    def resolve_plan(
        self,
        plan: Optional[Plan] = None,
        config: Optional[MigrationConfig] = None,
        phase_number: Optional[int] = None,
    ) -> Plan:
        """The in-memory plan, else the plan file, else the config's raw object list."""
        if plan is not None:
            return plan
        if Plan.path_for(self.output_dir, phase_number).exists():
            return Plan.load(self.output_dir, phase_number)
        if config is not None and not config.is_phased and config.objects:
            logger.info("No plan file found, backing up from the configured object list")
            return self._plan_from_config(config)
        raise ConfigurationError(
            f"Plan file not found: {Plan.path_for(self.output_dir, phase_number)}"
        )

    def _plan_from_config(self, config: MigrationConfig) -> Plan:
        return PlanAssembler(config).assemble_standard()

    def backup_query(self, obj: PlanObject) -> str:
        """The plan query selecting every described field, whatever the plan selects."""
        fields = self.field_cache.fields_for(self.store, obj.object_type)
        return replace_select_fields(obj.query, fields)

    def create_backup(
        self,
        plan: Optional[Plan] = None,
        config: Optional[MigrationConfig] = None,
        phase_number: Optional[int] = None,
        description: str = "",
    ) -> BackupResult:
        """
        Snapshot the records each planned object will touch.

        A failing object is recorded with no file and zero records; the
        backup fails only when there is nothing to back up or every object
        failed.
        """
        plan = self.resolve_plan(plan, config, phase_number)
        if phase_number is None:
            phase_number = plan.phase_number
        if not plan.objects:
            raise BackupError("The plan has no objects to back up")

        timestamp = datetime.utcnow()
        directory = backups_root(self.output_dir, phase_number) / timestamp.strftime(TIMESTAMP_FORMAT)
        directory.mkdir(parents=True, exist_ok=True)

        manifest = BackupManifest(
            timestamp=timestamp,
            description=description,
            config_name=config.name if config else "",
            mode=config.mode.value if config else "standard",
            phase_number=phase_number,
            source_org=(config.source_org if config else plan.source_org) or OrgDescriptor(),
            target_org=(config.target_org if config else plan.target_org) or OrgDescriptor(),
        )

        for plan_object in plan.objects:
            if manifest.get(plan_object.object_type) is not None:
                # Later passes over the same records; the first pass decides the operation
                logger.debug(f"{plan_object.object_type} already backed up by an earlier pass")
                continue
            backup_object = self._backup_object(plan_object, directory)
            if backup_object.error:
                manifest.warnings.append(f"{plan_object.object_type}: {backup_object.error}")
            manifest.objects.append(backup_object)

        if not any(obj.error is None for obj in manifest.objects):
            raise BackupError(
                f"No object could be backed up: {'; '.join(manifest.warnings)}"
            )

        manifest.save(directory)
        logger.info(
            f"Backup written to {directory}: {len(manifest.objects)} object(s), "
            f"{manifest.total_records} record(s), {len(manifest.warnings)} warning(s)"
        )
        return BackupResult(manifest=manifest, directory=directory, warnings=list(manifest.warnings))

    def _backup_object(self, plan_object: PlanObject, directory: Path) -> BackupObject:
        backup_object = BackupObject(
            object_type=plan_object.object_type,
            operation=plan_object.operation.value,
            external_id=plan_object.external_id.serialize(),
            original_query=plan_object.query,
        )
        try:
            query = self.backup_query(plan_object)
            backup_object.fields = select_fields(query)
            records = self.store.query_all(query)
            if records:
                file_name = backup_file_name(plan_object.object_type)
                backup_object.record_count = write_records(
                    directory / file_name, backup_object.fields, records
                )
                backup_object.backup_file = file_name
            logger.info(f"Backed up {backup_object.record_count} {plan_object.object_type} record(s)")
        except (MigrationError, OSError, ValueError) as e:
            backup_object.error = str(e)
            logger.warning(f"Backup of {plan_object.object_type} failed: {e}")
        return backup_object


def list_backups(output_dir: Union[str, Path], phase_number: Optional[int] = None) -> List[Dict[str, Any]]:
    """Backups under an output directory, newest first."""
    root = backups_root(output_dir, phase_number)
    if not root.exists():
        return []

    backups = []
    for directory in root.iterdir():
        if not (directory / MANIFEST_FILE).exists():
            continue
        try:
            manifest = BackupManifest.load(directory)
        except ConfigurationError as e:
            logger.warning(f"Skipping invalid backup {directory.name}: {e.message}")
            continue
        backups.append({
            "directory": str(directory),
            "timestamp": manifest.timestamp.isoformat(),
            "description": manifest.description,
            "config_name": manifest.config_name,
            "phase_number": manifest.phase_number,
            "object_count": len(manifest.objects),
            "total_records": manifest.total_records,
            "inserted_objects": [
                obj.object_type for obj in manifest.objects
                if obj.operation == Operation.INSERT.value
            ],
        })

    backups.sort(key=lambda b: b["timestamp"], reverse=True)
    return backups
