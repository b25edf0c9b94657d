"""Migration orchestrator - coordinates planning, backup, transfer and reconciliation."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import MigrationError
from .models.backup import BackupManifest
from .models.migration import MigrationConfig, RunStatus
from .models.plan import Plan
from .runners.base import BaseTransferRunner, TransferResult
from .services.backup import BackupEngine, BackupResult
from .services.field_cache import FieldListCache
from .services.history import MigrationHistory
from .services.plan_assembler import PlanAssembler
from .services.reconciliation import ReconciliationEngine, ReconciliationResult
from .stores.base import BaseStore
from .stores.salesforce import SalesforceStore

logger = logging.getLogger(__name__)


@dataclass
class PhaseRun:
    """What happened to one plan during a run."""
    plan: Plan
    plan_path: Optional[Path] = None
    backup: Optional[BackupResult] = None
    transfer: Optional[TransferResult] = None
    reconciliation: Optional[ReconciliationResult] = None
    history_id: Optional[str] = None
    status: RunStatus = RunStatus.FAILED
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase_number": self.plan.phase_number,
            "plan_path": str(self.plan_path) if self.plan_path else None,
            "objects": self.plan.object_types,
            "backup": self.backup.to_dict() if self.backup else None,
            "transfer": self.transfer.to_dict() if self.transfer else None,
            "reconciliation": self.reconciliation.to_dict() if self.reconciliation else None,
            "history_id": self.history_id,
            "status": self.status.value,
            "errors": self.errors,
            "warnings": self.warnings,
        }


class MigrationOrchestrator:
    """
    Orchestrates a migration, one plan at a time and in phase order.

    For each plan:
    - write the plan document
    - snapshot the target (skipped for simulations)
    - hand the plan to the transfer runner
    - identify inserted records, whatever the transfer outcome
    - record the run in the history ledger
    """

    def __init__(
        self,
        config: MigrationConfig,
        runner: Optional[BaseTransferRunner] = None,
        source_store: Optional[BaseStore] = None,
        target_store: Optional[BaseStore] = None,
        continue_on_error: bool = False,
    ):
        self.config = config
        self.runner = runner
        self._source_store = source_store
        self._target_store = target_store
        self.continue_on_error = continue_on_error
        self.output_dir = Path(config.output_dir)
        self.history = MigrationHistory.for_output_dir(self.output_dir)

    @property
    def source_store(self) -> BaseStore:
        if self._source_store is None:
            self._source_store = SalesforceStore.from_org(self.config.source_org)
        return self._source_store

    @property
    def target_store(self) -> BaseStore:
        if self._target_store is None:
            self._target_store = SalesforceStore.from_org(self.config.target_org)
        return self._target_store

    def _api_version(self) -> Optional[str]:
        for store in (self._source_store, self._target_store):
            if store is not None and store.api_version:
                return store.api_version
        return None

    def generate_plans(self, phase_number: Optional[int] = None) -> List[Plan]:
        assembler = PlanAssembler(self.config, api_version=self._api_version())
        plans = assembler.assemble(phase_number)
        assembler.write(plans, self.output_dir)
        return plans

    def backup_phase(
        self,
        phase_number: Optional[int] = None,
        plan: Optional[Plan] = None,
        description: str = "",
    ) -> BackupResult:
        """Back up the target for a plan, reading the plan file when none is given."""
        engine = BackupEngine(self.target_store, self.output_dir, FieldListCache())
        return engine.create_backup(
            plan=plan,
            config=self.config,
            phase_number=plan.phase_number if plan else phase_number,
            description=description,
        )

    def reconcile_manifest(
        self,
        manifest: BackupManifest,
        backup_dir: Path,
        started_at: Optional[datetime],
        ended_at: Optional[datetime],
    ) -> ReconciliationResult:
        engine = ReconciliationEngine(
            self.source_store,
            self.target_store,
            allow_imprecise_actor=self.config.allow_imprecise_actor,
        )
        return engine.reconcile(manifest, backup_dir, started_at, ended_at)

    def run(self, phase_number: Optional[int] = None, simulation: bool = False) -> List[PhaseRun]:
        """Plan and run every selected phase, stopping at the first failure."""
        if self.runner is None:
            raise MigrationError("A transfer runner is required to run a migration", kind="runner")

        runs = []
        for plan in self.generate_plans(phase_number):
            phase_run = self.run_plan(plan, simulation)
            runs.append(phase_run)
            if phase_run.status == RunStatus.FAILED and not self.continue_on_error:
                logger.error(f"Stopping after failed phase {plan.phase_number}")
                break
        return runs

    def run_plan(self, plan: Plan, simulation: bool = False) -> PhaseRun:
        label = f"Phase {plan.phase_number}" if plan.phase_number is not None else "Migration"
        phase_run = PhaseRun(plan=plan, plan_path=Plan.path_for(self.output_dir, plan.phase_number))
        phase_run.warnings.extend(plan.warnings)

        if not plan.objects:
            logger.info(f"=== {label}: nothing to migrate ===")
            phase_run.status = RunStatus.COMPLETED
            return phase_run

        try:
            if not simulation:
                logger.info(f"=== {label}: BACKUP ===")
                phase_run.backup = self.backup_phase(plan=plan, description=f"Before {label.lower()}")
                phase_run.warnings.extend(phase_run.backup.warnings)

            logger.info(f"=== {label}: TRANSFER ===")
            phase_run.transfer = self.runner.execute(
                phase_run.plan_path.parent,
                self.config.source_org,
                self.config.target_org,
                simulation=simulation,
            )

            # Failed and partial transfers may still have inserted records
            if phase_run.backup:
                logger.info(f"=== {label}: RECONCILIATION ===")
                try:
                    phase_run.reconciliation = self.reconcile_manifest(
                        phase_run.backup.manifest,
                        phase_run.backup.directory,
                        phase_run.transfer.started_at,
                        phase_run.transfer.completed_at,
                    )
                    phase_run.warnings.extend(phase_run.reconciliation.warnings)
                except MigrationError as e:
                    logger.error(f"Reconciliation failed: {e.message}")
                    phase_run.errors.append(e.to_dict())

        except MigrationError as e:
            logger.error(f"{label} failed: {e.message}")
            phase_run.errors.append(e.to_dict())

        phase_run.status = self._status_of(phase_run)
        self._record_history(phase_run)
        return phase_run

    def _status_of(self, phase_run: PhaseRun) -> RunStatus:
        transfer = phase_run.transfer
        if transfer is None:
            return RunStatus.FAILED
        if transfer.success and not phase_run.errors:
            return RunStatus.COMPLETED
        if transfer.success or transfer.errors:
            return RunStatus.PARTIAL
        return RunStatus.FAILED

    def _record_history(self, phase_run: PhaseRun):
        transfer = phase_run.transfer
        errors = list(transfer.errors) if transfer else []
        errors.extend(e["message"] for e in phase_run.errors)
        entry = self.history.build_entry(
            self.config,
            phase_run.plan,
            success=phase_run.status == RunStatus.COMPLETED,
            output=transfer.output if transfer else "",
            errors=errors,
            records_processed=transfer.records_processed if transfer else 0,
            backup_location=str(phase_run.backup.directory) if phase_run.backup else None,
        )
        try:
            self.history.save(entry)
            phase_run.history_id = entry.id
        except OSError as e:
            logger.warning(f"Could not record run history: {e}")
