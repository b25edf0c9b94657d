from __future__ import annotations

import pytest

from orgmigrate.errors import MigrationError
from orgmigrate.models.migration import MigrationConfig, RunStatus
from orgmigrate.orchestrator import MigrationOrchestrator
from orgmigrate.runners.base import BaseTransferRunner, TransferResult


class FakeRunner(BaseTransferRunner):
    def __init__(self, result=None):
        self.result = result or TransferResult(success=True, output="SBQQ__ProductRule__c: 2 records inserted")
        self.calls = []

    def run(self, plan_dir, source, target, simulation=False):
        self.calls.append({"plan_dir": plan_dir, "simulation": simulation})
        return self.result


@pytest.fixture
def insert_config(cpq_config_data):
    cpq_config_data["phase_operations"] = {"2": "Insert"}
    return MigrationConfig.from_dict(cpq_config_data)


class TestMigrationOrchestrator:
    """Plan, back up, transfer, reconcile and record one phase."""

    def test_full_phase(self, insert_config, source_store, target_store, tmp_path):
        source_store.respond("SELECT Name FROM SBQQ__ProductRule__c", [{"Name": "Rule A"}])
        target_store.respond("WHERE Name IN ('Rule A')", [{"Id": "a0B1", "Name": "Rule A"}])
        runner = FakeRunner()
        orchestrator = MigrationOrchestrator(
            insert_config, runner=runner, source_store=source_store, target_store=target_store
        )

        [phase_run] = orchestrator.run()

        assert phase_run.status == RunStatus.COMPLETED
        assert runner.calls == [{"plan_dir": tmp_path / "out" / "Phase 2", "simulation": False}]
        assert phase_run.transfer.started_at is not None
        assert phase_run.backup.manifest.get("SBQQ__ProductRule__c") is not None
        assert [o.object_type for o in phase_run.reconciliation.outcomes] == ["SBQQ__ProductRule__c"]

        [entry] = orchestrator.history.list_runs()
        assert entry.id == phase_run.history_id
        assert entry.backup_location == str(phase_run.backup.directory)
        assert entry.objects[0].inserted == 2

    def test_simulation_skips_backup_and_reconciliation(self, insert_config, source_store, target_store):
        runner = FakeRunner()
        orchestrator = MigrationOrchestrator(
            insert_config, runner=runner, source_store=source_store, target_store=target_store
        )

        [phase_run] = orchestrator.run(simulation=True)

        assert runner.calls[0]["simulation"] is True
        assert phase_run.backup is None
        assert phase_run.reconciliation is None
        assert target_store.queries == []

    def test_partial_transfer_is_still_reconciled(self, insert_config, source_store, target_store):
        source_store.respond("SELECT Name FROM SBQQ__ProductRule__c", [{"Name": "Rule A"}])
        target_store.respond("WHERE Name IN ('Rule A')", [{"Id": "a0B1", "Name": "Rule A"}])
        runner = FakeRunner(TransferResult(
            success=False, records_processed=3, errors=["SBQQ__ProductRule__c: 1 record failed"],
        ))

        [phase_run] = MigrationOrchestrator(
            insert_config, runner=runner, source_store=source_store, target_store=target_store
        ).run()

        assert phase_run.status == RunStatus.PARTIAL
        [outcome] = phase_run.reconciliation.outcomes
        assert outcome.object_type == "SBQQ__ProductRule__c"
        saved = phase_run.backup.manifest.get("SBQQ__ProductRule__c")
        assert saved.post_migration_file == "SBQQ__ProductRule__c_inserted_ids.csv"

    def test_failed_phase_stops_the_run(self, cpq_config_data, source_store, target_store):
        cpq_config_data["selected_phases"] = [2, 3]
        cpq_config_data["selected_master_records"]["3"] = {
            "SBQQ__PriceRule__c": [{"external_id": "Price A", "id": "a0C1"}],
        }
        config = MigrationConfig.from_dict(cpq_config_data)
        runner = FakeRunner(TransferResult(success=False))

        runs = MigrationOrchestrator(
            config, runner=runner, source_store=source_store, target_store=target_store
        ).run()
        assert [r.status for r in runs] == [RunStatus.FAILED]

        runs = MigrationOrchestrator(
            config, runner=runner, source_store=source_store, target_store=target_store,
            continue_on_error=True,
        ).run()
        assert len(runs) == 2

    def test_empty_phase_is_not_transferred(self, cpq_config_data, source_store, target_store):
        cpq_config_data["selected_master_records"] = {}
        runner = FakeRunner()
        [phase_run] = MigrationOrchestrator(
            MigrationConfig.from_dict(cpq_config_data),
            runner=runner, source_store=source_store, target_store=target_store,
        ).run()

        assert phase_run.status == RunStatus.COMPLETED
        assert runner.calls == []

    def test_backup_failure_is_recorded(self, insert_config, source_store, target_store):
        target_store.fail("FROM")
        runner = FakeRunner()

        [phase_run] = MigrationOrchestrator(
            insert_config, runner=runner, source_store=source_store, target_store=target_store
        ).run()

        assert phase_run.status == RunStatus.FAILED
        assert phase_run.errors[0]["kind"] == "backup_error"
        assert runner.calls == []

    def test_run_requires_a_runner(self, insert_config):
        with pytest.raises(MigrationError):
            MigrationOrchestrator(insert_config).run()
