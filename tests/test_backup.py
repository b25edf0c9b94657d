from __future__ import annotations

import csv
from datetime import datetime

import pytest

from orgmigrate.errors import BackupError, ConfigurationError
from orgmigrate.models.backup import BackupManifest, BackupObject
from orgmigrate.models.external_id import ExternalIdSpec
from orgmigrate.models.plan import Operation, Plan, PlanObject
from orgmigrate.services.backup import BackupEngine, list_backups
from orgmigrate.services.field_cache import FieldListCache


def _plan(*objects, phase_number=2):
    return Plan(objects=list(objects), phase_number=phase_number)


def _object(object_type, query, operation=Operation.UPSERT, external_id="Name"):
    return PlanObject(object_type, query, operation, ExternalIdSpec.parse(external_id))


def _rows(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


class TestBackupEngine:
    """Snapshots of the target org before a run."""

    def test_snapshot_uses_described_fields(self, target_store, tmp_path):
        target_store.fields["SBQQ__ErrorCondition__c"] = ["Name", "Id", "SBQQ__Rule__c"]
        target_store.respond("FROM SBQQ__ErrorCondition__c", [
            {"Id": "a1", "Name": "EC-1", "SBQQ__Rule__c": "a0A1"},
            {"Id": "a2", "Name": "EC, \"two\"", "SBQQ__Rule__c": None},
        ])
        plan = _plan(_object(
            "SBQQ__ErrorCondition__c",
            "SELECT all, SBQQ__Rule__c, SBQQ__Rule__r.Name FROM SBQQ__ErrorCondition__c "
            "WHERE SBQQ__Rule__c IN ('a0A1')",
        ))

        result = BackupEngine(target_store, tmp_path).create_backup(plan)

        assert target_store.queries == [
            "SELECT Id, Name, SBQQ__Rule__c FROM SBQQ__ErrorCondition__c WHERE SBQQ__Rule__c IN ('a0A1')"
        ]
        obj = result.manifest.objects[0]
        assert obj.record_count == 2
        assert obj.backup_file == "SBQQ__ErrorCondition__c_backup.csv"
        assert _rows(result.directory / obj.backup_file) == [
            ["Id", "Name", "SBQQ__Rule__c"],
            ["a1", "EC-1", "a0A1"],
            ["a2", "EC, \"two\"", ""],
        ]
        assert result.directory.parent == tmp_path / "Phase 2" / "backups"

    def test_explicit_field_list_is_widened_to_every_field(self, target_store, tmp_path):
        target_store.fields["Account"] = ["Name", "Id", "Industry", "ParentId"]
        target_store.respond("FROM Account", [{"Id": "001", "Name": "Acme"}])
        plan = _plan(
            _object("Account", "SELECT Id, Name, Parent.Name FROM Account WHERE Name = 'Acme'"),
            phase_number=None,
        )

        result = BackupEngine(target_store, tmp_path).create_backup(plan)

        assert target_store.queries == ["SELECT Id, Name, Industry, ParentId FROM Account WHERE Name = 'Acme'"]
        assert result.manifest.objects[0].fields == ["Id", "Name", "Industry", "ParentId"]
        assert result.directory.parent == tmp_path / "backups"

    def test_repeated_object_is_backed_up_once(self, target_store, tmp_path):
        target_store.respond("FROM PaymentTerm", [{"Id": "0Ps1", "Name": "Net 30"}])
        query = "SELECT all FROM PaymentTerm WHERE Id IN ('0Ps1')"
        plan = _plan(
            _object("PaymentTerm", query, Operation.INSERT, "Code"),
            _object("PaymentTerm", query, Operation.UPSERT, "Code"),
            phase_number=1,
        )

        result = BackupEngine(target_store, tmp_path).create_backup(plan)

        assert len(target_store.queries_for("PaymentTerm")) == 1
        [obj] = result.manifest.objects
        assert obj.operation == "Insert"
        assert obj.record_count == 1

    def test_zero_rows_writes_no_file(self, target_store, tmp_path):
        plan = _plan(_object("SBQQ__ProductRule__c", "SELECT all FROM SBQQ__ProductRule__c WHERE Id IN ('x')"))

        result = BackupEngine(target_store, tmp_path).create_backup(plan)

        obj = result.manifest.objects[0]
        assert obj.record_count == 0
        assert obj.backup_file is None
        assert not list(result.directory.glob("*.csv"))

    def test_object_failure_does_not_stop_backup(self, target_store, tmp_path):
        target_store.fail("FROM SBQQ__LookupQuery__c")
        target_store.respond("FROM SBQQ__ProductRule__c", [{"Id": "a0A1", "Name": "Rule A"}])
        plan = _plan(
            _object("SBQQ__ProductRule__c", "SELECT all FROM SBQQ__ProductRule__c"),
            _object("SBQQ__LookupQuery__c", "SELECT all FROM SBQQ__LookupQuery__c"),
        )

        result = BackupEngine(target_store, tmp_path).create_backup(plan)

        failed = result.manifest.get("SBQQ__LookupQuery__c")
        assert failed.error and failed.record_count == 0
        assert result.manifest.get("SBQQ__ProductRule__c").record_count == 1
        assert result.warnings and "SBQQ__LookupQuery__c" in result.warnings[0]

        reloaded = BackupManifest.load(result.directory)
        assert [o.object_type for o in reloaded.objects] == ["SBQQ__ProductRule__c", "SBQQ__LookupQuery__c"]
        assert reloaded.total_records == 1

    def test_every_object_failing_is_an_error(self, target_store, tmp_path):
        target_store.fail("FROM")
        plan = _plan(_object("SBQQ__ProductRule__c", "SELECT all FROM SBQQ__ProductRule__c"))
        with pytest.raises(BackupError):
            BackupEngine(target_store, tmp_path).create_backup(plan)

    def test_empty_plan_is_an_error(self, target_store, tmp_path):
        with pytest.raises(BackupError):
            BackupEngine(target_store, tmp_path).create_backup(_plan())

    def test_reads_plan_file_when_no_plan_given(self, target_store, tmp_path):
        _plan(_object("SBQQ__ProductRule__c", "SELECT all FROM SBQQ__ProductRule__c")).write(tmp_path)
        result = BackupEngine(target_store, tmp_path).create_backup(phase_number=2)
        assert [o.object_type for o in result.manifest.objects] == ["SBQQ__ProductRule__c"]

    def test_missing_plan_file(self, target_store, tmp_path):
        with pytest.raises(ConfigurationError):
            BackupEngine(target_store, tmp_path).create_backup(phase_number=3)

    def test_describe_is_cached_per_object(self, target_store, tmp_path):
        cache = FieldListCache()
        engine = BackupEngine(target_store, tmp_path, cache)
        plan = _plan(_object("Pricebook2", "SELECT all FROM Pricebook2"))
        engine.backup_query(plan.objects[0])
        engine.backup_query(plan.objects[0])
        assert target_store.describe_calls == ["Pricebook2"]
        assert len(cache) == 1


class TestListBackups:
    """Enumerating backup directories."""

    def test_newest_first_and_invalid_skipped(self, tmp_path):
        root = tmp_path / "Phase 2" / "backups"
        for stamp, description in [("2024-05-01T10-00-00", "one"), ("2024-05-02T10-00-00", "two")]:
            BackupManifest(
                timestamp=datetime.strptime(stamp, "%Y-%m-%dT%H-%M-%S"),
                description=description,
                phase_number=2,
                objects=[BackupObject("Pricebook2", "Insert", "Name", "SELECT all FROM Pricebook2", record_count=3)],
            ).save(root / stamp)
        (root / "broken").mkdir()
        (root / "broken" / "metadata.json").write_text("{not json")

        backups = list_backups(tmp_path, 2)

        assert [b["description"] for b in backups] == ["two", "one"]
        assert backups[0]["total_records"] == 3
        assert backups[0]["inserted_objects"] == ["Pricebook2"]

    def test_no_backups(self, tmp_path):
        assert list_backups(tmp_path) == []
