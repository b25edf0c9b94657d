from __future__ import annotations

import json

from orgmigrate.cli import main


def _write_config(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))
    return str(path)


class TestCli:
    """Command line entry points."""

    def test_phases(self, capsys):
        assert main(["phases", "--mode", "cpq"]) == 0
        out = capsys.readouterr().out
        assert "Phase 2: Product Rules" in out
        assert "SBQQ__ErrorCondition__c [SBQQ__Rule__r.Name;SBQQ__Index__c] (slave)" in out
        assert "  - Product2 " not in out

    def test_phases_with_product2(self, capsys):
        assert main(["phases", "--mode", "rca", "--include-product2"]) == 0
        out = capsys.readouterr().out
        assert "  - Product2 [StockKeepingUnit] (master)" in out
        assert "TaxTreatment [Code] (standalone, insert only)" in out
        assert "PaymentTerm [Code] (master, insert only, draft)" in out
        assert "PaymentTerm [Code] (master, final)" in out

    def test_plan_writes_phase_files(self, cpq_config_data, tmp_path, capsys):
        config_path = _write_config(tmp_path, cpq_config_data)

        assert main(["plan", "--config", config_path]) == 0

        plan_file = tmp_path / "out" / "Phase 2" / "export.json"
        assert plan_file.exists()
        with open(plan_file) as f:
            assert len(json.load(f)["objects"]) == 4
        assert "Phase 2: 4 object(s)" in capsys.readouterr().out

    def test_plan_single_phase_without_selection(self, cpq_config_data, tmp_path, capsys):
        config_path = _write_config(tmp_path, cpq_config_data)

        assert main(["plan", "--config", config_path, "--phase", "3"]) == 0
        assert "skipped SBQQ__PriceRule__c: no master records selected" in capsys.readouterr().out

    def test_missing_config_is_structured_error(self, tmp_path, capsys):
        assert main(["plan", "--config", str(tmp_path / "missing.json")]) == 1
        assert '"kind": "configuration_error"' in capsys.readouterr().err

    def test_backup_requires_credentials(self, cpq_config_data, tmp_path, capsys):
        config_path = _write_config(tmp_path, cpq_config_data)

        assert main(["backup", "--config", config_path, "--phase", "2"]) == 1
        assert "access_token are required" in capsys.readouterr().err

    def test_history_empty(self, tmp_path, capsys):
        assert main(["history", "--output-dir", str(tmp_path)]) == 0
        assert "No runs recorded" in capsys.readouterr().out

    def test_no_command(self, capsys):
        assert main([]) == 1
