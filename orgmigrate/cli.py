"""Command line interface for planning, backing up and rolling back org migrations."""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dateutil import parser as date_parser

from .catalogs import get_catalog
from .errors import ConfigurationError, MigrationError
from .models.backup import BackupManifest
from .models.migration import MigrationConfig
from .orchestrator import MigrationOrchestrator
from .services.backup import list_backups
from .services.history import MigrationHistory
from .services.plan_assembler import PlanAssembler
from .services.rollback import RollbackPlanner

logger = logging.getLogger(__name__)


def main(argv=None):
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Org Migrate - Plan phased Salesforce data migrations, backups and rollbacks"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Catalog phases
    phases_parser = subparsers.add_parser("phases", help="Show the phases of a catalog")
    phases_parser.add_argument("--mode", required=True, choices=["cpq", "rca"], help="Catalog to show")
    phases_parser.add_argument("--include-product2", action="store_true", help="Include Product2")

    # Plan generation
    plan_parser = subparsers.add_parser("plan", help="Generate plan documents")
    plan_parser.add_argument("--config", required=True, help="Path to migration config file")
    plan_parser.add_argument("--phase", type=int, help="Only this phase")

    # Backup
    backup_parser = subparsers.add_parser("backup", help="Snapshot the target org before a run")
    backup_parser.add_argument("--config", required=True, help="Path to migration config file")
    backup_parser.add_argument("--phase", type=int, help="Phase to back up")
    backup_parser.add_argument("--description", default="", help="Backup description")

    # Reconciliation
    reconcile_parser = subparsers.add_parser("reconcile", help="Identify records a run inserted")
    reconcile_parser.add_argument("--config", required=True, help="Path to migration config file")
    reconcile_parser.add_argument("--backup", required=True, help="Backup directory")
    reconcile_parser.add_argument("--started", help="Run start, ISO 8601 (UTC)")
    reconcile_parser.add_argument("--ended", help="Run end, ISO 8601 (UTC)")
    reconcile_parser.add_argument(
        "--allow-imprecise-actor",
        action="store_true",
        help="Fall back to the most recently active user when the run's user is unknown",
    )

    # Rollback
    rollback_parser = subparsers.add_parser("rollback", help="Prepare the rollback plan of a backup")
    rollback_parser.add_argument("--backup", required=True, help="Backup directory")

    # Backup listing
    backups_parser = subparsers.add_parser("backups", help="List backups")
    backups_parser.add_argument("--config", required=True, help="Path to migration config file")
    backups_parser.add_argument("--phase", type=int, help="Only backups of this phase")

    # History
    history_parser = subparsers.add_parser("history", help="List recorded runs")
    history_parser.add_argument("--output-dir", default="./output", help="Migration output directory")
    history_parser.add_argument("--config-name", help="Only runs of this configuration")

    args = parser.parse_args(argv)

    # Set up logging
    if args.verbose:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, os.getenv("ORGMIGRATE_LOG_LEVEL", "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    commands = {
        "phases": show_phases,
        "plan": generate_plans,
        "backup": create_backup,
        "reconcile": reconcile_backup,
        "rollback": prepare_rollback,
        "backups": show_backups,
        "history": show_history,
    }
    if args.command not in commands:
        parser.print_help()
        return 1

    try:
        commands[args.command](args)
    except MigrationError as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 1
    return 0


def _parse_timestamp(value):
    if not value:
        return None
    try:
        return date_parser.isoparse(value)
    except ValueError:
        raise ConfigurationError(f"Invalid timestamp {value!r}, expected ISO 8601")


def show_phases(args):
    """Print the phases of a catalog."""
    graph = get_catalog(args.mode)
    opted_in = ["Product2"] if args.include_product2 else []

    print(f"\n{graph.name} catalog")
    print("=" * 60)
    for phase in graph.phases:
        print(f"\nPhase {phase.number}: {phase.description}")
        for entry in phase.entries:
            if entry.optional and entry.object_type not in opted_in:
                continue
            notes = [entry.role.value]
            if entry.insert_only:
                notes.append("insert only")
            if entry.label:
                notes.append(entry.label)
            print(f"  - {entry.object_type} [{entry.external_id.serialize()}] ({', '.join(notes)})")

    excluded = [obj for obj in graph.default_excluded if obj not in opted_in]
    print(f"\nExcluded by default: {', '.join(excluded)}")


def generate_plans(args):
    """Assemble and write plan documents for a configuration."""
    config = MigrationConfig.from_json_file(args.config)
    assembler = PlanAssembler(config)
    plans = assembler.assemble(args.phase)
    paths = assembler.write(plans, config.output_dir)

    for plan, path in zip(plans, paths):
        label = f"Phase {plan.phase_number}" if plan.phase_number is not None else "Plan"
        print(f"\n{label}: {len(plan.objects)} object(s) -> {path}")
        for obj in plan.objects:
            marker = " (deferred)" if obj.deferred else ""
            if obj.overrides:
                marker += " with " + ", ".join(f"{k}={v}" for k, v in obj.overrides.items())
            print(f"  - {obj.operation.value} {obj.object_type}{marker}")
        for skipped in plan.skipped:
            print(f"  ~ skipped {skipped.object_type}: {skipped.reason}")
        for warning in plan.warnings:
            print(f"  ! {warning}")


def create_backup(args):
    """Back up the target org for a plan."""
    config = MigrationConfig.from_json_file(args.config)
    orchestrator = MigrationOrchestrator(config)
    result = orchestrator.backup_phase(args.phase, description=args.description)

    print(f"\nBackup written to {result.directory}")
    print(f"Objects: {result.objects_backed_up}, records: {result.manifest.total_records}")
    for warning in result.warnings:
        print(f"  ! {warning}")


def reconcile_backup(args):
    """Record the ids a run inserted into a backup manifest."""
    config = MigrationConfig.from_json_file(args.config)
    if args.allow_imprecise_actor:
        config.allow_imprecise_actor = True

    backup_dir = Path(args.backup)
    manifest = BackupManifest.load(backup_dir)
    orchestrator = MigrationOrchestrator(config)
    result = orchestrator.reconcile_manifest(
        manifest,
        backup_dir,
        _parse_timestamp(args.started),
        _parse_timestamp(args.ended),
    )

    for outcome in result.outcomes:
        print(f"  - {outcome.object_type}: {outcome.record_count} record(s) via {outcome.strategy}")
    for skipped in result.skipped:
        print(f"  ~ {skipped.object_type}: {skipped.reason}")


def prepare_rollback(args):
    """Write the rollback plan of a backup."""
    plan, path = RollbackPlanner(args.backup).prepare()

    mode = "snapshot files" if plan.snapshot_mode else "live queries"
    print(f"\nRollback plan written to {path} (from {mode})")
    for obj in plan.objects:
        print(f"  - {obj.rollback_operation.value} {obj.object_type}")
    for skipped in plan.skipped:
        print(f"  ~ skipped {skipped.object_type}: {skipped.reason}")


def show_backups(args):
    """List the backups of a configuration's output directory."""
    config = MigrationConfig.from_json_file(args.config)
    backups = list_backups(config.output_dir, args.phase)
    if not backups:
        print("No backups found")
        return

    for backup in backups:
        print(
            f"{backup['timestamp']}  {backup['object_count']} object(s), "
            f"{backup['total_records']} record(s)  {backup['directory']}"
        )
        if backup["description"]:
            print(f"    {backup['description']}")


def show_history(args):
    """List recorded migration runs."""
    entries = MigrationHistory.for_output_dir(args.output_dir).list_runs(args.config_name)
    if not entries:
        print("No runs recorded")
        return

    for entry in entries:
        phase = f" phase {entry.phase_number}" if entry.phase_number is not None else ""
        print(
            f"{entry.timestamp.isoformat()}  {entry.config_name}{phase}  "
            f"{entry.status.value}  {entry.records_processed} record(s)"
        )


if __name__ == "__main__":
    sys.exit(main())
