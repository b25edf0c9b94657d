"""Ledger of migration runs."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..models.migration import HistoryEntry, HistoryObject, MigrationConfig, RunStatus
from ..models.plan import Plan

logger = logging.getLogger(__name__)

HISTORY_DIR = "history"

_COUNT_PATTERNS = {
    "inserted": [r"(\d+)\s+records?\s+inserted", r"inserted[:\s]+(\d+)"],
    "updated": [r"(\d+)\s+records?\s+updated", r"updated[:\s]+(\d+)"],
    "deleted": [r"(\d+)\s+records?\s+deleted", r"deleted[:\s]+(\d+)"],
    "failed": [r"(\d+)\s+records?\s+failed", r"failed[:\s]+(\d+)", r"errors?[:\s]+(\d+)"],
}


def sanitize_name(name: str) -> str:
    name = re.sub(r'[<>:"/\\|?*\x00-\x1f]', "_", name)
    name = re.sub(r"\s+", "_", name)
    return name[:100] or "migration"


def parse_transfer_output(output: str, object_names: List[str]) -> Dict[str, Dict[str, int]]:
    """
    Pull per-object record counts out of the transfer tool's log.

    Recognizes lines such as ``Account: 10 records inserted, 5 records
    updated`` or ``[Account] Inserted: 10, Updated: 5``. The last matching
    line for an object wins.
    """
    counts: Dict[str, Dict[str, int]] = {
        name: {key: 0 for key in _COUNT_PATTERNS} for name in object_names
    }
    lines = (output or "").splitlines()
    for name in object_names:
        for line in lines:
            if name.lower() not in line.lower():
                continue
            for key, patterns in _COUNT_PATTERNS.items():
                for pattern in patterns:
                    match = re.search(pattern, line, re.IGNORECASE)
                    if match:
                        counts[name][key] = int(match.group(1))
                        break
    return counts


class MigrationHistory:
    """JSON ledger of runs, one file per run."""

    def __init__(self, history_dir: Union[str, Path]):
        self.history_dir = Path(history_dir)

    @classmethod
    def for_output_dir(cls, output_dir: Union[str, Path]) -> "MigrationHistory":
        return cls(Path(output_dir) / HISTORY_DIR)

    def build_entry(
        self,
        config: MigrationConfig,
        plan: Plan,
        success: bool,
        output: str = "",
        errors: Optional[List[str]] = None,
        records_processed: int = 0,
        backup_location: Optional[str] = None,
    ) -> HistoryEntry:
        errors = errors or []
        if success:
            status = RunStatus.COMPLETED
        elif errors:
            status = RunStatus.PARTIAL
        else:
            status = RunStatus.FAILED

        timestamp = datetime.utcnow()
        entry_id = f"{timestamp.strftime('%Y-%m-%dT%H-%M-%S-%f')}_{sanitize_name(config.name)}"
        if plan.phase_number is not None:
            entry_id += f"_phase{plan.phase_number}"

        counts = parse_transfer_output(output, plan.object_types)
        objects = [
            HistoryObject(
                object_name=obj.object_type,
                operation=obj.operation.value,
                external_id=obj.external_id.serialize(),
                **counts[obj.object_type],
            )
            for obj in plan.objects
        ]

        return HistoryEntry(
            id=entry_id,
            config_name=config.name,
            mode=config.mode.value,
            status=status,
            timestamp=timestamp,
            phase_number=plan.phase_number,
            operation=config.operation,
            source_org=config.source_org,
            target_org=config.target_org,
            backup_location=backup_location,
            records_processed=records_processed,
            objects=objects,
            errors=errors,
        )

    def save(self, entry: HistoryEntry) -> Path:
        self.history_dir.mkdir(parents=True, exist_ok=True)
        path = self.history_dir / f"{entry.id}.json"
        with open(path, "w") as f:
            json.dump(entry.to_dict(), f, indent=2)
        logger.info(f"Recorded run {entry.id} ({entry.status.value})")
        return path

    def list_runs(self, config_name: Optional[str] = None) -> List[HistoryEntry]:
        """Recorded runs, newest first."""
        if not self.history_dir.exists():
            return []
        entries = []
        for path in self.history_dir.glob("*.json"):
            try:
                with open(path) as f:
                    entry = HistoryEntry.from_dict(json.load(f))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.warning(f"Skipping unreadable history file {path.name}: {e}")
                continue
            if config_name and entry.config_name != config_name:
                continue
            entries.append(entry)
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries
