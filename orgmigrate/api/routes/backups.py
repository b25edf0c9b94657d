"""Backup listing and rollback planning endpoints."""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException

from ...errors import MigrationError
from ...models.backup import MANIFEST_FILE
from ...services.backup import list_backups
from ...services.rollback import RollbackPlanner
from ..models import BackupListResponse, RollbackPlanRequest, RollbackPlanResponse

router = APIRouter()


@router.get("/backups", response_model=BackupListResponse)
async def get_backups(output_dir: str = "./output", phase: Optional[int] = None):
    """List backups under an output directory, newest first."""
    backups = list_backups(output_dir, phase)
    return BackupListResponse(backups=backups, total=len(backups))


@router.post("/rollback-plans", response_model=RollbackPlanResponse)
async def create_rollback_plan(data: RollbackPlanRequest):
    """Derive the rollback plan of a backup."""
    if not (Path(data.backup_dir) / MANIFEST_FILE).exists():
        raise HTTPException(status_code=404, detail="Backup not found")

    planner = RollbackPlanner(data.backup_dir)
    try:
        if data.write:
            plan, path = planner.prepare()
        else:
            plan, path = planner.build(), None
    except MigrationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())

    return RollbackPlanResponse(
        document=plan.to_document(),
        snapshot_mode=plan.snapshot_mode,
        skipped=[skipped.to_dict() for skipped in plan.skipped],
        path=str(path) if path else None,
    )
