"""Pydantic models for API requests and responses."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class SkippedObjectResponse(BaseModel):
    object_type: str
    reason: str


# Catalogs
class PhaseObjectResponse(BaseModel):
    object_type: str
    external_id: str
    role: str
    phase_filter: Optional[str] = None
    insert_only: bool = False
    optional: bool = False
    overrides: Dict[str, Any] = Field(default_factory=dict)
    label: Optional[str] = None


class PhaseResponse(BaseModel):
    number: int
    description: str
    objects: List[PhaseObjectResponse]


class CatalogResponse(BaseModel):
    mode: str
    phases: List[PhaseResponse]
    default_excluded: List[str]


# Plans
class PlanRequest(BaseModel):
    config: Dict[str, Any]
    phase: Optional[int] = None
    write: bool = False


class PlanResponse(BaseModel):
    phase_number: Optional[int] = None
    document: Dict[str, Any]
    skipped: List[SkippedObjectResponse] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    path: Optional[str] = None


class PlanListResponse(BaseModel):
    plans: List[PlanResponse]
    total: int


# Backups
class BackupSummary(BaseModel):
    directory: str
    timestamp: str
    description: str = ""
    config_name: str = ""
    phase_number: Optional[int] = None
    object_count: int = 0
    total_records: int = 0
    inserted_objects: List[str] = Field(default_factory=list)


class BackupListResponse(BaseModel):
    backups: List[BackupSummary]
    total: int


# Rollback
class RollbackPlanRequest(BaseModel):
    backup_dir: str
    write: bool = False


class RollbackPlanResponse(BaseModel):
    document: Dict[str, Any]
    snapshot_mode: bool
    skipped: List[SkippedObjectResponse] = Field(default_factory=list)
    path: Optional[str] = None
