"""Interface to the external transfer tool."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from ..models.plan import OrgDescriptor

logger = logging.getLogger(__name__)


@dataclass
class TransferResult:
    """Result of running the transfer tool on one plan directory."""
    success: bool
    records_processed: int = 0
    errors: List[str] = field(default_factory=list)
    output: str = ""
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "records_processed": self.records_processed,
            "errors": self.errors,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
        }


class BaseTransferRunner(ABC):
    """
    Base class for drivers of the transfer tool.

    Runners execute a plan document; the toolkit only prepares plans and
    inspects the target org around each run.
    """

    @abstractmethod
    def run(
        self,
        plan_dir: Path,
        source: OrgDescriptor,
        target: OrgDescriptor,
        simulation: bool = False,
    ) -> TransferResult:
        """
        Execute the plan in ``plan_dir``.

        Args:
            plan_dir: Directory holding export.json
            source: Source org descriptor
            target: Target org descriptor
            simulation: If True, the tool must not write to the target

        Returns:
            TransferResult with the tool's output
        """
        pass

    def execute(
        self,
        plan_dir: Path,
        source: OrgDescriptor,
        target: OrgDescriptor,
        simulation: bool = False,
    ) -> TransferResult:
        """Run and stamp the start and end times reconciliation relies on."""
        started_at = datetime.utcnow()
        logger.info(f"Running transfer for {plan_dir} (simulation={simulation})")
        result = self.run(plan_dir, source, target, simulation)
        result.started_at = result.started_at or started_at
        result.completed_at = result.completed_at or datetime.utcnow()
        return result
