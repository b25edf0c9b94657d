"""Plan generation endpoints."""

from fastapi import APIRouter, HTTPException

from ...errors import ConfigurationError, MigrationError
from ...models.migration import MigrationConfig
from ...services.plan_assembler import PlanAssembler
from ..models import PlanListResponse, PlanRequest, PlanResponse

router = APIRouter()


@router.post("", response_model=PlanListResponse)
async def create_plans(data: PlanRequest):
    """Assemble plan documents for a configuration, writing them only on request."""
    try:
        config = MigrationConfig.from_dict(data.config)
        assembler = PlanAssembler(config)
        plans = assembler.assemble(data.phase)
        paths = assembler.write(plans) if data.write else [None] * len(plans)
    except KeyError as e:
        raise HTTPException(
            status_code=400, detail=ConfigurationError(f"Missing field {e}").to_dict()
        )
    except MigrationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())

    responses = [
        PlanResponse(
            phase_number=plan.phase_number,
            document=plan.to_dict(),
            skipped=[skipped.to_dict() for skipped in plan.skipped],
            warnings=plan.warnings,
            path=str(path) if path else None,
        )
        for plan, path in zip(plans, paths)
    ]
    return PlanListResponse(plans=responses, total=len(responses))
