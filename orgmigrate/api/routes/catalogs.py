"""Phase catalog endpoints."""

from fastapi import APIRouter, HTTPException

from ...catalogs import get_catalog
from ...errors import ConfigurationError
from ..models import CatalogResponse

router = APIRouter()


@router.get("/{mode}/phases", response_model=CatalogResponse)
async def get_phases(mode: str):
    """Phases, objects and default exclusions of a catalog."""
    try:
        graph = get_catalog(mode)
    except ConfigurationError as e:
        raise HTTPException(status_code=404, detail=e.to_dict())

    return CatalogResponse(
        mode=mode,
        phases=[phase.to_dict() for phase in graph.phases],
        default_excluded=graph.default_excluded,
    )
