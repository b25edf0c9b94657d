"""Declarative phase catalogs, validated when first loaded."""

from typing import Dict

from ..errors import ConfigurationError
from ..models.graph import PhaseGraph
from ..models.migration import MigrationMode
from . import cpq, rca

_BUILDERS = {
    MigrationMode.CPQ: cpq.build_graph,
    MigrationMode.RCA: rca.build_graph,
}

_GRAPHS: Dict[MigrationMode, PhaseGraph] = {}


def get_catalog(mode) -> PhaseGraph:
    """Return the phase graph for a phased migration mode."""
    try:
        mode = MigrationMode(mode)
    except ValueError:
        raise ConfigurationError(f"Unknown migration mode: {mode!r}")
    if mode not in _BUILDERS:
        raise ConfigurationError(f"Mode {mode.value!r} has no phase catalog")
    if mode not in _GRAPHS:
        _GRAPHS[mode] = _BUILDERS[mode]()
    return _GRAPHS[mode]


__all__ = ["get_catalog"]
