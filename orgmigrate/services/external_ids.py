"""Resolve the external id of an object for a phase."""

import logging
from typing import Dict, Optional

from ..models.external_id import ExternalIdSpec
from ..models.graph import PhaseGraph

logger = logging.getLogger(__name__)


class ExternalIdResolver:
    """
    Static lookup of external ids.

    Phased migrations read them from the phase graph; flat migrations pass
    them in explicitly. An object with no configured external id resolves
    to None and is left out of the plan rather than matched on store ids.
    """

    def __init__(
        self,
        graph: Optional[PhaseGraph] = None,
        overrides: Optional[Dict[str, str]] = None,
    ):
        self.graph = graph
        self.overrides = overrides or {}

    def resolve(self, object_type: str, phase_number: Optional[int] = None) -> Optional[ExternalIdSpec]:
        raw = self.overrides.get(object_type)
        if raw:
            try:
                return ExternalIdSpec.parse(raw)
            except ValueError as e:
                logger.warning(f"Ignoring external id for {object_type}: {e}")
                return None

        if self.graph is None:
            return None

        entry = self.graph.entry(object_type, phase_number)
        if entry is None:
            return None
        return entry.external_id
