"""Turn a migration config into per-phase transfer plans."""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from ..catalogs import get_catalog
from ..errors import ConfigurationError
from ..models.graph import ObjectRole, PhaseGraph, Relationship
from ..models.migration import MigrationConfig
from ..models.plan import Operation, Plan, PlanObject, SkippedObject
from .external_ids import ExternalIdResolver
from .query_builder import QueryBuilder, SlaveLink

logger = logging.getLogger(__name__)


class PlanAssembler:
    """
    Builds plans from a migration config.

    Phased modes walk the catalog graph; only master objects with at least
    one selected record are planned, slaves follow their parent's
    selection, and objects keep the phase's declared order.
    """

    def __init__(
        self,
        config: MigrationConfig,
        graph: Optional[PhaseGraph] = None,
        api_version: Optional[str] = None,
    ):
        self.config = config
        if graph is None and config.is_phased:
            graph = get_catalog(config.mode)
        self.graph = graph
        self.api_version = api_version
        self.builder = QueryBuilder(graph)
        self.resolver = ExternalIdResolver(
            graph,
            overrides={obj.object_name: obj.external_id for obj in config.objects}
            if not config.is_phased else None,
        )

    @property
    def opted_in(self) -> Set[str]:
        return set(self.config.opted_in_objects())

    def excluded_objects(self) -> List[str]:
        """Objects the transfer tool must never touch."""
        if self.graph is None:
            return list(self.config.excluded_objects or [])

        if self.config.excluded_objects is not None:
            excluded = list(self.config.excluded_objects)
        else:
            excluded = list(self.graph.default_excluded)

        for name in self.graph.optional_objects():
            if name in self.opted_in:
                excluded = [e for e in excluded if e != name]
            elif name not in excluded:
                excluded.append(name)
        return excluded

    def phase_numbers(self) -> List[int]:
        if self.graph is None:
            return []
        available = self.graph.phase_numbers
        if not self.config.selected_phases:
            return available
        unknown = [p for p in self.config.selected_phases if p not in available]
        if unknown:
            raise ConfigurationError(f"Unknown phase(s) for {self.graph.name}: {unknown}")
        return [p for p in available if p in self.config.selected_phases]

    def assemble(self, phase_number: Optional[int] = None) -> List[Plan]:
        """Plans for one phase, every selected phase, or the single flat plan."""
        if self.graph is None:
            return [self.assemble_standard()]
        if phase_number is not None:
            return [self.assemble_phase(phase_number)]
        return [self.assemble_phase(n) for n in self.phase_numbers()]

    def _new_plan(self, phase_number: Optional[int]) -> Plan:
        return Plan(
            excluded_objects=self.excluded_objects(),
            source_org=self.config.source_org,
            target_org=self.config.target_org,
            api_version=self.api_version,
            phase_number=phase_number,
        )

    def _skip(self, plan: Plan, object_type: str, reason: str):
        logger.info(f"Skipping {object_type}: {reason}")
        plan.skipped.append(SkippedObject(object_type, reason))

    def assemble_phase(self, phase_number: int) -> Plan:
        if self.graph is None:
            raise ConfigurationError("Standard migrations have no phases")

        phase = self.graph.phase(phase_number)
        plan = self._new_plan(phase_number)
        selections = self.config.selections_for(phase_number)
        do_not_migrate = set(self.config.excluded_objects_by_phase.get(phase_number, []))
        opted = self.opted_in
        planned: Dict[str, PlanObject] = {}

        for entry in phase.entries:
            name = entry.object_type

            if name in do_not_migrate:
                self._skip(plan, name, "marked as do not migrate")
                continue
            if entry.optional and name not in opted:
                self._skip(plan, name, "optional object not opted in")
                continue
            if self.graph.is_guarded(name) and name not in opted:
                self._skip(plan, name, "transactional object")
                continue

            spec = self.resolver.resolve(name, phase_number)
            if spec is None:
                self._skip(plan, name, "no external id configured")
                continue

            common = dict(
                phase_number=phase_number,
                modified_since=self.config.modified_since,
                custom_filter=self.config.custom_filter_for(name),
                opted_in=opted,
                entry=entry,
            )

            if entry.role == ObjectRole.MASTER:
                selected = selections.get(name, [])
                if not selected:
                    self._skip(plan, name, "no master records selected")
                    continue
                built = self.builder.build(name, spec, selection=selected, **common)

            elif entry.role == ObjectRole.SLAVE:
                rel = self.graph.relationship_for(name, phase_number)
                reason = self._parent_missing(rel, planned)
                if reason:
                    self._skip(plan, name, reason)
                    continue
                built = self.builder.build(name, spec, slave_link=self._slave_link(rel), **common)

            else:
                built = self.builder.build(name, spec, **common)

            operation = Operation.INSERT if entry.insert_only else self.config.operation_for(phase_number)
            plan_object = PlanObject(
                object_type=name,
                query=built.query,
                operation=operation,
                external_id=spec,
                is_slave=entry.role == ObjectRole.SLAVE,
                deferred=built.deferred,
                warnings=built.warnings,
                overrides=dict(entry.overrides),
            )
            plan.objects.append(plan_object)
            planned[name] = plan_object

        logger.info(
            f"Phase {phase_number}: {len(plan.objects)} object(s) planned, {len(plan.skipped)} skipped"
        )
        return plan

    def _parent_missing(self, rel: Relationship, planned: Dict[str, PlanObject]) -> Optional[str]:
        """Why a slave's parent is not migrated, or None when it is."""
        parent_phase = rel.parent_phase_number
        if parent_phase == rel.phase_number:
            if rel.parent_type not in planned:
                return f"parent {rel.parent_type} is not part of this plan"
            return None

        # Parents of earlier phases count as migrated when they would be planned there
        parent = self.graph.entry(rel.parent_type, parent_phase)
        if rel.parent_type in self.config.excluded_objects_by_phase.get(parent_phase, []):
            return f"parent {rel.parent_type} is marked as do not migrate in phase {parent_phase}"
        selected = self.config.selections_for(parent_phase).get(rel.parent_type)
        if parent.role == ObjectRole.MASTER and not selected:
            return f"parent {rel.parent_type} has no selected records in phase {parent_phase}"
        return None

    def _slave_link(self, rel: Relationship) -> Optional[SlaveLink]:
        """Filter on the parent's selected records; None when the parent is migrated whole."""
        parent = self.graph.entry(rel.parent_type, rel.parent_phase_number)
        if parent.role == ObjectRole.STANDALONE:
            return None
        link = SlaveLink(
            parent_type=rel.parent_type,
            child_field=rel.child_field,
            alternate_fields=list(rel.alternate_fields),
        )
        if parent.role == ObjectRole.MASTER:
            selected = self.config.selections_for(rel.parent_phase_number).get(rel.parent_type, [])
            link.parent_ids = [r.id for r in selected if r.id]
        return link

    def assemble_standard(self) -> Plan:
        """Single plan for a non-phased migration, objects sorted by name."""
        plan = self._new_plan(None)
        for obj in sorted(self.config.objects, key=lambda o: o.object_name):
            spec = self.resolver.resolve(obj.object_name)
            if spec is None:
                self._skip(plan, obj.object_name, "no external id configured")
                continue
            try:
                operation = (
                    Operation.parse(obj.operation) if obj.operation else self.config.operation_for()
                )
            except ConfigurationError as e:
                self._skip(plan, obj.object_name, e.message)
                continue

            built = self.builder.build(
                obj.object_name,
                spec,
                modified_since=self.config.modified_since,
                custom_filter=obj.where_clause or self.config.custom_filter_for(obj.object_name),
                selected_fields=obj.selected_fields,
                order_by=obj.order_by,
                limit=obj.limit,
            )
            plan.objects.append(PlanObject(
                object_type=obj.object_name,
                query=built.query,
                operation=operation,
                external_id=spec,
                warnings=built.warnings,
            ))
        return plan

    def write(self, plans: List[Plan], output_dir: Optional[Union[str, Path]] = None) -> List[Path]:
        """Write each plan to ``<output_dir>[/Phase N]/export.json``."""
        output_dir = Path(output_dir or self.config.output_dir)
        paths = []
        for plan in plans:
            path = plan.write(output_dir)
            logger.info(f"Wrote plan with {len(plan.objects)} object(s) to {path}")
            paths.append(path)
        return paths
