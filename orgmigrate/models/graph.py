"""Declarative phase graph: object types, phases and parent/child edges."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..errors import ConfigurationError
from .external_id import ExternalIdSpec


class ObjectRole(str, Enum):
    """How an object's record set is chosen within a phase."""
    MASTER = "master"  # Records picked explicitly by an operator
    SLAVE = "slave"  # Records follow the selected parent records
    STANDALONE = "standalone"  # Migrated in full, no selection


@dataclass
class PhaseEntry:
    """One object type declared in a phase."""
    object_type: str
    external_id: ExternalIdSpec
    role: ObjectRole = ObjectRole.MASTER
    phase_filter: Optional[str] = None
    insert_only: bool = False
    optional: bool = False  # Planned only when explicitly opted in
    overrides: Dict[str, Any] = field(default_factory=dict)
    label: Optional[str] = None  # Tells repeated occurrences apart, e.g. "draft"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "object_type": self.object_type,
            "external_id": self.external_id.serialize(),
            "role": self.role.value,
            "phase_filter": self.phase_filter,
            "insert_only": self.insert_only,
            "optional": self.optional,
            "overrides": dict(self.overrides),
            "label": self.label,
        }


@dataclass
class PhaseDefinition:
    number: int
    description: str
    entries: List[PhaseEntry] = field(default_factory=list)

    @property
    def object_types(self) -> List[str]:
        return [entry.object_type for entry in self.entries]

    def entry(self, object_type: str) -> Optional[PhaseEntry]:
        for entry in self.entries:
            if entry.object_type == object_type:
                return entry
        return None

    def entries_for(self, object_type: str) -> List[PhaseEntry]:
        return [entry for entry in self.entries if entry.object_type == object_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "description": self.description,
            "objects": [entry.to_dict() for entry in self.entries],
        }


@dataclass(frozen=True)
class Relationship:
    """
    Parent to child edge; ``child_field`` is the lookup holding the parent's id.

    ``phase_number`` is the child's phase. The parent lives in
    ``parent_phase`` when that is set, otherwise in the same phase.
    ``alternate_fields`` are further lookups on the child that may hold the
    parent's id instead.
    """
    parent_type: str
    child_type: str
    child_field: str
    phase_number: int
    parent_phase: Optional[int] = None
    alternate_fields: Tuple[str, ...] = ()

    @property
    def parent_phase_number(self) -> int:
        return self.parent_phase if self.parent_phase is not None else self.phase_number

    @property
    def child_fields(self) -> List[str]:
        return [self.child_field] + [f for f in self.alternate_fields if f != self.child_field]


@dataclass(frozen=True)
class BusinessFilter:
    """A fixed condition for an object, optionally lifted when another object is opted in."""
    object_type: str
    clause: str
    lifted_by: Optional[str] = None


class PhaseGraph:
    """
    Ordered phases of object types plus the parent/child relationships
    between them.

    The graph is validated on construction:
    - phase numbers run 1..N without gaps
    - every slave entry has exactly one relationship whose parent is
      declared in the same phase or an earlier one
    - an object repeated within a phase differs per occurrence in its
      operation, phase filter or overrides
    - parent chains are acyclic
    - a relationship's child field is never one of the child's own
      external id fields
    """

    def __init__(
        self,
        name: str,
        phases: List[PhaseDefinition],
        relationships: Iterable[Relationship] = (),
        guarded_objects: Iterable[str] = (),
        default_excluded: Iterable[str] = (),
        business_filters: Iterable[BusinessFilter] = (),
    ):
        self.name = name
        self.phases = sorted(phases, key=lambda p: p.number)
        self.relationships = list(relationships)
        self.guarded_objects: Set[str] = set(guarded_objects)
        self.default_excluded = list(default_excluded)
        self.business_filters = list(business_filters)
        self._validate()

    # Lookups

    @property
    def phase_numbers(self) -> List[int]:
        return [phase.number for phase in self.phases]

    def phase(self, number: int) -> PhaseDefinition:
        for phase in self.phases:
            if phase.number == number:
                return phase
        raise ConfigurationError(f"Phase {number} is not defined in the {self.name} catalog")

    def entry(self, object_type: str, phase_number: Optional[int] = None) -> Optional[PhaseEntry]:
        """Entry for an object in a phase, or in the first phase declaring it."""
        if phase_number is not None:
            return self.phase(phase_number).entry(object_type)
        for phase in self.phases:
            entry = phase.entry(object_type)
            if entry:
                return entry
        return None

    def relationship_for(self, child_type: str, phase_number: int) -> Optional[Relationship]:
        for rel in self.relationships:
            if rel.child_type == child_type and rel.phase_number == phase_number:
                return rel
        return None

    def children_of(self, parent_type: str, phase_number: int) -> List[Relationship]:
        return [
            rel for rel in self.relationships
            if rel.parent_type == parent_type and rel.phase_number == phase_number
        ]

    def is_guarded(self, object_type: str) -> bool:
        return object_type in self.guarded_objects

    def filters_for(self, object_type: str, opted_in: Iterable[str] = ()) -> List[str]:
        opted = set(opted_in)
        return [
            bf.clause for bf in self.business_filters
            if bf.object_type.lower() == object_type.lower()
            and not (bf.lifted_by and bf.lifted_by in opted)
        ]

    def optional_objects(self) -> Set[str]:
        return {
            entry.object_type
            for phase in self.phases
            for entry in phase.entries
            if entry.optional
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "phases": [phase.to_dict() for phase in self.phases],
            "relationships": [
                {
                    "parent": rel.parent_type,
                    "child": rel.child_type,
                    "child_field": rel.child_field,
                    "alternate_fields": list(rel.alternate_fields),
                    "phase": rel.phase_number,
                    "parent_phase": rel.parent_phase_number,
                }
                for rel in self.relationships
            ],
            "default_excluded": self.default_excluded,
        }

    # Validation

    def _validate(self):
        numbers = self.phase_numbers
        if numbers != list(range(1, len(numbers) + 1)):
            raise ConfigurationError(
                f"{self.name}: phase numbers must run 1..{len(numbers)} without gaps, got {numbers}"
            )

        for phase in self.phases:
            seen: Dict[str, List[tuple]] = {}
            for entry in phase.entries:
                signature = (entry.insert_only, entry.phase_filter, entry.overrides)
                if signature in seen.get(entry.object_type, []):
                    raise ConfigurationError(
                        f"{self.name}: {entry.object_type} declared twice in phase {phase.number} "
                        f"with the same operation, filter and overrides"
                    )
                seen.setdefault(entry.object_type, []).append(signature)

        for rel in self.relationships:
            phase = self.phase(rel.phase_number)
            child = phase.entry(rel.child_type)
            if child is None:
                raise ConfigurationError(
                    f"{self.name}: relationship child {rel.child_type} is not in phase {rel.phase_number}"
                )
            if child.role != ObjectRole.SLAVE:
                raise ConfigurationError(
                    f"{self.name}: {rel.child_type} has a parent but is not declared as a slave"
                )
            if rel.parent_phase_number > rel.phase_number:
                raise ConfigurationError(
                    f"{self.name}: parent {rel.parent_type} of {rel.child_type} is migrated "
                    f"after it (phase {rel.parent_phase_number} > {rel.phase_number})"
                )
            if self.phase(rel.parent_phase_number).entry(rel.parent_type) is None:
                raise ConfigurationError(
                    f"{self.name}: parent {rel.parent_type} of {rel.child_type} "
                    f"is not in phase {rel.parent_phase_number}"
                )
            for child_field in rel.child_fields:
                if child_field in child.external_id.direct_fields:
                    raise ConfigurationError(
                        f"{self.name}: {rel.child_type}.{child_field} is part of its external id "
                        f"and cannot carry the parent's id"
                    )

        for phase in self.phases:
            for entry in phase.entries:
                if entry.role != ObjectRole.SLAVE:
                    continue
                edges = [
                    rel for rel in self.relationships
                    if rel.child_type == entry.object_type and rel.phase_number == phase.number
                ]
                if len(edges) != 1:
                    raise ConfigurationError(
                        f"{self.name}: slave {entry.object_type} in phase {phase.number} "
                        f"needs exactly one parent, found {len(edges)}"
                    )
                self._check_acyclic(entry.object_type, phase.number)

    def _check_acyclic(self, object_type: str, phase_number: int):
        visited = [(object_type, phase_number)]
        current = (object_type, phase_number)
        while True:
            rel = self.relationship_for(*current)
            if rel is None:
                return
            parent = (rel.parent_type, rel.parent_phase_number)
            if parent in visited:
                chain = " -> ".join(name for name, _ in visited + [parent])
                raise ConfigurationError(f"{self.name}: cyclic parent reference {chain}")
            visited.append(parent)
            current = parent
