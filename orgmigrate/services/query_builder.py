"""Assemble per-object SOQL statements for plans."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from ..errors import ConfigurationError, IntegrityGuardError
from ..models.external_id import ExternalIdSpec
from ..models.graph import PhaseEntry, PhaseGraph
from ..models.plan import SelectedRecord
from ..soql import SELECT_ALL, in_list, literal, quote, split_user_filter

logger = logging.getLogger(__name__)

ID_FIELD = "Id"
ALWAYS_FALSE = "Id = null"
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class SlaveLink:
    """How a slave object follows its parent's selection."""
    parent_type: str
    child_field: str
    parent_ids: List[str] = field(default_factory=list)
    alternate_fields: List[str] = field(default_factory=list)

    @property
    def child_fields(self) -> List[str]:
        return [self.child_field] + [f for f in self.alternate_fields if f != self.child_field]


@dataclass
class BuiltQuery:
    object_type: str
    query: str
    fields: List[str] = field(default_factory=list)
    conditions: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    deferred: bool = False
    guard: Optional[IntegrityGuardError] = None


def external_id_condition(
    spec: ExternalIdSpec,
    values: Sequence[str],
) -> Tuple[Optional[str], List[str]]:
    """
    Condition matching records by external id value.

    Simple keys become an IN list. Composite keys become an OR of per-part
    AND groups; a value whose parts do not all decode to non-empty strings
    is dropped and reported.

    Returns:
        (condition or None when nothing usable remains, warnings)
    """
    warnings: List[str] = []
    values = [v for v in values if v]
    if not values:
        return None, warnings

    if not spec.is_composite:
        return in_list(spec.fields[0], values), warnings

    branches = []
    for value in values:
        parts = spec.decode_value(value)
        if len(parts) != len(spec.parts) or not all(parts):
            warnings.append(
                f"Dropped composite value {value!r}: expected {len(spec.parts)} "
                f"non-empty parts for {spec.serialize()}"
            )
            continue
        terms = [f"{part.path} = {quote(v)}" for part, v in zip(spec.parts, parts)]
        branches.append(f"({' AND '.join(terms)})")

    if not branches:
        return None, warnings
    if len(branches) == 1:
        return branches[0], warnings
    return f"({' OR '.join(branches)})", warnings


def record_key_condition(spec: ExternalIdSpec, keys: Sequence[Tuple[Any, ...]]) -> Optional[str]:
    """
    Condition matching records by key values read from another store.

    Values keep their store types, so numeric parts are compared unquoted.
    """
    keys = [key for key in keys if key and len(key) == len(spec.parts)]
    if not keys:
        return None
    if not spec.is_composite:
        return f"{spec.fields[0]} IN ({', '.join(literal(key[0]) for key in keys)})"
    branches = [
        "(" + " AND ".join(f"{part.path} = {literal(v)}" for part, v in zip(spec.parts, key)) + ")"
        for key in keys
    ]
    if len(branches) == 1:
        return branches[0]
    return f"({' OR '.join(branches)})"


class QueryBuilder:
    """
    Builds the query of one plan object.

    Conditions are appended in a fixed order:
    1. phase filter
    2. business filters
    3. transactional guard
    4. modified-since filter
    5. operator filters
    6. master selection or slave linkage

    Given identical input the output is byte-identical.
    """

    def __init__(self, graph: Optional[PhaseGraph] = None):
        self.graph = graph

    def select_fields(
        self,
        spec: ExternalIdSpec,
        selected_fields: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """Base lookup fields always precede the traversal paths they resolve."""
        if selected_fields:
            fields = [ID_FIELD]
            for name in selected_fields:
                if name and name not in fields:
                    fields.append(name)
        else:
            fields = [SELECT_ALL]
        for name in spec.relationship_fields():
            if name not in fields:
                fields.append(name)
        return fields

    def build(
        self,
        object_type: str,
        spec: ExternalIdSpec,
        phase_number: Optional[int] = None,
        modified_since: Optional[str] = None,
        custom_filter: Optional[str] = None,
        selection: Optional[Sequence[SelectedRecord]] = None,
        slave_link: Optional[SlaveLink] = None,
        opted_in: Iterable[str] = (),
        selected_fields: Optional[Sequence[str]] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        entry: Optional[PhaseEntry] = None,
    ) -> BuiltQuery:
        """
        Build the query of one object.

        ``entry`` is the phase occurrence being planned; objects declared
        more than once in a phase carry their own phase filter.
        """
        opted = set(opted_in)
        result = BuiltQuery(object_type=object_type, query="")
        result.fields = self.select_fields(spec, selected_fields)
        conditions = result.conditions

        if self.graph is not None:
            if entry is None and phase_number:
                entry = self.graph.entry(object_type, phase_number)
            if entry and entry.phase_filter:
                conditions.append(entry.phase_filter)

            conditions.extend(self.graph.filters_for(object_type, opted))

            if self.graph.is_guarded(object_type) and object_type not in opted:
                result.guard = IntegrityGuardError(
                    f"{object_type} is a transactional object; forcing an empty record set"
                )
                logger.warning(result.guard.message)
                conditions.append(ALWAYS_FALSE)

        if modified_since:
            if not DATE_PATTERN.match(modified_since):
                raise ConfigurationError(f"modified_since must be YYYY-MM-DD, got {modified_since!r}")
            conditions.append(f"LastModifiedDate >= {modified_since}T00:00:00.000Z")

        conditions.extend(split_user_filter(custom_filter or ""))

        if slave_link is not None:
            self._apply_slave_filter(result, slave_link)
        elif selection:
            self._apply_master_filter(result, spec, selection)

        query = f"SELECT {', '.join(result.fields)} FROM {object_type}"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        if order_by:
            query += f" ORDER BY {order_by}"
        if limit:
            query += f" LIMIT {int(limit)}"
        result.query = query
        return result

    def _apply_master_filter(
        self,
        result: BuiltQuery,
        spec: ExternalIdSpec,
        selection: Sequence[SelectedRecord],
    ):
        ids = [record.id for record in selection if record.id]
        pending = [record.external_id for record in selection if not record.id]

        id_condition = in_list(ID_FIELD, ids) if ids else None
        ext_condition = None
        if pending:
            ext_condition, warnings = external_id_condition(spec, pending)
            for warning in warnings:
                logger.warning(f"{result.object_type}: {warning}")
            result.warnings.extend(f"{result.object_type}: {w}" for w in warnings)

        if id_condition and ext_condition:
            result.conditions.append(f"({id_condition} OR {ext_condition})")
        elif id_condition or ext_condition:
            result.conditions.append(id_condition or ext_condition)
        else:
            # Every selected value was unusable; select nothing rather than everything
            result.conditions.append(ALWAYS_FALSE)

    def _apply_slave_filter(self, result: BuiltQuery, link: SlaveLink):
        ids = [i for i in link.parent_ids if i]
        if ids:
            terms = [in_list(child_field, ids) for child_field in link.child_fields]
            result.conditions.append(terms[0] if len(terms) == 1 else f"({' OR '.join(terms)})")
            return
        result.deferred = True
        message = (
            f"{result.object_type}: parent {link.parent_type} has no known record ids; "
            f"query left unconstrained until the parent is migrated"
        )
        logger.warning(message)
        result.warnings.append(message)
