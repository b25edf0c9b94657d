"""External id specifications and composite key values."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

KEY_PART_DELIMITER = ";"
VALUE_DELIMITER = "|"

CUSTOM_RELATIONSHIP_SUFFIX = "__r"
CUSTOM_LOOKUP_SUFFIX = "__c"
STANDARD_LOOKUP_SUFFIX = "Id"


def lookup_path(record: Dict[str, Any], path: str) -> Any:
    """Resolve a dotted field path against a (possibly nested) record."""
    value: Any = record
    for segment in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(segment)
    return value


def format_value(value: Any) -> str:
    """Render a store value the way it is written into query literals and files."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class KeyPart:
    """A direct field name or a relationship traversal path."""
    path: str

    @property
    def is_traversal(self) -> bool:
        return "." in self.path

    @property
    def relationship(self) -> Optional[str]:
        if not self.is_traversal:
            return None
        return self.path.split(".", 1)[0]

    @property
    def base_lookup_field(self) -> Optional[str]:
        """The lookup field that stores the related record's id.

        ``SBQQ__Rule__r.Name`` resolves to ``SBQQ__Rule__c`` and
        ``Product2.StockKeepingUnit`` to ``Product2Id``.
        """
        relationship = self.relationship
        if relationship is None:
            return None
        if relationship.endswith(CUSTOM_RELATIONSHIP_SUFFIX):
            return relationship[: -len(CUSTOM_RELATIONSHIP_SUFFIX)] + CUSTOM_LOOKUP_SUFFIX
        return relationship + STANDARD_LOOKUP_SUFFIX

    def value_from(self, record: Dict[str, Any]) -> Optional[str]:
        value = lookup_path(record, self.path)
        if value is None or value == "":
            return None
        return format_value(value)


@dataclass(frozen=True)
class ExternalIdSpec:
    """
    Ordered key parts identifying a record across two stores.

    The order of ``parts`` is fixed once parsed: composite values are
    decoded positionally.
    """
    parts: Tuple[KeyPart, ...]

    @classmethod
    def parse(cls, raw: str) -> "ExternalIdSpec":
        if raw is None:
            raise ValueError("External id is not configured")
        parts = tuple(
            KeyPart(segment.strip())
            for segment in raw.split(KEY_PART_DELIMITER)
            if segment.strip()
        )
        if not parts:
            raise ValueError(f"External id has no key parts: {raw!r}")
        return cls(parts=parts)

    @property
    def is_composite(self) -> bool:
        return len(self.parts) > 1

    @property
    def fields(self) -> List[str]:
        return [part.path for part in self.parts]

    @property
    def direct_fields(self) -> List[str]:
        return [part.path for part in self.parts if not part.is_traversal]

    def serialize(self) -> str:
        return KEY_PART_DELIMITER.join(self.fields)

    def base_lookup_fields(self) -> List[str]:
        lookups: List[str] = []
        for part in self.parts:
            lookup = part.base_lookup_field
            if lookup and lookup not in lookups:
                lookups.append(lookup)
        return lookups

    def traversal_fields(self) -> List[str]:
        paths: List[str] = []
        for part in self.parts:
            if part.is_traversal and part.path not in paths:
                paths.append(part.path)
        return paths

    def relationship_fields(self) -> List[str]:
        """Base lookup fields first, then the traversal paths."""
        return self.base_lookup_fields() + self.traversal_fields()

    def encode_value(self, values: Sequence[str]) -> str:
        if len(values) != len(self.parts):
            raise ValueError(
                f"Expected {len(self.parts)} values for {self.serialize()}, got {len(values)}"
            )
        for value in values:
            if VALUE_DELIMITER in value:
                raise ValueError(f"Key value may not contain {VALUE_DELIMITER!r}: {value!r}")
        return VALUE_DELIMITER.join(values)

    def decode_value(self, value: str) -> List[str]:
        if not self.is_composite:
            return [value]
        return [segment.strip() for segment in value.split(VALUE_DELIMITER)]

    def key_for_record(self, record: Dict[str, Any]) -> Optional[Tuple[Any, ...]]:
        """Raw part values of a record, keeping their store types."""
        key = []
        for part in self.parts:
            value = lookup_path(record, part.path)
            if value is None or value == "":
                return None
            key.append(value)
        return tuple(key)

    def value_for_record(self, record: Dict[str, Any]) -> Optional[str]:
        """The (possibly composite) key value of a record, or None if any part is empty."""
        values = []
        for part in self.parts:
            value = part.value_from(record)
            if value is None:
                return None
            values.append(value)
        if not self.is_composite:
            return values[0]
        return VALUE_DELIMITER.join(values)

    def __str__(self) -> str:
        return self.serialize()
