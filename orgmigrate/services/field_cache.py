"""Per-operation cache of described field lists."""

import logging
from typing import Dict, List, Tuple

from ..stores.base import BaseStore

logger = logging.getLogger(__name__)

ID_FIELD = "Id"


class FieldListCache:
    """Memoizes describe calls for the lifetime of one backup or reconciliation."""

    def __init__(self):
        self._fields: Dict[Tuple[str, str], List[str]] = {}

    def fields_for(self, store: BaseStore, object_type: str) -> List[str]:
        """Every queryable field of an object, with Id first."""
        key = (store.name, object_type.lower())
        if key not in self._fields:
            described = store.describe_fields(object_type)
            fields = [ID_FIELD] + [f for f in described if f != ID_FIELD]
            logger.debug(f"Described {object_type} on {store.name}: {len(fields)} fields")
            self._fields[key] = fields
        return list(self._fields[key])

    def clear(self):
        self._fields.clear()

    def __len__(self) -> int:
        return len(self._fields)
