"""Store query and describe contract."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class QueryPage:
    """One page of query results."""
    records: List[Dict[str, Any]] = field(default_factory=list)
    done: bool = True
    next_locator: Optional[str] = None
    total_size: Optional[int] = None


class BaseStore(ABC):
    """
    Base class for the stores queried during planning, backup and
    reconciliation.

    Implementations only need to run a single query page and describe an
    object; pagination and counting are built on top of those.
    """

    def __init__(self, name: str, api_version: Optional[str] = None):
        self.name = name
        self.api_version = api_version

    @abstractmethod
    def query_page(self, query: str, locator: Optional[str] = None) -> QueryPage:
        """
        Run a query, or fetch the page a previous call pointed to.

        Args:
            query: SOQL statement
            locator: Continuation returned by the previous page

        Returns:
            QueryPage with the records and the next locator, if any
        """
        pass

    @abstractmethod
    def describe_fields(self, object_type: str) -> List[str]:
        """Queryable field names of an object."""
        pass

    def query_all(self, query: str) -> List[Dict[str, Any]]:
        """Run a query and follow continuations until every page is read."""
        page = self.query_page(query)
        records = list(page.records)
        pages = 1
        while not page.done and page.next_locator:
            page = self.query_page(query, locator=page.next_locator)
            records.extend(page.records)
            pages += 1
        logger.debug(f"[{self.name}] {len(records)} records in {pages} page(s)")
        return records

    def count(self, query: str) -> int:
        """Run a ``SELECT COUNT()`` statement."""
        page = self.query_page(query)
        if page.total_size is not None:
            return page.total_size
        return len(page.records)
