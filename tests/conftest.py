from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from orgmigrate.errors import StoreQueryError
from orgmigrate.models.migration import MigrationConfig
from orgmigrate.stores.base import BaseStore, QueryPage


class FakeStore(BaseStore):
    """In-memory store answering queries from scripted responses.

    Responses are matched by substring in the order they were added; the
    first match wins and unmatched queries return no records.
    """

    def __init__(self, name: str = "fake", api_version: Optional[str] = "v59.0"):
        super().__init__(name, api_version)
        self.responses: List[tuple] = []
        self.failures: List[tuple] = []
        self.counts: Dict[str, int] = {}
        self.fields: Dict[str, List[str]] = {}
        self.queries: List[str] = []
        self.describe_calls: List[str] = []

    def respond(self, fragment: str, records: List[Dict[str, Any]]):
        self.responses.append((fragment, records))
        return self

    def fail(self, fragment: str, message: str = "MALFORMED_QUERY"):
        self.failures.append((fragment, message))
        return self

    def query_page(self, query: str, locator: Optional[str] = None) -> QueryPage:
        self.queries.append(query)
        for fragment, message in self.failures:
            if fragment in query:
                raise StoreQueryError(f"[{self.name}] {message}", error_code=message, status_code=400)
        if query.startswith("SELECT COUNT()"):
            for fragment, total in self.counts.items():
                if fragment in query:
                    return QueryPage(records=[], done=True, total_size=total)
            return QueryPage(records=[], done=True, total_size=0)
        for fragment, records in self.responses:
            if fragment in query:
                return QueryPage(records=list(records), done=True, total_size=len(records))
        return QueryPage(records=[], done=True, total_size=0)

    def describe_fields(self, object_type: str) -> List[str]:
        self.describe_calls.append(object_type)
        return list(self.fields.get(object_type, ["Id", "Name"]))

    def queries_for(self, object_type: str) -> List[str]:
        return [q for q in self.queries if f"FROM {object_type}" in q]


@pytest.fixture
def source_store():
    return FakeStore("source")


@pytest.fixture
def target_store():
    return FakeStore("target")


@pytest.fixture
def cpq_config_data(tmp_path):
    return {
        "name": "CPQ rules",
        "mode": "cpq",
        "output_dir": str(tmp_path / "out"),
        "source_org": {"alias": "src", "username": "admin@src.example", "instance_url": "https://src.example"},
        "target_org": {"alias": "tgt", "username": "admin@tgt.example", "instance_url": "https://tgt.example"},
        "selected_phases": [2],
        "selected_master_records": {
            "2": {
                "SBQQ__ProductRule__c": [
                    {"external_id": "Rule A", "id": "a0A000000000001AAA"},
                    {"external_id": "Rule B", "id": "a0A000000000002AAA"},
                ],
            },
        },
    }


@pytest.fixture
def cpq_config(cpq_config_data):
    return MigrationConfig.from_dict(cpq_config_data)


@pytest.fixture
def standard_config_data(tmp_path):
    return {
        "name": "Accounts",
        "mode": "standard",
        "output_dir": str(tmp_path / "out"),
        "objects": [
            {"object_name": "Widget__c", "external_id": "Code__c", "where_clause": "Active__c = true"},
            {"object_name": "Account", "external_id": "Name", "selected_fields": ["Name", "Industry"]},
        ],
    }
