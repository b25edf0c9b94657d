from __future__ import annotations

import pytest
import requests

from orgmigrate.errors import ConfigurationError, StoreQueryError
from orgmigrate.models.plan import OrgDescriptor
from orgmigrate.stores.salesforce import SalesforceStore, default_api_version


class FakeResponse:
    def __init__(self, *, status_code=200, json_data=None, text: str = "", headers=None):
        self.status_code = status_code
        self._json_data = json_data
        self.text = text
        self.headers = headers or {}
        self.ok = status_code < 400

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"status={self.status_code}")

    def json(self):
        if self._json_data is None:
            raise ValueError("no json")
        return self._json_data


class FakeSession:
    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.get_calls = []

    def get(self, url, headers=None, params=None, timeout=None):
        self.get_calls.append({"url": url, "headers": headers, "params": params})
        if self.error:
            raise self.error
        return self.responses.pop(0)


def _store(session):
    return SalesforceStore(
        "https://example.my.salesforce.com/",
        "token",
        name="target",
        api_version="v59.0",
        session=session,
    )


class TestSalesforceStore:
    """Query, pagination and error mapping over the REST API."""

    def test_query_all_follows_next_records_url(self):
        session = FakeSession([
            FakeResponse(json_data={
                "totalSize": 3,
                "done": False,
                "nextRecordsUrl": "/services/data/v59.0/query/01g-2000",
                "records": [
                    {"attributes": {"type": "Account"}, "Id": "001A", "Parent": {"attributes": {}, "Name": "P"}},
                    {"attributes": {"type": "Account"}, "Id": "001B", "Parent": None},
                ],
            }),
            FakeResponse(json_data={"totalSize": 3, "done": True, "records": [{"Id": "001C"}]}),
        ])
        store = _store(session)

        records = store.query_all("SELECT Id, Parent.Name FROM Account")

        assert [r["Id"] for r in records] == ["001A", "001B", "001C"]
        assert records[0] == {"Id": "001A", "Parent": {"Name": "P"}}
        assert session.get_calls[0]["url"] == "https://example.my.salesforce.com/services/data/v59.0/query"
        assert session.get_calls[0]["params"] == {"q": "SELECT Id, Parent.Name FROM Account"}
        assert session.get_calls[0]["headers"]["Authorization"] == "Bearer token"
        assert session.get_calls[1]["url"] == (
            "https://example.my.salesforce.com/services/data/v59.0/query/01g-2000"
        )

    def test_count_uses_total_size(self):
        store = _store(FakeSession([FakeResponse(json_data={"totalSize": 42, "done": True, "records": []})]))
        assert store.count("SELECT COUNT() FROM Account") == 42

    def test_error_payload_is_mapped(self):
        session = FakeSession([FakeResponse(
            status_code=400,
            json_data=[{"errorCode": "INVALID_FIELD", "message": "No such column 'Foo'"}],
        )])
        with pytest.raises(StoreQueryError) as exc_info:
            _store(session).query_all("SELECT Foo FROM Account")

        error = exc_info.value
        assert error.error_code == "INVALID_FIELD"
        assert error.status_code == 400
        assert "No such column" in error.message
        assert error.to_dict()["kind"] == "store_query_error"

    def test_transport_error_is_mapped(self):
        session = FakeSession(error=requests.ConnectionError("refused"))
        with pytest.raises(StoreQueryError, match="request failed"):
            _store(session).query_all("SELECT Id FROM Account")

    def test_describe_fields_skips_relationship_names(self):
        session = FakeSession([FakeResponse(json_data={"fields": [
            {"name": "Name"}, {"name": "Id"}, {"name": "Owner__r"}, {"name": "Amount__c"},
        ]})])
        store = _store(session)

        assert store.describe_fields("Account") == ["Amount__c", "Id", "Name"]
        assert session.get_calls[0]["url"].endswith("/services/data/v59.0/sobjects/Account/describe")

    def test_from_org_requires_credentials(self):
        with pytest.raises(ConfigurationError):
            SalesforceStore.from_org(OrgDescriptor(alias="tgt", instance_url="https://x"))

    def test_api_version_from_environment(self, monkeypatch):
        monkeypatch.setenv("SALESFORCE_API_VERSION", "61.0")
        assert default_api_version() == "v61.0"
        monkeypatch.delenv("SALESFORCE_API_VERSION")
        assert default_api_version() == "v59.0"
