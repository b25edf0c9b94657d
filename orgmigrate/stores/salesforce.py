"""Salesforce REST store."""

import logging
import os
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import ConfigurationError, StoreQueryError
from ..models.plan import OrgDescriptor
from .base import BaseStore, QueryPage

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "v59.0"


def default_api_version() -> str:
    version = os.getenv("SALESFORCE_API_VERSION", DEFAULT_API_VERSION)
    return version if version.startswith("v") else f"v{version}"


def strip_attributes(value: Any) -> Any:
    """Drop the ``attributes`` metadata the REST API adds to every record."""
    if isinstance(value, dict):
        return {k: strip_attributes(v) for k, v in value.items() if k != "attributes"}
    if isinstance(value, list):
        return [strip_attributes(v) for v in value]
    return value


class SalesforceStore(BaseStore):
    """
    Query and describe against an org's REST API.

    Handles:
    - nextRecordsUrl pagination
    - Retries on throttling and server errors
    - Error payload mapping to StoreQueryError
    """

    def __init__(
        self,
        instance_url: str,
        access_token: str,
        name: Optional[str] = None,
        api_version: Optional[str] = None,
        session: Optional[requests.Session] = None,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
        timeout: float = 120.0,
    ):
        super().__init__(name or instance_url, api_version or default_api_version())
        self.instance_url = instance_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self._session = session or self._create_session()

    @classmethod
    def from_org(cls, org: OrgDescriptor, **kwargs) -> "SalesforceStore":
        if not org.instance_url or not org.access_token:
            label = org.alias or org.username or "org"
            raise ConfigurationError(f"{label}: instance_url and access_token are required")
        return cls(
            instance_url=org.instance_url,
            access_token=org.access_token,
            name=org.alias or org.username,
            **kwargs,
        )

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry logic."""
        session = requests.Session()

        retries = Retry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
        )

        adapter = HTTPAdapter(max_retries=retries)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        return session

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }

    @property
    def data_url(self) -> str:
        return f"{self.instance_url}/services/data/{self.api_version}"

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self._session.get(
                url, headers=self._headers, params=params, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise StoreQueryError(f"[{self.name}] request failed: {e}")

        if response.status_code >= 400:
            raise self._error_from(response)

        try:
            return response.json()
        except ValueError:
            raise StoreQueryError(
                f"[{self.name}] invalid JSON in response", status_code=response.status_code
            )

    def _error_from(self, response) -> StoreQueryError:
        error_code = None
        message = response.text or f"HTTP {response.status_code}"
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, list) and payload:
            payload = payload[0]
        if isinstance(payload, dict):
            error_code = payload.get("errorCode")
            message = payload.get("message", message)
        return StoreQueryError(
            f"[{self.name}] {message.strip()}",
            error_code=error_code,
            status_code=response.status_code,
        )

    def query_page(self, query: str, locator: Optional[str] = None) -> QueryPage:
        if locator:
            data = self._get(f"{self.instance_url}{locator}")
        else:
            logger.debug(f"[{self.name}] {query}")
            data = self._get(f"{self.data_url}/query", params={"q": query})

        return QueryPage(
            records=[strip_attributes(r) for r in data.get("records", [])],
            done=data.get("done", True),
            next_locator=data.get("nextRecordsUrl"),
            total_size=data.get("totalSize"),
        )

    def describe_fields(self, object_type: str) -> List[str]:
        data = self._get(f"{self.data_url}/sobjects/{object_type}/describe")
        names = [
            f["name"] for f in data.get("fields", [])
            if f.get("name") and not f["name"].endswith("__r")
        ]
        return sorted(names)
