"""Transfer plan models and the plan document format."""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..errors import ConfigurationError
from ..soql import object_from_query
from .external_id import ExternalIdSpec

PLAN_FILE = "export.json"


class Operation(str, Enum):
    """Operations understood by the transfer tool."""
    INSERT = "Insert"
    UPDATE = "Update"
    UPSERT = "Upsert"
    DELETE = "Delete"
    DELETE_SOURCE = "DeleteSource"
    DELETE_HIERARCHY = "DeleteHierarchy"
    READONLY = "Readonly"

    @classmethod
    def parse(cls, value: Union[str, "Operation", None]) -> "Operation":
        if isinstance(value, Operation):
            return value
        for op in cls:
            if value and op.value.lower() == str(value).lower():
                return op
        raise ConfigurationError(f"Unknown operation: {value!r}")


@dataclass
class OrgDescriptor:
    """Connection descriptor for one org."""
    alias: Optional[str] = None
    username: Optional[str] = None
    instance_url: Optional[str] = None
    access_token: Optional[str] = None

    def to_plan_dict(self) -> Optional[Dict[str, Any]]:
        """Form embedded in plan documents; None when the org is referenced by alias only."""
        if not (self.username and self.instance_url):
            return None
        data = {"username": self.username, "instanceUrl": self.instance_url}
        if self.access_token:
            data["accessToken"] = self.access_token
        return data

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alias": self.alias,
            "username": self.username,
            "instance_url": self.instance_url,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "OrgDescriptor":
        data = data or {}
        return cls(
            alias=data.get("alias"),
            username=data.get("username"),
            instance_url=data.get("instance_url") or data.get("instanceUrl"),
            access_token=data.get("access_token") or data.get("accessToken"),
        )


@dataclass
class SelectedRecord:
    """A master record chosen by an operator."""
    external_id: str
    id: str = ""

    @classmethod
    def from_value(cls, value: Union[str, Dict[str, Any]]) -> Optional["SelectedRecord"]:
        """Accepts both bare external id strings and ``{external_id, id}`` mappings."""
        if isinstance(value, str):
            external_id, record_id = value, ""
        else:
            external_id = value.get("external_id") or value.get("externalId") or ""
            record_id = value.get("id") or ""
        external_id = str(external_id).strip()
        if not external_id:
            return None
        return cls(external_id=external_id, id=str(record_id).strip())

    def to_dict(self) -> Dict[str, Any]:
        return {"external_id": self.external_id, "id": self.id}


@dataclass
class PlanObject:
    """One object entry of a plan."""
    object_type: str
    query: str
    operation: Operation
    external_id: ExternalIdSpec
    is_slave: bool = False
    deferred: bool = False
    warnings: List[str] = field(default_factory=list)
    overrides: Dict[str, Any] = field(default_factory=dict)  # Field values forced on every record

    def to_dict(self) -> Dict[str, Any]:
        """Plan document entry."""
        data: Dict[str, Any] = {
            "query": self.query,
            "operation": self.operation.value,
            "externalId": self.external_id.serialize(),
        }
        if self.is_slave:
            data["master"] = False
        if self.overrides:
            data["overrides"] = dict(self.overrides)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlanObject":
        query = data.get("query", "")
        object_type = object_from_query(query)
        if not object_type:
            raise ConfigurationError(f"Plan entry has no FROM clause: {query!r}")
        try:
            external_id = ExternalIdSpec.parse(data.get("externalId"))
        except ValueError as e:
            raise ConfigurationError(f"{object_type}: {e}")
        return cls(
            object_type=object_type,
            query=query,
            operation=Operation.parse(data.get("operation", Operation.UPSERT.value)),
            external_id=external_id,
            is_slave=data.get("master") is False,
            overrides=dict(data.get("overrides") or {}),
        )


@dataclass
class SkippedObject:
    """An object left out of a plan, with the reason."""
    object_type: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"object_type": self.object_type, "reason": self.reason}


@dataclass
class Plan:
    """Ordered plan for one phase, or the single plan of a non-phased migration."""
    objects: List[PlanObject] = field(default_factory=list)
    excluded_objects: List[str] = field(default_factory=list)
    source_org: Optional[OrgDescriptor] = None
    target_org: Optional[OrgDescriptor] = None
    api_version: Optional[str] = None
    phase_number: Optional[int] = None
    skipped: List[SkippedObject] = field(default_factory=list)

    @property
    def object_types(self) -> List[str]:
        return [obj.object_type for obj in self.objects]

    @property
    def warnings(self) -> List[str]:
        return [w for obj in self.objects for w in obj.warnings]

    def get(self, object_type: str) -> Optional[PlanObject]:
        for obj in self.objects:
            if obj.object_type == object_type:
                return obj
        return None

    def to_dict(self) -> Dict[str, Any]:
        """The document handed to the transfer tool."""
        document: Dict[str, Any] = {
            "objects": [obj.to_dict() for obj in self.objects],
            "excludedObjects": list(self.excluded_objects),
        }
        if self.source_org and self.source_org.to_plan_dict():
            document["sourceOrg"] = self.source_org.to_plan_dict()
        if self.target_org and self.target_org.to_plan_dict():
            document["targetOrg"] = self.target_org.to_plan_dict()
        if self.api_version:
            document["org-api-version"] = self.api_version.lstrip("vV")
        return document

    @classmethod
    def from_dict(cls, data: Dict[str, Any], phase_number: Optional[int] = None) -> "Plan":
        source = data.get("sourceOrg")
        target = data.get("targetOrg")
        return cls(
            objects=[PlanObject.from_dict(obj) for obj in data.get("objects", [])],
            excluded_objects=list(data.get("excludedObjects", [])),
            source_org=OrgDescriptor.from_dict(source) if source else None,
            target_org=OrgDescriptor.from_dict(target) if target else None,
            api_version=data.get("org-api-version"),
            phase_number=phase_number,
        )

    @staticmethod
    def path_for(output_dir: Union[str, Path], phase_number: Optional[int] = None) -> Path:
        base = Path(output_dir)
        if phase_number is not None:
            base = base / f"Phase {phase_number}"
        return base / PLAN_FILE

    def write(self, output_dir: Union[str, Path]) -> Path:
        path = self.path_for(output_dir, self.phase_number)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        return path

    @classmethod
    def load(cls, output_dir: Union[str, Path], phase_number: Optional[int] = None) -> "Plan":
        path = cls.path_for(output_dir, phase_number)
        if not path.exists():
            raise ConfigurationError(f"Plan file not found: {path}")
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Plan file {path} is not valid JSON: {e}")
        return cls.from_dict(data, phase_number=phase_number)
