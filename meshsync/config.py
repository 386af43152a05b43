"""Configuration objects exchanged with the mesh's custom resources."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Event(Enum):
    """A registry update event."""

    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"

    def __str__(self) -> str:
        return self.value


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class IstioKind:
    """A generic custom resource: type information, metadata and a free-form spec."""

    kind: str = ""
    api_version: str = ""
    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    resource_version: str = ""
    creation_timestamp: datetime | None = None
    spec: dict[str, Any] | None = None

    def deep_copy(self) -> IstioKind:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        """Return the resource in its API document form."""
        metadata: dict[str, Any] = {}
        if self.name:
            metadata["name"] = self.name
        if self.namespace:
            metadata["namespace"] = self.namespace
        if self.labels:
            metadata["labels"] = dict(self.labels)
        if self.annotations:
            metadata["annotations"] = dict(self.annotations)
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        if self.creation_timestamp is not None:
            metadata["creationTimestamp"] = _format_timestamp(self.creation_timestamp)
        out: dict[str, Any] = {}
        if self.api_version:
            out["apiVersion"] = self.api_version
        if self.kind:
            out["kind"] = self.kind
        out["metadata"] = metadata
        out["spec"] = copy.deepcopy(self.spec)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IstioKind:
        """Build a resource from its API document form."""
        metadata = data.get("metadata") or {}
        spec = data.get("spec")
        return cls(
            kind=data.get("kind") or "",
            api_version=data.get("apiVersion") or "",
            name=metadata.get("name") or "",
            namespace=metadata.get("namespace") or "",
            labels=dict(metadata.get("labels") or {}),
            annotations=dict(metadata.get("annotations") or {}),
            resource_version=metadata.get("resourceVersion") or "",
            creation_timestamp=_parse_timestamp(metadata.get("creationTimestamp")),
            spec=copy.deepcopy(spec) if spec is not None else None,
        )


@dataclass
class IstioKindList:
    """A list of generic custom resources."""

    kind: str = ""
    api_version: str = ""
    resource_version: str = ""
    items: list[IstioKind] = field(default_factory=list)

    def deep_copy(self) -> IstioKindList:
        return IstioKindList(
            kind=self.kind,
            api_version=self.api_version,
            resource_version=self.resource_version,
            items=[item.deep_copy() for item in self.items],
        )


@dataclass
class ConfigMeta:
    """Metadata attached to each configuration unit.

    An empty ``resource_version`` means the object has not been stored yet.
    """

    type: str = ""
    group: str = ""
    version: str = ""
    name: str = ""
    namespace: str = ""
    domain: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    resource_version: str = ""
    creation_timestamp: datetime | None = None


@dataclass
class Config(ConfigMeta):
    """A configuration unit: its metadata and its content."""

    spec: Any = None