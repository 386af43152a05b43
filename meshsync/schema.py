"""Schemas of the mesh configuration types and API naming helpers."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from meshsync.config import ConfigMeta

ISTIO_API_GROUP_DOMAIN = ".istio.io"


class ValidationError(ValueError):
    """Raised when a configuration spec fails its schema's validation."""


Validator = Callable[[str, str, Any], None]


@dataclass(frozen=True)
class ProtoSchema:
    """Description of one configuration type and how it is served."""

    type: str
    plural: str
    group: str
    version: str
    message_name: str
    validate: Validator | None = None
    collection: str = ""
    cluster_scoped: bool = False

    def check(self, name: str, namespace: str, spec: Any) -> None:
        """Validate ``spec``; raise :class:`ValidationError` when it is invalid."""
        if self.validate is None:
            return
        try:
            self.validate(name, namespace, spec)
        except ValidationError:
            raise
        except ValueError as err:
            raise ValidationError(f"validation error: {err}") from err


class ConfigDescriptor(list):
    """An ordered collection of schemas, looked up by type name."""

    def get_by_type(self, name: str) -> ProtoSchema | None:
        return next((schema for schema in self if schema.type == name), None)


def _validate_mock_config(name: str, namespace: str, spec: Any) -> None:
    if not (spec or {}).get("key"):
        raise ValidationError("empty key")


MOCK_CONFIG_PROTO = ProtoSchema(
    type="mock-config",
    plural="mock-configs",
    group="test",
    version="v1",
    message_name="test.MockConfig",
    validate=_validate_mock_config,
)

VIRTUAL_SERVICE_PROTO = ProtoSchema(
    type="virtual-service",
    plural="virtual-services",
    group="networking",
    version="v1alpha3",
    message_name="istio.networking.v1alpha3.VirtualService",
)

GATEWAY_PROTO = ProtoSchema(
    type="gateway",
    plural="gateways",
    group="networking",
    version="v1alpha3",
    message_name="istio.networking.v1alpha3.Gateway",
)

SERVICE_ENTRY_PROTO = ProtoSchema(
    type="service-entry",
    plural="service-entries",
    group="networking",
    version="v1alpha3",
    message_name="istio.networking.v1alpha3.ServiceEntry",
)

DESTINATION_RULE_PROTO = ProtoSchema(
    type="destination-rule",
    plural="destination-rules",
    group="networking",
    version="v1alpha3",
    message_name="istio.networking.v1alpha3.DestinationRule",
)

ENVOY_FILTER_PROTO = ProtoSchema(
    type="envoy-filter",
    plural="envoy-filters",
    group="networking",
    version="v1alpha3",
    message_name="istio.networking.v1alpha3.EnvoyFilter",
)

SIDECAR_PROTO = ProtoSchema(
    type="sidecar",
    plural="sidecars",
    group="networking",
    version="v1alpha3",
    message_name="istio.networking.v1alpha3.Sidecar",
)

ISTIO_CONFIG_TYPES = ConfigDescriptor(
    [
        VIRTUAL_SERVICE_PROTO,
        GATEWAY_PROTO,
        SERVICE_ENTRY_PROTO,
        DESTINATION_RULE_PROTO,
        ENVOY_FILTER_PROTO,
        SIDECAR_PROTO,
    ]
)

KNOWN_TYPES: dict[str, ProtoSchema] = {
    schema.type: schema
    for schema in (MOCK_CONFIG_PROTO, *ISTIO_CONFIG_TYPES)
}

KNOWN_KINDS: dict[str, str] = {
    "mock-config": "MockConfig",
    "virtual-service": "VirtualService",
    "gateway": "Gateway",
    "service-entry": "ServiceEntry",
    "destination-rule": "DestinationRule",
    "envoy-filter": "EnvoyFilter",
    "sidecar": "Sidecar",
}


def resource_name(s: str) -> str:
    """Drop dashes: the API server rejects them in resource names."""
    return s.replace("-", "")


def resource_group(schema: ProtoSchema) -> str:
    return schema.group + ISTIO_API_GROUP_DOMAIN


def api_version(schema: ProtoSchema) -> str:
    return resource_group(schema) + "/" + schema.version


def api_version_from_config(config: ConfigMeta) -> str:
    return config.group + "/" + config.version


def group_by_api_version(descriptor: Iterable[ProtoSchema]) -> dict[str, ConfigDescriptor]:
    """Split schemas by API version; every schema must be of a known type."""
    groups: dict[str, ConfigDescriptor] = {}
    for schema in descriptor:
        if schema.type not in KNOWN_TYPES:
            raise ValueError(f"missing known type for {schema.type!r}")
        groups.setdefault(api_version(schema), ConfigDescriptor()).append(schema)
    return groups