"""Conversion between custom resources, configuration units and their encodings."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any

import yaml

from meshsync.config import Config, IstioKind
from meshsync.schema import (
    ISTIO_CONFIG_TYPES,
    KNOWN_KINDS,
    KNOWN_TYPES,
    ProtoSchema,
    ValidationError,
    api_version,
    resource_group,
)

log = logging.getLogger(__name__)

NAMESPACE_DEFAULT = "default"

_SPECIAL_KINDS = {
    "http-api-spec": "HTTPAPISpec",
    "http-api-spec-binding": "HTTPAPISpecBinding",
}
_SPECIAL_TYPES = {kind: typ for typ, kind in _SPECIAL_KINDS.items()}


class ConversionError(ValueError):
    """Raised when a configuration cannot be decoded, encoded or converted."""


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"cannot encode {type(value).__name__}")


def _make(schema: ProtoSchema) -> dict[str, Any]:
    """Return an empty message for the schema's message type."""
    known = {s.message_name for s in KNOWN_TYPES.values()}
    if schema.message_name not in known:
        raise ConversionError(f"unknown type {schema.message_name!r}")
    return {}


def convert_object(schema: ProtoSchema, obj: IstioKind, domain: str) -> Config:
    """Convert a custom resource into a configuration unit."""
    spec = from_json_map(schema, obj.spec)
    return Config(
        type=schema.type,
        group=resource_group(schema),
        version=schema.version,
        name=obj.name,
        namespace=obj.namespace,
        domain=domain,
        labels=dict(obj.labels),
        annotations=dict(obj.annotations),
        resource_version=obj.resource_version,
        creation_timestamp=obj.creation_timestamp,
        spec=spec,
    )


def convert_istio_type(schema: ProtoSchema, spec: Any, name: str, namespace: str) -> Config:
    """Wrap a spec in a configuration unit of the schema's type."""
    return Config(
        type=schema.type,
        group=resource_group(schema),
        version=schema.version,
        name=name,
        namespace=namespace,
        spec=spec,
    )


def convert_unstructured(schema: ProtoSchema, obj: dict[str, Any], domain: str) -> Config:
    """Convert a resource in document form into a configuration unit."""
    return convert_object(schema, IstioKind.from_dict(obj), domain)


def convert_config(schema: ProtoSchema, config: Config) -> IstioKind:
    """Convert a configuration unit into a custom resource."""
    spec = to_json_map(config.spec)
    kind = KNOWN_KINDS.get(schema.type)
    if kind is None:
        raise ConversionError(f"unrecognized type {schema.type!r}")
    return IstioKind(
        kind=kind,
        api_version=api_version(schema),
        name=config.name,
        namespace=config.namespace or NAMESPACE_DEFAULT,
        labels=dict(config.labels),
        annotations=dict(config.annotations),
        resource_version=config.resource_version,
        spec=spec,
    )


def kebab_case_to_camel_case(s: str) -> str:
    """Convert "my-name" to "MyName"."""
    if s in _SPECIAL_KINDS:
        return _SPECIAL_KINDS[s]
    return "".join(word[:1].upper() + word[1:] for word in s.split("-"))


def camel_case_to_kebab_case(s: str) -> str:
    """Convert "MyName" to "my-name"."""
    if s in _SPECIAL_TYPES:
        return _SPECIAL_TYPES[s]
    parts = []
    for i, ch in enumerate(s):
        if "A" <= ch <= "Z":
            if i > 0:
                parts.append("-")
            parts.append(ch.lower())
        else:
            parts.append(ch)
    return "".join(parts)


def _parse_inputs(inputs: str, with_validate: bool) -> tuple[list[Config], list[IstioKind]]:
    configs: list[Config] = []
    others: list[IstioKind] = []
    try:
        documents = list(yaml.safe_load_all(inputs))
    except yaml.YAMLError as err:
        raise ConversionError(f"cannot parse proto message: {err}") from err

    empty = IstioKind()
    for document in documents:
        if document is None:
            continue
        if not isinstance(document, dict):
            raise ConversionError(
                f"cannot parse proto message: expected a mapping, got {type(document).__name__}"
            )
        document = json.loads(json.dumps(document, default=_json_default))
        obj = IstioKind.from_dict(document)
        if obj == empty:
            continue

        schema = ISTIO_CONFIG_TYPES.get_by_type(camel_case_to_kebab_case(obj.kind))
        if schema is None:
            log.debug("unrecognized type %s", obj.kind)
            others.append(obj)
            continue

        try:
            config = convert_object(schema, obj, "")
        except ConversionError as err:
            raise ConversionError(f"cannot parse proto message: {err}") from err

        if with_validate:
            try:
                schema.check(config.name, config.namespace, config.spec)
            except ValidationError as err:
                raise ConversionError(f"configuration is invalid: {err}") from err

        configs.append(config)
    return configs, others


def parse_inputs(inputs: str) -> tuple[list[Config], list[IstioKind]]:
    """Parse a YAML or JSON stream into validated configs and unrecognized resources."""
    return _parse_inputs(inputs, True)


def parse_inputs_without_validation(inputs: str) -> tuple[list[Config], list[IstioKind]]:
    """Like :func:`parse_inputs`, without schema validation."""
    return _parse_inputs(inputs, False)


def to_json(msg: Any) -> str:
    """Encode a message as compact JSON."""
    return to_json_with_indent(msg, "")


def to_json_with_indent(msg: Any, indent: str) -> str:
    """Encode a message as JSON, pretty printed when ``indent`` is non-empty."""
    if msg is None:
        raise ConversionError("unexpected nil message")
    try:
        if indent:
            return json.dumps(msg, indent=indent, default=_json_default)
        return json.dumps(msg, separators=(",", ":"), default=_json_default)
    except (TypeError, ValueError) as err:
        raise ConversionError(str(err)) from err


def to_yaml(msg: Any) -> str:
    """Encode a message as YAML."""
    return yaml.safe_dump(json.loads(to_json(msg)), default_flow_style=False)


def to_json_map(msg: Any) -> dict[str, Any]:
    """Convert a message into a plain dictionary through its JSON encoding."""
    data = json.loads(to_json(msg))
    if not isinstance(data, dict):
        raise ConversionError(f"expected a JSON object, got {type(data).__name__}")
    return data


def from_json(schema: ProtoSchema, js: str) -> dict[str, Any]:
    """Decode JSON into a message of the schema's type."""
    message = _make(schema)
    try:
        data = json.loads(js)
    except json.JSONDecodeError as err:
        raise ConversionError(str(err)) from err
    if data is None:
        return message
    if not isinstance(data, dict):
        raise ConversionError(f"expected a JSON object, got {type(data).__name__}")
    message.update(data)
    return message


def from_yaml(schema: ProtoSchema, yml: str) -> dict[str, Any]:
    """Decode YAML into a message of the schema's type."""
    try:
        data = yaml.safe_load(yml)
    except yaml.YAMLError as err:
        raise ConversionError(str(err)) from err
    return from_json(schema, json.dumps(data, default=_json_default))


def from_json_map(schema: ProtoSchema, data: Any) -> dict[str, Any]:
    """Convert a plain value into a message of the schema's type."""
    try:
        text = yaml.safe_dump(data, default_flow_style=False)
    except yaml.YAMLError as err:
        raise ConversionError(str(err)) from err
    try:
        return from_yaml(schema, text)
    except ConversionError as err:
        raise ConversionError(f"YAML decoding error: {text}: {err}") from err