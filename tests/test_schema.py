import pytest

from meshsync.config import Config
from meshsync.schema import (
    GATEWAY_PROTO,
    ISTIO_CONFIG_TYPES,
    MOCK_CONFIG_PROTO,
    SIDECAR_PROTO,
    VIRTUAL_SERVICE_PROTO,
    ConfigDescriptor,
    ProtoSchema,
    ValidationError,
    api_version,
    api_version_from_config,
    group_by_api_version,
    resource_group,
    resource_name,
)


def test_resource_name_drops_dashes():
    assert resource_name("virtual-services") == "virtualservices"
    assert "-" not in resource_name(SIDECAR_PROTO.plural)


def test_resource_group_and_api_version():
    assert resource_group(VIRTUAL_SERVICE_PROTO) == "networking.istio.io"
    assert api_version(VIRTUAL_SERVICE_PROTO) == "networking.istio.io/v1alpha3"


def test_api_version_from_config_matches_schema():
    config = Config(group=resource_group(GATEWAY_PROTO), version=GATEWAY_PROTO.version)
    assert api_version_from_config(config) == api_version(GATEWAY_PROTO)


def test_get_by_type_finds_schema():
    assert ISTIO_CONFIG_TYPES.get_by_type("gateway") is GATEWAY_PROTO
    assert ISTIO_CONFIG_TYPES.get_by_type("sidecar") is SIDECAR_PROTO


def test_get_by_type_missing():
    assert ISTIO_CONFIG_TYPES.get_by_type("mock-config") is None
    assert ConfigDescriptor().get_by_type("gateway") is None


def test_group_by_api_version_collects_networking_types():
    groups = group_by_api_version(ISTIO_CONFIG_TYPES)
    assert list(groups) == [api_version(VIRTUAL_SERVICE_PROTO)]
    assert list(groups[api_version(VIRTUAL_SERVICE_PROTO)]) == list(ISTIO_CONFIG_TYPES)


def test_group_by_api_version_separates_groups():
    groups = group_by_api_version([MOCK_CONFIG_PROTO, GATEWAY_PROTO])
    assert len(groups) == 2
    assert groups[api_version(MOCK_CONFIG_PROTO)].get_by_type("mock-config") is MOCK_CONFIG_PROTO


def test_group_by_api_version_rejects_unknown_type():
    unknown = ProtoSchema(
        type="unknown-thing",
        plural="unknown-things",
        group="test",
        version="v1",
        message_name="test.Unknown",
    )
    with pytest.raises(ValueError, match="missing known type"):
        group_by_api_version([unknown])


def test_mock_config_check_rejects_empty_key():
    with pytest.raises(ValidationError, match="empty key"):
        MOCK_CONFIG_PROTO.check("n", "ns", {"key": ""})


def test_mock_config_check_accepts_key():
    assert MOCK_CONFIG_PROTO.check("n", "ns", {"key": "value"}) is None


def test_check_wraps_plain_value_errors():
    def reject(name, namespace, spec):
        raise ValueError("bad host")

    schema = ProtoSchema(
        type="gateway",
        plural="gateways",
        group="networking",
        version="v1alpha3",
        message_name="m",
        validate=reject,
    )
    with pytest.raises(ValidationError, match="validation error: bad host"):
        schema.check("n", "ns", {})