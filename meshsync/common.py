"""Helpers that derive mesh names and addresses from workload metadata."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from meshsync.maps import Map

log = logging.getLogger(__name__)

NAMESPACE_KUBE_SYSTEM = "kube-system"
NAMESPACE_ISTIO_SYSTEM = "istio-system"
ENV = "env"
IDENTITY = "identity"
HTTP = "http"
DEFAULT_MTLS_PORT = 15443
DEFAULT_HTTP_PORT = 80
SEP = "."
DASH = "-"
SLASH = "/"
DOT_LOCAL_DOMAIN_SUFFIX = ".svc.cluster.local"
DOT_GLOBAL = ".global"
MESH = "mesh"
MULTICLUSTER_INGRESS_GATEWAY = "istio-multicluster-ingressgateway"
LOCAL_ADDRESS_PREFIX = "127.0"
NODE_REGION_LABEL = "failure-domain.beta.kubernetes.io/region"
SPIFFE_PREFIX = "spiffe://"
SIDECAR_ENABLED_PORTS = "traffic.sidecar.istio.io/includeInboundPorts"


@dataclass
class ObjectMeta:
    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass
class Pod:
    metadata: ObjectMeta = field(default_factory=ObjectMeta)


@dataclass
class Deployment:
    """A deployment; ``template`` is the metadata of its pod template."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    template: ObjectMeta = field(default_factory=ObjectMeta)


@dataclass
class Node:
    metadata: ObjectMeta = field(default_factory=ObjectMeta)


def default_global_identifier() -> str:
    return IDENTITY


def get_pod_global_identifier(pod: Pod) -> str:
    key = default_global_identifier()
    return pod.metadata.labels.get(key) or pod.metadata.annotations.get(key, "")


def get_deployment_global_identifier(deployment: Deployment) -> str:
    key = default_global_identifier()
    template = deployment.template
    return template.labels.get(key) or template.annotations.get(key, "")


def get_cname(deployment: Deployment, identifier: str) -> str:
    """Return ``<env>.<identity>.global``, or "" when no identity is set."""
    name = deployment.metadata.name
    namespace = deployment.metadata.namespace
    template = deployment.template
    environment = template.labels.get(ENV, "")
    if not environment:
        environment = "default"
        log.warning(
            "%s label missing on %s in namespace %s. Using 'default' as the value.",
            ENV, name, namespace,
        )
    alias = template.labels.get(identifier, "")
    if not alias:
        log.warning(
            "%s label missing on service %s in namespace %s. "
            "Falling back to annotation to create cname.",
            identifier, name, namespace,
        )
        alias = template.annotations.get(identifier, "")
    if not alias:
        log.error(
            "Unable to get cname for service with name %s in namespace %s "
            "as it doesn't have the %s annotation",
            name, namespace, identifier,
        )
        return ""
    return environment + SEP + alias + DOT_GLOBAL


def get_san(domain: str, deployment: Deployment, identifier: str) -> str:
    """Return ``spiffe://<domain>/<identity>``, or "" when no identity label."""
    value = deployment.template.labels.get(identifier, "")
    if not value:
        return ""
    if domain:
        return SPIFFE_PREFIX + domain + SLASH + value
    return SPIFFE_PREFIX + value


def get_local_address_for_se(se_name: str, se_address_cache: Map) -> str:
    """Return the cached local address for a service entry, allocating one if new."""
    address = se_address_cache.get(se_name)
    if not address:
        count = len(se_address_cache)
        second = count // 255 + 10
        first = count % 255 + 1
        address = SEP.join((LOCAL_ADDRESS_PREFIX, str(second), str(first)))
        se_address_cache.put(se_name, address)
    return address


def get_node_locality(node: Node) -> str:
    return node.metadata.labels.get(NODE_REGION_LABEL, "")