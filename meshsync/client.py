"""A REST client that stores mesh configuration as custom resources."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from typing import Any

import requests

from meshsync.config import Config, IstioKind
from meshsync.conversion import (
    ConversionError,
    convert_config,
    convert_object,
    kebab_case_to_camel_case,
)
from meshsync.schema import (
    KNOWN_TYPES,
    ConfigDescriptor,
    ProtoSchema,
    api_version,
    api_version_from_config,
    group_by_api_version,
    resource_group,
    resource_name,
)

log = logging.getLogger(__name__)

CRD_API_VERSION = "apiextensions.k8s.io/v1beta1"
CRD_PATH = "apis/" + CRD_API_VERSION + "/customresourcedefinitions"
CONDITION_ESTABLISHED = "Established"
CONDITION_NAMES_ACCEPTED = "NamesAccepted"
CONDITION_TRUE = "True"
CONDITION_FALSE = "False"


class ClientError(Exception):
    """Raised when a request to the API server fails or is not understood.

    ``status_code`` holds the HTTP status when the server answered;
    ``configs`` holds what was converted when only part of a list failed.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        configs: list[Config] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.configs = configs or []


def _crd_name(schema: ProtoSchema) -> str:
    return resource_name(schema.plural) + "." + resource_group(schema)


def _conditions(crd: dict[str, Any]) -> list[dict[str, Any]]:
    return (crd.get("status") or {}).get("conditions") or []


class Client:
    """Reads and writes configuration units through the API server's REST interface."""

    poll_interval: float = 0.5
    poll_timeout: float = 60.0
    request_timeout: float = 30.0

    def __init__(
        self,
        base_url: str,
        descriptor: Iterable[ProtoSchema],
        domain_suffix: str = "",
        session: requests.Session | None = None,
    ) -> None:
        try:
            self._clientset = group_by_api_version(descriptor)
        except ValueError as err:
            raise ClientError(str(err)) from err
        self._base = base_url.rstrip("/")
        self.domain_suffix = domain_suffix
        if session is None:
            session = requests.Session()
            session.headers.update({"Accept": "application/json"})
        self._session = session

    # -- transport -------------------------------------------------------

    def _request(self, method: str, path: str, body: Any = None) -> requests.Response:
        url = self._base + "/" + path
        try:
            resp = self._session.request(
                method, url, json=body, timeout=self.request_timeout
            )
        except requests.RequestException as err:
            raise ClientError(f"{method} {url}: {err}") from err
        if not resp.ok:
            raise ClientError(
                f"{method} {url}: {resp.status_code} {resp.text}",
                status_code=resp.status_code,
            )
        return resp

    def _request_json(self, method: str, path: str, body: Any = None) -> dict[str, Any]:
        resp = self._request(method, path, body)
        try:
            data = resp.json()
        except ValueError as err:
            raise ClientError(f"invalid JSON in response to {method} {path}") from err
        if not isinstance(data, dict):
            raise ClientError(f"unexpected response to {method} {path}")
        return data

    @staticmethod
    def _resource_path(schema: ProtoSchema, namespace: str, name: str = "") -> str:
        parts = ["apis", resource_group(schema), schema.version]
        if namespace:
            parts += ["namespaces", namespace]
        parts.append(resource_name(schema.plural))
        if name:
            parts.append(name)
        return "/".join(parts)

    def _lookup(self, typ: str) -> ProtoSchema:
        known = KNOWN_TYPES.get(typ)
        if known is None:
            raise ClientError(f"unrecognized type {typ!r}")
        group = self._clientset.get(api_version(known))
        if group is None:
            raise ClientError(f"unrecognized apiVersion {api_version(known)}")
        schema = group.get_by_type(typ)
        if schema is None:
            raise ClientError(f"missing type {typ!r}")
        return schema

    def _lookup_config(self, config: Config) -> ProtoSchema:
        group = self._clientset.get(api_version_from_config(config))
        if group is None:
            raise ClientError(f"unrecognized apiVersion {api_version_from_config(config)!r}")
        schema = group.get_by_type(config.type)
        if schema is None:
            raise ClientError(f"unrecognized type {config.type!r}")
        return schema

    # -- custom resource definitions ------------------------------------

    def _get_crd(self, name: str) -> dict[str, Any]:
        return self._request_json("GET", CRD_PATH + "/" + name)

    def register_resources(self) -> None:
        """Create the resource definitions and wait until they are established."""
        for version, descriptor in self._clientset.items():
            log.info("registering for apiVersion %s", version)
            self._register(descriptor)

    def _already_registered(self, descriptor: ConfigDescriptor) -> bool:
        for schema in descriptor:
            name = _crd_name(schema)
            try:
                crd = self._get_crd(name)
            except ClientError:
                return False
            for cond in _conditions(crd):
                status = cond.get("status")
                if cond.get("type") in (CONDITION_ESTABLISHED, CONDITION_NAMES_ACCEPTED) \
                        and status == CONDITION_TRUE:
                    continue
                log.warning("Not established: %s", name)
                return False
        return True

    def _register(self, descriptor: ConfigDescriptor) -> None:
        if self._already_registered(descriptor):
            return

        for schema in descriptor:
            group = resource_group(schema)
            name = _crd_name(schema)
            crd = {
                "apiVersion": CRD_API_VERSION,
                "kind": "CustomResourceDefinition",
                "metadata": {"name": name},
                "spec": {
                    "group": group,
                    "version": schema.version,
                    "scope": "Cluster" if schema.cluster_scoped else "Namespaced",
                    "names": {
                        "plural": resource_name(schema.plural),
                        "kind": kebab_case_to_camel_case(schema.type),
                    },
                },
            }
            log.info("registering CRD %r", name)
            try:
                self._request("POST", CRD_PATH, crd)
            except ClientError as err:
                if err.status_code != 409:
                    raise

        deadline = time.monotonic() + self.poll_timeout
        while True:
            time.sleep(self.poll_interval)
            try:
                if self._all_established(descriptor):
                    return
            except ClientError:
                log.error("failed to verify CRD creation")
                raise
            if time.monotonic() >= deadline:
                log.error("failed to verify CRD creation")
                raise ClientError("timed out waiting for the condition")

    def _all_established(self, descriptor: ConfigDescriptor) -> bool:
        for schema in descriptor:
            name = _crd_name(schema)
            established = False
            for cond in _conditions(self._get_crd(name)):
                kind, status = cond.get("type"), cond.get("status")
                if kind == CONDITION_ESTABLISHED and status == CONDITION_TRUE:
                    log.info("established CRD %r", name)
                    established = True
                    break
                if kind == CONDITION_NAMES_ACCEPTED and status == CONDITION_FALSE:
                    log.warning("name conflict: %s", cond.get("reason", ""))
            if not established:
                log.info("missing status condition for %r", name)
                return False
        return True

    def deregister_resources(self) -> None:
        """Delete every resource definition; raise listing all that failed."""
        errors: list[str] = []
        for version, descriptor in self._clientset.items():
            log.info("deregistering for apiVersion %s", version)
            for schema in descriptor:
                try:
                    self._request("DELETE", CRD_PATH + "/" + _crd_name(schema))
                except ClientError as err:
                    errors.append(str(err))
        if errors:
            raise ClientError("; ".join(errors))

    # -- config store ------------------------------------------------------

    def config_descriptor(self) -> ConfigDescriptor:
        out = ConfigDescriptor()
        for descriptor in self._clientset.values():
            out.extend(descriptor)
        return out

    def get(self, typ: str, name: str, namespace: str) -> Config | None:
        """Return the named config, or None when it cannot be fetched or converted."""
        try:
            schema = self._lookup(typ)
        except ClientError as err:
            log.warning("%s", err)
            return None
        try:
            data = self._request_json("GET", self._resource_path(schema, namespace, name))
            return convert_object(schema, IstioKind.from_dict(data), self.domain_suffix)
        except (ClientError, ConversionError) as err:
            log.warning("%s", err)
            return None

    def _write(self, method: str, config: Config, with_name: bool) -> str:
        schema = self._lookup_config(config)
        schema.check(config.name, config.namespace, config.spec)
        if method == "PUT" and not config.resource_version:
            raise ClientError("revision is required")
        out = convert_config(schema, config)
        path = self._resource_path(schema, out.namespace, out.name if with_name else "")
        data = self._request_json(method, path, out.to_dict())
        return IstioKind.from_dict(data).resource_version

    def create(self, config: Config) -> str:
        """Store a new config and return its revision."""
        return self._write("POST", config, with_name=False)

    def update(self, config: Config) -> str:
        """Replace a stored config and return its new revision."""
        return self._write("PUT", config, with_name=True)

    def delete(self, typ: str, name: str, namespace: str) -> None:
        schema = self._lookup(typ)
        self._request("DELETE", self._resource_path(schema, namespace, name))

    def list(self, typ: str, namespace: str) -> list[Config]:
        """Return the configs of a type; an empty namespace lists all namespaces."""
        schema = self._lookup(typ)
        data = self._request_json("GET", self._resource_path(schema, namespace))
        out: list[Config] = []
        errors: list[str] = []
        for item in data.get("items") or []:
            try:
                out.append(
                    convert_object(schema, IstioKind.from_dict(item), self.domain_suffix)
                )
            except ConversionError as err:
                errors.append(str(err))
        if errors:
            raise ClientError("; ".join(errors), configs=out)
        return out