"""Resolvers that turn a secret's payload into a kubeconfig."""

from __future__ import annotations

from abc import ABC, abstractmethod


class SecretResolver(ABC):
    """Fetches the kubeconfig of a remote cluster from a secret's data."""

    @abstractmethod
    def fetch_kube_config(self, secret_name: str, kube_config: bytes) -> bytes:
        """Return the kubeconfig for ``secret_name``."""


class DefaultResolver(SecretResolver):
    """Treats the secret payload itself as the remote cluster's kubeconfig."""

    def fetch_kube_config(self, secret_name: str, kube_config: bytes | str) -> bytes:
        """Return the payload as the kubeconfig, normalised to bytes."""
        if isinstance(kube_config, str):
            return kube_config.encode("utf-8")
        if isinstance(kube_config, (bytes, bytearray, memoryview)):
            return bytes(kube_config)
        raise TypeError(
            f"kubeconfig for {secret_name!r} must be bytes or str, "
            f"not {type(kube_config).__name__}"
        )


def new_default_resolver() -> SecretResolver:
    return DefaultResolver()