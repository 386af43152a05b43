"""Watches cluster-access secrets and adds or removes remote clusters."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import yaml

from meshsync.resolver import SecretResolver, new_default_resolver

log = logging.getLogger(__name__)

FILTER_LABEL = "admiral/sync"
MAX_RETRIES = 5
RESYNC_PERIOD = 120.0
_BASE_RETRY_DELAY = 0.005
_MAX_RETRY_DELAY = 1000.0

AddCallback = Callable[[dict[str, Any], str, float], None]
RemoveCallback = Callable[[str], None]
KubeConfigLoader = Callable[[bytes], dict[str, Any]]


@dataclass
class Secret:
    """A secret whose data maps cluster ids to kubeconfigs."""

    name: str
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    data: dict[str, bytes] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name


@dataclass
class RemoteCluster:
    """A remote cluster and the key of the secret it came from."""

    secret_name: str = ""


@dataclass
class ClusterStore:
    """The remote clusters known so far, keyed by cluster id."""

    remote_clusters: dict[str, RemoteCluster] = field(default_factory=dict)


def matches_filter(secret: Secret) -> bool:
    """Return whether the secret carries the sync label set to "true"."""
    return secret.labels.get(FILTER_LABEL) == "true"


def load_kube_config(data: bytes) -> dict[str, Any]:
    """Parse a kubeconfig document; raise ValueError when it is not one."""
    try:
        parsed = yaml.safe_load(data)
    except yaml.YAMLError as err:
        raise ValueError(f"invalid kubeconfig: {err}") from err
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError(f"kubeconfig must be a mapping, got {type(parsed).__name__}")
    return parsed


class _WorkQueue:
    """A de-duplicating key queue with per-key retry counts."""

    def __init__(self) -> None:
        self._items: deque[str] = deque()
        self._pending: set[str] = set()
        self._requeues: dict[str, int] = {}
        self._cond = threading.Condition()
        self._shutting_down = False

    def add(self, key: str) -> None:
        with self._cond:
            if self._shutting_down or key in self._pending:
                return
            self._pending.add(key)
            self._items.append(key)
            self._cond.notify()

    def get(self, timeout: float | None) -> str | None:
        with self._cond:
            if not self._cond.wait_for(
                lambda: self._items or self._shutting_down, timeout
            ):
                return None
            if not self._items:
                return None
            key = self._items.popleft()
            self._pending.discard(key)
            return key

    def num_requeues(self, key: str) -> int:
        with self._cond:
            return self._requeues.get(key, 0)

    def add_rate_limited(self, key: str) -> None:
        with self._cond:
            count = self._requeues.get(key, 0)
            self._requeues[key] = count + 1
        delay = min(_BASE_RETRY_DELAY * 2**count, _MAX_RETRY_DELAY)
        timer = threading.Timer(delay, self.add, args=(key,))
        timer.daemon = True
        timer.start()

    def forget(self, key: str) -> None:
        with self._cond:
            self._requeues.pop(key, None)

    def shut_down(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down


class Controller:
    """Turns secret events into remote cluster additions and removals."""

    def __init__(
        self,
        namespace: str,
        cluster_store: ClusterStore,
        add_callback: AddCallback,
        remove_callback: RemoveCallback,
        secret_resolver_type: str = "",
        load_kube_config: KubeConfigLoader = load_kube_config,
    ) -> None:
        if secret_resolver_type:
            log.error(
                "Failed to initialize secret resolver: Unrecognized secret resolver "
                "type %s specified", secret_resolver_type,
            )
            raise ValueError(
                f"Unrecognized secret resolver type {secret_resolver_type} specified"
            )
        log.info("Initializing default secret resolver")
        self.secret_resolver: SecretResolver = new_default_resolver()
        self.namespace = namespace
        self.cluster_store = cluster_store
        self.add_callback = add_callback
        self.remove_callback = remove_callback
        self.load_kube_config = load_kube_config
        self._store: dict[str, Secret] = {}
        self._store_lock = threading.Lock()
        self._queue = _WorkQueue()

    def _watched(self, secret: Secret) -> bool:
        if self.namespace and secret.namespace != self.namespace:
            return False
        return matches_filter(secret)

    def secret_added(self, secret: Secret) -> None:
        """Record a new or changed secret and queue it for processing."""
        if not self._watched(secret):
            return
        key = secret.key
        log.info("Processing add: %s", key)
        with self._store_lock:
            self._store[key] = secret
        self._queue.add(key)

    def secret_deleted(self, secret: Secret) -> None:
        """Forget a secret and queue its key so its clusters are removed."""
        if not self._watched(secret):
            return
        key = secret.key
        log.info("Processing delete: %s", key)
        with self._store_lock:
            self._store.pop(key, None)
        self._queue.add(key)

    def process_next_item(self, timeout: float | None = None) -> bool:
        """Process one queued key; return False if none came within ``timeout``."""
        key = self._queue.get(timeout)
        if key is None:
            return False
        try:
            self._process_item(key)
        except Exception as err:  # noqa: BLE001 - retried, then dropped
            if self._queue.num_requeues(key) < MAX_RETRIES:
                log.error("Error processing %s (will retry): %s", key, err)
                self._queue.add_rate_limited(key)
            else:
                log.error("Error processing %s (giving up): %s", key, err)
                self._queue.forget(key)
        else:
            self._queue.forget(key)
        return True

    def run(self, stop: threading.Event) -> None:
        """Process queued secrets until ``stop`` is set."""
        log.info("Starting Secrets controller")
        try:
            while not stop.is_set():
                self.process_next_item(timeout=0.05)
        finally:
            self._queue.shut_down()

    def _process_item(self, key: str) -> None:
        with self._store_lock:
            secret = self._store.get(key)
        if secret is not None:
            self._add_member_cluster(key, secret)
        else:
            self._delete_member_cluster(key)

    def _add_member_cluster(self, key: str, secret: Secret) -> None:
        clusters = self.cluster_store.remote_clusters
        for cluster_id, payload in secret.data.items():
            if cluster_id in clusters:
                log.info(
                    "Cluster %s in the secret %s in namespace %s already exists",
                    cluster_id, clusters[cluster_id].secret_name, secret.namespace,
                )
                continue
            if not payload:
                log.info(
                    "Data '%s' in the secret %s in namespace %s is empty, and disregarded",
                    cluster_id, key, secret.namespace,
                )
                continue
            try:
                payload = self.secret_resolver.fetch_kube_config(cluster_id, payload)
            except Exception as err:  # noqa: BLE001
                log.error(
                    "Failed to fetch kubeconfig for cluster '%s' using secret resolver: "
                    "%r, err: %s", cluster_id, self.secret_resolver, err,
                )
                continue
            try:
                cluster_config = self.load_kube_config(payload)
            except ValueError as err:
                log.info(
                    "Data '%s' in the secret %s in namespace %s is not a kubeconfig: %s",
                    cluster_id, key, secret.namespace, err,
                )
                continue

            log.info("Adding new cluster member: %s", cluster_id)
            clusters[cluster_id] = RemoteCluster(secret_name=key)
            try:
                self.add_callback(cluster_config, cluster_id, RESYNC_PERIOD)
            except Exception as err:  # noqa: BLE001
                log.error("error during create of clusterID: %s %s", cluster_id, err)
        log.info("Number of remote clusters: %d", len(clusters))

    def _delete_member_cluster(self, key: str) -> None:
        clusters = self.cluster_store.remote_clusters
        for cluster_id, cluster in list(clusters.items()):
            if cluster.secret_name != key:
                continue
            log.info("Deleting cluster member: %s", cluster_id)
            try:
                self.remove_callback(cluster_id)
            except Exception as err:  # noqa: BLE001
                log.error("error during cluster delete: %s %s", cluster_id, err)
            del clusters[cluster_id]
        log.info("Number of remote clusters: %d", len(clusters))


def start_secret_controller(
    add_callback: AddCallback,
    remove_callback: RemoveCallback,
    namespace: str,
    stop: threading.Event,
    secret_resolver_type: str = "",
) -> Controller:
    """Create a controller and run it in a background thread until ``stop`` is set."""
    controller = Controller(
        namespace, ClusterStore(), add_callback, remove_callback, secret_resolver_type
    )
    threading.Thread(target=controller.run, args=(stop,), daemon=True).start()
    return controller