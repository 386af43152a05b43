import threading

import pytest

from meshsync.secret_controller import (
    FILTER_LABEL,
    RESYNC_PERIOD,
    ClusterStore,
    Controller,
    Secret,
    load_kube_config,
    matches_filter,
    start_secret_controller,
)

NAME = "testSecretName"
NAMESPACE = "istio-system"
KUBECONFIG = b"apiVersion: v1\nkind: Config\nclusters: []\n"


def make_secret(data=None, labels=None, namespace=NAMESPACE):
    return Secret(
        name=NAME,
        namespace=namespace,
        labels={FILTER_LABEL: "true"} if labels is None else labels,
        data={"testRemoteCluster": KUBECONFIG} if data is None else data,
    )


class Recorder:
    def __init__(self):
        self.added = []
        self.removed = []
        self.created = threading.Event()
        self.deleted = threading.Event()

    def add(self, config, cluster_id, resync):
        self.added.append((config, cluster_id, resync))
        self.created.set()

    def remove(self, cluster_id):
        self.removed.append(cluster_id)
        self.deleted.set()


def make_controller(recorder, loader=load_kube_config):
    return Controller(
        NAMESPACE, ClusterStore(), recorder.add, recorder.remove, "", loader
    )


def test_secret_controller_end_to_end():
    rec = Recorder()
    stop = threading.Event()
    controller = start_secret_controller(rec.add, rec.remove, NAMESPACE, stop, "")
    try:
        controller.secret_added(make_secret())
        assert rec.created.wait(5)
        assert not rec.deleted.is_set()

        rec.created.clear()
        controller.secret_deleted(make_secret())
        assert rec.deleted.wait(5)
        assert not rec.created.is_set()
        assert rec.removed == ["testRemoteCluster"]
    finally:
        stop.set()


def test_added_secret_creates_cluster():
    rec = Recorder()
    controller = make_controller(rec)
    controller.secret_added(make_secret())
    assert controller.process_next_item(timeout=1) is True
    assert len(rec.added) == 1
    config, cluster_id, resync = rec.added[0]
    assert cluster_id == "testRemoteCluster"
    assert resync == RESYNC_PERIOD
    assert config["kind"] == "Config"
    store = controller.cluster_store.remote_clusters
    assert store["testRemoteCluster"].secret_name == f"{NAMESPACE}/{NAME}"


def test_mocked_loader_accepts_any_payload():
    rec = Recorder()
    controller = make_controller(rec, loader=lambda data: {})
    controller.secret_added(make_secret(data={"testRemoteCluster": b"Test"}))
    controller.process_next_item(timeout=1)
    assert [c for _, c, _ in rec.added] == ["testRemoteCluster"]


def test_invalid_kubeconfig_is_disregarded():
    rec = Recorder()
    controller = make_controller(rec)
    controller.secret_added(make_secret(data={"testRemoteCluster": b"Test"}))
    controller.process_next_item(timeout=1)
    assert rec.added == []
    assert controller.cluster_store.remote_clusters == {}


def test_empty_data_is_disregarded():
    rec = Recorder()
    controller = make_controller(rec)
    controller.secret_added(make_secret(data={"c1": b""}))
    controller.process_next_item(timeout=1)
    assert rec.added == []


def test_existing_cluster_not_added_twice():
    rec = Recorder()
    controller = make_controller(rec)
    controller.secret_added(make_secret())
    controller.process_next_item(timeout=1)
    controller.secret_added(make_secret())
    controller.process_next_item(timeout=1)
    assert len(rec.added) == 1


def test_deleted_secret_removes_only_its_clusters():
    rec = Recorder()
    controller = make_controller(rec)
    other = Secret(
        name="other",
        namespace=NAMESPACE,
        labels={FILTER_LABEL: "true"},
        data={"otherCluster": KUBECONFIG},
    )
    controller.secret_added(make_secret())
    controller.process_next_item(timeout=1)
    controller.secret_added(other)
    controller.process_next_item(timeout=1)
    controller.secret_deleted(make_secret())
    controller.process_next_item(timeout=1)
    assert rec.removed == ["testRemoteCluster"]
    assert list(controller.cluster_store.remote_clusters) == ["otherCluster"]


def test_callback_failure_keeps_cluster_record():
    def failing_add(config, cluster_id, resync):
        raise RuntimeError("boom")

    controller = Controller(NAMESPACE, ClusterStore(), failing_add, lambda c: None)
    controller.secret_added(make_secret())
    assert controller.process_next_item(timeout=1) is True
    assert "testRemoteCluster" in controller.cluster_store.remote_clusters


def test_unlabelled_secret_is_ignored():
    rec = Recorder()
    controller = make_controller(rec)
    controller.secret_added(make_secret(labels={"istio/multiCluster": "true"}))
    assert controller.process_next_item(timeout=0.05) is False
    assert rec.added == []


def test_secret_in_other_namespace_is_ignored():
    rec = Recorder()
    controller = make_controller(rec)
    controller.secret_added(make_secret(namespace="default"))
    assert controller.process_next_item(timeout=0.05) is False


def test_unknown_resolver_type_raises():
    with pytest.raises(ValueError, match="Unrecognized secret resolver type vault"):
        Controller(NAMESPACE, ClusterStore(), lambda *a: None, lambda c: None, "vault")


@pytest.mark.parametrize(
    "labels, expected",
    [
        ({FILTER_LABEL: "true"}, True),
        ({FILTER_LABEL: "false"}, False),
        ({}, False),
    ],
)
def test_matches_filter(labels, expected):
    assert matches_filter(Secret(name="s", labels=labels)) is expected


def test_load_kube_config_parses_mapping():
    assert load_kube_config(KUBECONFIG) == {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [],
    }


def test_load_kube_config_rejects_scalar():
    with pytest.raises(ValueError):
        load_kube_config(b"Test")


def test_load_kube_config_empty_is_empty_config():
    assert load_kube_config(b"") == {}


def test_run_returns_when_stopped():
    rec = Recorder()
    controller = make_controller(rec)
    stop = threading.Event()
    stop.set()
    controller.run(stop)
    controller.secret_added(make_secret())
    assert controller.process_next_item(timeout=0.05) is False
    assert rec.added == []