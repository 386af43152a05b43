# meshsync

Building blocks for keeping service-mesh configuration in step across
clusters. It covers name and address helpers, conversion of custom
resources, a REST client for them, and a controller that tracks remote
clusters from labelled secrets.

## Install

```
pip install meshsync
```

To run the test suite:

```
pip install "meshsync[test]"
pytest
```

## Modules

- `meshsync.maps` has `Map` and `MapOfMaps`, which are lock-guarded string caches.
  - `Map.get` returns `""` for a missing key.
  - `MapOfMaps.put` creates the inner map for a parent key only when that map is absent. An inner map that already exists is left unchanged.
- `meshsync.common` has the `ObjectMeta`, `Pod`, `Deployment` and `Node` dataclasses and these helpers:
  - `get_pod_global_identifier` and `get_deployment_global_identifier` read the `identity` label, then fall back to the annotation of the same name.
  - `get_cname` returns `<env>.<identity>.global`. The environment defaults to `default`. The result is `""` when no identity is set.
  - `get_san` returns `spiffe://<domain>/<identity>`. Without a domain it returns `spiffe://<identity>`.
  - `get_local_address_for_se` gives each new service-entry name the next `127.0.x.y` address, starting at `127.0.10.1`, and keeps it in a `Map`.
  - `get_node_locality` reads a node's region label.
- `meshsync.util` has two functions:
  - `map_copy(dst, src)` copies the entries of `src` into `dst`.
  - `subset(m1, m2)` checks label subsets. An empty or missing `m1` is never a subset.
- `meshsync.resolver` has `SecretResolver` and `DefaultResolver`. `DefaultResolver` returns the secret payload itself, as bytes. `new_default_resolver()` builds one.
- `meshsync.queue` has `Task`, `Queue` and `ChainHandler`.
  - `Queue(error_delay)` runs tasks in order until a `threading.Event` is set.
  - When a handler raises, the queue pushes the task again after `error_delay` seconds.
  - `ChainHandler` runs its handlers in sequence and stops at the first one that raises.
- `meshsync.config` has the `Event` enum and the `IstioKind`, `IstioKindList`, `ConfigMeta` and `Config` dataclasses. `IstioKind.to_dict` and `IstioKind.from_dict` convert to and from the API document form.
- `meshsync.schema` has `ProtoSchema`, `ConfigDescriptor` and `ValidationError`, the built-in networking schemas, and these helpers:
  - `resource_name`
  - `resource_group`
  - `api_version`
  - `api_version_from_config`
  - `group_by_api_version`
- `meshsync.conversion` converts between resources and configuration units, and handles their encodings.
  - `convert_object`, `convert_unstructured`, `convert_istio_type` and `convert_config` do the conversions.
  - `kebab_case_to_camel_case` and `camel_case_to_kebab_case` change the case of type names.
  - `to_json`, `to_json_with_indent`, `to_yaml`, `to_json_map`, `from_json`, `from_yaml` and `from_json_map` handle the encodings.
  - `parse_inputs` and `parse_inputs_without_validation` read a multi-document YAML or JSON stream. They return the recognised configs and the unrecognised resources. Errors raise `ConversionError`.
- `meshsync.client` has `Client(base_url, descriptor, domain_suffix, session)`, which talks to an API server's REST interface.
  - `register_resources` creates the resource definitions and waits until they are established.
  - `deregister_resources` deletes them.
  - `get`, `create`, `update`, `delete` and `list` operate on configuration units.
  - Failures raise `ClientError`.
  - When only some items of a `list` fail to convert, the `ClientError` carries the items that did convert in `.configs`.
- `meshsync.secret_controller` has `Secret`, `RemoteCluster`, `ClusterStore` and `Controller`, plus `matches_filter`, `load_kube_config` and `start_secret_controller`.
  - The controller watches secrets labelled `admiral/sync: "true"`.
  - For each new cluster id in a secret it calls `add_callback(kubeconfig_dict, cluster_id, 120.0)`.
  - When the secret is deleted, it calls `remove_callback(cluster_id)` for each of that secret's clusters.
  - A failing item is retried up to 5 times.

## Example

```python
from meshsync.maps import Map
from meshsync.common import get_local_address_for_se

cache = Map()
get_local_address_for_se("dev.a.global", cache)  # "127.0.10.1"
get_local_address_for_se("dev.b.global", cache)  # "127.0.10.2"
get_local_address_for_se("dev.a.global", cache)  # "127.0.10.1"
```

```python
from meshsync.util import subset

subset({"env": "stage"}, {"env": "stage", "version": "v1"})  # True
```

```python
import threading
from meshsync.secret_controller import Secret, start_secret_controller

stop = threading.Event()
controller = start_secret_controller(
    lambda config, cluster_id, resync: print("add", cluster_id),
    lambda cluster_id: print("remove", cluster_id),
    "istio-system",
    stop,
)
controller.secret_added(Secret(
    name="remote", namespace="istio-system",
    labels={"admiral/sync": "true"}, data={"cluster-b": b"apiVersion: v1\n"},
))
```

## What it does not do

- There is no command-line program and no long-running service. The package is a library.
- `Controller` does not watch the API server itself. You feed it events by calling `secret_added` and `secret_deleted`.
- `Client` does not read kubeconfig files and does not set up authentication. Give it a base URL, and a `requests.Session` configured with whatever credentials your server needs.
- Configuration specs are plain dictionaries. Only the test `mock-config` schema validates its content; the networking schemas accept any mapping.