"""
Pytest configuration and fixtures for fleetadapter tests.

The fake cluster and fake broker below are plain httpx.MockTransport
handlers holding objects in memory, so the real clients run unmodified
against them.
"""

import copy
import json
import sys
from pathlib import Path
from urllib.parse import unquote

import httpx
import pytest
import pytest_asyncio

# Add the repository root to path for imports
# This allows `from fleetadapter.manifest import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from fleetadapter.clients.kubernetes import KubernetesClient, KubernetesConfig  # noqa: E402
from fleetadapter.clients.maestro import MaestroClient, MaestroConfig  # noqa: E402
from fleetadapter.transports import reset_transport_registry  # noqa: E402

GENERATION = "hyperfleet.io/generation"
MUTATING = {"POST", "PUT", "PATCH", "DELETE"}


def make_object(
    kind="ConfigMap",
    name="cm",
    generation=None,
    *,
    api_version="v1",
    namespace="default",
    labels=None,
    **extra,
):
    """Build a resource dict; generation=None leaves the annotation off."""
    metadata = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    if labels:
        metadata["labels"] = dict(labels)
    if generation is not None:
        metadata["annotations"] = {GENERATION: str(generation)}
    obj = {"apiVersion": api_version, "kind": kind, "metadata": metadata}
    obj.update(extra)
    return obj


def make_work(name="work", generation=1, manifests=None, *, labels=None):
    """Build a ManifestWork dict."""
    work = make_object(
        "ManifestWork",
        name,
        generation,
        api_version="work.open-cluster-management.io/v1",
        namespace=None,
        labels=labels,
    )
    work["spec"] = {"workload": {"manifests": manifests if manifests is not None else []}}
    return work


def _merge_patch(target, patch):
    for key, value in patch.items():
        if value is None:
            target.pop(key, None)
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge_patch(target[key], value)
        else:
            target[key] = copy.deepcopy(value)
    return target


def _selector_matches(obj, selector):
    if not selector:
        return True
    labels = (obj.get("metadata") or {}).get("labels") or {}
    for pair in selector.split(","):
        key, _, value = pair.partition("=")
        if labels.get(key) != value:
            return False
    return True


def _json(status, body):
    return httpx.Response(status, json=body)


def _status(status, message):
    return _json(status, {"kind": "Status", "status": "Failure", "message": message, "code": status})


# =============================================================================
# Fake Kubernetes API server
# =============================================================================


class FakeCluster:
    """
    In-memory Kubernetes API server.

    Attributes:
        calls: Every (method, path) received, in order
        linger_gets: GETs that still see an object after it was deleted
        fail: (method, path) -> status code to return instead of serving
    """

    API_RESOURCES = {
        "/api/v1": [
            {"name": "namespaces", "kind": "Namespace", "namespaced": False},
            {"name": "configmaps", "kind": "ConfigMap", "namespaced": True},
            {"name": "pods", "kind": "Pod", "namespaced": True},
            {"name": "pods/status", "kind": "Pod", "namespaced": True},
        ],
        "/apis/apps/v1": [
            {"name": "deployments", "kind": "Deployment", "namespaced": True},
            {"name": "deployments/scale", "kind": "Scale", "namespaced": True},
        ],
        "/apis/batch/v1": [
            {"name": "jobs", "kind": "Job", "namespaced": True},
        ],
    }

    def __init__(self):
        self.API_RESOURCES = copy.deepcopy(type(self).API_RESOURCES)
        self.objects = {}
        self.terminating = {}
        self.calls = []
        self.requests = []
        self.linger_gets = 0
        self.fail = {}
        self._version = 0

    # -- helpers ------------------------------------------------------------

    @property
    def mutations(self):
        return [call for call in self.calls if call[0] in MUTATING]

    @property
    def discovery_calls(self):
        return [call for call in self.calls if call[1] in self.API_RESOURCES]

    def _next_version(self):
        self._version += 1
        return str(self._version)

    def _plural_for(self, api_version, kind):
        prefix = "/api/v1" if api_version == "v1" else f"/apis/{api_version}"
        for entry in self.API_RESOURCES.get(prefix, []):
            if entry["kind"] == kind and "/" not in entry["name"]:
                return prefix, entry["name"], entry["namespaced"]
        raise KeyError(f"{api_version} {kind}")

    def seed(self, obj):
        """Store an object as if it had been created earlier."""
        obj = copy.deepcopy(obj)
        prefix, plural, namespaced = self._plural_for(obj["apiVersion"], obj["kind"])
        meta = obj["metadata"]
        meta["resourceVersion"] = self._next_version()
        meta.setdefault("uid", f"uid-{meta['name']}")
        namespace = meta.get("namespace", "") if namespaced else ""
        self.objects[(prefix, plural, namespace, meta["name"])] = obj
        return obj

    def get(self, api_version, kind, name, namespace="default"):
        prefix, plural, namespaced = self._plural_for(api_version, kind)
        return self.objects.get((prefix, plural, namespace if namespaced else "", name))

    def _split(self, path):
        for prefix in self.API_RESOURCES:
            if path.startswith(prefix + "/"):
                parts = path[len(prefix) + 1:].split("/")
                if parts[0] == "namespaces" and len(parts) >= 3:
                    return prefix, parts[2], parts[1], parts[3] if len(parts) > 3 else None
                return prefix, parts[0], "", parts[1] if len(parts) > 1 else None
        return None

    # -- handler ------------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = unquote(request.url.path)
        self.calls.append((method, path))
        self.requests.append(request)

        if (method, path) in self.fail:
            return _status(self.fail[(method, path)], "injected failure")

        if method == "GET" and path in self.API_RESOURCES:
            return _json(200, {"kind": "APIResourceList", "resources": self.API_RESOURCES[path]})

        split = self._split(path)
        if split is None:
            return _status(404, f"the server could not find the requested resource {path}")
        prefix, plural, namespace, name = split

        if name is None:
            if method == "POST":
                return self._create(prefix, plural, namespace, json.loads(request.content))
            if method == "GET":
                return self._list(
                    prefix,
                    plural,
                    namespace,
                    request.url.params.get("labelSelector", ""),
                    request.url.params.get("fieldSelector", ""),
                )
            return _status(405, "method not allowed")

        key = (prefix, plural, namespace, name)
        if method == "GET":
            return self._get(key)
        if method == "PUT":
            return self._update(key, json.loads(request.content))
        if method == "PATCH":
            return self._patch(key, json.loads(request.content))
        if method == "DELETE":
            return self._delete(key)
        return _status(405, "method not allowed")

    def _create(self, prefix, plural, namespace, body):
        key = (prefix, plural, namespace, body["metadata"]["name"])
        if key in self.objects or key in self.terminating:
            return _status(409, f"{plural} {key[3]!r} already exists")
        body["metadata"]["resourceVersion"] = self._next_version()
        body["metadata"]["uid"] = f"uid-{key[3]}-{self._version}"
        self.objects[key] = body
        return _json(201, body)

    def _get(self, key):
        if key in self.terminating:
            obj, remaining = self.terminating[key]
            if remaining > 0:
                self.terminating[key] = (obj, remaining - 1)
                return _json(200, obj)
            del self.terminating[key]
        if key not in self.objects:
            return _status(404, f"{key[1]} {key[3]!r} not found")
        return _json(200, self.objects[key])

    def _list(self, prefix, plural, namespace, selector, field_selector=""):
        items = []
        for (p, pl, ns, _), obj in self.objects.items():
            if p != prefix or pl != plural:
                continue
            if namespace and ns != namespace:
                continue
            if not _selector_matches(obj, selector):
                continue
            if field_selector and field_selector != f"metadata.name={obj['metadata']['name']}":
                continue
            item = copy.deepcopy(obj)
            item.pop("apiVersion", None)
            item.pop("kind", None)
            items.append(item)
        return _json(200, {"kind": "List", "items": items})

    def _update(self, key, body):
        current = self.objects.get(key)
        if current is None:
            return _status(404, f"{key[1]} {key[3]!r} not found")
        if body["metadata"].get("resourceVersion") != current["metadata"]["resourceVersion"]:
            return _status(409, "the object has been modified")
        body["metadata"]["resourceVersion"] = self._next_version()
        self.objects[key] = body
        return _json(200, body)

    def _patch(self, key, patch):
        current = self.objects.get(key)
        if current is None:
            return _status(404, f"{key[1]} {key[3]!r} not found")
        _merge_patch(current, patch)
        current["metadata"]["resourceVersion"] = self._next_version()
        return _json(200, current)

    def _delete(self, key):
        obj = self.objects.pop(key, None)
        if obj is None:
            return _status(404, f"{key[1]} {key[3]!r} not found")
        if self.linger_gets:
            self.terminating[key] = (obj, self.linger_gets)
        return _json(200, {"kind": "Status", "status": "Success"})


# =============================================================================
# Fake Maestro broker
# =============================================================================


class FakeBroker:
    """
    In-memory ManifestWork API keyed by consumer.

    Attributes:
        works: consumer -> {name: ManifestWork dict}
        calls: Every (method, path) received, in order
        requests: Every httpx.Request received
    """

    PREFIX = "/apis/work.open-cluster-management.io/v1/namespaces/"

    def __init__(self):
        self.works = {}
        self.terminating = {}
        self.calls = []
        self.requests = []
        self.linger_gets = 0
        self.fail = {}

    @property
    def mutations(self):
        return [call for call in self.calls if call[0] in MUTATING]

    def seed(self, consumer, work):
        work = copy.deepcopy(work)
        work["metadata"]["namespace"] = consumer
        self.works.setdefault(consumer, {})[work["metadata"]["name"]] = work
        return work

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = unquote(request.url.path)
        self.calls.append((method, path))
        self.requests.append(request)

        if (method, path) in self.fail:
            return _status(self.fail[(method, path)], "injected failure")
        if not path.startswith(self.PREFIX):
            return _status(404, "not found")

        parts = path[len(self.PREFIX):].split("/")
        consumer = parts[0]
        name = parts[2] if len(parts) > 2 else None
        store = self.works.setdefault(consumer, {})

        if name is None:
            if method == "GET":
                selector = request.url.params.get("labelSelector", "")
                items = [copy.deepcopy(w) for w in store.values() if _selector_matches(w, selector)]
                return _json(200, {"kind": "ManifestWorkList", "items": items})
            if method == "POST":
                body = json.loads(request.content)
                work_name = body["metadata"]["name"]
                if work_name in store or (consumer, work_name) in self.terminating:
                    return _status(409, f"manifestwork {work_name!r} already exists")
                store[work_name] = body
                return _json(201, body)
            return _status(405, "method not allowed")

        key = (consumer, name)
        if method == "GET":
            if key in self.terminating:
                work, remaining = self.terminating[key]
                if remaining > 0:
                    self.terminating[key] = (work, remaining - 1)
                    return _json(200, work)
                del self.terminating[key]
            if name not in store:
                return _status(404, f"manifestwork {name!r} not found")
            return _json(200, store[name])
        if method == "PATCH":
            if name not in store:
                return _status(404, f"manifestwork {name!r} not found")
            _merge_patch(store[name], json.loads(request.content))
            return _json(200, store[name])
        if method == "DELETE":
            work = store.pop(name, None)
            if work is None:
                return _status(404, f"manifestwork {name!r} not found")
            if self.linger_gets:
                self.terminating[key] = (work, self.linger_gets)
            return _json(200, {"kind": "Status", "status": "Success"})
        return _status(405, "method not allowed")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_registry():
    """Each test starts with an empty global transport registry."""
    reset_transport_registry()
    yield
    reset_transport_registry()


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def broker():
    return FakeBroker()


@pytest.fixture
def kube_config():
    return KubernetesConfig(
        base_url="https://cluster.test",
        token="test-token",
        deletion_timeout=2.0,
        deletion_poll_interval=0.0,
    )


@pytest.fixture
def maestro_config():
    return MaestroConfig(
        base_url="https://maestro.test",
        source_id="fleet-adapter",
        token="broker-token",
        deletion_timeout=2.0,
        deletion_poll_interval=0.0,
    )


@pytest_asyncio.fixture
async def kube_client(cluster, kube_config):
    client = KubernetesClient(kube_config, transport=httpx.MockTransport(cluster.handler))
    yield client
    await client.close()


@pytest_asyncio.fixture
async def maestro_client(broker, maestro_config):
    client = MaestroClient(maestro_config, transport=httpx.MockTransport(broker.handler))
    yield client
    await client.close()
