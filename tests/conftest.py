"""Shared fixtures: an in-memory store standing in for the API server."""

import copy

import pytest
from kubernetes import client

from visitors_operator import builders
from visitors_operator.config import Settings
from visitors_operator.errors import AlreadyExists, NotFound
from visitors_operator.models import VisitorsApp
from visitors_operator.naming import DATABASE, workload_name
from visitors_operator.store import DEPLOYMENT, VISITORS_APP, kind_of

NAMESPACE = "default"
APP_NAME = "demo"

BASE_SPEC = {
    "backendSize": 2,
    "backendServiceNodePort": 30685,
    "frontendTitle": "Visitors",
    "frontendSize": 1,
    "frontendServiceNodePort": 30686,
}


class FakeStore:
    """
    Dict-backed store with the same surface as KubernetesStore.

    Objects are deep-copied in and out so callers never share state with
    the store, as with a real API server. Every write is recorded.
    """

    def __init__(self):
        self.objects = {}
        self.apps = {}
        self.writes = []
        self.status_writes = []
        self.failures = {}

    # -- store interface ----------------------------------------------------

    def get(self, kind, namespace, name):
        self._maybe_fail("get", kind, name)
        if kind == VISITORS_APP:
            if (namespace, name) not in self.apps:
                raise NotFound(kind, namespace, name)
            return VisitorsApp.from_object(copy.deepcopy(self.apps[(namespace, name)]))
        key = (kind, namespace, name)
        if key not in self.objects:
            raise NotFound(kind, namespace, name)
        return copy.deepcopy(self.objects[key])

    def create(self, obj):
        kind = kind_of(obj)
        key = (kind, obj.metadata.namespace, obj.metadata.name)
        self._maybe_fail("create", kind, obj.metadata.name)
        if key in self.objects:
            raise AlreadyExists(f"{kind} {key[1]}/{key[2]} already exists", status=409)
        stored = copy.deepcopy(obj)
        stored.metadata.generation = 1
        self.objects[key] = stored
        self.writes.append(("create", kind, obj.metadata.name))
        return copy.deepcopy(obj)

    def update(self, obj):
        kind = kind_of(obj)
        key = (kind, obj.metadata.namespace, obj.metadata.name)
        self._maybe_fail("update", kind, obj.metadata.name)
        if key not in self.objects:
            raise NotFound(kind, key[1], key[2])
        stored = copy.deepcopy(obj)
        previous = self.objects[key]
        generation = previous.metadata.generation or 1
        # Like the API server, only spec changes bump the generation.
        if getattr(previous, "spec", None) != getattr(stored, "spec", None):
            generation += 1
        stored.metadata.generation = generation
        self.objects[key] = stored
        self.writes.append(("update", kind, obj.metadata.name))
        return copy.deepcopy(obj)

    def update_status(self, app):
        self._maybe_fail("update_status", VISITORS_APP, app.name)
        raw = self.apps[(app.namespace, app.name)]
        raw.setdefault("status", {}).update(app.status_patch()["status"])
        self.status_writes.append(app.name)

    # -- helpers ------------------------------------------------------------

    def _maybe_fail(self, action, kind, name):
        error = self.failures.get((action, kind, name))
        if error is not None:
            raise error

    def fail(self, action, kind, name, error):
        self.failures[(action, kind, name)] = error

    def heal(self):
        self.failures.clear()

    def add_app(self, name=APP_NAME, namespace=NAMESPACE, **overrides):
        spec = dict(BASE_SPEC, **overrides)
        self.apps[(namespace, name)] = {
            "apiVersion": "example.com/v1beta1",
            "kind": "VisitorsApp",
            "metadata": {"name": name, "namespace": namespace, "uid": f"uid-{name}"},
            "spec": spec,
        }

    def edit_spec(self, name=APP_NAME, namespace=NAMESPACE, **changes):
        self.apps[(namespace, name)]["spec"].update(changes)

    def app_status(self, name=APP_NAME, namespace=NAMESPACE):
        return self.apps[(namespace, name)].get("status", {})

    def stored(self, kind, name, namespace=NAMESPACE):
        return self.objects.get((kind, namespace, name))

    def set_ready(self, ready=1, name=APP_NAME, namespace=NAMESPACE):
        """Report the database workload as fully rolled out with `ready` replicas."""
        dep = self.objects[(DEPLOYMENT, namespace, workload_name(name, DATABASE))]
        dep.status = client.V1DeploymentStatus(
            observed_generation=dep.metadata.generation,
            replicas=ready,
            updated_replicas=ready,
            ready_replicas=ready,
            available_replicas=ready,
        )

    def start_rollout(self, name=APP_NAME, namespace=NAMESPACE):
        """Database still serving from its old pod while the new one starts."""
        dep = self.objects[(DEPLOYMENT, namespace, workload_name(name, DATABASE))]
        dep.status = client.V1DeploymentStatus(
            observed_generation=dep.metadata.generation,
            replicas=2,
            updated_replicas=1,
            ready_replicas=1,
            available_replicas=1,
        )

    def names(self, kind=None):
        return sorted(n for (k, _, n) in self.objects if kind is None or k == kind)

    def corrective_writes(self):
        return [w for w in self.writes if w[0] == "update"]

    def reset_writes(self):
        self.writes.clear()
        self.status_writes.clear()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def cfg():
    return Settings(REQUEUE_DELAY=5.0)


@pytest.fixture
def app(store):
    store.add_app()
    return store.get(VISITORS_APP, NAMESPACE, APP_NAME)


def seed_children(store, app):
    """Store every child of app as its builders would produce it."""
    for build in (
        builders.database_secret,
        builders.database_deployment,
        builders.database_service,
        builders.backend_deployment,
        builders.backend_service,
        builders.frontend_deployment,
        builders.frontend_service,
    ):
        store.create(build(app))
    store.reset_writes()
