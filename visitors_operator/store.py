"""
Resource store client — abstracts all K8s API interactions for the reconciler.

Design principles:
  - Narrow surface: get / create / update / update_status, nothing else
  - Clean error handling: translates K8s API exceptions to domain errors
  - No process-wide handle: each store owns its API client
"""

import logging
from typing import Any, Callable, Optional

import urllib3
from kubernetes import client, config
from kubernetes.client import ApiException

from visitors_operator.config import Settings, settings as default_settings
from visitors_operator.errors import AlreadyExists, NotFound, TransientStoreError
from visitors_operator.models import VisitorsApp

logger = logging.getLogger("visitors_operator.store")

SECRET = "Secret"
DEPLOYMENT = "Deployment"
SERVICE = "Service"
VISITORS_APP = "VisitorsApp"

_KIND_BY_TYPE = {
    client.V1Secret: SECRET,
    client.V1Deployment: DEPLOYMENT,
    client.V1Service: SERVICE,
}


def kind_of(obj: Any) -> str:
    """Resolve the resource kind of a typed object."""
    for model, kind in _KIND_BY_TYPE.items():
        if isinstance(obj, model):
            return kind
    if isinstance(obj, VisitorsApp):
        return VISITORS_APP
    raise TypeError(f"Unsupported object type: {type(obj).__name__}")


def load_api_client(cfg: Settings = default_settings) -> client.ApiClient:
    """Build an API client from in-cluster or kubeconfig credentials."""
    if cfg.IN_CLUSTER:
        config.load_incluster_config()
    else:
        config.load_kube_config(config_file=cfg.KUBECONFIG or None)
    return client.ApiClient()


class KubernetesStore:
    """Typed get/create/update over the Kubernetes API server."""

    def __init__(self, api_client: Optional[client.ApiClient] = None,
                 cfg: Settings = default_settings):
        self.settings = cfg
        self._api_client = api_client
        self._core = None
        self._apps = None
        self._custom = None

    # -- lazy API handles ---------------------------------------------------

    def _client(self) -> client.ApiClient:
        if self._api_client is None:
            self._api_client = load_api_client(self.settings)
        return self._api_client

    @property
    def core(self) -> client.CoreV1Api:
        if self._core is None:
            self._core = client.CoreV1Api(self._client())
        return self._core

    @property
    def apps(self) -> client.AppsV1Api:
        if self._apps is None:
            self._apps = client.AppsV1Api(self._client())
        return self._apps

    @property
    def custom(self) -> client.CustomObjectsApi:
        if self._custom is None:
            self._custom = client.CustomObjectsApi(self._client())
        return self._custom

    # -- error translation --------------------------------------------------

    def _call(self, action: str, kind: str, namespace: str, name: str,
              fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except ApiException as e:
            if e.status == 404:
                raise NotFound(kind, namespace, name) from e
            if e.status == 409 and action == "create":
                raise AlreadyExists(
                    f"{kind} {namespace}/{name} already exists", status=e.status
                ) from e
            raise TransientStoreError(
                f"Failed to {action} {kind} {namespace}/{name}: {e.status} {e.reason}",
                status=e.status,
            ) from e
        except urllib3.exceptions.HTTPError as e:
            raise TransientStoreError(
                f"Failed to {action} {kind} {namespace}/{name}: {e}"
            ) from e

    # -- store interface ----------------------------------------------------

    def get(self, kind: str, namespace: str, name: str) -> Any:
        """Fetch one object. Raises NotFound or TransientStoreError."""
        readers = {
            SECRET: lambda: self.core.read_namespaced_secret(name, namespace),
            DEPLOYMENT: lambda: self.apps.read_namespaced_deployment(name, namespace),
            SERVICE: lambda: self.core.read_namespaced_service(name, namespace),
            VISITORS_APP: lambda: VisitorsApp.from_object(
                self.custom.get_namespaced_custom_object(
                    self.settings.CRD_GROUP, self.settings.CRD_VERSION,
                    namespace, self.settings.CRD_PLURAL, name,
                )
            ),
        }
        if kind not in readers:
            raise TypeError(f"Unsupported kind: {kind}")
        return self._call("get", kind, namespace, name, readers[kind])

    def create(self, obj: Any) -> Any:
        kind = kind_of(obj)
        namespace, name = obj.metadata.namespace, obj.metadata.name
        writers = {
            SECRET: lambda: self.core.create_namespaced_secret(namespace, obj),
            DEPLOYMENT: lambda: self.apps.create_namespaced_deployment(namespace, obj),
            SERVICE: lambda: self.core.create_namespaced_service(namespace, obj),
        }
        if kind not in writers:
            raise TypeError(f"Unsupported kind for create: {kind}")
        return self._call("create", kind, namespace, name, writers[kind])

    def update(self, obj: Any) -> Any:
        """
        Replace an object previously read from the store. The carried
        resourceVersion makes a concurrent write surface as a 409 conflict.
        """
        kind = kind_of(obj)
        namespace, name = obj.metadata.namespace, obj.metadata.name
        writers = {
            SECRET: lambda: self.core.replace_namespaced_secret(name, namespace, obj),
            DEPLOYMENT: lambda: self.apps.replace_namespaced_deployment(name, namespace, obj),
            SERVICE: lambda: self.core.replace_namespaced_service(name, namespace, obj),
        }
        if kind not in writers:
            raise TypeError(f"Unsupported kind for update: {kind}")
        return self._call("update", kind, namespace, name, writers[kind])

    def update_status(self, app: VisitorsApp) -> None:
        """Merge-patch the reconciler-owned status fields of a VisitorsApp."""
        self._call(
            "update status of", VISITORS_APP, app.namespace, app.name,
            lambda: self.custom.patch_namespaced_custom_object_status(
                self.settings.CRD_GROUP, self.settings.CRD_VERSION,
                app.namespace, self.settings.CRD_PLURAL, app.name,
                app.status_patch(),
            ),
        )
