"""
Drift detection and correction, one corrector per tier.

Each corrector re-reads the tier's observed objects, walks the mutable
fields in a fixed priority order, and applies at most one correction per
call. A correction returns RequeueNow so the next pass re-reads the store
before looking at the remaining fields.
"""
import logging
from typing import Any, Optional

from kubernetes import client

from visitors_operator import builders
from visitors_operator.config import Settings, settings as default_settings
from visitors_operator.errors import NotFound, OperatorError
from visitors_operator.metrics import DRIFT_CORRECTIONS
from visitors_operator.models import VisitorsApp
from visitors_operator.naming import BACKEND, DATABASE, FRONTEND, service_name, workload_name
from visitors_operator.outcome import Outcome
from visitors_operator.readiness import database_settled
from visitors_operator.store import DEPLOYMENT, SERVICE

logger = logging.getLogger("visitors_operator.drift")


# ---------------------------------------------------------------------------
# Field accessors on observed objects
# ---------------------------------------------------------------------------

def _container(dep: client.V1Deployment) -> client.V1Container:
    return dep.spec.template.spec.containers[0]


def _env_value(dep: client.V1Deployment, env_name: str) -> Optional[str]:
    for env in _container(dep).env or []:
        if env.name == env_name:
            # The API server omits empty values.
            return env.value or ""
    return None


def _set_env_value(dep: client.V1Deployment, env_name: str, value: str):
    container = _container(dep)
    for env in container.env or []:
        if env.name == env_name:
            env.value = value
            return
    container.env = list(container.env or []) + [client.V1EnvVar(name=env_name, value=value)]


def _storage_path(dep: client.V1Deployment) -> Optional[str]:
    for volume in dep.spec.template.spec.volumes or []:
        if volume.name == builders.DATABASE_VOLUME and volume.host_path is not None:
            return volume.host_path.path
    return None


def _set_storage_path(dep: client.V1Deployment, path: str):
    pod_spec = dep.spec.template.spec
    for volume in pod_spec.volumes or []:
        if volume.name == builders.DATABASE_VOLUME:
            volume.host_path = client.V1HostPathVolumeSource(path=path, type="DirectoryOrCreate")
            return
    pod_spec.volumes = list(pod_spec.volumes or []) + [client.V1Volume(
        name=builders.DATABASE_VOLUME,
        host_path=client.V1HostPathVolumeSource(path=path, type="DirectoryOrCreate"),
    )]


def _node_port(svc: client.V1Service) -> Optional[int]:
    return svc.spec.ports[0].node_port


def _set_node_port(svc: client.V1Service, port: int):
    svc.spec.ports[0].node_port = port


# ---------------------------------------------------------------------------
# Shared read / write steps
# ---------------------------------------------------------------------------

class _Stop(Exception):
    """Carries a terminal Outcome out of a nested read."""

    def __init__(self, outcome: Outcome):
        super().__init__(outcome.reason)
        self.outcome = outcome


def _observe(store, kind: str, namespace: str, name: str, cfg: Settings) -> Any:
    try:
        return store.get(kind, namespace, name)
    except NotFound:
        # Created earlier in the pass but not readable yet.
        logger.warning(f"{kind} {namespace}/{name} not visible yet, requeueing")
        raise _Stop(Outcome.requeue_after(
            cfg.REQUEUE_DELAY, reason=f"{kind} {namespace}/{name} not visible yet"
        ))
    except OperatorError as e:
        logger.error(f"Failed to get {kind} {namespace}/{name}: {e}")
        raise _Stop(Outcome.fatal(e))


def _apply(store, obj: Any, tier: str, field: str) -> Outcome:
    meta = obj.metadata
    try:
        store.update(obj)
    except OperatorError as e:
        logger.error(f"Failed to update {tier} {field} on {meta.namespace}/{meta.name}: {e}")
        return Outcome.fatal(e)
    DRIFT_CORRECTIONS.labels(tier=tier, field=field).inc()
    logger.info(f"Corrected {tier} {field} on {meta.namespace}/{meta.name}")
    return Outcome.requeue_now(reason=f"{tier} {field} corrected")


# ---------------------------------------------------------------------------
# Database tier
# ---------------------------------------------------------------------------

def stop_backend(store, app: VisitorsApp) -> Optional[Outcome]:
    """
    Scale the backend workload to zero. A backend that does not exist yet,
    or is already at zero, needs no write. Returns a FATAL outcome on
    store failure, None otherwise.
    """
    name = workload_name(app.name, BACKEND)
    try:
        backend = store.get(DEPLOYMENT, app.namespace, name)
    except NotFound:
        logger.info(f"Backend {app.namespace}/{name} not created yet, nothing to stop")
        return None
    except OperatorError as e:
        logger.error(f"Failed to get Deployment {app.namespace}/{name}: {e}")
        return Outcome.fatal(e)

    if backend.spec.replicas == 0:
        return None
    backend.spec.replicas = 0
    try:
        store.update(backend)
    except OperatorError as e:
        logger.error(f"Failed to stop backend {app.namespace}/{name}: {e}")
        return Outcome.fatal(e)
    logger.warning(f"Backend {app.namespace}/{name} scaled to 0 ahead of a storage move")
    return None


def correct_database(store, app: VisitorsApp, cfg: Settings = default_settings) -> Outcome:
    """Priority: image, storage path, root password."""
    try:
        dep = _observe(store, DEPLOYMENT, app.namespace, workload_name(app.name, DATABASE), cfg)
    except _Stop as stop:
        return stop.outcome

    spec = app.spec
    if _container(dep).image != spec.database_image:
        _container(dep).image = spec.database_image
        return _apply(store, dep, DATABASE, "image")

    if _storage_path(dep) != spec.database_storage_path:
        failed = stop_backend(store, app)
        if failed is not None:
            return failed
        _set_storage_path(dep, spec.database_storage_path)
        return _apply(store, dep, DATABASE, "storagePath")

    if _env_value(dep, builders.ROOT_PASSWORD_ENV) != spec.database_root_password:
        _set_env_value(dep, builders.ROOT_PASSWORD_ENV, spec.database_root_password)
        return _apply(store, dep, DATABASE, "rootPassword")

    return Outcome.proceed()


# ---------------------------------------------------------------------------
# Backend tier
# ---------------------------------------------------------------------------

def correct_backend(store, app: VisitorsApp, cfg: Settings = default_settings) -> Outcome:
    """
    Priority: replica count, node port. A backend stopped for a storage
    move stays at zero until the database has finished rolling out onto
    the new path.
    """
    try:
        dep = _observe(store, DEPLOYMENT, app.namespace, workload_name(app.name, BACKEND), cfg)
        svc = _observe(store, SERVICE, app.namespace, service_name(app.name, BACKEND), cfg)
    except _Stop as stop:
        return stop.outcome

    spec = app.spec
    if dep.spec.replicas == 0 and not database_settled(store, app):
        logger.info(f"Backend {app.namespace}/{dep.metadata.name} held at 0 while the database rolls out")
        return Outcome.requeue_after(
            cfg.REQUEUE_DELAY, reason="Backend held at 0 replicas until the database rollout completes"
        )

    if dep.spec.replicas != spec.backend_size:
        dep.spec.replicas = spec.backend_size
        return _apply(store, dep, BACKEND, "replicas")

    if _node_port(svc) != spec.backend_service_node_port:
        _set_node_port(svc, spec.backend_service_node_port)
        return _apply(store, svc, BACKEND, "nodePort")

    return Outcome.proceed()


# ---------------------------------------------------------------------------
# Frontend tier
# ---------------------------------------------------------------------------

def correct_frontend(store, app: VisitorsApp, cfg: Settings = default_settings) -> Outcome:
    """
    Priority: title, replica count, node port. Replica count is left alone
    when autoscaling is on; the autoscaler owns that field.
    """
    try:
        dep = _observe(store, DEPLOYMENT, app.namespace, workload_name(app.name, FRONTEND), cfg)
        svc = _observe(store, SERVICE, app.namespace, service_name(app.name, FRONTEND), cfg)
    except _Stop as stop:
        return stop.outcome

    spec = app.spec
    if (_env_value(dep, builders.TITLE_ENV) or "") != spec.frontend_title:
        _set_env_value(dep, builders.TITLE_ENV, spec.frontend_title)
        return _apply(store, dep, FRONTEND, "title")

    if not spec.frontend_auto_scaling and dep.spec.replicas != spec.frontend_size:
        dep.spec.replicas = spec.frontend_size
        return _apply(store, dep, FRONTEND, "replicas")

    if _node_port(svc) != spec.frontend_service_node_port:
        _set_node_port(svc, spec.frontend_service_node_port)
        return _apply(store, svc, FRONTEND, "nodePort")

    return Outcome.proceed()
