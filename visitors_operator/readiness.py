import logging

from visitors_operator.errors import NotFound, OperatorError
from visitors_operator.models import VisitorsApp
from visitors_operator.naming import DATABASE, workload_name
from visitors_operator.store import DEPLOYMENT

logger = logging.getLogger("visitors_operator.readiness")


def database_ready(store, app: VisitorsApp) -> bool:
    """True once the database workload reports at least one ready replica."""
    name = workload_name(app.name, DATABASE)
    try:
        dep = store.get(DEPLOYMENT, app.namespace, name)
    except NotFound:
        logger.info(f"Database {app.namespace}/{name} not found")
        return False
    except OperatorError as e:
        logger.warning(f"Database {app.namespace}/{name} readiness unknown: {e}")
        return False

    ready = (dep.status.ready_replicas or 0) if dep.status else 0
    return ready >= 1


def rollout_complete(dep) -> bool:
    """
    Same test as `kubectl rollout status`: the controller has observed the
    latest template, every desired replica runs it, no old replicas remain
    and the updated ones are available.
    """
    status = dep.status
    if status is None:
        return False
    if (status.observed_generation or 0) < (dep.metadata.generation or 0):
        return False
    desired = dep.spec.replicas if dep.spec.replicas is not None else 1
    updated = status.updated_replicas or 0
    if updated < desired:
        return False
    if (status.replicas or 0) > updated:
        return False
    return (status.available_replicas or 0) >= updated


def database_settled(store, app: VisitorsApp) -> bool:
    """True once the database workload has finished rolling out its current template."""
    name = workload_name(app.name, DATABASE)
    try:
        dep = store.get(DEPLOYMENT, app.namespace, name)
    except OperatorError as e:
        logger.warning(f"Database {app.namespace}/{name} rollout state unknown: {e}")
        return False
    return rollout_complete(dep)
