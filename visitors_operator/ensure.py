"""
Idempotent create-if-absent for child objects.
"""
import logging
from typing import Any

from visitors_operator.errors import AlreadyExists, NotFound, OperatorError
from visitors_operator.metrics import CHILDREN_CREATED
from visitors_operator.outcome import Outcome
from visitors_operator.store import kind_of

logger = logging.getLogger("visitors_operator.ensure")


def ensure_exists(store, desired: Any) -> Outcome:
    """
    Look the desired object up by its deterministic name and create it if
    absent. An existing object is left untouched; drift is a separate step.

    Lookup errors other than NotFound never lead to a create.
    """
    kind = kind_of(desired)
    namespace, name = desired.metadata.namespace, desired.metadata.name
    tier = (desired.metadata.labels or {}).get("tier", "")

    try:
        store.get(kind, namespace, name)
        return Outcome.proceed()
    except NotFound:
        pass
    except OperatorError as e:
        logger.error(f"Failed to get {kind} {namespace}/{name}: {e}")
        return Outcome.fatal(e)

    logger.info(f"Creating a new {kind} {namespace}/{name}")
    try:
        store.create(desired)
    except AlreadyExists:
        logger.info(f"{kind} {namespace}/{name} was created concurrently")
        return Outcome.proceed()
    except OperatorError as e:
        logger.error(f"Failed to create new {kind} {namespace}/{name}: {e}")
        return Outcome.fatal(e)

    CHILDREN_CREATED.labels(kind=kind, tier=tier).inc()
    return Outcome.proceed()
