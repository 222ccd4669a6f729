"""
Status reporting — writes the images the reconciler actually ensured back
onto the VisitorsApp, plus the condition helpers used by the kopf layer.
"""
import logging
from datetime import datetime, timezone

from visitors_operator.errors import OperatorError
from visitors_operator.models import VisitorsApp
from visitors_operator.outcome import Outcome

logger = logging.getLogger("visitors_operator.status")


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def report_image(store, app: VisitorsApp, field: str, image: str) -> Outcome:
    """
    Record an observed image on the status. The write happens on every pass,
    so a status that lags behind the spec means the apply did not land.
    """
    setattr(app.status, field, image)
    try:
        store.update_status(app)
    except OperatorError as e:
        logger.error(f"Failed to update status of VisitorsApp {app.namespace}/{app.name}: {e}")
        return Outcome.fatal(e)
    return Outcome.proceed()


def set_condition(conditions: list, ctype: str, status: str, reason: str, message: str):
    """Upsert a condition in a conditions list."""
    for c in conditions:
        if c.get("type") == ctype:
            if c.get("status") != status:
                c["lastTransitionTime"] = _now()
            c["status"] = status
            c["reason"] = reason
            c["message"] = message
            return
    conditions.append({
        "type": ctype,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": _now(),
    })
