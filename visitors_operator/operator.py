"""
VisitorsApp Operator — kopf wiring for the reconciler.

Registration:
  VisitorsApp (example.com/v1beta1) → create / update / resume / timer
      → one reconciliation pass per trigger
  Owned Secrets, Deployments, Services (label app=visitors) → any event
      → nudge the owning VisitorsApp so kopf schedules a pass for it

Outcome handling:
  Done          → phase Ready, no retry
  RequeueAfter  → phase Waiting (informational), TemporaryError(delay)
  RequeueNow    → phase Progressing, TemporaryError(delay=0)
  Fatal         → phase Error with the store error; retried unless the
                  spec itself is invalid (PermanentError)

On delete only the event stream is dropped: children carry owner references
and the API server garbage-collects them with their VisitorsApp.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import kopf
from kubernetes.client import ApiException

from visitors_operator.config import settings as cfg
from visitors_operator.errors import ValidationError
from visitors_operator.events import EventPublisher
from visitors_operator.metrics import RECONCILE_PASSES, start_exporter
from visitors_operator.outcome import Outcome, OutcomeKind
from visitors_operator.reconciler import VisitorsAppReconciler
from visitors_operator.status import set_condition
from visitors_operator.store import KubernetesStore

logger = logging.getLogger("visitors-operator")

# Outside the progress-storage prefix, so kopf counts it as a change.
CHILD_EVENT_ANNOTATION = f"visitors.{cfg.CRD_GROUP}/last-child-event"


@dataclass(frozen=True)
class WatchedResource:
    group: str
    version: str
    plural: str

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def selector(self) -> tuple:
        return (self.api_version, self.plural)


PARENT = WatchedResource(cfg.CRD_GROUP, cfg.CRD_VERSION, cfg.CRD_PLURAL)
OWNED = (
    WatchedResource("", "v1", "secrets"),
    WatchedResource("apps", "v1", "deployments"),
    WatchedResource("", "v1", "services"),
)
OWNED_LABELS = {"app": "visitors"}

PHASES = {
    OutcomeKind.DONE: ("Ready", "True", "Converged"),
    OutcomeKind.REQUEUE_AFTER: ("Waiting", "False", "Waiting"),
    OutcomeKind.REQUEUE_NOW: ("Progressing", "False", "DriftCorrected"),
    OutcomeKind.FATAL: ("Error", "False", "Error"),
}


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# ---------------------------------------------------------------------------
# Kopf operator settings
# ---------------------------------------------------------------------------

@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **kwargs):
    settings.posting.enabled = True
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(prefix=cfg.CRD_GROUP)
    settings.execution.max_workers = cfg.MAX_WORKERS

    memo.store = KubernetesStore(cfg=cfg)
    memo.reconciler = VisitorsAppReconciler(memo.store, cfg)
    memo.events = EventPublisher(cfg.REDIS_URL)
    start_exporter(cfg.METRICS_PORT)

    logger.info(
        f"VisitorsApp Operator started (max_workers={cfg.MAX_WORKERS}, "
        f"requeue_delay={cfg.REQUEUE_DELAY}s, resync={cfg.RESYNC_INTERVAL}s)"
    )


# ---------------------------------------------------------------------------
# Outcome → kopf
# ---------------------------------------------------------------------------

def settle(outcome: Outcome, namespace: str, name: str, status, patch, events: EventPublisher):
    """
    Record the pass outcome on the VisitorsApp status and translate it into
    kopf's retry protocol.
    """
    RECONCILE_PASSES.labels(outcome=outcome.kind.value).inc()
    phase, ready, reason = PHASES.get(outcome.kind, ("Progressing", "False", "Progressing"))
    message = outcome.reason or phase

    conditions = list((status or {}).get("conditions", []))
    set_condition(conditions, "Ready", ready, reason, message[:200])
    patch.status["phase"] = phase
    patch.status["message"] = message[:200]
    patch.status["conditions"] = conditions
    patch.status["lastUpdated"] = _now()
    events.publish(namespace, name, outcome.kind.value, message, phase)

    if outcome.kind is OutcomeKind.REQUEUE_AFTER:
        raise kopf.TemporaryError(message, delay=outcome.delay)
    if outcome.kind is OutcomeKind.REQUEUE_NOW:
        raise kopf.TemporaryError(message, delay=0)
    if outcome.kind is OutcomeKind.FATAL:
        if isinstance(outcome.error, ValidationError):
            raise kopf.PermanentError(message) from outcome.error
        raise kopf.TemporaryError(
            f"Reconcile failed: {outcome.error}", delay=cfg.ERROR_RETRY_DELAY
        ) from outcome.error


# ---------------------------------------------------------------------------
# VisitorsApp triggers
# ---------------------------------------------------------------------------

@kopf.on.create(*PARENT.selector)
@kopf.on.update(*PARENT.selector)
@kopf.on.resume(*PARENT.selector)
def reconcile_visitors_app(name, namespace, status, patch, memo: kopf.Memo, logger, **kwargs):
    """One reconciliation pass per create / update / resume of a VisitorsApp."""
    outcome = memo.reconciler.reconcile(namespace, name)
    logger.info(f"VisitorsApp {namespace}/{name}: {outcome.kind.value} {outcome.reason}")
    settle(outcome, namespace, name, status, patch, memo.events)


@kopf.timer(*PARENT.selector, interval=cfg.RESYNC_INTERVAL, idle=cfg.RESYNC_INTERVAL)
def resync_visitors_app(name, namespace, status, patch, memo: kopf.Memo, logger, **kwargs):
    """Periodic pass: catches drift on fields whose changes raise no event for us."""
    outcome = memo.reconciler.reconcile(namespace, name)
    settle(outcome, namespace, name, status, patch, memo.events)


@kopf.on.delete(*PARENT.selector, optional=True)
def forget_visitors_app(name, namespace, memo: kopf.Memo, logger, **kwargs):
    logger.info(f"VisitorsApp {namespace}/{name} deleted; children are garbage-collected")
    memo.events.forget(namespace, name)


# ---------------------------------------------------------------------------
# Owned children → nudge the owner
# ---------------------------------------------------------------------------

def owner_of(body) -> str:
    """Name of the VisitorsApp owning a child, from its owner reference."""
    for ref in body.get("metadata", {}).get("ownerReferences", []) or []:
        if ref.get("kind") == "VisitorsApp":
            return ref.get("name", "")
    return ""


def nudge_owner(event, body, namespace, memo: kopf.Memo, logger, **kwargs):
    """
    Stamp the owning VisitorsApp with the child's latest revision. The
    annotation change is seen by kopf as an update and schedules a pass.
    """
    if event.get("type") is None:
        # Initial listing; resume handlers already cover existing apps.
        return
    owner = owner_of(body)
    if not owner:
        return

    meta = body.get("metadata", {})
    stamp = f"{body.get('kind', '')}/{meta.get('name')}@{meta.get('resourceVersion', '')}"
    try:
        memo.store.custom.patch_namespaced_custom_object(
            cfg.CRD_GROUP, cfg.CRD_VERSION, namespace, cfg.CRD_PLURAL, owner,
            {"metadata": {"annotations": {CHILD_EVENT_ANNOTATION: stamp}}},
        )
    except ApiException as e:
        if e.status == 404:
            logger.debug(f"Owner {namespace}/{owner} gone; ignoring child event {stamp}")
            return
        raise


for _resource in OWNED:
    kopf.on.event(*_resource.selector, labels=OWNED_LABELS, id=f"nudge_owner/{_resource.plural}")(nudge_owner)
