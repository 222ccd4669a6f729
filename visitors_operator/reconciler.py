"""
VisitorsApp reconciler — drives one app's children toward its declared spec.

Pass layout:
  1. Fetch the VisitorsApp (gone → done; children are garbage-collected)
  2. Database tier: ensure secret, deployment, service → correct drift → status
  3. Gate on database readiness (not ready → retry after a fixed delay)
  4. Backend tier: ensure deployment, service → status → correct drift
  5. Frontend tier: ensure deployment, service → status → correct drift
  6. Done

The first step that does not return CONTINUE ends the pass. A drift
correction always ends it with RequeueNow, so a pass performs at most one
corrective write and the next pass starts again from a fresh read.
"""

import logging
from typing import Callable, Iterable

from visitors_operator import builders
from visitors_operator.config import Settings, settings as default_settings
from visitors_operator.drift import correct_backend, correct_database, correct_frontend
from visitors_operator.ensure import ensure_exists
from visitors_operator.errors import NotFound, OperatorError
from visitors_operator.models import VisitorsApp
from visitors_operator.outcome import Outcome
from visitors_operator.readiness import database_ready
from visitors_operator.status import report_image
from visitors_operator.store import VISITORS_APP

logger = logging.getLogger("visitors_operator.reconciler")

Step = Callable[[], Outcome]


def _run(steps: Iterable[Step]) -> Outcome:
    for step in steps:
        outcome = step()
        if not outcome.proceeds:
            return outcome
    return Outcome.proceed()


class VisitorsAppReconciler:
    """Runs reconciliation passes against an explicit store."""

    def __init__(self, store, cfg: Settings = default_settings):
        self.store = store
        self.settings = cfg

    def reconcile(self, namespace: str, name: str) -> Outcome:
        logger.info(f"[{namespace}/{name}] Reconciling VisitorsApp")

        try:
            app = self.store.get(VISITORS_APP, namespace, name)
        except NotFound:
            logger.info(f"[{namespace}/{name}] VisitorsApp not found, ignoring since it must be deleted")
            return Outcome.done(reason="VisitorsApp deleted")
        except OperatorError as e:
            logger.error(f"[{namespace}/{name}] Failed to get VisitorsApp: {e}")
            return Outcome.fatal(e)

        for tier in (self._database_tier, self._await_database, self._backend_tier, self._frontend_tier):
            outcome = tier(app)
            if not outcome.proceeds:
                return outcome

        logger.info(f"[{namespace}/{name}] All tiers converged")
        return Outcome.done(reason="All tiers converged")

    # -- tiers --------------------------------------------------------------

    def _ensure(self, *desired) -> list[Step]:
        return [lambda obj=obj: ensure_exists(self.store, obj) for obj in desired]

    def _database_tier(self, app: VisitorsApp) -> Outcome:
        # The secret goes first: the deployment references it.
        return _run(self._ensure(
            builders.database_secret(app),
            builders.database_deployment(app),
            builders.database_service(app),
        ) + [
            lambda: correct_database(self.store, app, self.settings),
            lambda: report_image(self.store, app, "database_image", app.spec.database_image),
        ])

    def _await_database(self, app: VisitorsApp) -> Outcome:
        if database_ready(self.store, app):
            return Outcome.proceed()
        delay = self.settings.REQUEUE_DELAY
        logger.info(f"[{app.namespace}/{app.name}] Database isn't running, waiting for {delay}s")
        return Outcome.requeue_after(delay, reason="Waiting for the database to become ready")

    def _backend_tier(self, app: VisitorsApp) -> Outcome:
        return _run(self._ensure(
            builders.backend_deployment(app, self.settings),
            builders.backend_service(app),
        ) + [
            lambda: report_image(self.store, app, "backend_image", self.settings.BACKEND_IMAGE),
            lambda: correct_backend(self.store, app, self.settings),
        ])

    def _frontend_tier(self, app: VisitorsApp) -> Outcome:
        return _run(self._ensure(
            builders.frontend_deployment(app, self.settings),
            builders.frontend_service(app),
        ) + [
            lambda: report_image(self.store, app, "frontend_image", self.settings.FRONTEND_IMAGE),
            lambda: correct_frontend(self.store, app, self.settings),
        ])
