"""Tests for the create-if-absent primitive."""

from visitors_operator import builders
from visitors_operator.ensure import ensure_exists
from visitors_operator.errors import AlreadyExists, TransientStoreError
from visitors_operator.outcome import OutcomeKind
from visitors_operator.store import DEPLOYMENT, SECRET


class TestEnsureExists:

    def test_creates_missing_object(self, store, app):
        outcome = ensure_exists(store, builders.database_secret(app))

        assert outcome.proceeds
        assert store.names(SECRET) == ["demo-database-auth"]
        assert store.writes == [("create", SECRET, "demo-database-auth")]

    def test_second_call_is_a_noop(self, store, app):
        desired = builders.backend_deployment(app)
        ensure_exists(store, desired)
        store.reset_writes()

        outcome = ensure_exists(store, desired)

        assert outcome.proceeds
        assert store.writes == []
        assert store.names(DEPLOYMENT) == ["demo-backend"]

    def test_existing_object_is_not_compared(self, store, app):
        ensure_exists(store, builders.backend_deployment(app))
        store.edit_spec(backendSize=5)
        changed = store.get("VisitorsApp", "default", "demo")
        store.reset_writes()

        assert ensure_exists(store, builders.backend_deployment(changed)).proceeds
        assert store.writes == []
        assert store.stored(DEPLOYMENT, "demo-backend").spec.replicas == 2

    def test_lookup_error_never_creates(self, store, app):
        error = TransientStoreError("apiserver unavailable", status=503)
        store.fail("get", SECRET, "demo-database-auth", error)

        outcome = ensure_exists(store, builders.database_secret(app))

        assert outcome.kind is OutcomeKind.FATAL
        assert outcome.error is error
        assert store.writes == []

    def test_create_failure_is_reported(self, store, app):
        error = TransientStoreError("forbidden", status=403)
        store.fail("create", DEPLOYMENT, "demo-database", error)

        outcome = ensure_exists(store, builders.database_deployment(app))

        assert outcome.kind is OutcomeKind.FATAL
        assert outcome.error is error

    def test_lost_create_race_counts_as_existing(self, store, app):
        store.fail("create", SECRET, "demo-database-auth", AlreadyExists("exists", status=409))

        assert ensure_exists(store, builders.database_secret(app)).proceeds
