"""Tests for the kopf wiring: outcome translation and child nudges."""

import kopf
import pytest
from unittest.mock import Mock
from kubernetes.client import ApiException

from visitors_operator.errors import TransientStoreError, ValidationError
from visitors_operator.operator import CHILD_EVENT_ANNOTATION, nudge_owner, owner_of, settle
from visitors_operator.outcome import Outcome


@pytest.fixture
def patch():
    p = Mock()
    p.status = {}
    return p


@pytest.fixture
def events():
    return Mock()


def _settle(outcome, patch, events, status=None):
    settle(outcome, "default", "demo", status or {}, patch, events)


def test_done_marks_ready(patch, events):
    _settle(Outcome.done("All tiers converged"), patch, events)

    assert patch.status["phase"] == "Ready"
    (condition,) = patch.status["conditions"]
    assert condition["type"] == "Ready"
    assert condition["status"] == "True"
    events.publish.assert_called_once()


def test_waiting_is_informational(patch, events):
    with pytest.raises(kopf.TemporaryError) as exc:
        _settle(Outcome.requeue_after(5, "Waiting for the database to become ready"), patch, events)

    assert exc.value.delay == 5
    assert patch.status["phase"] == "Waiting"
    assert patch.status["conditions"][0]["reason"] == "Waiting"


def test_drift_requeues_immediately(patch, events):
    with pytest.raises(kopf.TemporaryError) as exc:
        _settle(Outcome.requeue_now("backend replicas corrected"), patch, events)

    assert exc.value.delay == 0
    assert patch.status["phase"] == "Progressing"


def test_store_error_is_retried_and_preserved(patch, events):
    error = TransientStoreError("Failed to create Deployment default/demo-backend: 403 Forbidden", status=403)

    with pytest.raises(kopf.TemporaryError) as exc:
        _settle(Outcome.fatal(error), patch, events)

    assert exc.value.__cause__ is error
    assert patch.status["phase"] == "Error"
    assert "403 Forbidden" in patch.status["message"]


def test_invalid_spec_is_permanent(patch, events):
    with pytest.raises(kopf.PermanentError):
        _settle(Outcome.fatal(ValidationError("backendSize must be >= 1")), patch, events)
    assert patch.status["phase"] == "Error"


def test_condition_is_updated_in_place(patch, events):
    status = {"conditions": [{"type": "Ready", "status": "False", "reason": "Waiting",
                              "message": "", "lastTransitionTime": "2020-01-01T00:00:00Z"}]}

    _settle(Outcome.done(), patch, events, status)

    (condition,) = patch.status["conditions"]
    assert condition["status"] == "True"
    assert condition["lastTransitionTime"] != "2020-01-01T00:00:00Z"


class TestNudge:

    def _body(self, owner="demo"):
        refs = [{"kind": "VisitorsApp", "name": owner}] if owner else []
        return {
            "kind": "Deployment",
            "metadata": {"name": "demo-backend", "resourceVersion": "42", "ownerReferences": refs},
        }

    def _memo(self):
        memo = Mock()
        memo.store.custom = Mock()
        return memo

    def test_owner_of(self):
        assert owner_of(self._body()) == "demo"
        assert owner_of(self._body(owner=None)) == ""

    def test_stamps_owner(self):
        memo = self._memo()

        nudge_owner({"type": "MODIFIED"}, self._body(), "default", memo=memo, logger=Mock())

        args = memo.store.custom.patch_namespaced_custom_object.call_args.args
        assert args[:5] == ("example.com", "v1beta1", "default", "visitorsapps", "demo")
        assert args[5] == {"metadata": {"annotations": {CHILD_EVENT_ANNOTATION: "Deployment/demo-backend@42"}}}

    def test_ignores_initial_listing_and_orphans(self):
        memo = self._memo()

        nudge_owner({"type": None}, self._body(), "default", memo=memo, logger=Mock())
        nudge_owner({"type": "ADDED"}, self._body(owner=None), "default", memo=memo, logger=Mock())

        memo.store.custom.patch_namespaced_custom_object.assert_not_called()

    def test_deleted_owner_is_ignored(self):
        memo = self._memo()
        memo.store.custom.patch_namespaced_custom_object.side_effect = ApiException(status=404)

        nudge_owner({"type": "DELETED"}, self._body(), "default", memo=memo, logger=Mock())
