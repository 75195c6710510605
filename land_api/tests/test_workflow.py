# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the approval state machine: transition rules, decision guards
and concurrent decisions.
"""

import threading

import pytest

from land_api.domain import workflow
from land_api.domain.errors import (
    AlreadyResolved, ApplicationNotFound, InvalidDecision, MissingReason
)
from land_api.models.enums import ApplicationStatus, ApplicationType, DecisionAction
from land_api.services.applications import ApplicationService
from land_api.services.mongodb import APPLICATIONS_COLLECTION
from land_api.services.redis import RedisService

from conftest import ADMIN_ID, CITIZEN_ID, full_uploads, valid_fields


class TestTransitionRules:
    """Test pure workflow rules."""

    def test_only_pending_has_transitions(self):
        assert workflow.can_transition(ApplicationStatus.PENDING, ApplicationStatus.APPROVED)
        assert workflow.can_transition(ApplicationStatus.PENDING, ApplicationStatus.REJECTED)
        for terminal in (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED):
            for target in ApplicationStatus:
                assert not workflow.can_transition(terminal, target)

    def test_parse_decision(self):
        assert workflow.parse_decision("Approved") == DecisionAction.APPROVE
        assert workflow.parse_decision("Reject") == DecisionAction.REJECT
        with pytest.raises(InvalidDecision):
            workflow.parse_decision("Pending")
        with pytest.raises(InvalidDecision):
            workflow.parse_decision(None)

    def test_normalize_reason(self):
        assert workflow.normalize_reason(DecisionAction.REJECT, "  forged deed ") == "forged deed"
        assert workflow.normalize_reason(DecisionAction.APPROVE, "ignored") is None
        with pytest.raises(MissingReason):
            workflow.normalize_reason(DecisionAction.REJECT, "   ")

    def test_ensure_transition(self):
        workflow.ensure_transition("Pending", DecisionAction.APPROVE)
        workflow.ensure_transition("Pending", DecisionAction.REJECT)
        with pytest.raises(AlreadyResolved) as exc_info:
            workflow.ensure_transition("Approved", DecisionAction.REJECT)
        assert exc_info.value.current_status == "Approved"
        with pytest.raises(AlreadyResolved):
            workflow.ensure_transition("Rejected", DecisionAction.REJECT)


class TestDecide:
    """Test ApplicationService.decide against the store."""

    def test_approve_sets_decision_fields(self, application_service, submit_application):
        application = submit_application()

        decided = application_service.decide(application.id, "Approved", actor=ADMIN_ID)

        assert decided.status == "Approved"
        assert decided.decided_by == ADMIN_ID
        assert decided.decision_date is not None
        assert decided.rejection_reason is None

    def test_reject_records_reason(self, application_service, submit_application):
        application = submit_application()

        decided = application_service.decide(
            application.id, DecisionAction.REJECT, actor=ADMIN_ID, reason=" Survey plan is illegible "
        )

        assert decided.status == "Rejected"
        assert decided.rejection_reason == "Survey plan is illegible"

    def test_reject_without_reason_leaves_status(self, application_service, submit_application):
        application = submit_application()

        with pytest.raises(MissingReason):
            application_service.decide(application.id, "Rejected", actor=ADMIN_ID, reason="")

        assert application_service.get(application.id).status == "Pending"
        assert application_service.audit_trail(application.id) == []

    def test_terminal_status_is_stable(self, application_service, submit_application):
        """Every further decision on a resolved application is refused."""
        application = submit_application()
        application_service.decide(application.id, "Approved", actor=ADMIN_ID)
        before = application_service.get(application.id)

        for action, reason in (("Approved", None), ("Rejected", "late"), ("Rejected", "")):
            with pytest.raises(AlreadyResolved) as exc_info:
                application_service.decide(application.id, action, actor="admin-2", reason=reason)
            assert exc_info.value.current_status == "Approved"

        after = application_service.get(application.id)
        assert after.status == before.status
        assert after.decision_date == before.decision_date
        assert after.decided_by == ADMIN_ID

    def test_unknown_application(self, application_service):
        with pytest.raises(ApplicationNotFound):
            application_service.decide("507f1f77bcf86cd799439011", "Approved", actor=ADMIN_ID)
        with pytest.raises(ApplicationNotFound):
            application_service.decide("not-an-id", "Approved", actor=ADMIN_ID)

    def test_invalid_status_requested(self, application_service, submit_application):
        application = submit_application()
        with pytest.raises(InvalidDecision):
            application_service.decide(application.id, "Pending", actor=ADMIN_ID)

    def test_sequential_race_second_decision_loses(self, application_service, submit_application, mongodb_service):
        """The second of two decisions sees a non-Pending record and changes nothing."""
        application = submit_application()

        application_service.decide(application.id, "Rejected", actor="admin-a", reason="Missing stamp")
        with pytest.raises(AlreadyResolved):
            application_service.decide(application.id, "Approved", actor="admin-b")

        stored = mongodb_service.find_one(APPLICATIONS_COLLECTION, application.id)
        assert stored["status"] == "Rejected"
        assert stored["decidedBy"] == "admin-a"

    def test_concurrent_approve_and_reject(self, application_service, submit_application):
        """Exactly one of two concurrent decisions wins."""
        application = submit_application(ApplicationType.BUILDING_PERMISSION)
        barrier = threading.Barrier(2)
        outcomes = {}

        def decide(name, action, reason):
            barrier.wait()
            try:
                outcomes[name] = application_service.decide(
                    application.id, action, actor=name, reason=reason
                ).status
            except AlreadyResolved as e:
                outcomes[name] = e

        threads = [
            threading.Thread(target=decide, args=("admin-a", "Approved", None)),
            threading.Thread(target=decide, args=("admin-b", "Rejected", "Flood zone")),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        winners = [name for name, outcome in outcomes.items() if isinstance(outcome, str)]
        losers = [name for name, outcome in outcomes.items() if isinstance(outcome, AlreadyResolved)]
        assert len(winners) == 1
        assert len(losers) == 1

        final = application_service.get(application.id)
        assert final.status == outcomes[winners[0]]
        assert final.decided_by == winners[0]
        assert outcomes[losers[0]].current_status == final.status
        assert len(application_service.audit_trail(application.id)) == 1


class DictRedisClient:
    """Just enough of a Redis client for the counts cache."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value
        return True

    def setex(self, key, ttl, value):
        self.data[key] = value
        return True

    def delete(self, key):
        return int(self.data.pop(key, None) is not None)

    def incr(self, key):
        value = int(self.data.get(key, 0)) + 1
        self.data[key] = str(value)
        return value


class TestStatusCountsCache:
    """Cached counts never outlive a decision."""

    @pytest.fixture
    def cached_service(self, mongodb_service, document_store, audit_service):
        return ApplicationService(
            mongodb_service, document_store, audit_service,
            redis_service=RedisService("redis://localhost:6379", client=DictRedisClient())
        )

    def test_counts_are_cached(self, cached_service, mongodb_service, monkeypatch):
        cached_service.status_counts()

        def fail(*args, **kwargs):
            raise AssertionError("aggregation should be served from cache")

        monkeypatch.setattr(mongodb_service, "aggregate", fail)
        assert cached_service.status_counts()["total"] == 0

    def test_decision_during_aggregation_is_not_hidden(self, cached_service, mongodb_service, monkeypatch):
        application = cached_service.submit(
            ApplicationType.TRANSFER_LAND,
            valid_fields(ApplicationType.TRANSFER_LAND),
            full_uploads(ApplicationType.TRANSFER_LAND),
            submitted_by=CITIZEN_ID
        )
        real_aggregate = mongodb_service.aggregate

        def aggregate_then_decide(collection, pipeline):
            rows = real_aggregate(collection, pipeline)
            monkeypatch.setattr(mongodb_service, "aggregate", real_aggregate)
            cached_service.decide(application.id, "Approved", actor=ADMIN_ID)
            return rows

        monkeypatch.setattr(mongodb_service, "aggregate", aggregate_then_decide)
        before = cached_service.status_counts()
        assert before["pending"] == 1

        after = cached_service.status_counts()
        assert after["pending"] == 0
        assert after["approved"] == 1
