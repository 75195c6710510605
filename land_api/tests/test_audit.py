# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the audit trail and for decisions whose audit write fails.
"""

from unittest.mock import patch

import pytest

from land_api.domain.errors import ApplicationNotFound, MissingField, PersistenceError
from land_api.models.enums import AuditAction
from land_api.services.mongodb import APPLICATIONS_COLLECTION, AUDIT_COLLECTION

from conftest import ADMIN_ID


class TestAuditTrailService:
    """Test AuditTrailService."""

    def test_append_and_list_oldest_first(self, audit_service, submit_application):
        application = submit_application()

        first = audit_service.append(application.id, ADMIN_ID, AuditAction.NOTE, note="Called the owner")
        second = audit_service.append(application.id, ADMIN_ID, AuditAction.NOTE, note="Owner confirmed")

        entries = audit_service.list_for_application(application.id)
        assert [entry.id for entry in entries] == [first, second]
        assert entries[0].note == "Called the owner"
        assert entries[0].action == "note"

    def test_entries_scoped_to_application(self, audit_service, submit_application):
        first = submit_application()
        other = submit_application()
        audit_service.append(first.id, ADMIN_ID, AuditAction.NOTE, note="first")

        assert audit_service.list_for_application(other.id) == []

    def test_append_records_request_context(self, audit_service, admin_context, mongodb_service):
        admin_context.ip_address = "10.0.0.8"

        audit_service.append("app-1", ADMIN_ID, AuditAction.NOTE, note="n", user_context=admin_context)

        stored = mongodb_service.get_collection(AUDIT_COLLECTION).find_one({"applicationId": "app-1"})
        assert stored["ipAddress"] == "10.0.0.8"
        assert stored["actor"] == ADMIN_ID

    def test_write_failure_raises_persistence_error(self, audit_service, mongodb_service):
        with patch.object(mongodb_service, "create", side_effect=RuntimeError("disk full")):
            with pytest.raises(PersistenceError):
                audit_service.append("app-1", ADMIN_ID, AuditAction.NOTE, note="n")


class TestDecisionAudit:
    """Decisions and their audit entries commit together."""

    def test_decision_writes_one_entry(self, application_service, submit_application):
        application = submit_application()

        application_service.decide(application.id, "Rejected", actor=ADMIN_ID, reason="Unpaid tax")

        entries = application_service.audit_trail(application.id)
        assert len(entries) == 1
        entry = entries[0]
        assert entry.action == "reject"
        assert entry.before_status == "Pending"
        assert entry.after_status == "Rejected"
        assert entry.note == "Unpaid tax"
        assert entry.decision_id == application_service.get(application.id).decision_id

    def test_audit_failure_rolls_back_decision(self, application_service, audit_service, submit_application,
                                               mongodb_service):
        """A decision without its audit entry is reverted to Pending."""
        application = submit_application()

        with patch.object(audit_service, "append", side_effect=PersistenceError("audit down")):
            with pytest.raises(PersistenceError):
                application_service.decide(application.id, "Approved", actor=ADMIN_ID)

        stored = mongodb_service.find_one(APPLICATIONS_COLLECTION, application.id)
        assert stored["status"] == "Pending"
        assert stored["decisionDate"] is None
        assert stored["decidedBy"] is None
        assert stored["decisionId"] is None

        # The application can still be decided afterwards
        decided = application_service.decide(application.id, "Approved", actor=ADMIN_ID)
        assert decided.status == "Approved"

    def test_rollback_only_reverts_own_decision(self, application_service, mongodb_service, submit_application):
        """A revert scoped to a stale decision id leaves the record alone."""
        application = submit_application()
        application_service.decide(application.id, "Approved", actor=ADMIN_ID)

        application_service._revert_decision(application.id, "some-other-decision")

        assert mongodb_service.find_one(APPLICATIONS_COLLECTION, application.id)["status"] == "Approved"

    def test_update_failure_is_persistence_error(self, application_service, mongodb_service, submit_application):
        application = submit_application()

        with patch.object(mongodb_service, "conditional_update", side_effect=RuntimeError("timeout")):
            with pytest.raises(PersistenceError):
                application_service.decide(application.id, "Approved", actor=ADMIN_ID)

        assert application_service.get(application.id).status == "Pending"


class TestNotes:
    def test_add_note(self, application_service, submit_application):
        application = submit_application()

        application_service.add_note(application.id, ADMIN_ID, "  Site visit booked ")

        entries = application_service.audit_trail(application.id)
        assert entries[0].note == "Site visit booked"
        assert entries[0].before_status == entries[0].after_status == "Pending"

    def test_blank_note_rejected(self, application_service, submit_application):
        application = submit_application()
        with pytest.raises(MissingField):
            application_service.add_note(application.id, ADMIN_ID, "   ")

    def test_note_requires_application(self, application_service):
        with pytest.raises(ApplicationNotFound):
            application_service.add_note("507f1f77bcf86cd799439011", ADMIN_ID, "note")
