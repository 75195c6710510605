# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Audit trail service for land application decisions and admin notes.

Entries are append-only: the service exposes no update or delete operations.
"""

import logging
from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from opentelemetry import trace

from ..domain.errors import PersistenceError
from ..models.entities import AuditEntry, UserContext
from ..models.enums import AuditAction, ApplicationStatus
from .mongodb import MongoDBService, AUDIT_COLLECTION

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class AuditTrailService:
    """Service for the per-application audit trail with MongoDB persistence."""

    def __init__(self, mongo_service: MongoDBService):
        """Initialize audit service with MongoDB dependency."""
        self.mongo_service = mongo_service
        self.collection_name = AUDIT_COLLECTION
        logger.info("Audit trail service initialized")

    def append(
        self,
        application_id: str,
        actor: str,
        action: AuditAction,
        note: Optional[str] = None,
        timestamp: Optional[datetime] = None,
        before_status: Optional[ApplicationStatus] = None,
        after_status: Optional[ApplicationStatus] = None,
        decision_id: Optional[str] = None,
        user_context: Optional[UserContext] = None
    ) -> str:
        """
        Append an audit trail entry with trace correlation.

        Args:
            application_id: Application the entry belongs to
            actor: ID of user performing the action
            action: Action being recorded
            note: Decision reason or free-text note
            timestamp: Entry timestamp (defaults to now)
            before_status: Status before the action
            after_status: Status after the action
            decision_id: Token of the decision being recorded
            user_context: Request context for IP and user agent

        Returns:
            str: ID of the created audit entry

        Raises:
            PersistenceError: If the entry could not be written
        """
        with tracer.start_as_current_span("audit.append") as span:
            span_context = span.get_span_context()

            entry = AuditEntry(
                application_id=application_id,
                actor=actor,
                action=action,
                note=note,
                timestamp=timestamp or datetime.utcnow(),
                before_status=before_status,
                after_status=after_status,
                decision_id=decision_id,
            )

            if span_context.is_valid:
                entry.trace_id = format(span_context.trace_id, "032x")
                entry.span_id = format(span_context.span_id, "016x")

            if user_context:
                entry.ip_address = user_context.ip_address
                entry.user_agent = user_context.user_agent

            span.set_attributes({
                "audit.action": entry.action,
                "audit.actor": actor,
                "audit.application_id": application_id
            })

            document = {
                "_id": ObjectId(entry.id),
                "applicationId": entry.application_id,
                "actor": entry.actor,
                "action": entry.action,
                "note": entry.note,
                "timestamp": entry.timestamp,
                "beforeStatus": entry.before_status,
                "afterStatus": entry.after_status,
                "decisionId": entry.decision_id,
                "traceId": entry.trace_id,
                "spanId": entry.span_id,
                "ipAddress": entry.ip_address,
                "userAgent": entry.user_agent,
                "schemaVersion": 1
            }

            try:
                audit_id = self.mongo_service.create(self.collection_name, document)
            except Exception as e:
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.error(
                    "Failed to create audit trail entry",
                    extra={
                        "application_id": application_id,
                        "action": entry.action,
                        "actor": actor,
                        "error": str(e)
                    },
                    exc_info=True
                )
                raise PersistenceError("Failed to write audit trail entry") from e

            logger.info(
                "Audit trail entry created",
                extra={
                    "audit_id": audit_id,
                    "application_id": application_id,
                    "action": entry.action,
                    "actor": actor,
                    "trace_id": entry.trace_id,
                    "audit_category": "land_workflow"
                }
            )
            return audit_id

    def list_for_application(self, application_id: str) -> List[AuditEntry]:
        """
        Audit entries for one application, oldest first.

        Args:
            application_id: Application ID

        Returns:
            Entries ordered by timestamp ascending
        """
        with tracer.start_as_current_span("audit.list_for_application") as span:
            span.set_attribute("audit.application_id", application_id)
            documents = self.mongo_service.find(
                self.collection_name,
                {"applicationId": application_id},
                sort_by="timestamp"
            )
            span.set_attribute("audit.entries", len(documents))
            return [AuditEntry.from_document(doc) for doc in documents]
