# SPDX-License-Identifier: Apache-2.0

"""
Land application service.

Owns intake, the approval state machine and application queries. Decisions
are committed with a conditional update on status=Pending, so concurrent
decisions on one application produce exactly one winner without any
in-process locking.
"""

import logging
import re
import uuid
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from bson import ObjectId
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..domain import applications as intake
from ..domain import workflow
from ..domain.documents import MAX_DOCUMENT_BYTES, UploadedDocument, document_listing
from ..domain.errors import (
    AccessDenied, AlreadyResolved, ApplicationNotFound, DocumentNotFound,
    MissingField, MissingReason, PersistenceError
)
from ..models.entities import LandApplication, StoredDocument, UserContext
from ..models.enums import ApplicationStatus, AuditAction, DecisionAction, Permission
from ..models.requests import ApplicationFilters
from .audit import AuditTrailService
from .documents import DocumentContent, DocumentStore
from .mongodb import MongoDBService, PaginationResult, APPLICATIONS_COLLECTION

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

STATUS_COUNTS_CACHE_KEY = "land:applications:status_counts"
STATUS_COUNTS_GENERATION_KEY = "land:applications:status_counts:generation"


class ApplicationService:
    """Service for land application intake, decisions and queries."""

    def __init__(
        self,
        mongo_service: MongoDBService,
        document_store: DocumentStore,
        audit_service: AuditTrailService,
        redis_service=None,
        max_document_bytes: int = MAX_DOCUMENT_BYTES,
        counts_cache_ttl: int = 60
    ):
        self.mongo_service = mongo_service
        self.document_store = document_store
        self.audit_service = audit_service
        self.redis_service = redis_service
        self.max_document_bytes = max_document_bytes
        self.counts_cache_ttl = counts_cache_ttl
        self.collection_name = APPLICATIONS_COLLECTION

    # Intake

    def submit(
        self,
        application_type: Any,
        fields: Mapping[str, Any],
        uploads: Mapping[str, UploadedDocument],
        submitted_by: str
    ) -> LandApplication:
        """
        Validate and persist a new land application in Pending state.

        Documents are stored only after validation passes. If any store or the
        record insert fails, every document stored for this submission is
        deleted again.

        Args:
            application_type: Application type (wire value or enum)
            fields: Descriptive form fields keyed by wire name
            uploads: Uploaded documents keyed by document kind
            submitted_by: Citizen user ID

        Returns:
            The persisted Pending application

        Raises:
            ValidationError: If fields or documents are missing or invalid
            PersistenceError: If storage failed; nothing is left behind
        """
        with tracer.start_as_current_span("applications.submit") as span:
            application_type = intake.parse_application_type(application_type)
            span.set_attributes({
                "application.type": application_type.value,
                "application.documents": len(uploads),
                "user.id": submitted_by
            })

            validation = intake.validate_submission(
                application_type, fields, uploads, self.max_document_bytes
            )
            if not validation.is_valid:
                span.set_status(Status(StatusCode.ERROR, "Validation failed"))
                logger.warning(
                    "Land application rejected by validation",
                    extra={
                        "application_type": application_type.value,
                        "user_id": submitted_by,
                        "validation_errors": [e.message for e in validation.errors]
                    }
                )
                validation.raise_for_errors()

            stored: Dict[str, StoredDocument] = {}
            try:
                for kind, upload in uploads.items():
                    stored[kind] = self.document_store.store(upload)

                application = intake.build_application(
                    application_type, fields, stored, submitted_by
                )
                document = application.to_document()
                document["_id"] = ObjectId(application.id)
                self.mongo_service.create(self.collection_name, document)

            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                self._discard_documents(stored)
                logger.error(
                    "Failed to persist land application",
                    extra={
                        "application_type": application_type.value,
                        "user_id": submitted_by,
                        "stored_documents": len(stored),
                        "error": str(e)
                    },
                    exc_info=True
                )
                if isinstance(e, PersistenceError):
                    raise
                raise PersistenceError("Failed to persist land application") from e

            self._invalidate_status_counts()
            span.set_attribute("application.id", application.id)
            logger.info(
                "Land application submitted",
                extra={
                    "application_id": application.id,
                    "application_type": application_type.value,
                    "user_id": submitted_by
                }
            )
            return application

    def _discard_documents(self, stored: Mapping[str, StoredDocument]) -> None:
        for kind, document in stored.items():
            try:
                self.document_store.delete(document.handle)
            except Exception as e:
                logger.error(
                    "Failed to clean up stored document",
                    extra={"document_kind": kind, "handle": document.handle, "error": str(e)}
                )

    # Decisions

    def decide(
        self,
        application_id: str,
        action: Any,
        actor: str,
        reason: Optional[str] = None,
        user_context: Optional[UserContext] = None
    ) -> LandApplication:
        """
        Apply an admin decision to a Pending application.

        Args:
            application_id: Application ID
            action: DecisionAction or target status ("Approved"/"Rejected")
            actor: Admin user ID
            reason: Rejection reason (required for rejections)
            user_context: Request context recorded in the audit entry

        Returns:
            The decided application

        Raises:
            ApplicationNotFound: If no application has this ID
            AlreadyResolved: If the application is no longer Pending
            MissingReason: If a rejection has no reason
            InvalidDecision: If the action is not Approve or Reject
            PersistenceError: If the decision could not be committed with its audit entry
        """
        with tracer.start_as_current_span("applications.decide") as span:
            span.set_attributes({
                "application.id": application_id,
                "decision.actor": actor
            })

            action = workflow.parse_decision(action)
            span.set_attribute("decision.action", action.value)

            try:
                clean_reason = workflow.normalize_reason(action, reason)
            except MissingReason:
                # A resolved application reports AlreadyResolved regardless of the reason
                current = self.get(application_id)
                workflow.ensure_transition(current.status, action)
                span.set_status(Status(StatusCode.ERROR, "Missing rejection reason"))
                raise

            decided_at = datetime.utcnow()
            decision_id = uuid.uuid4().hex

            try:
                committed = self.mongo_service.conditional_update(
                    self.collection_name,
                    application_id,
                    {"status": ApplicationStatus.PENDING.value},
                    {"$set": workflow.decision_update(action, actor, clean_reason, decided_at, decision_id)}
                )
            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise PersistenceError("Failed to record decision") from e

            if not committed:
                current = self.get(application_id)
                span.set_attributes({
                    "decision.result": "already_resolved",
                    "application.status": current.status
                })
                logger.info(
                    "Decision lost: application already resolved",
                    extra={
                        "application_id": application_id,
                        "actor": actor,
                        "requested_action": action.value,
                        "current_status": current.status
                    }
                )
                raise AlreadyResolved(current.status)

            try:
                self.audit_service.append(
                    application_id=application_id,
                    actor=actor,
                    action=AuditAction.APPROVE if action == DecisionAction.APPROVE else AuditAction.REJECT,
                    note=clean_reason,
                    timestamp=decided_at,
                    before_status=ApplicationStatus.PENDING,
                    after_status=action.target_status,
                    decision_id=decision_id,
                    user_context=user_context
                )
            except PersistenceError as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, "Audit write failed"))
                self._revert_decision(application_id, decision_id)
                raise

            self._invalidate_status_counts()
            span.set_attribute("decision.result", "committed")
            logger.info(
                "Land application decided",
                extra={
                    "application_id": application_id,
                    "actor": actor,
                    "status": action.target_status.value,
                    "decision_id": decision_id
                }
            )
            return self.get(application_id)

    def _revert_decision(self, application_id: str, decision_id: str) -> None:
        """Return a decided record to Pending, scoped to the decision that wrote it."""
        try:
            reverted = self.mongo_service.conditional_update(
                self.collection_name,
                application_id,
                {"decisionId": decision_id},
                workflow.rollback_update(datetime.utcnow())
            )
        except Exception as e:
            logger.critical(
                "Failed to revert decision after audit failure",
                extra={"application_id": application_id, "decision_id": decision_id, "error": str(e)},
                exc_info=True
            )
            return

        if reverted:
            logger.warning(
                "Decision reverted after audit failure",
                extra={"application_id": application_id, "decision_id": decision_id}
            )
        else:
            logger.critical(
                "Decision to revert no longer present",
                extra={"application_id": application_id, "decision_id": decision_id}
            )

    # Notes and audit

    def add_note(
        self,
        application_id: str,
        actor: str,
        note: str,
        user_context: Optional[UserContext] = None
    ) -> str:
        """
        Append a free-text admin note to an application's audit trail.

        Raises:
            MissingField: If the note is blank
            ApplicationNotFound: If no application has this ID
        """
        text = (note or "").strip()
        if not text:
            raise MissingField("note")
        application = self.get(application_id)
        return self.audit_service.append(
            application_id=application.id,
            actor=actor,
            action=AuditAction.NOTE,
            note=text,
            before_status=application.status,
            after_status=application.status,
            user_context=user_context
        )

    def audit_trail(self, application_id: str):
        """Audit entries for an existing application, oldest first."""
        application = self.get(application_id)
        return self.audit_service.list_for_application(application.id)

    # Queries

    def get(self, application_id: str) -> LandApplication:
        """Load an application or raise ApplicationNotFound."""
        try:
            document = self.mongo_service.find_one(self.collection_name, application_id)
        except Exception as e:
            raise PersistenceError("Failed to load land application") from e
        if document is None:
            raise ApplicationNotFound(application_id)
        return LandApplication.from_document(document)

    def get_for_user(self, application_id: str, user_context: UserContext) -> LandApplication:
        """Load an application the caller owns or administers."""
        application = self.get(application_id)
        self._check_access(application, user_context)
        return application

    @staticmethod
    def _check_access(application: LandApplication, user_context: UserContext) -> None:
        if application.submitted_by == user_context.user_id:
            return
        if user_context.has_permission(Permission.LAND_ADMIN.value):
            return
        raise AccessDenied("Not authorized to view this application")

    @staticmethod
    def _build_query(filters: Optional[ApplicationFilters]) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if filters is None:
            return query
        if filters.status:
            query["status"] = filters.status
        if filters.application_type:
            query["applicationType"] = filters.application_type
        if filters.search:
            pattern = re.escape(filters.search)
            query["$or"] = [
                {"ownerName": {"$regex": pattern, "$options": "i"}},
                {"landLocation": {"$regex": pattern, "$options": "i"}},
                {"landType": {"$regex": pattern, "$options": "i"}},
            ]
        return query

    def list_applications(
        self,
        filters: Optional[ApplicationFilters] = None,
        page: int = 1,
        page_size: int = 20
    ) -> PaginationResult:
        """Page through all applications, newest first."""
        with tracer.start_as_current_span("applications.list") as span:
            query = self._build_query(filters)
            span.set_attributes({"query.page": page, "query.page_size": page_size})
            result = self.mongo_service.paginate(
                self.collection_name, query, page, page_size, sort_by="createdAt"
            )
            result.items = [LandApplication.from_document(doc) for doc in result.items]
            return result

    def list_for_user(
        self,
        user_id: str,
        filters: Optional[ApplicationFilters] = None,
        page: int = 1,
        page_size: int = 10
    ) -> PaginationResult:
        """Page through one citizen's applications, newest first."""
        with tracer.start_as_current_span("applications.list_for_user") as span:
            query = self._build_query(filters)
            query["submittedBy"] = user_id
            span.set_attribute("user.id", user_id)
            result = self.mongo_service.paginate(
                self.collection_name, query, page, page_size, sort_by="createdAt"
            )
            result.items = [LandApplication.from_document(doc) for doc in result.items]
            return result

    def _status_counts_key(self) -> str:
        # Writes bump the generation; counts computed before a write land
        # under the old key and are never read back.
        generation = self.redis_service.get(STATUS_COUNTS_GENERATION_KEY) or 0
        return f"{STATUS_COUNTS_CACHE_KEY}:{generation}"

    def status_counts(self) -> Dict[str, Any]:
        """Off-chain application counts by status and type."""
        cache_key = None
        if self.redis_service is not None:
            cache_key = self._status_counts_key()
            cached = self.redis_service.get(cache_key)
            if cached:
                return cached

        rows = self.mongo_service.aggregate(self.collection_name, [
            {"$group": {
                "_id": {"status": "$status", "applicationType": "$applicationType"},
                "count": {"$sum": 1}
            }}
        ])
        summary = intake.summarize_status_counts(rows)

        if cache_key is not None:
            self.redis_service.set(cache_key, summary, self.counts_cache_ttl)
        return summary

    def _invalidate_status_counts(self) -> None:
        if self.redis_service is None:
            return
        try:
            self.redis_service.incr(STATUS_COUNTS_GENERATION_KEY)
        except Exception as e:
            logger.warning(f"Failed to invalidate status counts cache: {e}")

    # Documents

    def document_listing(self, application: LandApplication):
        """Required documents for the application annotated with uploads."""
        return document_listing(application.application_type, application.documents)

    def open_document(
        self,
        application_id: str,
        kind: str,
        user_context: UserContext
    ) -> DocumentContent:
        """
        Open an uploaded document for download.

        Raises:
            ApplicationNotFound: If no application has this ID
            AccessDenied: If the caller neither owns nor administers it
            DocumentNotFound: If the kind was not uploaded or the blob is gone
        """
        with tracer.start_as_current_span("applications.open_document") as span:
            span.set_attributes({"application.id": application_id, "document.kind": kind})
            application = self.get_for_user(application_id, user_context)

            stored = application.documents.get(kind)
            if stored is None:
                raise DocumentNotFound(application_id, kind)

            content = self.document_store.fetch(stored.handle)
            if content is None:
                logger.error(
                    "Stored document missing from document store",
                    extra={"application_id": application_id, "document_kind": kind, "handle": stored.handle}
                )
                raise DocumentNotFound(application_id, kind)

            content.filename = stored.filename
            return content
