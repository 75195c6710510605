# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Domain entity models for land applications, audit entries and ledger statistics.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from .base import BaseEntity, generate_object_id
from .enums import (
    ApplicationStatus, ApplicationType, LandType, AuditAction, DataFreshness
)


class StoredDocument(BaseModel):
    """Reference to an uploaded document held by the document store."""

    model_config = ConfigDict(populate_by_name=True)

    handle: str = Field(..., description="Opaque document store handle")
    filename: str = Field(..., description="Original filename")
    content_type: str = Field(..., alias="contentType", description="MIME type")
    size: int = Field(..., ge=0, description="Size in bytes")


class BuildingDetails(BaseModel):
    """Descriptive fields carried only by building permission requests."""

    model_config = ConfigDict(populate_by_name=True)

    purpose: str = Field(..., min_length=1, alias="buildingPurpose")
    size: str = Field(..., min_length=1, alias="buildingSize")
    estimated_cost: str = Field(..., min_length=1, alias="estimatedCost")


class LandApplication(BaseEntity):
    """Citizen land application tracked through the approval workflow."""

    application_type: ApplicationType = Field(..., description="Kind of land request")
    owner_name: str = Field(..., min_length=1, description="Registered owner name")
    land_location: str = Field(..., min_length=1, description="Parcel location")
    land_type: LandType = Field(..., description="Land use classification")
    building: Optional[BuildingDetails] = Field(None, description="Building permission details")
    additional_data: Dict[str, Any] = Field(default_factory=dict, description="Free-form client data")
    documents: Dict[str, StoredDocument] = Field(default_factory=dict, description="Uploaded documents by kind")
    status: ApplicationStatus = Field(default=ApplicationStatus.PENDING, description="Workflow status")
    rejection_reason: Optional[str] = Field(None, description="Reason given on rejection")
    submission_date: datetime = Field(default_factory=datetime.utcnow, description="Submission timestamp")
    decision_date: Optional[datetime] = Field(None, description="Decision timestamp")
    decided_by: Optional[str] = Field(None, description="Admin user ID who decided")
    decision_id: Optional[str] = Field(None, description="Token of the committed decision")
    submitted_by: str = Field(..., description="Citizen user ID who submitted")

    @field_validator('owner_name', 'land_location')
    @classmethod
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()

    @model_validator(mode='after')
    def validate_decision_fields(self):
        """Rejected records carry a reason; nothing else does."""
        if self.status == ApplicationStatus.REJECTED:
            if not self.rejection_reason or not self.rejection_reason.strip():
                raise ValueError('Rejected applications require a rejection reason')
        elif self.rejection_reason is not None:
            raise ValueError('Only rejected applications carry a rejection reason')
        return self

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the MongoDB document shape (camelCase keys)."""
        return {
            "applicationType": self.application_type,
            "ownerName": self.owner_name,
            "landLocation": self.land_location,
            "landType": self.land_type,
            "building": self.building.model_dump(by_alias=True) if self.building else None,
            "additionalData": self.additional_data,
            "documents": {
                kind: doc.model_dump(by_alias=True) for kind, doc in self.documents.items()
            },
            "status": self.status,
            "rejectionReason": self.rejection_reason,
            "submissionDate": self.submission_date,
            "decisionDate": self.decision_date,
            "decidedBy": self.decided_by,
            "decisionId": self.decision_id,
            "submittedBy": self.submitted_by,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "schemaVersion": self.schema_version,
        }

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "LandApplication":
        """Build an entity from a stored MongoDB document."""
        doc_id = document.get("_id", document.get("id"))
        return cls(
            id=str(doc_id),
            application_type=document["applicationType"],
            owner_name=document["ownerName"],
            land_location=document["landLocation"],
            land_type=document["landType"],
            building=document.get("building"),
            additional_data=document.get("additionalData") or {},
            documents=document.get("documents") or {},
            status=document.get("status", ApplicationStatus.PENDING.value),
            rejection_reason=document.get("rejectionReason"),
            submission_date=document["submissionDate"],
            decision_date=document.get("decisionDate"),
            decided_by=document.get("decidedBy"),
            decision_id=document.get("decisionId"),
            submitted_by=document["submittedBy"],
            created_at=document.get("createdAt", document["submissionDate"]),
            updated_at=document.get("updatedAt", document["submissionDate"]),
            schema_version=document.get("schemaVersion", 1),
        )

    def to_response(self) -> Dict[str, Any]:
        """JSON-friendly representation for API responses."""
        data = {
            "id": self.id,
            "applicationType": self.application_type,
            "ownerName": self.owner_name,
            "landLocation": self.land_location,
            "landType": self.land_type,
            "additionalData": self.additional_data,
            "documents": {
                kind: {
                    "filename": doc.filename,
                    "contentType": doc.content_type,
                    "size": doc.size
                }
                for kind, doc in self.documents.items()
            },
            "status": self.status,
            "rejectionReason": self.rejection_reason,
            "submissionDate": self.submission_date.isoformat(),
            "decisionDate": self.decision_date.isoformat() if self.decision_date else None,
            "decidedBy": self.decided_by,
            "submittedBy": self.submitted_by,
        }
        if self.building:
            data.update(self.building.model_dump(by_alias=True))
        return data


class AuditEntry(BaseModel):
    """Append-only audit trail record for a land application."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str = Field(default_factory=generate_object_id, description="Audit entry ID")
    application_id: str = Field(..., description="Application the entry belongs to")
    actor: str = Field(..., description="User ID who performed the action")
    action: AuditAction = Field(..., description="Recorded action")
    note: Optional[str] = Field(None, description="Decision reason or free-text note")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Action timestamp")
    before_status: Optional[ApplicationStatus] = Field(None, description="Status before the action")
    after_status: Optional[ApplicationStatus] = Field(None, description="Status after the action")
    decision_id: Optional[str] = Field(None, description="Decision token for decision entries")
    trace_id: Optional[str] = Field(None, description="OpenTelemetry trace ID")
    span_id: Optional[str] = Field(None, description="OpenTelemetry span ID")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "AuditEntry":
        return cls(
            id=str(document.get("_id", document.get("id"))),
            application_id=document["applicationId"],
            actor=document["actor"],
            action=document["action"],
            note=document.get("note"),
            timestamp=document["timestamp"],
            before_status=document.get("beforeStatus"),
            after_status=document.get("afterStatus"),
            decision_id=document.get("decisionId"),
            trace_id=document.get("traceId"),
            span_id=document.get("spanId"),
            ip_address=document.get("ipAddress"),
            user_agent=document.get("userAgent"),
        )

    def to_response(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "applicationId": self.application_id,
            "actor": self.actor,
            "action": self.action,
            "note": self.note,
            "timestamp": self.timestamp.isoformat(),
            "beforeStatus": self.before_status,
            "afterStatus": self.after_status,
            "traceId": self.trace_id,
        }


class AggregateStats(BaseModel):
    """Best-effort ledger statistics merged from independent chain reads."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    total_users: int = Field(0, ge=0)
    total_lands: int = Field(0, ge=0)
    verified_lands: int = Field(0, ge=0)
    pending_lands: int = Field(0, ge=0, description="Approximate: total minus verified on-chain lands")
    data_freshness: DataFreshness = Field(DataFreshness.FRESH)
    stale_fields: List[str] = Field(default_factory=list)
    refreshed_at: datetime = Field(default_factory=datetime.utcnow)
    pending_lands_is_approximate: bool = Field(True)

    def to_response(self) -> Dict[str, Any]:
        return {
            "totalUsers": self.total_users,
            "totalLands": self.total_lands,
            "verifiedLands": self.verified_lands,
            "pendingLands": self.pending_lands,
            "pendingLandsIsApproximate": self.pending_lands_is_approximate,
            "dataFreshness": self.data_freshness,
            "staleFields": self.stale_fields,
            "refreshedAt": self.refreshed_at.isoformat(),
        }


class UserContext(BaseModel):
    """User context for request processing with authentication and authorization data."""

    user_id: str = Field(..., description="Authenticated user ID")
    email: Optional[str] = Field(None, description="User email")
    name: Optional[str] = Field(None, description="User display name")
    permissions: List[str] = Field(default_factory=list, description="User's effective permissions")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")
    session_id: Optional[str] = Field(None, description="Session identifier")

    def has_permission(self, permission: str) -> bool:
        """Check if user has a specific permission."""
        return permission in self.permissions

    def has_any_permission(self, permissions: List[str]) -> bool:
        """Check if user has any of the specified permissions."""
        return any(perm in self.permissions for perm in permissions)
