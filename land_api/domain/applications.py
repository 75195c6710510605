# SPDX-License-Identifier: Apache-2.0

"""
Land application intake logic.

Pure functions for validating a submission and building the Pending record.
Nothing here touches storage: callers store documents only after
validate_submission reports no errors.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..models.enums import ApplicationStatus, ApplicationType, LandType
from ..models.entities import BuildingDetails, LandApplication, StoredDocument
from .documents import MAX_DOCUMENT_BYTES, UploadedDocument, required_kinds, validate_document
from .errors import (
    ValidationError, MissingDocument, MissingField, InvalidField, UnexpectedDocument
)


COMMON_FIELDS = ("ownerName", "landLocation", "landType")
BUILDING_FIELDS = ("buildingPurpose", "buildingSize", "estimatedCost")


@dataclass
class ValidationResult:
    """Result of submission validation."""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)

    def raise_for_errors(self) -> None:
        """Raise the first error, carrying the complete list."""
        if self.errors:
            first = self.errors[0]
            first.errors = list(self.errors)
            raise first


def parse_application_type(value: Any) -> ApplicationType:
    """
    Resolve an application type from its wire value or enum name.

    Raises:
        InvalidField: If the value names no known type
    """
    if isinstance(value, ApplicationType):
        return value
    if value is None or not str(value).strip():
        raise MissingField("applicationType")
    text = str(value).strip()
    for application_type in ApplicationType:
        if text in (application_type.value, application_type.name, application_type.value.replace(" ", "")):
            return application_type
    raise InvalidField("applicationType", f"unknown application type '{text}'")


def required_fields(application_type: ApplicationType) -> List[str]:
    fields = list(COMMON_FIELDS)
    if application_type == ApplicationType.BUILDING_PERMISSION:
        fields.extend(BUILDING_FIELDS)
    return fields


def parse_additional_data(raw: Any) -> Dict[str, Any]:
    """
    Decode the optional additionalData field.

    Raises:
        InvalidField: If the value is not a JSON object
    """
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        raise InvalidField("additionalData", "must be a JSON object")
    if not isinstance(decoded, dict):
        raise InvalidField("additionalData", "must be a JSON object")
    return decoded


def _field_value(fields: Mapping[str, Any], name: str) -> str:
    value = fields.get(name)
    if value is None:
        return ""
    return str(value).strip()


def validate_submission(
    application_type: ApplicationType,
    fields: Mapping[str, Any],
    uploads: Mapping[str, UploadedDocument],
    max_document_bytes: int = MAX_DOCUMENT_BYTES
) -> ValidationResult:
    """
    Validate descriptive fields and documents of a submission.

    Args:
        application_type: Type of land request
        fields: Descriptive form fields keyed by wire name
        uploads: Uploaded documents keyed by document kind
        max_document_bytes: Per-document size limit

    Returns:
        ValidationResult listing every problem found
    """
    errors: List[ValidationError] = []

    for name in required_fields(application_type):
        if not _field_value(fields, name):
            errors.append(MissingField(name))

    land_type = _field_value(fields, "landType")
    if land_type and land_type not in {t.value for t in LandType}:
        errors.append(InvalidField("landType", f"must be one of {', '.join(t.value for t in LandType)}"))

    try:
        parse_additional_data(fields.get("additionalData"))
    except InvalidField as e:
        errors.append(e)

    required = required_kinds(application_type)
    for kind in required:
        upload = uploads.get(kind)
        if upload is None:
            errors.append(MissingDocument(kind))
            continue
        problem = validate_document(upload, max_document_bytes)
        if problem is not None:
            errors.append(problem)

    for kind in uploads:
        if kind not in required:
            errors.append(UnexpectedDocument(kind))

    return ValidationResult(is_valid=not errors, errors=errors)


def build_application(
    application_type: ApplicationType,
    fields: Mapping[str, Any],
    documents: Mapping[str, StoredDocument],
    submitted_by: str,
    submitted_at: Optional[datetime] = None
) -> LandApplication:
    """Build the Pending record for a validated submission."""
    now = submitted_at or datetime.utcnow()
    building = None
    if application_type == ApplicationType.BUILDING_PERMISSION:
        building = BuildingDetails(
            purpose=_field_value(fields, "buildingPurpose"),
            size=_field_value(fields, "buildingSize"),
            estimated_cost=_field_value(fields, "estimatedCost"),
        )

    return LandApplication(
        application_type=application_type,
        owner_name=_field_value(fields, "ownerName"),
        land_location=_field_value(fields, "landLocation"),
        land_type=_field_value(fields, "landType"),
        building=building,
        additional_data=parse_additional_data(fields.get("additionalData")),
        documents=dict(documents),
        status=ApplicationStatus.PENDING,
        submission_date=now,
        submitted_by=submitted_by,
        created_at=now,
        updated_at=now,
    )


def summarize_status_counts(rows: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Fold a status/type aggregation into dashboard counts.

    Args:
        rows: Aggregation rows shaped {"_id": {"status", "applicationType"}, "count"}

    Returns:
        Totals per status plus per-type totals
    """
    summary: Dict[str, Any] = {
        "total": 0,
        "pending": 0,
        "approved": 0,
        "rejected": 0,
        "byType": {t.value: 0 for t in ApplicationType},
    }
    status_keys = {
        ApplicationStatus.PENDING.value: "pending",
        ApplicationStatus.APPROVED.value: "approved",
        ApplicationStatus.REJECTED.value: "rejected",
    }
    for row in rows:
        group = row.get("_id") or {}
        count = int(row.get("count", 0))
        summary["total"] += count
        key = status_keys.get(group.get("status"))
        if key:
            summary[key] += count
        app_type = group.get("applicationType")
        if app_type in summary["byType"]:
            summary["byType"][app_type] += count
    return summary
