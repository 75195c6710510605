# SPDX-License-Identifier: Apache-2.0

"""
Exception taxonomy for the land application workflow.

Every error carries the HTTP status and problem type it maps to, so the
error handler can render RFC 7807 bodies without knowing the domain.
"""

from typing import List, Optional, Dict, Any


class LandServiceError(Exception):
    """Base class for land service errors."""

    status_code = 500
    error_type = "application-error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> Dict[str, Any]:
        """Structured description used in validation error lists."""
        return {"error": self.__class__.__name__, "message": self.message}


# Validation errors (no side effects)

class ValidationError(LandServiceError):
    """Submission rejected before anything was stored."""

    status_code = 400
    error_type = "validation-error"

    def __init__(self, message: str, errors: Optional[List["ValidationError"]] = None):
        super().__init__(message)
        self.errors = errors if errors is not None else [self]

    @property
    def details(self) -> List[Dict[str, Any]]:
        return [error.to_detail() for error in self.errors]


class MissingDocument(ValidationError):
    def __init__(self, kind: str):
        super().__init__(f"Missing required document: {kind}")
        self.kind = kind

    def to_detail(self) -> Dict[str, Any]:
        return {**super().to_detail(), "document": self.kind}


class InvalidFileType(ValidationError):
    def __init__(self, kind: str, content_type: Optional[str] = None):
        super().__init__(
            f"Invalid file type for {kind}: {content_type or 'unknown'}. "
            "Only PDF, JPG, and PNG files are allowed."
        )
        self.kind = kind
        self.content_type = content_type

    def to_detail(self) -> Dict[str, Any]:
        return {**super().to_detail(), "document": self.kind, "contentType": self.content_type}


class FileTooLarge(ValidationError):
    def __init__(self, kind: str, size: int = 0, limit: int = 0):
        super().__init__(f"Document {kind} exceeds the {limit} byte limit ({size} bytes)")
        self.kind = kind
        self.size = size
        self.limit = limit

    def to_detail(self) -> Dict[str, Any]:
        return {**super().to_detail(), "document": self.kind, "size": self.size, "limit": self.limit}


class UnexpectedDocument(ValidationError):
    def __init__(self, kind: str):
        super().__init__(f"Document {kind} is not accepted for this application type")
        self.kind = kind

    def to_detail(self) -> Dict[str, Any]:
        return {**super().to_detail(), "document": self.kind}


class MissingField(ValidationError):
    def __init__(self, name: str):
        super().__init__(f"Missing required field: {name}")
        self.name = name

    def to_detail(self) -> Dict[str, Any]:
        return {**super().to_detail(), "field": self.name}


class InvalidField(ValidationError):
    def __init__(self, name: str, reason: str):
        super().__init__(f"Invalid value for {name}: {reason}")
        self.name = name
        self.reason = reason

    def to_detail(self) -> Dict[str, Any]:
        return {**super().to_detail(), "field": self.name}


# Workflow transition errors

class TransitionError(LandServiceError):
    """Decision refused by the workflow state machine."""

    status_code = 409
    error_type = "resource-conflict"


class AlreadyResolved(TransitionError):
    def __init__(self, current_status: str):
        super().__init__(f"Application already resolved with status {current_status}")
        self.current_status = current_status


class MissingReason(TransitionError):
    status_code = 400
    error_type = "validation-error"

    def __init__(self):
        super().__init__("Rejection reason is required when rejecting an application")


class InvalidDecision(TransitionError):
    status_code = 400
    error_type = "validation-error"

    def __init__(self, requested: str):
        super().__init__(f"Invalid status '{requested}'. Must be Approved or Rejected")
        self.requested = requested


# Lookup and infrastructure errors

class ApplicationNotFound(LandServiceError):
    status_code = 404
    error_type = "resource-not-found"

    def __init__(self, application_id: str):
        super().__init__(f"Land application {application_id} not found")
        self.application_id = application_id


class DocumentNotFound(LandServiceError):
    status_code = 404
    error_type = "resource-not-found"

    def __init__(self, application_id: str, kind: str):
        super().__init__(f"Document {kind} not found for application {application_id}")
        self.application_id = application_id
        self.kind = kind


class AccessDenied(LandServiceError):
    status_code = 403
    error_type = "insufficient-permissions"


class ChainUnavailableError(LandServiceError):
    """The ledger gateway could not be reached or rejected the call."""

    status_code = 503
    error_type = "service-unavailable"


class PersistenceError(LandServiceError):
    """A storage write failed; the operation had no lasting effect."""

    status_code = 500
    error_type = "internal-server-error"
