# SPDX-License-Identifier: Apache-2.0

"""
Required-document rules for land applications.

The requirement table here is the single source consulted by submission
validation, the admin document listing and the public requirements endpoint.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from ..models.enums import ApplicationType
from ..models.entities import StoredDocument
from .errors import ValidationError, InvalidFileType, FileTooLarge, MissingDocument


ALLOWED_CONTENT_TYPES = frozenset({
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
})

MAX_DOCUMENT_BYTES = 5 * 1024 * 1024


@dataclass(frozen=True)
class DocumentRequirement:
    """A document kind that must accompany an application."""
    kind: str
    label: str


REQUIRED_DOCUMENTS: Dict[ApplicationType, Tuple[DocumentRequirement, ...]] = {
    ApplicationType.ADD_NEW_LAND: (
        DocumentRequirement("landTitleDeed", "Land title deed"),
        DocumentRequirement("surveyPlan", "Survey plan"),
        DocumentRequirement("identificationDocument", "Owner identification"),
        DocumentRequirement("propertyTaxReceipt", "Property tax receipt"),
        DocumentRequirement("landUseCertificate", "Land use certificate"),
    ),
    ApplicationType.TRANSFER_LAND: (
        DocumentRequirement("sellerIdentification", "Seller identification"),
        DocumentRequirement("buyerIdentification", "Buyer identification"),
        DocumentRequirement("salesAgreement", "Sales agreement"),
        DocumentRequirement("landTitleDeed", "Land title deed"),
        DocumentRequirement("transferTaxReceipt", "Transfer tax receipt"),
    ),
    ApplicationType.BUILDING_PERMISSION: (
        DocumentRequirement("landTitleDeed", "Land title deed"),
        DocumentRequirement("buildingPlan", "Building plan"),
        DocumentRequirement("engineeringReport", "Engineering report"),
        DocumentRequirement("environmentalAssessment", "Environmental assessment"),
        DocumentRequirement("structuralDesignCertificate", "Structural design certificate"),
    ),
}


@dataclass
class UploadedDocument:
    """A document received with a submission, before it is stored."""
    kind: str
    filename: str
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def required_kinds(application_type: ApplicationType) -> List[str]:
    """Document kinds required for an application type, in display order."""
    return [req.kind for req in REQUIRED_DOCUMENTS[ApplicationType(application_type)]]


def validate_document(
    upload: UploadedDocument,
    max_bytes: int = MAX_DOCUMENT_BYTES
) -> Optional[ValidationError]:
    """
    Check a single upload against content type and size limits.

    Args:
        upload: Uploaded document
        max_bytes: Maximum accepted size in bytes

    Returns:
        The first problem found, or None if the document is acceptable
    """
    if upload.size == 0:
        return MissingDocument(upload.kind)

    content_type = (upload.content_type or "").split(";")[0].strip().lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        return InvalidFileType(upload.kind, upload.content_type)

    if upload.size > max_bytes:
        return FileTooLarge(upload.kind, upload.size, max_bytes)

    return None


def requirements_table() -> Dict[str, List[Dict[str, str]]]:
    """Requirement table keyed by application type wire value."""
    return {
        application_type.value: [
            {"kind": req.kind, "label": req.label} for req in requirements
        ]
        for application_type, requirements in REQUIRED_DOCUMENTS.items()
    }


def document_listing(
    application_type: ApplicationType,
    documents: Mapping[str, StoredDocument]
) -> List[Dict[str, object]]:
    """
    Required documents for a type annotated with what was uploaded.

    Args:
        application_type: Application type of the record
        documents: Stored documents keyed by kind

    Returns:
        One entry per required kind, in display order
    """
    listing = []
    for req in REQUIRED_DOCUMENTS[ApplicationType(application_type)]:
        stored = documents.get(req.kind)
        listing.append({
            "kind": req.kind,
            "label": req.label,
            "uploaded": stored is not None,
            "filename": stored.filename if stored else None,
            "contentType": stored.content_type if stored else None,
            "size": stored.size if stored else None,
        })
    return listing
