# SPDX-License-Identifier: Apache-2.0

"""
Document store gateway for land application uploads.

The workflow only needs store, fetch and delete on opaque handles. GridFS in
the application database is the production backend.
"""

import logging
from dataclasses import dataclass
from typing import BinaryIO, Optional, Protocol

import gridfs
from gridfs.errors import NoFile
from bson import ObjectId
from bson.errors import InvalidId
from opentelemetry import trace

from ..domain.documents import UploadedDocument
from ..domain.errors import PersistenceError
from ..models.entities import StoredDocument
from .mongodb import MongoDBService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class DocumentContent:
    """Fetched document bytes with their metadata."""
    stream: BinaryIO
    filename: str
    content_type: str
    size: int


class DocumentStore(Protocol):
    """Opaque blob storage for uploaded documents."""

    def store(self, upload: UploadedDocument) -> StoredDocument:
        ...

    def fetch(self, handle: str) -> Optional[DocumentContent]:
        ...

    def delete(self, handle: str) -> None:
        ...


class GridFSDocumentStore:
    """Document store backed by MongoDB GridFS."""

    def __init__(self, mongo_service: MongoDBService, bucket: str = "land_documents"):
        self.mongo_service = mongo_service
        self.bucket = bucket
        self._fs: Optional[gridfs.GridFS] = None

    @property
    def fs(self) -> gridfs.GridFS:
        if self._fs is None:
            self._fs = gridfs.GridFS(self.mongo_service.database, collection=self.bucket)
        return self._fs

    def store(self, upload: UploadedDocument) -> StoredDocument:
        """
        Store an uploaded document.

        Args:
            upload: Validated upload

        Returns:
            StoredDocument referencing the new blob

        Raises:
            PersistenceError: If GridFS rejects the write
        """
        with tracer.start_as_current_span("documents.store") as span:
            span.set_attributes({
                "document.kind": upload.kind,
                "document.size": upload.size,
                "document.content_type": upload.content_type or ""
            })
            try:
                file_id = self.fs.put(
                    upload.data,
                    filename=upload.filename,
                    metadata={"kind": upload.kind, "contentType": upload.content_type}
                )
            except Exception as e:
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.error(
                    "Failed to store document",
                    extra={"document_kind": upload.kind, "error": str(e)},
                    exc_info=True
                )
                raise PersistenceError(f"Failed to store document {upload.kind}") from e

            logger.debug(f"Stored document {upload.kind} as {file_id}")
            return StoredDocument(
                handle=str(file_id),
                filename=upload.filename,
                content_type=upload.content_type,
                size=upload.size
            )

    def fetch(self, handle: str) -> Optional[DocumentContent]:
        """Open a stored document, or None if the handle is unknown."""
        with tracer.start_as_current_span("documents.fetch") as span:
            span.set_attribute("document.handle", handle)
            try:
                grid_out = self.fs.get(ObjectId(handle))
            except (InvalidId, TypeError, NoFile):
                logger.warning(f"Document handle not found: {handle}")
                return None

            return DocumentContent(
                stream=grid_out,
                filename=grid_out.filename,
                content_type=(grid_out.metadata or {}).get("contentType") or "application/octet-stream",
                size=grid_out.length
            )

    def delete(self, handle: str) -> None:
        """Delete a stored document. Unknown handles are ignored."""
        with tracer.start_as_current_span("documents.delete") as span:
            span.set_attribute("document.handle", handle)
            try:
                self.fs.delete(ObjectId(handle))
            except InvalidId:
                logger.warning(f"Ignoring delete of invalid handle: {handle}")
