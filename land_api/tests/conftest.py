# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import io
import os
import threading
from typing import Dict, Optional

import mongomock
import pytest
from bson import ObjectId

from land_api.app import create_app
from land_api.domain.documents import UploadedDocument, required_kinds
from land_api.domain.errors import ChainUnavailableError, PersistenceError
from land_api.models.entities import StoredDocument, UserContext
from land_api.models.enums import ApplicationType, Permission
from land_api.scripts.dev_tokens import generate_key_pair, issue_token
from land_api.services.applications import ApplicationService
from land_api.services.audit import AuditTrailService
from land_api.services.auth import AuthService
from land_api.services.chain import ChainClient
from land_api.services.documents import DocumentContent
from land_api.services.mongodb import MongoDBService

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['MONGODB_DATABASE'] = 'land_services_test'

CITIZEN_ID = "citizen-1"
OTHER_CITIZEN_ID = "citizen-2"
ADMIN_ID = "admin-1"

ADMIN_PERMISSIONS = [
    Permission.LAND_ADMIN.value,
    Permission.LAND_DECIDE.value,
    Permission.LEDGER_WRITE.value
]


class InMemoryDocumentStore:
    """Document store double keeping blobs in a dict."""

    def __init__(self):
        self.blobs: Dict[str, Dict] = {}
        self.deleted = []
        self.fail_on_kind: Optional[str] = None

    def store(self, upload: UploadedDocument) -> StoredDocument:
        if upload.kind == self.fail_on_kind:
            raise PersistenceError(f"Failed to store document {upload.kind}")
        handle = str(ObjectId())
        self.blobs[handle] = {
            "data": upload.data,
            "filename": upload.filename,
            "content_type": upload.content_type
        }
        return StoredDocument(
            handle=handle,
            filename=upload.filename,
            content_type=upload.content_type,
            size=upload.size
        )

    def fetch(self, handle: str) -> Optional[DocumentContent]:
        blob = self.blobs.get(handle)
        if blob is None:
            return None
        return DocumentContent(
            stream=io.BytesIO(blob["data"]),
            filename=blob["filename"],
            content_type=blob["content_type"],
            size=len(blob["data"])
        )

    def delete(self, handle: str) -> None:
        self.deleted.append(handle)
        self.blobs.pop(handle, None)


class FakeChainClient(ChainClient):
    """Ledger client double with configurable counts and failures."""

    def __init__(self, total_users=10, total_lands=7, verified_lands=4):
        self.counts = {
            "total_users": total_users,
            "total_lands": total_lands,
            "verified_lands": verified_lands
        }
        self.failing = set()
        self.calls = []

    def _count(self, name: str) -> int:
        self.calls.append(name)
        if name in self.failing:
            raise ChainUnavailableError(f"{name} unavailable")
        return self.counts[name]

    def total_users(self) -> int:
        return self._count("total_users")

    def total_lands(self) -> int:
        return self._count("total_lands")

    def verified_lands(self) -> int:
        return self._count("verified_lands")

    def register_land(self, location, size):
        self.calls.append(("register_land", location, size))
        return {"transactionHash": "0xland"}

    def transfer_land(self, to_address, land_id):
        self.calls.append(("transfer_land", to_address, land_id))
        return {"transactionHash": "0xtransfer"}

    def grant_building_permission(self, land_id):
        self.calls.append(("grant_building_permission", land_id))
        return {"transactionHash": "0xpermission"}

    def register_user(self, name, role):
        self.calls.append(("register_user", name, role))
        return {"transactionHash": "0xuser"}

    def health_check(self):
        return {"status": "healthy"}


class LockingMongoDBService(MongoDBService):
    """
    MongoDB service whose conditional updates are serialized.

    A MongoDB server applies each update_one atomically per document;
    mongomock does not, so the lock stands in for the server.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._update_lock = threading.Lock()

    def conditional_update(self, collection, doc_id, condition, update):
        with self._update_lock:
            return super().conditional_update(collection, doc_id, condition, update)


def make_upload(kind: str, content_type: str = "application/pdf", data: bytes = b"%PDF-1.4 test document") -> UploadedDocument:
    return UploadedDocument(kind=kind, filename=f"{kind}.pdf", content_type=content_type, data=data)


def full_uploads(application_type: ApplicationType) -> Dict[str, UploadedDocument]:
    return {kind: make_upload(kind) for kind in required_kinds(application_type)}


def valid_fields(application_type: ApplicationType) -> Dict[str, str]:
    fields = {
        "ownerName": "Jane Doe",
        "landLocation": "Plot 12, North District",
        "landType": "Residential"
    }
    if application_type == ApplicationType.BUILDING_PERMISSION:
        fields.update({
            "buildingPurpose": "Family house",
            "buildingSize": "240 sqm",
            "estimatedCost": "150000"
        })
    return fields


@pytest.fixture
def mongo_client():
    """In-memory MongoDB client."""
    return mongomock.MongoClient()


@pytest.fixture
def mongodb_service(mongo_client):
    return LockingMongoDBService("mongodb://localhost:27017", "land_services_test", client=mongo_client)


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def audit_service(mongodb_service):
    return AuditTrailService(mongodb_service)


@pytest.fixture
def application_service(mongodb_service, document_store, audit_service):
    return ApplicationService(mongodb_service, document_store, audit_service)


@pytest.fixture
def chain_client():
    return FakeChainClient()


@pytest.fixture
def citizen_context():
    return UserContext(user_id=CITIZEN_ID, email="jane@example.com", permissions=[])


@pytest.fixture
def admin_context():
    return UserContext(user_id=ADMIN_ID, email="admin@example.com", permissions=list(ADMIN_PERMISSIONS))


@pytest.fixture
def submit_application(application_service):
    """Submit a complete application of the given type and return it."""
    def _submit(application_type=ApplicationType.TRANSFER_LAND, submitted_by=CITIZEN_ID):
        return application_service.submit(
            application_type,
            valid_fields(application_type),
            full_uploads(application_type),
            submitted_by=submitted_by
        )
    return _submit


# Token fixtures

@pytest.fixture(scope="session")
def jwt_keys():
    """RSA key pair as (private PEM, public PEM)."""
    return generate_key_pair()


@pytest.fixture
def auth_service(jwt_keys):
    return AuthService(public_key=jwt_keys[1], algorithm="RS256")


@pytest.fixture
def make_token(jwt_keys):
    def _make(user_id, permissions=(), **kwargs):
        return issue_token(jwt_keys[0], user_id, permissions, **kwargs)
    return _make


@pytest.fixture
def citizen_headers(make_token):
    return {"Authorization": f"Bearer {make_token(CITIZEN_ID)}"}


@pytest.fixture
def other_citizen_headers(make_token):
    return {"Authorization": f"Bearer {make_token(OTHER_CITIZEN_ID)}"}


@pytest.fixture
def admin_headers(make_token):
    return {"Authorization": f"Bearer {make_token(ADMIN_ID, ADMIN_PERMISSIONS)}"}


@pytest.fixture
def viewer_headers(make_token):
    """Administrator who may review but not decide."""
    return {"Authorization": f"Bearer {make_token('viewer-1', [Permission.LAND_ADMIN.value])}"}


# Application fixtures

@pytest.fixture
def app(mongodb_service, auth_service, chain_client, document_store):
    """Flask application wired to in-memory collaborators."""
    flask_app = create_app(
        config_overrides={
            'ENVIRONMENT': 'test',
            'TESTING': True,
            'REDIS_URL': '',
            'BASE_URL': 'http://localhost:5000',
            'LEDGER_RETRY_DELAY_SECONDS': 0.0
        },
        mongodb_service=mongodb_service,
        auth_service=auth_service,
        chain_client=chain_client,
        document_store=document_store
    )
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
