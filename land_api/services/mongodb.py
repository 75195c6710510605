# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with connection pooling and conditional updates.
"""

import os
import logging
from typing import List, Dict, Optional, Any
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    DuplicateKeyError
)
from bson import ObjectId
from bson.errors import InvalidId

logger = logging.getLogger(__name__)

APPLICATIONS_COLLECTION = "land_applications"
AUDIT_COLLECTION = "land_audit_trail"


class PaginationResult:
    """Result container for paginated queries."""

    def __init__(self, items: List[Dict], total: int, page: int, page_size: int):
        self.items = items
        self.total = total
        self.page = page
        self.page_size = page_size
        self.total_pages = (total + page_size - 1) // page_size
        self.has_next = page < self.total_pages
        self.has_prev = page > 1


class MongoDBService:
    """MongoDB service with connection pooling."""

    def __init__(self, connection_string: str = None, database_name: str = None,
                 client: Optional[MongoClient] = None):
        """
        Initialize MongoDB service with connection pooling.

        Args:
            connection_string: MongoDB URI
            database_name: Database to use
            client: Pre-built client (tests pass a mongomock client here)
        """
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/land_services_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'land_services_dev')
        self._client: Optional[MongoClient] = client
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True
                )
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    @staticmethod
    def to_object_id(doc_id: str) -> ObjectId:
        """Validate and convert string ID to ObjectId."""
        if isinstance(doc_id, ObjectId):
            return doc_id
        try:
            return ObjectId(doc_id)
        except (InvalidId, TypeError):
            raise ValueError(f"Invalid ObjectId format: {doc_id}")

    @staticmethod
    def _normalize(document: Optional[Dict]) -> Optional[Dict]:
        """Expose _id as a string id for callers."""
        if document and "_id" in document:
            document["id"] = str(document["_id"])
            del document["_id"]
        return document

    # CRUD Operations

    def create(self, collection: str, document: Dict) -> str:
        """Insert a new document and return its id."""
        try:
            if "_id" not in document:
                document["_id"] = ObjectId()

            result = self.get_collection(collection).insert_one(document)

            logger.info(f"Created document in {collection}: {result.inserted_id}")
            return str(result.inserted_id)

        except DuplicateKeyError as e:
            logger.error(f"Duplicate key error in {collection}: {e}")
            raise ValueError("Document with this identifier already exists")
        except Exception as e:
            logger.error(f"Failed to create document in {collection}: {e}")
            raise

    def find_one(self, collection: str, doc_id: str, extra: Dict = None) -> Optional[Dict]:
        """Find a single document by ID, optionally narrowed by extra conditions."""
        try:
            query = {"_id": self.to_object_id(doc_id)}
        except ValueError as e:
            logger.debug(f"Invalid document ID {doc_id}: {e}")
            return None

        if extra:
            query.update(extra)

        try:
            document = self.get_collection(collection).find_one(query)
            if document is None:
                logger.debug(f"Document {doc_id} not found in {collection}")
            return self._normalize(document)
        except Exception as e:
            logger.error(f"Failed to find document {doc_id} in {collection}: {e}")
            raise

    def find(self, collection: str, query: Dict, sort_by: str = "createdAt",
             sort_order: int = ASCENDING) -> List[Dict]:
        """Find all documents matching a query."""
        try:
            cursor = self.get_collection(collection).find(query).sort(sort_by, sort_order)
            return [self._normalize(doc) for doc in cursor]
        except Exception as e:
            logger.error(f"Failed to find documents in {collection}: {e}")
            raise

    def conditional_update(self, collection: str, doc_id: str, condition: Dict,
                           update: Dict) -> bool:
        """
        Apply an update only if the document still matches a condition.

        The id and the condition are evaluated together in one update_one
        call, which MongoDB applies atomically per document.

        Args:
            collection: Collection name
            doc_id: Document ID
            condition: Extra filter the document must match at write time
            update: Update document ($set/$unset operators)

        Returns:
            True if a document matched and was updated
        """
        try:
            query = {"_id": self.to_object_id(doc_id)}
        except ValueError:
            return False
        query.update(condition)

        try:
            result = self.get_collection(collection).update_one(query, update)
            if result.matched_count > 0:
                logger.info(f"Conditionally updated document {doc_id} in {collection}")
                return True
            logger.debug(f"Condition not met for {doc_id} in {collection}")
            return False
        except Exception as e:
            logger.error(f"Failed to update document {doc_id} in {collection}: {e}")
            raise

    def paginate(self, collection: str, query: Dict, page: int = 1, page_size: int = 20,
                 sort_by: str = "createdAt", sort_order: int = DESCENDING) -> PaginationResult:
        """Paginate documents with sorting and filtering."""
        try:
            collection_obj = self.get_collection(collection)
            skip = (page - 1) * page_size

            total = collection_obj.count_documents(query)
            cursor = collection_obj.find(query).sort(sort_by, sort_order).skip(skip).limit(page_size)
            documents = [self._normalize(doc) for doc in cursor]

            logger.debug(f"Paginated {len(documents)} documents from {collection} (page {page})")
            return PaginationResult(documents, total, page, page_size)

        except Exception as e:
            logger.error(f"Failed to paginate documents in {collection}: {e}")
            raise

    def count(self, collection: str, query: Dict = None) -> int:
        """Count documents matching a query."""
        try:
            return self.get_collection(collection).count_documents(query or {})
        except Exception as e:
            logger.error(f"Failed to count documents in {collection}: {e}")
            raise

    def aggregate(self, collection: str, pipeline: List[Dict]) -> List[Dict]:
        """Run an aggregation pipeline."""
        try:
            results = list(self.get_collection(collection).aggregate(pipeline))
            logger.debug(f"Aggregation returned {len(results)} results from {collection}")
            return results
        except Exception as e:
            logger.error(f"Failed to run aggregation in {collection}: {e}")
            raise

    # Index Management

    def create_indexes(self) -> None:
        """Create performance indexes for all collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            applications = self.get_collection(APPLICATIONS_COLLECTION)
            applications.create_index([("submittedBy", ASCENDING), ("status", ASCENDING)])
            applications.create_index([("applicationType", ASCENDING), ("status", ASCENDING)])
            applications.create_index([("submissionDate", DESCENDING)])
            applications.create_index([("createdAt", DESCENDING)])

            audit = self.get_collection(AUDIT_COLLECTION)
            audit.create_index([("applicationId", ASCENDING), ("timestamp", ASCENDING)])
            audit.create_index([("actor", ASCENDING), ("timestamp", DESCENDING)])
            audit.create_index("traceId")

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise
