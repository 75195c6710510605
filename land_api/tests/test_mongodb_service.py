# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for MongoDB service layer.
"""

from unittest.mock import MagicMock

import pytest
from bson import ObjectId

from land_api.scripts import create_indexes
from land_api.services.mongodb import MongoDBService, PaginationResult, APPLICATIONS_COLLECTION


class TestMongoDBService:
    """Test MongoDB service functionality."""

    def test_create_and_find_one(self, mongodb_service):
        doc_id = mongodb_service.create(APPLICATIONS_COLLECTION, {"status": "Pending"})

        assert ObjectId.is_valid(doc_id)
        found = mongodb_service.find_one(APPLICATIONS_COLLECTION, doc_id)
        assert found["id"] == doc_id
        assert "_id" not in found

    def test_find_one_invalid_id(self, mongodb_service):
        assert mongodb_service.find_one(APPLICATIONS_COLLECTION, "not-an-id") is None

    def test_duplicate_id(self, mongodb_service):
        doc_id = ObjectId()
        mongodb_service.create(APPLICATIONS_COLLECTION, {"_id": doc_id})

        with pytest.raises(ValueError):
            mongodb_service.create(APPLICATIONS_COLLECTION, {"_id": doc_id})

    def test_conditional_update(self, mongodb_service):
        """The update applies only while the condition still holds."""
        doc_id = mongodb_service.create(APPLICATIONS_COLLECTION, {"status": "Pending"})

        assert mongodb_service.conditional_update(
            APPLICATIONS_COLLECTION, doc_id, {"status": "Pending"}, {"$set": {"status": "Approved"}}
        ) is True
        assert mongodb_service.conditional_update(
            APPLICATIONS_COLLECTION, doc_id, {"status": "Pending"}, {"$set": {"status": "Rejected"}}
        ) is False

        assert mongodb_service.find_one(APPLICATIONS_COLLECTION, doc_id)["status"] == "Approved"

    def test_conditional_update_invalid_id(self, mongodb_service):
        assert mongodb_service.conditional_update(
            APPLICATIONS_COLLECTION, "bad", {}, {"$set": {"status": "Approved"}}
        ) is False

    def test_paginate(self, mongodb_service):
        for i in range(5):
            mongodb_service.create(APPLICATIONS_COLLECTION, {"n": i, "createdAt": i, "status": "Pending"})

        result = mongodb_service.paginate(APPLICATIONS_COLLECTION, {"status": "Pending"}, page=2, page_size=2)

        assert isinstance(result, PaginationResult)
        assert result.total == 5
        assert [doc["n"] for doc in result.items] == [2, 1]

    def test_aggregate_and_count(self, mongodb_service):
        for status in ("Pending", "Pending", "Approved"):
            mongodb_service.create(APPLICATIONS_COLLECTION, {"status": status})

        rows = mongodb_service.aggregate(APPLICATIONS_COLLECTION, [
            {"$group": {"_id": "$status", "count": {"$sum": 1}}}
        ])

        assert {row["_id"]: row["count"] for row in rows} == {"Pending": 2, "Approved": 1}
        assert mongodb_service.count(APPLICATIONS_COLLECTION, {"status": "Approved"}) == 1

    def test_create_indexes(self, mongodb_service):
        mongodb_service.create_indexes()

        index_info = mongodb_service.get_collection(APPLICATIONS_COLLECTION).index_information()
        assert any(
            [key for key, _ in spec["key"]] == ["submittedBy", "status"]
            for spec in index_info.values()
        )

    def test_health_check_failure(self):
        client = MagicMock()
        client.admin.command.side_effect = RuntimeError("no server")
        service = MongoDBService("mongodb://localhost:27017", "land_services_test", client=client)

        health = service.health_check()

        assert health["status"] == "unhealthy"
        assert "no server" in health["error"]


class TestCreateIndexesScript:
    """Test the index creation script."""

    def test_success(self):
        service = MagicMock()
        service.health_check.return_value = {"status": "healthy", "version": "7.0", "database": "land"}

        assert create_indexes.main(service) == 0
        service.create_indexes.assert_called_once()
        service.close_connection.assert_called_once()

    def test_unhealthy_database(self):
        service = MagicMock()
        service.health_check.return_value = {"status": "unhealthy", "database": "land"}

        assert create_indexes.main(service) == 1
        service.create_indexes.assert_not_called()
        service.close_connection.assert_called_once()

    def test_index_failure(self):
        service = MagicMock()
        service.health_check.return_value = {"status": "healthy", "database": "land"}
        service.create_indexes.side_effect = RuntimeError("not authorized")

        assert create_indexes.main(service) == 1
