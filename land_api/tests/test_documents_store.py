# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the GridFS document store.
"""

from unittest.mock import MagicMock, patch

import pytest
from bson import ObjectId
from gridfs.errors import NoFile

from land_api.domain.errors import PersistenceError
from land_api.services.documents import GridFSDocumentStore

from conftest import make_upload


@pytest.fixture
def grid_fs():
    with patch("land_api.services.documents.gridfs.GridFS") as grid_fs_cls:
        yield grid_fs_cls.return_value


@pytest.fixture
def store(mongodb_service, grid_fs):
    return GridFSDocumentStore(mongodb_service)


class TestGridFSDocumentStore:
    """Test GridFSDocumentStore."""

    def test_store_writes_metadata(self, store, grid_fs):
        file_id = ObjectId()
        grid_fs.put.return_value = file_id

        stored = store.store(make_upload("surveyPlan", "image/png", b"\x89PNG data"))

        assert stored.handle == str(file_id)
        assert stored.content_type == "image/png"
        assert stored.size == len(b"\x89PNG data")
        grid_fs.put.assert_called_once_with(
            b"\x89PNG data",
            filename="surveyPlan.pdf",
            metadata={"kind": "surveyPlan", "contentType": "image/png"}
        )

    def test_store_failure(self, store, grid_fs):
        grid_fs.put.side_effect = RuntimeError("chunk write failed")

        with pytest.raises(PersistenceError) as exc_info:
            store.store(make_upload("surveyPlan"))

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_fetch_returns_content(self, store, grid_fs):
        grid_out = MagicMock()
        grid_out.filename = "deed.pdf"
        grid_out.metadata = {"contentType": "application/pdf"}
        grid_out.length = 42
        grid_fs.get.return_value = grid_out
        handle = str(ObjectId())

        content = store.fetch(handle)

        assert content.stream is grid_out
        assert content.content_type == "application/pdf"
        assert content.size == 42
        grid_fs.get.assert_called_once_with(ObjectId(handle))

    def test_fetch_unknown_handle(self, store, grid_fs):
        grid_fs.get.side_effect = NoFile("missing")

        assert store.fetch(str(ObjectId())) is None

    def test_fetch_invalid_handle(self, store, grid_fs):
        assert store.fetch("not-a-handle") is None
        grid_fs.get.assert_not_called()

    def test_delete(self, store, grid_fs):
        handle = str(ObjectId())

        store.delete(handle)
        store.delete("not-a-handle")

        grid_fs.delete.assert_called_once_with(ObjectId(handle))
