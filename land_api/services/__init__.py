# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - External integrations and side effects.
"""

from .mongodb import MongoDBService, PaginationResult
from .documents import DocumentStore, DocumentContent, GridFSDocumentStore
from .chain import ChainClient, HttpChainClient
from .applications import ApplicationService
from .reconciliation import LedgerReconciliationService, ReconciliationConfig

__all__ = [
    "MongoDBService",
    "PaginationResult",
    "DocumentStore",
    "DocumentContent",
    "GridFSDocumentStore",
    "ChainClient",
    "HttpChainClient",
    "ApplicationService",
    "LedgerReconciliationService",
    "ReconciliationConfig"
]
