# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the land services API.
"""

# Base models
from .base import BaseEntity, generate_object_id

# Enumerations
from .enums import (
    ApplicationStatus,
    ApplicationType,
    LandType,
    DecisionAction,
    AuditAction,
    DataFreshness,
    Permission
)

# Core entities
from .entities import (
    StoredDocument,
    BuildingDetails,
    LandApplication,
    AuditEntry,
    AggregateStats,
    UserContext
)

# Request models
from .requests import (
    DecisionRequest,
    NoteRequest,
    ApplicationFilters,
    RegisterLandRequest,
    TransferLandRequest,
    BuildingPermissionRequest,
    RegisterUserRequest
)

# Response models
from .responses import HalLink

__all__ = [
    "BaseEntity",
    "generate_object_id",
    "ApplicationStatus",
    "ApplicationType",
    "LandType",
    "DecisionAction",
    "AuditAction",
    "DataFreshness",
    "Permission",
    "StoredDocument",
    "BuildingDetails",
    "LandApplication",
    "AuditEntry",
    "AggregateStats",
    "UserContext",
    "DecisionRequest",
    "NoteRequest",
    "ApplicationFilters",
    "RegisterLandRequest",
    "TransferLandRequest",
    "BuildingPermissionRequest",
    "RegisterUserRequest",
    "HalLink",
]
