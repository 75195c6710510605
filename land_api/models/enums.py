# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the land services platform.
"""

from enum import Enum


class ApplicationStatus(str, Enum):
    """Land application workflow status enumeration."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ApplicationType(str, Enum):
    """Kinds of land request a citizen can submit."""
    ADD_NEW_LAND = "Add New Land"
    TRANSFER_LAND = "Transfer Land"
    BUILDING_PERMISSION = "Building Permission"


class LandType(str, Enum):
    """Land use classification."""
    RESIDENTIAL = "Residential"
    COMMERCIAL = "Commercial"
    AGRICULTURAL = "Agricultural"
    INDUSTRIAL = "Industrial"
    MIXED = "Mixed"


class DecisionAction(str, Enum):
    """Admin decisions on a pending application."""
    APPROVE = "Approve"
    REJECT = "Reject"

    @property
    def target_status(self) -> ApplicationStatus:
        if self is DecisionAction.APPROVE:
            return ApplicationStatus.APPROVED
        return ApplicationStatus.REJECTED


class AuditAction(str, Enum):
    """Actions recorded in the application audit trail."""
    APPROVE = "approve"
    REJECT = "reject"
    NOTE = "note"


class DataFreshness(str, Enum):
    """Whether ledger statistics came from the chain on the latest refresh."""
    FRESH = "Fresh"
    STALE = "Stale"


class Permission(str, Enum):
    """Permission strings carried in bearer tokens."""
    LAND_ADMIN = "land:admin"
    LAND_DECIDE = "land:decide"
    LEDGER_WRITE = "ledger:write"
