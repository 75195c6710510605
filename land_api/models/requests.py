# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints with validation.
"""

from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from .enums import ApplicationStatus, ApplicationType


class DecisionRequest(BaseModel):
    """Admin status update for a pending application."""

    model_config = ConfigDict(populate_by_name=True)

    status: str = Field(..., description="Target status: Approved or Rejected")
    rejection_reason: Optional[str] = Field(None, alias="rejectionReason", max_length=1000)


class NoteRequest(BaseModel):
    """Free-text admin note appended to the audit trail."""

    note: str = Field(..., max_length=2000, description="Note text")


class ApplicationFilters(BaseModel):
    """Query filters for application listings."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    status: Optional[ApplicationStatus] = Field(None)
    application_type: Optional[ApplicationType] = Field(None, alias="applicationType")
    search: Optional[str] = Field(None, max_length=200)

    @field_validator('status', 'application_type', mode='before')
    @classmethod
    def treat_all_as_unset(cls, v):
        if v in ('', 'all'):
            return None
        return v

    @field_validator('search')
    @classmethod
    def strip_search(cls, v):
        if v is None:
            return None
        v = v.strip()
        return v or None


class RegisterLandRequest(BaseModel):
    """Ledger land registration pass-through."""

    location: str = Field(..., min_length=1, max_length=500)
    size: str = Field(..., min_length=1, max_length=100)


class TransferLandRequest(BaseModel):
    """Ledger ownership transfer pass-through."""

    model_config = ConfigDict(populate_by_name=True)

    land_id: int = Field(..., ge=0, alias="landId")
    to_address: str = Field(..., alias="toAddress", pattern=r"^0x[0-9a-fA-F]{40}$")


class BuildingPermissionRequest(BaseModel):
    """Ledger building permission pass-through."""

    model_config = ConfigDict(populate_by_name=True)

    land_id: int = Field(..., ge=0, alias="landId")


class RegisterUserRequest(BaseModel):
    """Ledger user registration pass-through."""

    name: str = Field(..., min_length=1, max_length=200)
    role: str = Field(..., min_length=1, max_length=50)
