# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.
"""

from datetime import date
from typing import Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict
from .enums import CaptureKind, CaptureErrorCode


class RequestModel(BaseModel):
    """Base request model accepting camelCase or snake_case keys."""

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        str_strip_whitespace=True
    )


class CoverageQuery(RequestModel):
    """Query parameters for the coverage view."""

    province: str = Field(..., min_length=1, description="Canonical province code")
    city: str = Field(..., min_length=1, description="Canonical city code")
    q: Optional[str] = Field(None, description="Free-text filter applied after matching")


class IssueInviteRequest(RequestModel):
    """Request model for minting an onboarding invite."""

    province: str = Field(..., min_length=1, max_length=200, description="Province name")
    city: str = Field(..., min_length=1, max_length=200, description="City or municipality name")
    barangay: str = Field(..., min_length=1, max_length=200, description="Barangay name")
    region: Optional[str] = Field(None, max_length=200, description="Region name, derived when omitted")


class AcceptInviteRequest(RequestModel):
    """Request model for consuming an invite during provisioning."""

    province: str = Field(..., min_length=1, description="Province the onboarding claims")
    city: str = Field(..., min_length=1, description="City the onboarding claims")
    barangay: str = Field(..., min_length=1, description="Barangay the onboarding claims")
    accepted_by: str = Field(..., alias="acceptedBy", min_length=1, description="Administrator email")
    tenant_created: Optional[str] = Field(None, alias="tenantCreated", description="Provisioned tenant id")


class SelectJurisdictionRequest(RequestModel):
    """Cascading selector update for step 1."""

    province_code: Optional[str] = Field(None, alias="provinceCode")
    city_code: Optional[str] = Field(None, alias="cityCode")
    tenant_id: Optional[str] = Field(None, alias="tenantId")


class BiodataRequest(RequestModel):
    """Biodata entry for step 2. Empty values are allowed while typing."""

    birth_date: Optional[str] = Field(None, alias="birthDate", description="ISO date YYYY-MM-DD")
    mothers_maiden_name: Optional[str] = Field(None, alias="mothersMaidenName", max_length=200)

    @field_validator('birth_date')
    @classmethod
    def validate_birth_date(cls, v):
        """Birth date must be a past ISO calendar date when provided."""
        if not v:
            return v
        try:
            parsed = date.fromisoformat(v)
        except ValueError:
            raise ValueError('Birth date must use the YYYY-MM-DD format')
        if parsed > date.today():
            raise ValueError('Birth date cannot be in the future')
        return v


class LocationCaptureRequest(RequestModel):
    """Geolocation fix captured by the client."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = Field(None, ge=0, description="Accuracy radius in meters")


class ImageCaptureRequest(RequestModel):
    """Base64 or data-URL encoded image capture."""

    image: str = Field(..., min_length=1, description="Base64 payload or data URL")


class CaptureErrorRequest(RequestModel):
    """Client-reported capture failure."""

    kind: CaptureKind
    code: CaptureErrorCode
    message: Optional[str] = Field(None, max_length=500)


class ProvincePath(BaseModel):
    """Path parameters for province scoped routes."""

    code: str = Field(..., description="Canonical province code")


class InviteTokenPath(BaseModel):
    """Path parameters for public invite routes."""

    token: str = Field(..., min_length=1, description="Plaintext invite token")
