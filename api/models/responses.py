# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Response models for API endpoints with HAL support.
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime


class HalLink(BaseModel):
    """HAL link representation."""

    href: str = Field(..., description="Link URL")
    method: Optional[str] = Field(None, description="HTTP method")
    type: Optional[str] = Field(None, description="Content type")
    title: Optional[str] = Field(None, description="Link title")
    templated: Optional[bool] = Field(None, description="Whether URL is templated")


class HalResponse(BaseModel):
    """Base HAL response with links."""

    model_config = ConfigDict(populate_by_name=True)

    links: Dict[str, HalLink] = Field(default_factory=dict, alias="_links", description="HAL links")


class GeographicUnitResponse(BaseModel):
    """Canonical province or city entry."""

    code: str
    name: str
    parent_code: Optional[str] = Field(None, alias="parentCode")
    region: Optional[str] = None


class JurisdictionEntryResponse(BaseModel):
    """One reconciled barangay."""

    code: str
    name: str
    city_code: Optional[str] = Field(None, alias="cityCode")
    status: str = Field(..., description="Live, Onboarding, Rejected or Untapped")
    match_kind: str = Field(..., alias="matchKind", description="exact, substring or none")
    tenant_id: Optional[str] = Field(None, alias="tenantId")
    tenant_name: Optional[str] = Field(None, alias="tenantName")
    population: int = 0
    quality: int = 0


class CoverageSummary(BaseModel):
    """Per-city coverage counts."""

    total: int
    onboarded: int
    live: int
    onboarding: int
    rejected: int
    untapped: int


class CoverageResponse(HalResponse):
    """Reconciliation result for one province/city pair."""

    province: Optional[GeographicUnitResponse] = None
    city: Optional[GeographicUnitResponse] = None
    summary: CoverageSummary
    entries: List[JurisdictionEntryResponse] = Field(default_factory=list)


class InviteIssuedResponse(HalResponse):
    """Result of invite issuance."""

    success: bool
    token: Optional[str] = None
    link: Optional[str] = None
    tenant_slug: Optional[str] = Field(None, alias="tenantSlug")
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")
    reason: Optional[str] = None


class InviteScopeResponse(HalResponse):
    """Server-side scope of a pending invite."""

    success: bool
    data: Dict[str, Any] = Field(default_factory=dict)


class DraftResponse(HalResponse):
    """Current wizard state."""

    draft: Dict[str, Any] = Field(..., description="Draft without image payloads")
    can_advance: bool = Field(..., alias="canAdvance")
    missing: List[str] = Field(default_factory=list, description="Fields blocking the current step")
    capture_error: Optional[Dict[str, Any]] = Field(None, alias="captureError")
    options: Optional[Dict[str, Any]] = Field(None, description="Cascading selector option lists")


class VerificationResultResponse(HalResponse):
    """Adjudicator outcome returned to the resident."""

    status: str = Field(..., description="verified or pending_review")
    reason: Optional[str] = None


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str
    environment: str
    timestamp: str
    dependencies: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Error response model following RFC 7807."""

    type: str = Field(..., description="Error type URI")
    title: str = Field(..., description="Error title")
    status: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Error detail")
    instance: str = Field(..., description="Request instance")
    errors: Optional[List[Dict[str, Any]]] = Field(None, description="Validation errors")


class ValidationErrorResponse(ErrorResponse):
    """Validation error response with field details."""

    errors: List[Dict[str, Any]] = Field(..., description="Field validation errors")
