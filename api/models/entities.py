# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the barangay onboarding platform.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any
from bson import ObjectId
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from .base import DocumentModel, utc_now
from .enums import (
    GeographicLevel,
    TenantStatus,
    CoverageStatus,
    MatchKind,
    WizardStep,
    VerificationStatus,
    CaptureKind,
    CaptureErrorCode,
    UserRole
)


class Coordinates(DocumentModel):
    """A WGS84 coordinate pair."""

    lat: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    lng: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


class GeographicUnit(BaseModel):
    """Immutable unit of the canonical province/city/barangay index."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    code: str = Field(..., min_length=1, description="Stable PSGC code")
    name: str = Field(..., min_length=1, description="Official name")
    parent_code: Optional[str] = Field(None, description="Code of the enclosing unit")
    level: GeographicLevel = Field(..., description="Hierarchy level")
    region_code: Optional[str] = Field(None, description="Region the unit belongs to")

    @model_validator(mode='after')
    def validate_parent(self):
        """Cities and barangays always hang off a parent unit."""
        if self.level != GeographicLevel.PROVINCE and not self.parent_code:
            raise ValueError(f'{self.level} unit {self.code} requires a parent code')
        return self


class TenantRecord(DocumentModel):
    """Provisioned tenant as stored in the tenant directory."""

    tenant_id: str = Field(..., min_length=1, description="Immutable tenant identifier")
    barangay_name: str = Field(..., alias="barangay", description="Self-reported barangay name")
    city_name: str = Field(..., alias="city", description="City or municipality name")
    province_name: str = Field(..., alias="province", description="Province name")
    region: Optional[str] = Field(None, description="Region name")
    status: Optional[TenantStatus] = Field(None, description="Provisioning status")
    centroid: Optional[Coordinates] = Field(None, description="Registered centroid")
    population: Optional[int] = Field(None, ge=0, description="Registered population")
    quality: Optional[int] = Field(None, ge=0, description="Directory data quality score")
    created_at: Optional[datetime] = Field(None, description="Provisioning timestamp")


class ReconciledJurisdiction(BaseModel):
    """Canonical barangay paired with zero or one tenant record. Never persisted."""

    model_config = ConfigDict(use_enum_values=True)

    unit: GeographicUnit
    tenant: Optional[TenantRecord] = None
    status: CoverageStatus
    match_kind: MatchKind = MatchKind.NONE
    population: int = 0
    quality: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Flatten for API responses."""
        return {
            "code": self.unit.code,
            "name": self.unit.name,
            "cityCode": self.unit.parent_code,
            "status": self.status,
            "matchKind": self.match_kind,
            "tenantId": self.tenant.tenant_id if self.tenant else None,
            "tenantName": self.tenant.barangay_name if self.tenant else None,
            "population": self.population,
            "quality": self.quality
        }


class InviteToken(DocumentModel):
    """Single-use onboarding invite scoped to one province/city/barangay tuple."""

    token: Optional[str] = Field(None, description="Plaintext token, only present at issuance")
    token_hash: str = Field(..., description="SHA-256 digest used as the stored key")
    province_name: str = Field(..., alias="province")
    city_name: str = Field(..., alias="city")
    barangay_name: str = Field(..., alias="barangay")
    region: Optional[str] = Field(None)
    issued_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    expires_at: datetime = Field(...)
    consumed: bool = Field(default=False)
    consumed_at: Optional[datetime] = Field(None, alias="usedAt")
    consumed_by: Optional[str] = Field(None, alias="usedBy")
    tenant_created: Optional[str] = Field(None)

    @model_validator(mode='after')
    def validate_expiry(self):
        """Expiry must come after issuance."""
        if self.expires_at <= self.issued_at:
            raise ValueError('expires_at must be after issued_at')
        return self

    def scope(self) -> Dict[str, Optional[str]]:
        """The tuple this token was issued for."""
        return {
            "province": self.province_name,
            "city": self.city_name,
            "barangay": self.barangay_name,
            "region": self.region
        }


class GeoEvidence(DocumentModel):
    """Captured location fix with its advisory distance to the tenant centroid."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    distance_km: float = Field(..., ge=0)
    accuracy: Optional[float] = Field(None, ge=0, description="Reported accuracy in meters")
    captured_at: datetime = Field(default_factory=utc_now)


class CaptureError(BaseModel):
    """Visible, retryable capture failure. Held in memory only."""

    model_config = ConfigDict(use_enum_values=True)

    kind: CaptureKind
    code: CaptureErrorCode
    message: str


class VerificationDraft(DocumentModel):
    """Resumable wizard progress. Exactly one per user, overwritten on every write."""

    owner_user_id: str = Field(..., min_length=1)
    step: int = Field(default=WizardStep.JURISDICTION_SELECT.value, ge=1, le=5)
    tenant_id: Optional[str] = None
    birth_date: Optional[str] = None
    mothers_maiden_name: Optional[str] = None
    geo: Optional[GeoEvidence] = None
    id_image: Optional[str] = None
    selfie_image: Optional[str] = None
    selected_province_code: Optional[str] = None
    selected_city_code: Optional[str] = None
    last_updated: datetime = Field(default_factory=utc_now)

    @field_validator('birth_date', 'mothers_maiden_name')
    @classmethod
    def strip_text(cls, v):
        """Whitespace-only input counts as empty."""
        if v is None:
            return v
        v = v.strip()
        return v or None

    def summary(self) -> Dict[str, Any]:
        """Draft view without image payloads."""
        data = self.model_dump(by_alias=True, mode="json")
        data["idImage"] = bool(self.id_image)
        data["selfieImage"] = bool(self.selfie_image)
        return data


class VerificationResult(BaseModel):
    """Adjudicator outcome. Not persisted by this core."""

    model_config = ConfigDict(use_enum_values=True)

    status: VerificationStatus
    reason: Optional[str] = None


class AuditLog(BaseModel):
    """Audit log entry for compliance and accountability."""

    id: str = Field(default_factory=lambda: str(ObjectId()), description="Unique identifier")
    timestamp: datetime = Field(default_factory=utc_now, description="Action timestamp")
    user_id: str = Field(..., description="User who performed the action")
    tenant_id: Optional[str] = Field(None, description="Tenant scope, when known")
    entity: str = Field(..., description="Entity type")
    entity_id: str = Field(..., description="Entity identifier")
    action: str = Field(..., description="Action performed")
    details: Optional[Dict[str, Any]] = Field(None, description="Action specific fields, never secrets or images")
    trace_id: Optional[str] = Field(None, description="OpenTelemetry trace ID")
    span_id: Optional[str] = Field(None, description="OpenTelemetry span ID")

    @field_validator('entity')
    @classmethod
    def validate_entity(cls, v):
        """Validate entity type."""
        valid_entities = ['invite', 'verification_draft', 'verification_submission']
        if v not in valid_entities:
            raise ValueError(f'Invalid entity type: {v}')
        return v

    @field_validator('action')
    @classmethod
    def validate_action(cls, v):
        """Validate action type."""
        valid_actions = ['issue', 'accept', 'submit', 'reject', 'abandon']
        if v not in valid_actions:
            raise ValueError(f'Invalid action type: {v}')
        return v


class UserContext(BaseModel):
    """User context for request processing with authentication and authorization data."""

    user_id: str = Field(..., description="Authenticated user ID")
    role: UserRole = Field(default=UserRole.RESIDENT, description="Role claim")
    tenant_id: Optional[str] = Field(None, description="Tenant the user belongs to, if any")
    email: Optional[str] = Field(None, description="User email")
    permissions: List[str] = Field(default_factory=list, description="User's effective permissions")
    credential: Optional[str] = Field(None, description="Raw bearer credential")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")
    session_id: Optional[str] = Field(None, description="Session identifier")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def has_permission(self, permission: str) -> bool:
        """Check if user has a specific permission."""
        return permission in self.permissions
