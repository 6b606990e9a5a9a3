# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the barangay onboarding platform.
"""

# Base models
from .base import DocumentModel, utc_now, ensure_utc

# Enumerations
from .enums import (
    GeographicLevel,
    TenantStatus,
    CoverageStatus,
    MatchKind,
    WizardStep,
    VerificationStatus,
    InviteStatus,
    CaptureKind,
    CaptureErrorCode,
    UserRole,
    Permission
)

# Core entities
from .entities import (
    Coordinates,
    GeographicUnit,
    TenantRecord,
    ReconciledJurisdiction,
    InviteToken,
    GeoEvidence,
    CaptureError,
    VerificationDraft,
    VerificationResult,
    AuditLog,
    UserContext
)

# Request models
from .requests import (
    CoverageQuery,
    IssueInviteRequest,
    AcceptInviteRequest,
    SelectJurisdictionRequest,
    BiodataRequest,
    LocationCaptureRequest,
    ImageCaptureRequest,
    CaptureErrorRequest,
    ProvincePath,
    InviteTokenPath
)

# Response models
from .responses import (
    HalLink,
    HalResponse,
    GeographicUnitResponse,
    JurisdictionEntryResponse,
    CoverageSummary,
    CoverageResponse,
    InviteIssuedResponse,
    InviteScopeResponse,
    DraftResponse,
    VerificationResultResponse,
    HealthCheckResponse,
    ErrorResponse,
    ValidationErrorResponse
)

__all__ = [
    # Base models
    "DocumentModel",
    "utc_now",
    "ensure_utc",

    # Enumerations
    "GeographicLevel",
    "TenantStatus",
    "CoverageStatus",
    "MatchKind",
    "WizardStep",
    "VerificationStatus",
    "InviteStatus",
    "CaptureKind",
    "CaptureErrorCode",
    "UserRole",
    "Permission",

    # Core entities
    "Coordinates",
    "GeographicUnit",
    "TenantRecord",
    "ReconciledJurisdiction",
    "InviteToken",
    "GeoEvidence",
    "CaptureError",
    "VerificationDraft",
    "VerificationResult",
    "AuditLog",
    "UserContext",

    # Request models
    "CoverageQuery",
    "IssueInviteRequest",
    "AcceptInviteRequest",
    "SelectJurisdictionRequest",
    "BiodataRequest",
    "LocationCaptureRequest",
    "ImageCaptureRequest",
    "CaptureErrorRequest",
    "ProvincePath",
    "InviteTokenPath",

    # Response models
    "HalLink",
    "HalResponse",
    "GeographicUnitResponse",
    "JurisdictionEntryResponse",
    "CoverageSummary",
    "CoverageResponse",
    "InviteIssuedResponse",
    "InviteScopeResponse",
    "DraftResponse",
    "VerificationResultResponse",
    "HealthCheckResponse",
    "ErrorResponse",
    "ValidationErrorResponse"
]
