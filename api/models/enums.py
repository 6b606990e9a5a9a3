# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the barangay onboarding platform.
"""

from enum import Enum


class GeographicLevel(str, Enum):
    """Level of a unit in the canonical PSGC hierarchy."""
    PROVINCE = "province"
    CITY = "city"
    BARANGAY = "barangay"


class TenantStatus(str, Enum):
    """Provisioning status of a tenant directory record."""
    ONBOARDING = "Onboarding"
    LIVE = "Live"
    REJECTED = "Rejected"


class CoverageStatus(str, Enum):
    """Derived coverage status of a canonical barangay."""
    LIVE = "Live"
    ONBOARDING = "Onboarding"
    REJECTED = "Rejected"
    UNTAPPED = "Untapped"


class MatchKind(str, Enum):
    """How a canonical barangay was paired with a tenant record."""
    EXACT = "exact"
    SUBSTRING = "substring"
    NONE = "none"


class WizardStep(int, Enum):
    """Steps of the resident verification wizard (1-5)."""
    JURISDICTION_SELECT = 1
    BIODATA = 2
    GEOFENCE = 3
    DOCUMENT_CAPTURE = 4
    LIVENESS_CAPTURE = 5


class VerificationStatus(str, Enum):
    """Terminal adjudication outcome."""
    VERIFIED = "verified"
    PENDING_REVIEW = "pending_review"


class InviteStatus(str, Enum):
    """Stored lifecycle status of an onboarding invite."""
    PENDING = "pending"
    USED = "used"


class CaptureKind(str, Enum):
    """Hardware-backed captures performed by the wizard."""
    LOCATION = "location"
    DOCUMENT = "document"
    SELFIE = "selfie"


class CaptureErrorCode(str, Enum):
    """Client-reported capture failure reasons."""
    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"


class UserRole(str, Enum):
    """Roles carried in access tokens."""
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    RESIDENT = "resident"


class Permission(str, Enum):
    """Permissions checked by the route decorators."""
    JURISDICTION_READ = "jurisdiction:read"
    INVITE_CREATE = "invite:create"
    VERIFICATION_WRITE = "verification:write"
