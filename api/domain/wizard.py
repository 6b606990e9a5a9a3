# SPDX-License-Identifier: Apache-2.0

"""
Verification wizard state machine.

Pure transitions over VerificationDraft. Every function returns a new draft
and leaves its input untouched; persistence is the caller's concern.

    1 Jurisdiction Select -> 2 Biodata -> 3 Geofence -> 4 Document -> 5 Liveness

Forward transitions are guarded by the fields each step collects. Back is
always allowed and never discards captured data.
"""

import base64
import binascii
import re
from typing import Dict, List, Optional, Tuple

from models.base import utc_now
from models.entities import CaptureError, GeoEvidence, VerificationDraft
from models.enums import CaptureErrorCode, CaptureKind, WizardStep

FIRST_STEP = WizardStep.JURISDICTION_SELECT.value
LAST_STEP = WizardStep.LIVENESS_CAPTURE.value

# Draft attribute and its wire name, per step
STEP_GUARDS: Dict[int, List[Tuple[str, str]]] = {
    WizardStep.JURISDICTION_SELECT.value: [("tenant_id", "tenantId")],
    WizardStep.BIODATA.value: [
        ("birth_date", "birthDate"),
        ("mothers_maiden_name", "mothersMaidenName"),
    ],
    WizardStep.GEOFENCE.value: [("geo", "geo")],
    WizardStep.DOCUMENT_CAPTURE.value: [("id_image", "idImage")],
    WizardStep.LIVENESS_CAPTURE.value: [("selfie_image", "selfieImage")],
}

CAPTURE_MESSAGES = {
    CaptureErrorCode.PERMISSION_DENIED.value: "Permission was denied. Allow access and try again.",
    CaptureErrorCode.UNAVAILABLE.value: "The device could not provide a reading. Try again.",
    CaptureErrorCode.TIMEOUT.value: "The capture timed out. Try again.",
}

DATA_URL_PATTERN = re.compile(r"^data:[\w.+-]+/[\w.+-]+;base64,", re.IGNORECASE)


class WizardError(Exception):
    """Base class for wizard transition errors."""


class GuardNotSatisfied(WizardError):
    """Raised when advancing past a step whose guard does not hold."""

    def __init__(self, step: int, missing: List[str]):
        self.step = step
        self.missing = missing
        super().__init__(f"Step {step} is incomplete: missing {', '.join(missing)}")


class InvalidTransition(WizardError):
    """Raised for transitions that do not exist, such as advancing past step 5."""


class InvalidCapture(WizardError):
    """Raised when a captured payload is malformed or too large."""


class CaptureDenied(WizardError):
    """Client-reported capture failure. Visible and retryable, never blocks Back."""

    def __init__(self, kind: str, code: str, message: Optional[str] = None):
        self.kind = CaptureKind(kind).value
        self.code = CaptureErrorCode(code).value
        self.message = message or CAPTURE_MESSAGES[self.code]
        super().__init__(self.message)

    def to_capture_error(self) -> CaptureError:
        return CaptureError(kind=self.kind, code=self.code, message=self.message)


def new_draft(owner_user_id: str) -> VerificationDraft:
    """Fresh draft at step 1."""
    return VerificationDraft(owner_user_id=owner_user_id, step=FIRST_STEP)


def _with(draft: VerificationDraft, **changes) -> VerificationDraft:
    data = draft.model_dump()
    data.update(changes)
    data["last_updated"] = utc_now()
    return VerificationDraft.model_validate(data)


def missing_for_step(draft: VerificationDraft, step: Optional[int] = None) -> List[str]:
    """Wire names of the fields blocking the given (default: current) step."""
    step = draft.step if step is None else step
    return [wire for attr, wire in STEP_GUARDS.get(step, []) if not getattr(draft, attr)]


def can_advance(draft: VerificationDraft) -> bool:
    """True when the current step's guard holds."""
    return not missing_for_step(draft)


def is_complete(draft: VerificationDraft) -> bool:
    """True when every step guard holds."""
    return all(not missing_for_step(draft, step) for step in STEP_GUARDS)


def advance(draft: VerificationDraft) -> VerificationDraft:
    """
    Move forward one step.

    Raises:
        GuardNotSatisfied: The current step's guard does not hold
        InvalidTransition: The draft is already at the last step
    """
    missing = missing_for_step(draft)
    if missing:
        raise GuardNotSatisfied(draft.step, missing)
    if draft.step >= LAST_STEP:
        raise InvalidTransition("Already at the last step; submit instead")
    return _with(draft, step=draft.step + 1)


def retreat(draft: VerificationDraft) -> VerificationDraft:
    """Move back one step. Stays at step 1 and keeps every captured field."""
    return _with(draft, step=max(FIRST_STEP, draft.step - 1))


def select_province(draft: VerificationDraft, province_code: Optional[str]) -> VerificationDraft:
    """Select a province. A different province clears the city and tenant."""
    if province_code == draft.selected_province_code:
        return _with(draft)
    return _with(
        draft,
        selected_province_code=province_code,
        selected_city_code=None,
        tenant_id=None
    )


def select_city(draft: VerificationDraft, city_code: Optional[str]) -> VerificationDraft:
    """Select a city. A different city clears the tenant."""
    if city_code == draft.selected_city_code:
        return _with(draft)
    return _with(draft, selected_city_code=city_code, tenant_id=None)


def select_tenant(draft: VerificationDraft, tenant_id: Optional[str]) -> VerificationDraft:
    return _with(draft, tenant_id=tenant_id or None)


def set_biodata(
    draft: VerificationDraft,
    birth_date: Optional[str] = None,
    mothers_maiden_name: Optional[str] = None
) -> VerificationDraft:
    """Update biodata. None leaves a field as is, an empty string clears it."""
    changes = {}
    if birth_date is not None:
        changes["birth_date"] = birth_date
    if mothers_maiden_name is not None:
        changes["mothers_maiden_name"] = mothers_maiden_name
    return _with(draft, **changes)


def record_location(
    draft: VerificationDraft,
    lat: float,
    lng: float,
    distance_km: float,
    accuracy: Optional[float] = None
) -> VerificationDraft:
    geo = GeoEvidence(lat=lat, lng=lng, distance_km=distance_km, accuracy=accuracy)
    return _with(draft, geo=geo.model_dump())


def record_document(draft: VerificationDraft, image: str) -> VerificationDraft:
    return _with(draft, id_image=image)


def record_selfie(draft: VerificationDraft, image: str) -> VerificationDraft:
    return _with(draft, selfie_image=image)


def normalize_image(data: str, max_bytes: int) -> str:
    """
    Validate an image capture and return its bare base64 payload.

    Args:
        data: Base64 string or `data:<mime>;base64,` URL
        max_bytes: Maximum decoded size

    Returns:
        Base64 payload without the data-URL header

    Raises:
        InvalidCapture: Payload is empty, not base64, or too large
    """
    payload = DATA_URL_PATTERN.sub("", (data or "").strip(), count=1)
    payload = "".join(payload.split())
    if not payload:
        raise InvalidCapture("Image payload is empty")

    try:
        decoded = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidCapture("Image payload is not valid base64")

    if not decoded:
        raise InvalidCapture("Image payload is empty")
    if len(decoded) > max_bytes:
        raise InvalidCapture(f"Image exceeds the {max_bytes} byte limit")

    return payload
