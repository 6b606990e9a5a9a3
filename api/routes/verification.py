# SPDX-License-Identifier: Apache-2.0

"""
Resident verification wizard endpoints.

Each call works on the caller's own wizard session; every mutation is
persisted as a full draft before the response is built. Guard, selection
and submission failures propagate to the registered error handlers.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.entities import UserContext
from models.enums import Permission
from models.requests import (
    SelectJurisdictionRequest, BiodataRequest, LocationCaptureRequest,
    ImageCaptureRequest, CaptureErrorRequest
)
from models.responses import DraftResponse, VerificationResultResponse
from middleware.auth import require_jwt
from services.hal import WIZARD_BASE_PATH

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

verification_tag = Tag(name="Verification", description="Resident verification wizard")
verification_bp = APIBlueprint(
    'verification',
    __name__,
    url_prefix=WIZARD_BASE_PATH,
    abp_tags=[verification_tag]
)

WRITE = Permission.VERIFICATION_WRITE.value


def _wizard(user_context: UserContext):
    return current_app.wizard_sessions.get(user_context.user_id)


def _draft_response(wizard, status: int = 200):
    body = current_app.hal_formatter.format_draft(
        wizard.to_dict(),
        wizard.step,
        wizard.can_advance(),
        wizard.is_complete()
    )
    return jsonify(body), status


@verification_bp.get('/draft', responses={200: DraftResponse})
@require_jwt(WRITE)
def get_draft(user_context: UserContext):
    """
    Load or resume the caller's wizard.

    A saved draft is restored at its step with every field and the option
    lists re-derived from the saved selector codes.
    """
    with tracer.start_as_current_span("verification.get_draft") as span:
        wizard = _wizard(user_context)
        span.set_attributes({"user.id": user_context.user_id, "wizard.step": wizard.step})
        return _draft_response(wizard)


@verification_bp.put('/draft/jurisdiction', responses={200: DraftResponse})
@require_jwt(WRITE)
def select_jurisdiction(user_context: UserContext, body: SelectJurisdictionRequest):
    """Step 1: update the province, city and tenant selectors."""
    with tracer.start_as_current_span("verification.select_jurisdiction"):
        wizard = _wizard(user_context)
        wizard.select_jurisdiction(
            province_code=body.province_code,
            city_code=body.city_code,
            tenant_id=body.tenant_id
        )
        return _draft_response(wizard)


@verification_bp.put('/draft/biodata', responses={200: DraftResponse})
@require_jwt(WRITE)
def set_biodata(user_context: UserContext, body: BiodataRequest):
    """Step 2: birth date and mother's maiden name. Omitted fields are kept."""
    with tracer.start_as_current_span("verification.set_biodata"):
        wizard = _wizard(user_context)
        wizard.set_biodata(body.birth_date, body.mothers_maiden_name)
        return _draft_response(wizard)


@verification_bp.post('/draft/next', responses={200: DraftResponse})
@require_jwt(WRITE)
def next_step(user_context: UserContext):
    """Advance when the current step's guard holds."""
    with tracer.start_as_current_span("verification.next") as span:
        wizard = _wizard(user_context)
        wizard.next()
        span.set_attribute("wizard.step", wizard.step)
        return _draft_response(wizard)


@verification_bp.post('/draft/back', responses={200: DraftResponse})
@require_jwt(WRITE)
def previous_step(user_context: UserContext):
    """Go back one step, keeping everything captured so far."""
    with tracer.start_as_current_span("verification.back") as span:
        wizard = _wizard(user_context)
        wizard.back()
        span.set_attribute("wizard.step", wizard.step)
        return _draft_response(wizard)


@verification_bp.post('/draft/location', responses={200: DraftResponse})
@require_jwt(WRITE)
def capture_location(user_context: UserContext, body: LocationCaptureRequest):
    """Step 3: record a location fix and its distance to the tenant centroid."""
    with tracer.start_as_current_span("verification.capture_location"):
        wizard = _wizard(user_context)
        wizard.capture_location(body.lat, body.lng, body.accuracy)
        return _draft_response(wizard)


@verification_bp.post('/draft/document', responses={200: DraftResponse})
@require_jwt(WRITE)
def capture_document(user_context: UserContext, body: ImageCaptureRequest):
    """Step 4: record the identity document image."""
    with tracer.start_as_current_span("verification.capture_document"):
        wizard = _wizard(user_context)
        wizard.capture_document(body.image)
        return _draft_response(wizard)


@verification_bp.post('/draft/selfie', responses={200: DraftResponse})
@require_jwt(WRITE)
def capture_selfie(user_context: UserContext, body: ImageCaptureRequest):
    """Step 5: record the liveness selfie."""
    with tracer.start_as_current_span("verification.capture_selfie"):
        wizard = _wizard(user_context)
        wizard.capture_selfie(body.image)
        return _draft_response(wizard)


@verification_bp.post('/draft/capture-error', responses={200: DraftResponse})
@require_jwt(WRITE)
def report_capture_error(user_context: UserContext, body: CaptureErrorRequest):
    """
    Report a camera or geolocation failure from the client.

    The error is shown until the next successful capture; nothing retries
    automatically.
    """
    with tracer.start_as_current_span("verification.capture_error") as span:
        wizard = _wizard(user_context)
        wizard.report_capture_error(body.kind, body.code, body.message)
        span.set_attributes({"capture.kind": body.kind, "capture.code": body.code})
        return _draft_response(wizard)


@verification_bp.delete('/draft', responses={200: DraftResponse})
@require_jwt(WRITE)
def abandon_draft(user_context: UserContext):
    """Abandon verification. The saved draft is deleted."""
    with tracer.start_as_current_span("verification.abandon"):
        wizard = _wizard(user_context)
        wizard.abandon()
        logger.info("Verification abandoned", extra={"user_id": user_context.user_id})
        return _draft_response(wizard)


@verification_bp.post('/submit', responses={200: VerificationResultResponse})
@require_jwt(WRITE)
def submit_verification(user_context: UserContext):
    """
    Forward the completed draft to the adjudicator.

    On `verified` or `pending_review` the draft is cleared. When the
    adjudicator rejects or cannot be reached the draft is kept as is.
    """
    with tracer.start_as_current_span("verification.submit") as span:
        wizard = _wizard(user_context)
        result = wizard.submit(user_context.credential)
        span.set_attribute("adjudicator.status", result.status)

        hal = current_app.hal_formatter
        response = hal.format_resource(
            {"status": result.status, "reason": result.reason},
            f"{WIZARD_BASE_PATH}/submit",
            draft=hal.link(f"{WIZARD_BASE_PATH}/draft", title="Verification draft")
        )
        return jsonify(response), 200
