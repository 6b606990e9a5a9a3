# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Submission gateway to the external identity adjudicator.

Packages a completed verification draft, forwards it with the resident's
bearer credential and interprets the terminal result. The decision itself
is made by the adjudicator.
"""

import os
import logging
from typing import Any, Dict, Optional
import requests
from opentelemetry import trace

from models.entities import VerificationDraft, VerificationResult
from models.enums import VerificationStatus

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_ADJUDICATOR_URL = "http://localhost:8080/api/resident/verify-identity"
DEFAULT_TIMEOUT_SECONDS = 30

# Older adjudicator deployments answer `manual_review`
STATUS_ALIASES = {
    "verified": VerificationStatus.VERIFIED,
    "pending_review": VerificationStatus.PENDING_REVIEW,
    "manual_review": VerificationStatus.PENDING_REVIEW,
}

UNREACHABLE_REASON = "Adjudication service unreachable"


class SubmissionRejected(Exception):
    """The adjudicator did not return a terminal outcome. The draft must be kept."""

    def __init__(self, reason: str, status_code: Optional[int] = None):
        self.reason = reason
        self.status_code = status_code
        super().__init__(reason)


def build_payload(draft: VerificationDraft) -> Dict[str, Any]:
    """Request body for a completed draft."""
    geo = draft.geo
    return {
        "tenantId": draft.tenant_id,
        "birthDate": draft.birth_date,
        "mothersMaidenName": draft.mothers_maiden_name,
        "location": {
            "lat": geo.lat if geo else None,
            "lng": geo.lng if geo else None,
            "distance": geo.distance_km if geo else None,
        },
        "idImage": draft.id_image,
        "selfieImage": draft.selfie_image,
    }


def interpret_response(response: requests.Response) -> VerificationResult:
    """
    Map an adjudicator response to a terminal result.

    Raises:
        SubmissionRejected: Non-2xx, unknown status, or a `failed` outcome
    """
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    if not response.ok:
        reason = body.get("error") or body.get("reason") or response.reason or "Verification failed"
        raise SubmissionRejected(str(reason), response.status_code)

    status = STATUS_ALIASES.get(str(body.get("status", "")).lower())
    if status is None:
        reason = body.get("reason") or body.get("error") or "Verification failed"
        raise SubmissionRejected(str(reason), response.status_code)

    return VerificationResult(status=status, reason=body.get("reason"))


class SubmissionGateway:
    """HTTP client for the adjudicator boundary."""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        self.url = url or os.getenv("ADJUDICATOR_URL", DEFAULT_ADJUDICATOR_URL)
        self.timeout = timeout or float(os.getenv("ADJUDICATOR_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
        self.session = session or requests.Session()

    def submit(self, draft: VerificationDraft, credential: str) -> VerificationResult:
        """
        Forward a completed draft to the adjudicator.

        Args:
            draft: Completed verification draft
            credential: Caller's raw bearer credential

        Returns:
            VerificationResult with status verified or pending_review

        Raises:
            SubmissionRejected: Transport failure or non-terminal outcome
        """
        with tracer.start_as_current_span("adjudicator.submit") as span:
            span.set_attributes({
                "user.id": draft.owner_user_id,
                "tenant.id": draft.tenant_id or "",
                "adjudicator.url": self.url
            })

            try:
                response = self.session.post(
                    self.url,
                    json=build_payload(draft),
                    headers={"Authorization": f"Bearer {credential}"},
                    timeout=self.timeout
                )
            except requests.RequestException as e:
                span.record_exception(e)
                span.set_attribute("adjudicator.status", "unreachable")
                logger.error("Adjudicator request failed", extra={
                    "user_id": draft.owner_user_id,
                    "tenant_id": draft.tenant_id,
                    "error": str(e)
                })
                raise SubmissionRejected(UNREACHABLE_REASON) from e

            span.set_attribute("http.status_code", response.status_code)
            try:
                result = interpret_response(response)
            except SubmissionRejected as e:
                span.set_attribute("adjudicator.status", "rejected")
                logger.warning("Adjudicator rejected submission", extra={
                    "user_id": draft.owner_user_id,
                    "tenant_id": draft.tenant_id,
                    "status_code": e.status_code,
                    "reason": e.reason
                })
                raise

            span.set_attribute("adjudicator.status", result.status)
            logger.info("Adjudicator returned terminal outcome", extra={
                "user_id": draft.owner_user_id,
                "tenant_id": draft.tenant_id,
                "status": result.status
            })
            return result
