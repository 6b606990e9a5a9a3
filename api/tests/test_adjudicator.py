# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the adjudicator submission gateway.
"""

import json
import pytest
import requests
from unittest.mock import MagicMock

from models.entities import VerificationDraft, GeoEvidence
from services.adjudicator import (
    SubmissionGateway, SubmissionRejected, build_payload, interpret_response, UNREACHABLE_REASON
)

ADJUDICATOR_URL = "https://adjudicator.example.com/api/resident/verify-identity"


def make_response(status_code, body=None, reason=None):
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response._content = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    return response


def completed_draft():
    return VerificationDraft(
        owner_user_id="resident-1",
        step=5,
        tenant_id="malolos-atlag",
        birth_date="1990-01-01",
        mothers_maiden_name="Santos",
        geo=GeoEvidence(lat=14.84, lng=120.81, distance_km=0.42),
        id_image="aWQ=",
        selfie_image="c2VsZmll"
    )


class TestPayload:
    """Test the adjudicator request body."""

    def test_build_payload(self):
        """Test the payload carries every captured field."""
        payload = build_payload(completed_draft())

        assert payload == {
            "tenantId": "malolos-atlag",
            "birthDate": "1990-01-01",
            "mothersMaidenName": "Santos",
            "location": {"lat": 14.84, "lng": 120.81, "distance": 0.42},
            "idImage": "aWQ=",
            "selfieImage": "c2VsZmll"
        }

    def test_build_payload_without_geo(self):
        """Test a missing fix yields null coordinates."""
        payload = build_payload(VerificationDraft(owner_user_id="resident-1"))
        assert payload["location"] == {"lat": None, "lng": None, "distance": None}


class TestInterpretResponse:
    """Test mapping adjudicator answers to outcomes."""

    def test_verified(self):
        """Test a verified answer."""
        result = interpret_response(make_response(200, {"status": "verified"}))
        assert result.status == "verified"
        assert result.reason is None

    def test_pending_review(self):
        """Test a pending review answer keeps its reason."""
        result = interpret_response(make_response(200, {"status": "pending_review", "reason": "Low match"}))
        assert result.status == "pending_review"
        assert result.reason == "Low match"

    def test_manual_review_alias(self):
        """Test older manual review answers map to pending review."""
        result = interpret_response(make_response(200, {"status": "MANUAL_REVIEW"}))
        assert result.status == "pending_review"

    def test_failed_status(self):
        """Test a failed outcome is a rejection."""
        with pytest.raises(SubmissionRejected) as exc_info:
            interpret_response(make_response(200, {"status": "failed", "reason": "Selfie mismatch"}))

        assert exc_info.value.reason == "Selfie mismatch"
        assert exc_info.value.status_code == 200

    def test_unknown_status(self):
        """Test unknown statuses are rejections."""
        with pytest.raises(SubmissionRejected) as exc_info:
            interpret_response(make_response(200, {"status": "maybe"}))

        assert exc_info.value.reason == "Verification failed"

    def test_error_status_code(self):
        """Test non-2xx responses carry the adjudicator error."""
        with pytest.raises(SubmissionRejected) as exc_info:
            interpret_response(make_response(400, {"error": "Invalid ID image"}))

        assert exc_info.value.reason == "Invalid ID image"
        assert exc_info.value.status_code == 400

    def test_non_json_error(self):
        """Test non-JSON error bodies fall back to the HTTP reason."""
        with pytest.raises(SubmissionRejected) as exc_info:
            interpret_response(make_response(502, b"<html>Bad Gateway</html>", reason="Bad Gateway"))

        assert exc_info.value.reason == "Bad Gateway"

    def test_non_object_body(self):
        """Test a JSON list body is treated as no outcome."""
        with pytest.raises(SubmissionRejected):
            interpret_response(make_response(200, ["verified"]))


class TestSubmissionGateway:
    """Test the HTTP boundary."""

    def setup_method(self):
        self.session = MagicMock()
        self.gateway = SubmissionGateway(url=ADJUDICATOR_URL, timeout=5, session=self.session)

    def test_submit_posts_payload_with_credential(self):
        """Test the draft is posted with the caller's bearer credential."""
        self.session.post.return_value = make_response(200, {"status": "verified"})

        result = self.gateway.submit(completed_draft(), "jwt-token")

        assert result.status == "verified"
        self.session.post.assert_called_once()
        args, kwargs = self.session.post.call_args
        assert args[0] == ADJUDICATOR_URL
        assert kwargs["headers"] == {"Authorization": "Bearer jwt-token"}
        assert kwargs["json"]["tenantId"] == "malolos-atlag"
        assert kwargs["timeout"] == 5

    def test_network_failure(self):
        """Test transport errors become an unreachable rejection."""
        self.session.post.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(SubmissionRejected) as exc_info:
            self.gateway.submit(completed_draft(), "jwt-token")

        assert exc_info.value.reason == UNREACHABLE_REASON
        assert exc_info.value.status_code is None

    def test_timeout(self):
        """Test timeouts become an unreachable rejection."""
        self.session.post.side_effect = requests.Timeout("read timed out")

        with pytest.raises(SubmissionRejected) as exc_info:
            self.gateway.submit(completed_draft(), "jwt-token")

        assert exc_info.value.reason == UNREACHABLE_REASON

    def test_rejection_propagates(self):
        """Test adjudicator rejections reach the caller."""
        self.session.post.return_value = make_response(422, {"error": "Underage"})

        with pytest.raises(SubmissionRejected) as exc_info:
            self.gateway.submit(completed_draft(), "jwt-token")

        assert exc_info.value.reason == "Underage"

    def test_defaults_from_environment(self, monkeypatch):
        """Test the URL and timeout come from the environment when omitted."""
        monkeypatch.setenv("ADJUDICATOR_URL", "https://adj.internal/verify")
        monkeypatch.setenv("ADJUDICATOR_TIMEOUT_SECONDS", "12")

        gateway = SubmissionGateway(session=self.session)

        assert gateway.url == "https://adj.internal/verify"
        assert gateway.timeout == 12.0
