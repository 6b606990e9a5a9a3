# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for HAL response formatting utilities.
"""

import pytest
from services.hal import (
    HalLinkBuilder, AffordanceLinkBuilder, HalResponseBuilder, HalFormatter,
    create_hal_formatter, PROBLEM_BASE_URL
)
from models.responses import HalLink


class TestHalLinkBuilder:
    """Test HAL link builder functionality."""

    def test_build_basic_link(self):
        """Test building a basic HAL link."""
        builder = HalLinkBuilder("https://api.example.com")

        link = builder.build_link("/api/jurisdictions/provinces")

        assert isinstance(link, HalLink)
        assert link.href == "https://api.example.com/api/jurisdictions/provinces"
        assert link.method == "GET"
        assert link.type is None
        assert link.templated is None

    def test_build_link_with_options(self):
        """Test building a link with all options."""
        builder = HalLinkBuilder("https://api.example.com")

        link = builder.build_link(
            "/api/jurisdictions/provinces/{code}/cities",
            method="GET",
            content_type="application/json",
            title="Cities",
            templated=True
        )

        assert link.type == "application/json"
        assert link.title == "Cities"
        assert link.templated is True

    def test_build_self_link(self):
        """Test building a self link."""
        builder = HalLinkBuilder("https://api.example.com")

        link = builder.build_self_link("/api/verification/draft")

        assert link.href == "https://api.example.com/api/verification/draft"
        assert link.title == "Self"

    def test_build_action_link(self):
        """Test action links default to a JSON POST."""
        builder = HalLinkBuilder("https://api.example.com")

        link = builder.build_action_link("/api/admin/invites", title="Issue invite")

        assert link.method == "POST"
        assert link.type == "application/json"
        assert link.title == "Issue invite"

    def test_base_url_normalization(self):
        """Test that base URL is properly normalized."""
        builder = HalLinkBuilder("https://api.example.com/")

        link = builder.build_link("/api/test")

        assert link.href == "https://api.example.com/api/test"


class TestAffordanceLinkBuilder:
    """Test conditional affordance links."""

    def setup_method(self):
        self.builder = AffordanceLinkBuilder("https://api.example.com")

    def test_first_step_without_selection(self):
        """Test step 1 offers selection but no navigation."""
        links = self.builder.build_wizard_affordances(1, can_advance=False, complete=False)

        assert links['jurisdiction'].method == "PUT"
        assert 'next' not in links
        assert 'back' not in links
        assert 'submit' not in links
        assert links['abandon'].method == "DELETE"

    def test_next_when_guard_holds(self):
        """Test next appears once the step can advance."""
        links = self.builder.build_wizard_affordances(1, can_advance=True, complete=False)

        assert links['next'].href == "https://api.example.com/api/verification/draft/next"

    @pytest.mark.parametrize("step,rel", [
        (2, 'biodata'),
        (3, 'location'),
        (4, 'document'),
        (5, 'selfie'),
    ])
    def test_step_capture_links(self, step, rel):
        """Test each step exposes its own input and a back link."""
        links = self.builder.build_wizard_affordances(step, can_advance=False, complete=False)

        assert rel in links
        assert 'back' in links
        assert 'jurisdiction' not in links

    def test_last_step(self):
        """Test the last step offers submit instead of next."""
        links = self.builder.build_wizard_affordances(5, can_advance=True, complete=True)

        assert 'next' not in links
        assert links['submit'].href == "https://api.example.com/api/verification/submit"

    def test_last_step_incomplete(self):
        """Test submit is withheld until every guard holds."""
        links = self.builder.build_wizard_affordances(5, can_advance=False, complete=False)

        assert 'submit' not in links

    def test_coverage_affordances(self):
        """Test coverage links carry the filter and omit invites without permission."""
        links = self.builder.build_coverage_affordances(
            "031400000", "031410000", ["jurisdiction:read"], query="san vicente"
        )

        assert links['self'].href == (
            "https://api.example.com/api/jurisdictions/coverage"
            "?province=031400000&city=031410000&q=san+vicente"
        )
        assert links['cities'].href.endswith("/provinces/031400000/cities")
        assert 'invite' not in links

    def test_coverage_invite_affordance(self):
        """Test invite issuers see the invite action."""
        links = self.builder.build_coverage_affordances(
            "031400000", "031410000", ["jurisdiction:read", "invite:create"]
        )

        assert links['invite'].href == "https://api.example.com/api/admin/invites"
        assert 'q=' not in links['self'].href


class TestHalResponseBuilder:
    """Test HAL response builder functionality."""

    def setup_method(self):
        self.builder = HalResponseBuilder("https://api.example.com")

    def test_build_resource_response(self):
        """Test links are dumped without empty fields."""
        response = self.builder.build_resource_response(
            {"code": "031400000"},
            {"self": HalLink(href="https://api.example.com/x", method="GET")}
        )

        assert response == {
            "code": "031400000",
            "_links": {"self": {"href": "https://api.example.com/x", "method": "GET"}}
        }

    def test_build_error_response(self):
        """Test building an RFC 7807 error response."""
        response = self.builder.build_error_response(
            "validation-error",
            "Validation Error",
            422,
            "Invalid input",
            "/api/admin/invites",
            [{"field": "barangay", "message": "Field required", "type": "missing"}]
        )

        assert response["type"] == f"{PROBLEM_BASE_URL}/validation-error"
        assert response["status"] == 422
        assert response["errors"][0]["field"] == "barangay"
        assert response["_links"]["help"]["href"].endswith("/docs/errors#validation-error")
        assert "schema" in response["_links"]

    def test_submission_rejected_links(self):
        """Test rejected submissions point back to the retained draft."""
        response = self.builder.build_error_response(
            "submission-rejected", "Submission Rejected", 502, "Adjudicator unreachable", "/api/verification/submit"
        )

        assert "errors" not in response
        assert response["_links"]["retry"]["method"] == "POST"
        assert response["_links"]["draft"]["href"] == "https://api.example.com/api/verification/draft"
        assert "schema" not in response["_links"]


class TestHalFormatter:
    """Test HAL formatter convenience methods."""

    def setup_method(self):
        self.formatter = create_hal_formatter("https://api.example.com")

    def test_create_hal_formatter(self):
        """Test the factory builds a formatter."""
        assert isinstance(self.formatter, HalFormatter)

    def test_format_resource_with_extra_links(self):
        """Test plain resources get a self link and any extras."""
        body = self.formatter.format_resource(
            {"count": 0},
            "/api/jurisdictions/provinces",
            provinces=self.formatter.link("/api/jurisdictions/provinces", title="Provinces")
        )

        assert body["_links"]["self"]["title"] == "Self"
        assert body["_links"]["provinces"]["title"] == "Provinces"

    def test_format_draft(self):
        """Test draft bodies carry their step affordances."""
        body = self.formatter.format_draft({"draft": {"step": 2}}, 2, can_advance=True, complete=False)

        assert body["draft"] == {"step": 2}
        assert {"self", "biodata", "next", "back"} <= set(body["_links"])

    def test_format_authentication_error(self):
        """Test formatting authentication error."""
        response = self.formatter.format_authentication_error("Missing token", "/api/verification/draft")

        assert response["type"].endswith("/authentication-required")
        assert response["status"] == 401

    def test_format_authorization_error(self):
        """Test formatting authorization error."""
        response = self.formatter.format_authorization_error("Missing permission", "/api/admin/invites")

        assert response["type"].endswith("/insufficient-permissions")
        assert response["status"] == 403

    def test_format_validation_error_default_status(self):
        """Test validation errors default to 400."""
        response = self.formatter.format_validation_error("Bad input", "/api/x")

        assert response["status"] == 400
        assert "errors" not in response
