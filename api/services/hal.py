# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Implements HATEOAS responses with conditional affordance links.
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin, urlencode

from models.responses import HalLink

PROBLEM_BASE_URL = "https://api.barangay-onboarding.ph/problems"

WIZARD_BASE_PATH = "/api/verification"


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url, path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated or None
        )

    def build_self_link(self, resource_path: str) -> HalLink:
        """Build self link for a resource."""
        return self.build_link(resource_path, title="Self")

    def build_action_link(
        self,
        path: str,
        method: str = "POST",
        title: Optional[str] = None
    ) -> HalLink:
        """Build a link for a state-changing action."""
        return self.build_link(
            path,
            method=method,
            content_type="application/json",
            title=title
        )


class AffordanceLinkBuilder:
    """Builder for conditional affordance links based on permissions and state."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def build_wizard_affordances(
        self,
        step: int,
        can_advance: bool,
        complete: bool
    ) -> Dict[str, HalLink]:
        """
        Links valid for the wizard's current step.

        `next` only appears when the step guard holds, `back` from step 2 on,
        and `submit` once step 5 is reached with every guard satisfied.
        """
        draft_path = f"{WIZARD_BASE_PATH}/draft"
        lb = self.link_builder

        links = {
            'self': lb.build_self_link(draft_path),
            'abandon': lb.build_link(draft_path, method="DELETE", title="Abandon verification"),
            'capture-error': lb.build_action_link(f"{draft_path}/capture-error", title="Report capture failure"),
        }

        if step == 1:
            links['jurisdiction'] = lb.build_action_link(f"{draft_path}/jurisdiction", method="PUT", title="Select jurisdiction")
        elif step == 2:
            links['biodata'] = lb.build_action_link(f"{draft_path}/biodata", method="PUT", title="Enter biodata")
        elif step == 3:
            links['location'] = lb.build_action_link(f"{draft_path}/location", title="Capture location")
        elif step == 4:
            links['document'] = lb.build_action_link(f"{draft_path}/document", title="Capture ID document")
        elif step == 5:
            links['selfie'] = lb.build_action_link(f"{draft_path}/selfie", title="Capture selfie")

        if can_advance and step < 5:
            links['next'] = lb.build_action_link(f"{draft_path}/next", title="Next step")
        if step > 1:
            links['back'] = lb.build_action_link(f"{draft_path}/back", title="Previous step")
        if step == 5 and complete:
            links['submit'] = lb.build_action_link(f"{WIZARD_BASE_PATH}/submit", title="Submit for verification")

        return links

    def build_coverage_affordances(
        self,
        province_code: str,
        city_code: str,
        user_permissions: List[str],
        query: Optional[str] = None
    ) -> Dict[str, HalLink]:
        """Links for a city coverage view."""
        params = {"province": province_code, "city": city_code}
        if query:
            params["q"] = query

        links = {
            'self': self.link_builder.build_self_link(f"/api/jurisdictions/coverage?{urlencode(params)}"),
            'cities': self.link_builder.build_link(
                f"/api/jurisdictions/provinces/{province_code}/cities",
                title="Cities of this province"
            )
        }

        if "invite:create" in user_permissions:
            links['invite'] = self.link_builder.build_action_link(
                "/api/admin/invites", title="Issue onboarding invite"
            )

        return links


class HalResponseBuilder:
    """Main HAL response builder."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)
        self.affordance_builder = AffordanceLinkBuilder(base_url)

    def build_resource_response(
        self,
        data: Dict[str, Any],
        links: Dict[str, HalLink]
    ) -> Dict[str, Any]:
        """Attach `_links` to a resource body."""
        response = dict(data)
        response['_links'] = {
            rel: link.model_dump(exclude_none=True) for rel, link in links.items()
        }
        return response

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"{PROBLEM_BASE_URL}/{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if validation_errors:
            error_response['errors'] = validation_errors

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }

        if error_type == "validation-error":
            links['schema'] = self.link_builder.build_link(
                "/openapi/openapi.json",
                title="API schema"
            )
        elif error_type == "submission-rejected":
            links['retry'] = self.link_builder.build_action_link(
                f"{WIZARD_BASE_PATH}/submit",
                title="Retry submission"
            )
            links['draft'] = self.link_builder.build_link(
                f"{WIZARD_BASE_PATH}/draft",
                title="Retained draft"
            )

        return self.build_resource_response(error_response, links)


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.builder = HalResponseBuilder(base_url)

    def format_draft(self, body: Dict[str, Any], step: int, can_advance: bool, complete: bool) -> Dict[str, Any]:
        """Format a wizard state body with its step affordances."""
        links = self.builder.affordance_builder.build_wizard_affordances(step, can_advance, complete)
        return self.builder.build_resource_response(body, links)

    def format_coverage(
        self,
        body: Dict[str, Any],
        province_code: str,
        city_code: str,
        user_permissions: List[str],
        query: Optional[str] = None
    ) -> Dict[str, Any]:
        links = self.builder.affordance_builder.build_coverage_affordances(
            province_code, city_code, user_permissions, query
        )
        return self.builder.build_resource_response(body, links)

    def format_resource(self, body: Dict[str, Any], self_path: str, **extra_links: HalLink) -> Dict[str, Any]:
        """Format a plain resource with a self link and optional extras."""
        links = {'self': self.builder.link_builder.build_self_link(self_path)}
        links.update(extra_links)
        return self.builder.build_resource_response(body, links)

    def link(self, path: str, **kwargs) -> HalLink:
        return self.builder.link_builder.build_link(path, **kwargs)

    def format_validation_error(
        self,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        status: int = 400
    ) -> Dict[str, Any]:
        """Format a validation error response."""
        return self.builder.build_error_response(
            "validation-error",
            "Validation Error",
            status,
            detail,
            instance,
            validation_errors
        )

    def format_authentication_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "authentication-required",
            "Authentication Required",
            401,
            detail,
            instance
        )

    def format_authorization_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "insufficient-permissions",
            "Insufficient Permissions",
            403,
            detail,
            instance
        )

    def format_not_found_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "resource-not-found",
            "Resource Not Found",
            404,
            detail,
            instance
        )

    def format_server_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "internal-server-error",
            "Internal Server Error",
            500,
            detail,
            instance
        )


def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
