# SPDX-License-Identifier: Apache-2.0

"""
Onboarding invite endpoints.

Administrators mint single-use invite tokens for uncovered barangays. The
onboarding flow resolves a token to its scope and consumes it once the
tenant is provisioned; only the token is trusted, never the plaintext
parameters carried next to it in the link.
"""

from typing import Any, Dict, Optional
from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from domain.invites import hash_token
from models.entities import UserContext
from models.enums import Permission
from models.requests import IssueInviteRequest, AcceptInviteRequest, InviteTokenPath
from models.responses import InviteIssuedResponse, InviteScopeResponse
from middleware.auth import require_jwt
from middleware.error_handler import ServiceUnavailableException
from services.invites import InviteStoreUnavailable

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

invites_tag = Tag(name="Invites", description="Onboarding invite tokens")

admin_invites_bp = APIBlueprint(
    'admin_invites',
    __name__,
    url_prefix='/api/admin/invites',
    abp_tags=[invites_tag]
)

public_invites_bp = APIBlueprint(
    'public_invites',
    __name__,
    url_prefix='/api/public/invites',
    abp_tags=[invites_tag]
)


def _audit(user_id: str, action: str, entity_id: str, details: Dict[str, Any],
           user_context: Optional[UserContext] = None):
    try:
        current_app.audit_service.log_action(
            user_id=user_id,
            entity="invite",
            entity_id=entity_id,
            action=action,
            details=details,
            user_context=user_context
        )
    except Exception as e:
        logger.error("Audit entry for invite failed", extra={
            "action": action,
            "entity_id": entity_id,
            "error": str(e)
        })


def _scope_body(invite) -> Dict[str, Any]:
    return {
        "province": invite.province_name,
        "city": invite.city_name,
        "barangay": invite.barangay_name,
        "region": invite.region,
        "expiresAt": invite.expires_at.isoformat()
    }


@admin_invites_bp.post('', responses={201: InviteIssuedResponse})
@require_jwt(Permission.INVITE_CREATE.value)
def issue_invite(user_context: UserContext, body: IssueInviteRequest):
    """
    Mint an onboarding invite for a barangay.

    Reissuing for the same barangay returns a new token; earlier tokens stay
    valid until used or expired.
    """
    with tracer.start_as_current_span("invites.issue_endpoint") as span:
        span.set_attributes({
            "user.id": user_context.user_id,
            "invite.barangay": body.barangay
        })

        result = current_app.invite_issuer.issue(
            body.province,
            body.city,
            body.barangay,
            region=body.region,
            issued_by=user_context.user_id
        )

        if not result.success:
            span.set_attribute("invite.issued", False)
            raise ServiceUnavailableException(result.reason or "Failed to issue invite")

        token_hash = hash_token(result.token)
        _audit(user_context.user_id, "issue", token_hash, {
            "province": body.province,
            "city": body.city,
            "barangay": body.barangay,
            "expiresAt": result.expires_at.isoformat()
        }, user_context)

        span.set_attribute("invite.issued", True)

        hal = current_app.hal_formatter
        response = hal.format_resource(
            {
                "success": True,
                "token": result.token,
                "link": result.link,
                "tenantSlug": result.tenant_slug,
                "expiresAt": result.expires_at.isoformat()
            },
            "/api/admin/invites",
            verify=hal.link(f"/api/public/invites/{result.token}", title="Verify invite")
        )
        return jsonify(response), 201


@public_invites_bp.get('/<string:token>', responses={200: InviteScopeResponse})
def verify_invite(path: InviteTokenPath):
    """Resolve a pending invite to the barangay it was issued for."""
    with tracer.start_as_current_span("invites.verify_endpoint"):
        try:
            invite = current_app.invite_issuer.resolve(path.token)
        except InviteStoreUnavailable as e:
            raise ServiceUnavailableException(str(e)) from e

        hal = current_app.hal_formatter
        response = hal.format_resource(
            {"success": True, "data": _scope_body(invite)},
            f"/api/public/invites/{path.token}",
            accept=hal.builder.link_builder.build_action_link(
                f"/api/public/invites/{path.token}/accept", title="Accept invite"
            )
        )
        return jsonify(response), 200


@public_invites_bp.post('/<string:token>/accept', responses={200: InviteScopeResponse})
def accept_invite(path: InviteTokenPath, body: AcceptInviteRequest):
    """
    Consume an invite for the barangay being provisioned.

    The claimed tuple must match the token's scope ignoring case and
    surrounding whitespace.
    """
    with tracer.start_as_current_span("invites.accept_endpoint") as span:
        try:
            invite = current_app.invite_issuer.accept(
                path.token,
                body.province,
                body.city,
                body.barangay,
                accepted_by=body.accepted_by,
                tenant_created=body.tenant_created
            )
        except InviteStoreUnavailable as e:
            raise ServiceUnavailableException(str(e)) from e
        span.set_attribute("invite.tenant_created", body.tenant_created or "")

        _audit(body.accepted_by, "accept", invite.token_hash, {
            "province": invite.province_name,
            "city": invite.city_name,
            "barangay": invite.barangay_name,
            "tenantCreated": body.tenant_created
        })

        data = _scope_body(invite)
        data["usedAt"] = invite.consumed_at.isoformat() if invite.consumed_at else None
        data["tenantCreated"] = invite.tenant_created

        response = current_app.hal_formatter.format_resource(
            {"success": True, "data": data},
            f"/api/public/invites/{path.token}/accept"
        )
        return jsonify(response), 200
