# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Invite token issuer.

Mints single-use onboarding tokens scoped to one province/city/barangay
tuple, resolves them for the public onboarding page and consumes them when
provisioning completes. Only the SHA-256 of a token is stored.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from opentelemetry import trace
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from domain import invites as invite_domain
from domain.geography import CanonicalGeographyIndex
from models.base import utc_now
from models.entities import InviteToken
from models.enums import InviteStatus
from .mongodb import MongoDBService, ONBOARDING_INVITES

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_TTL_DAYS = 7


class TokenIssueFailure(Exception):
    """Raised when a token cannot be minted or stored."""


class InviteStoreUnavailable(Exception):
    """Raised when the invite collection cannot be read or updated."""


class InviteValidationError(Exception):
    """Raised when a token is unknown, used, expired, or presented for another tuple."""

    INVALID = "invalid"
    CONSUMED = "consumed"
    EXPIRED = "expired"
    SCOPE_MISMATCH = "scope_mismatch"

    MESSAGES = {
        INVALID: "Invalid invite token",
        CONSUMED: "This invite has already been used",
        EXPIRED: "This invite has expired",
        SCOPE_MISMATCH: "This invite was issued for a different barangay",
    }

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(self.MESSAGES.get(reason, reason))


@dataclass
class InviteIssueResult:
    """Result of an issuance attempt."""
    success: bool
    token: Optional[str] = None
    link: Optional[str] = None
    tenant_slug: Optional[str] = None
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None


class InviteTokenIssuer:
    """Issue, resolve and consume onboarding invites."""

    def __init__(
        self,
        mongo_service: MongoDBService,
        geography_index: CanonicalGeographyIndex,
        origin: str,
        ttl_days: int = DEFAULT_TTL_DAYS
    ):
        self.mongo_service = mongo_service
        self.geography_index = geography_index
        self.origin = origin
        self.ttl_days = ttl_days
        self.collection_name = ONBOARDING_INVITES

    @property
    def collection(self):
        return self.mongo_service.get_collection(self.collection_name)

    def issue(
        self,
        province: str,
        city: str,
        barangay: str,
        region: Optional[str] = None,
        issued_by: Optional[str] = None
    ) -> InviteIssueResult:
        """
        Mint a token for a tuple and build its onboarding link.

        Reissuing for the same tuple yields another independently valid
        token; earlier tokens are not revoked.

        Args:
            province: Province name
            city: City or municipality name
            barangay: Barangay name
            region: Region name, derived from the province when omitted
            issued_by: Id of the issuing administrator

        Returns:
            InviteIssueResult with the token and link, or a failure reason
        """
        with tracer.start_as_current_span("invites.issue") as span:
            span.set_attributes({
                "invite.province": province,
                "invite.city": city,
                "invite.barangay": barangay
            })
            try:
                token, invite = self._mint(province, city, barangay, region, issued_by)
            except TokenIssueFailure as e:
                span.set_attribute("invite.issued", False)
                logger.error("Invite issuance failed", extra={
                    "province": province,
                    "city": city,
                    "barangay": barangay,
                    "error": str(e)
                })
                return InviteIssueResult(success=False, reason=str(e))

            link = invite_domain.build_onboarding_url(
                self.origin,
                invite.province_name,
                invite.city_name,
                invite.barangay_name,
                invite.region,
                token
            )

            span.set_attribute("invite.issued", True)
            logger.info("Invite issued", extra={
                "token_hash": invite.token_hash[:12],
                "province": invite.province_name,
                "city": invite.city_name,
                "barangay": invite.barangay_name,
                "expires_at": invite.expires_at.isoformat(),
                "issued_by": issued_by
            })

            return InviteIssueResult(
                success=True,
                token=token,
                link=link,
                tenant_slug=invite_domain.tenant_slug(invite.city_name, invite.barangay_name),
                expires_at=invite.expires_at
            )

    def _mint(self, province, city, barangay, region, issued_by):
        province = (province or "").strip()
        city = (city or "").strip()
        barangay = (barangay or "").strip()
        if not (province and city and barangay):
            raise TokenIssueFailure("Province, city and barangay are all required")

        region = (region or "").strip() or self.geography_index.region_for_province(province)
        token = invite_domain.generate_token()
        now = utc_now()

        try:
            invite = InviteToken(
                token_hash=invite_domain.hash_token(token),
                province_name=province,
                city_name=city,
                barangay_name=barangay,
                region=region,
                issued_at=now,
                expires_at=now + timedelta(days=self.ttl_days)
            )
        except ValidationError as e:
            raise TokenIssueFailure(f"Invalid invite: {e.errors()[0]['msg']}") from e

        document = invite.to_document()
        document.pop("token", None)
        document.update({
            "_id": invite.token_hash,
            "status": InviteStatus.PENDING.value,
            "createdBy": issued_by
        })

        try:
            self.collection.insert_one(document)
        except PyMongoError as e:
            raise TokenIssueFailure("Failed to store invite token") from e

        return token, invite

    def _load(self, token: str) -> Dict[str, Any]:
        if not token:
            raise InviteValidationError(InviteValidationError.INVALID)
        try:
            document = self.collection.find_one({"_id": invite_domain.hash_token(token)})
        except PyMongoError as e:
            logger.error("Failed to read onboarding invite", extra={"error": str(e)})
            raise InviteStoreUnavailable("Invite store is unavailable") from e
        if document is None:
            raise InviteValidationError(InviteValidationError.INVALID)
        return document

    def _check_pending(self, document: Dict[str, Any]) -> InviteToken:
        invite = InviteToken.from_document(document)
        if document.get("status") == InviteStatus.USED.value or invite.consumed:
            raise InviteValidationError(InviteValidationError.CONSUMED)
        if invite_domain.is_expired(invite.expires_at):
            raise InviteValidationError(InviteValidationError.EXPIRED)
        return invite

    def resolve(self, token: str) -> InviteToken:
        """
        Scope of a pending, unexpired token.

        Raises:
            InviteValidationError: Token is unknown, used or expired
            InviteStoreUnavailable: The invite collection cannot be read
        """
        with tracer.start_as_current_span("invites.resolve") as span:
            try:
                invite = self._check_pending(self._load(token))
            except InviteValidationError as e:
                span.set_attribute("invite.validation", e.reason)
                logger.warning("Invite validation failed", extra={"reason": e.reason})
                raise

            span.set_attribute("invite.validation", "ok")
            return invite

    def accept(
        self,
        token: str,
        province: str,
        city: str,
        barangay: str,
        accepted_by: str,
        tenant_created: Optional[str] = None
    ) -> InviteToken:
        """
        Validate a token against the claimed tuple and mark it used.

        The update is conditional on the invite still being pending, so two
        concurrent accepts cannot both succeed.

        Raises:
            InviteValidationError: Token is unknown, used, expired, or scoped
                to a different tuple
            InviteStoreUnavailable: The invite collection cannot be read or updated
        """
        with tracer.start_as_current_span("invites.accept") as span:
            try:
                document = self._load(token)
                invite = self._check_pending(document)

                if not invite_domain.scope_matches(invite.scope(), province, city, barangay):
                    raise InviteValidationError(InviteValidationError.SCOPE_MISMATCH)

                now = utc_now()
                try:
                    updated = self.collection.find_one_and_update(
                        {"_id": invite.token_hash, "status": InviteStatus.PENDING.value},
                        {"$set": {
                            "status": InviteStatus.USED.value,
                            "consumed": True,
                            "usedAt": now,
                            "usedBy": accepted_by,
                            "tenantCreated": tenant_created
                        }},
                        return_document=ReturnDocument.AFTER
                    )
                except PyMongoError as e:
                    span.record_exception(e)
                    logger.error("Failed to consume onboarding invite", extra={
                        "token_hash": invite.token_hash[:12],
                        "error": str(e)
                    })
                    raise InviteStoreUnavailable("Invite store is unavailable") from e
                if updated is None:
                    raise InviteValidationError(InviteValidationError.CONSUMED)

            except InviteValidationError as e:
                span.set_attribute("invite.validation", e.reason)
                logger.warning("Invite acceptance rejected", extra={
                    "reason": e.reason,
                    "province": province,
                    "city": city,
                    "barangay": barangay
                })
                raise

            span.set_attribute("invite.validation", "ok")
            logger.info("Invite consumed", extra={
                "token_hash": invite.token_hash[:12],
                "used_by": accepted_by,
                "tenant_created": tenant_created
            })
            return InviteToken.from_document(updated)
