# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the audit trail service.
"""

import pytest
from pydantic import ValidationError

from models.entities import UserContext
from services.audit import AuditService
from services.mongodb import AUDIT_LOGS
from fakes import make_mongo_service


class TestAuditService:
    """Test cases for AuditService."""

    def setup_method(self):
        self.mongodb_service = make_mongo_service()
        self.audit_service = AuditService(self.mongodb_service)
        self.collection = self.mongodb_service.get_collection(AUDIT_LOGS)

    def test_log_action(self):
        """Test an entry is stored with its entity and details."""
        audit_id = self.audit_service.log_action(
            user_id="resident-1",
            entity="verification_submission",
            entity_id="resident-1",
            action="submit",
            tenant_id="malolos-atlag",
            details={"status": "verified"}
        )

        stored = self.collection.documents[0]
        assert stored["_id"] == audit_id
        assert stored["tenantId"] == "malolos-atlag"
        assert stored["details"] == {"status": "verified"}
        assert stored["createdBy"] == "resident-1"
        assert "traceId" not in stored

    def test_request_metadata(self):
        """Test caller metadata is copied from the user context."""
        context = UserContext(user_id="super-1", role="super_admin", ip_address="10.0.0.8", user_agent="pytest")

        self.audit_service.log_action("super-1", "invite", "hash-1", "issue", user_context=context)

        stored = self.collection.documents[0]
        assert stored["ipAddress"] == "10.0.0.8"
        assert stored["userAgent"] == "pytest"

    def test_unknown_action(self):
        """Test unknown actions are refused before anything is written."""
        with pytest.raises(ValidationError):
            self.audit_service.log_action("super-1", "invite", "hash-1", "delete")

        assert self.collection.documents == []

    def test_storage_failure_propagates(self):
        """Test write failures reach the caller."""
        self.collection.fail_writes = True

        with pytest.raises(Exception):
            self.audit_service.log_action("super-1", "invite", "hash-1", "issue")
