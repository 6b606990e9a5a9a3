# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Audit trail for invite and verification actions.

Entries carry the acting user, the entity acted upon and the current trace
ids. Token plaintext and captured images never reach the audit log.
"""

import logging
from typing import Dict, Optional, Any
from opentelemetry import trace

from .mongodb import MongoDBService, AUDIT_LOGS
from models.entities import AuditLog, UserContext

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class AuditService:
    """Writes audit entries to MongoDB."""

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service
        self.collection_name = AUDIT_LOGS

    def _to_document(self, entry: AuditLog, user_context: Optional[UserContext]) -> Dict[str, Any]:
        document = {
            "_id": entry.id,
            "timestamp": entry.timestamp,
            "userId": entry.user_id,
            "tenantId": entry.tenant_id,
            "entity": entry.entity,
            "entityId": entry.entity_id,
            "action": entry.action,
            "details": entry.details,
            "schemaVersion": 1
        }
        if entry.trace_id:
            document["traceId"] = entry.trace_id
            document["spanId"] = entry.span_id
        if user_context:
            document["ipAddress"] = user_context.ip_address
            document["userAgent"] = user_context.user_agent
        return document

    def log_action(
        self,
        user_id: str,
        entity: str,
        entity_id: str,
        action: str,
        tenant_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        user_context: Optional[UserContext] = None
    ) -> str:
        """
        Record an action.

        Args:
            user_id: Acting user, or the accepting administrator for invites
            entity: One of invite, verification_draft, verification_submission
            entity_id: Token hash for invites, user id for verification
            action: issue, accept, submit, reject or abandon
            tenant_id: Tenant the action concerns, when known
            details: Action specific fields
            user_context: Request metadata of the caller

        Returns:
            ID of the stored entry

        Raises:
            ValueError: Unknown entity or action
        """
        with tracer.start_as_current_span("audit.log_action") as span:
            span_context = span.get_span_context()
            entry = AuditLog(
                user_id=user_id,
                tenant_id=tenant_id,
                entity=entity,
                entity_id=entity_id,
                action=action,
                details=details,
                trace_id=format(span_context.trace_id, "032x") if span_context.is_valid else None,
                span_id=format(span_context.span_id, "016x") if span_context.is_valid else None
            )

            span.set_attributes({
                "audit.entity": entity,
                "audit.action": action,
                "audit.user_id": user_id
            })

            try:
                audit_id = self.mongo_service.create(
                    self.collection_name,
                    self._to_document(entry, user_context),
                    user_id
                )
            except Exception as e:
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise

            logger.info(
                "Audit trail entry created",
                extra={
                    "audit_id": audit_id,
                    "entity": entity,
                    "entity_id": entity_id,
                    "action": action,
                    "user_id": user_id,
                    "tenant_id": tenant_id,
                    "trace_id": entry.trace_id
                }
            )

            return audit_id
