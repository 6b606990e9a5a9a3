# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Per-user verification draft storage.

One document per user id holds a single `verificationDraft` field. Writes
use `$set` so other fields on the user document stay untouched, and every
write replaces the whole draft.
"""

import logging
from typing import Optional
from opentelemetry import trace
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from models.entities import VerificationDraft
from .mongodb import MongoDBService, USERS

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DRAFT_FIELD = "verificationDraft"


class PersistenceFailure(Exception):
    """Raised when a draft cannot be written or removed."""

    def __init__(self, user_id: str, operation: str, cause: Exception):
        self.user_id = user_id
        self.operation = operation
        self.cause = cause
        super().__init__(f"Draft {operation} failed for user {user_id}: {cause}")


class DraftStore:
    """MongoDB-backed single-slot draft store keyed by owner id."""

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service
        self.collection_name = USERS

    @property
    def collection(self):
        return self.mongo_service.get_collection(self.collection_name)

    def load(self, user_id: str) -> Optional[VerificationDraft]:
        """
        Load the saved draft for a user.

        A stored draft that no longer validates is treated as absent so the
        resident can start again instead of being stuck.
        """
        with tracer.start_as_current_span("drafts.load") as span:
            span.set_attribute("user.id", user_id)
            document = self.collection.find_one({"_id": user_id}, {DRAFT_FIELD: 1})
            stored = (document or {}).get(DRAFT_FIELD)
            if not stored:
                span.set_attribute("drafts.found", False)
                return None

            try:
                draft = VerificationDraft.from_document(stored)
            except ValidationError as e:
                logger.warning("Discarding unreadable verification draft", extra={
                    "user_id": user_id,
                    "error": str(e)
                })
                span.set_attribute("drafts.found", False)
                return None

            if draft.owner_user_id != user_id:
                logger.warning("Draft owner mismatch, ignoring stored draft", extra={
                    "user_id": user_id,
                    "owner_user_id": draft.owner_user_id
                })
                return None

            span.set_attributes({"drafts.found": True, "wizard.step": draft.step})
            return draft

    def save(self, draft: VerificationDraft) -> None:
        """
        Replace the user's draft.

        Raises:
            PersistenceFailure: The write did not go through
        """
        with tracer.start_as_current_span("drafts.save") as span:
            span.set_attributes({"user.id": draft.owner_user_id, "wizard.step": draft.step})
            try:
                self.collection.update_one(
                    {"_id": draft.owner_user_id},
                    {"$set": {DRAFT_FIELD: draft.to_document()}},
                    upsert=True
                )
            except PyMongoError as e:
                span.record_exception(e)
                raise PersistenceFailure(draft.owner_user_id, "save", e) from e

            logger.debug("Verification draft saved", extra={
                "user_id": draft.owner_user_id,
                "step": draft.step
            })

    def clear(self, user_id: str) -> None:
        """
        Remove the user's draft, leaving the rest of the user document.

        Raises:
            PersistenceFailure: The removal did not go through
        """
        with tracer.start_as_current_span("drafts.clear") as span:
            span.set_attribute("user.id", user_id)
            try:
                self.collection.update_one({"_id": user_id}, {"$unset": {DRAFT_FIELD: ""}})
            except PyMongoError as e:
                span.record_exception(e)
                raise PersistenceFailure(user_id, "clear", e) from e

            logger.info("Verification draft cleared", extra={"user_id": user_id})
