# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base document models with common configuration and MongoDB mapping.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Mapping
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Current timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from MongoDB."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DocumentModel(BaseModel):
    """Base model for documents persisted with camelCase field names."""

    model_config = ConfigDict(
        # Stored documents use camelCase, Python code uses snake_case
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_assignment=True
    )

    def to_document(self) -> Dict[str, Any]:
        """Serialize to a MongoDB-ready dictionary using stored field names."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_document(cls, document: Mapping[str, Any]):
        """Build a model from a stored document, ignoring the Mongo `_id`."""
        data = {key: value for key, value in document.items() if key != "_id"}
        return cls.model_validate(data)
