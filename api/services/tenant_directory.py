# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Read-only access to the tenant directory collection.

Tenant status is driven by the external provisioning flow; nothing here
writes to the collection.
"""

import logging
from typing import List, Optional
from opentelemetry import trace
from pydantic import ValidationError

from domain.geography import CanonicalGeographyIndex
from models.entities import TenantRecord
from .mongodb import MongoDBService, TENANT_DIRECTORY

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class TenantDirectory:
    """Equality-filtered reads over provisioned tenant records."""

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service
        self.collection_name = TENANT_DIRECTORY

    def _to_records(self, documents) -> List[TenantRecord]:
        records = []
        for document in documents:
            try:
                records.append(TenantRecord.from_document(document))
            except ValidationError as e:
                logger.warning("Skipping malformed tenant record", extra={
                    "document_id": str(document.get("_id")),
                    "error": str(e)
                })
        return records

    def find_by_city(self, province_name: str, city_name: str) -> List[TenantRecord]:
        """
        Tenants registered under a province/city name pair, in natural order.

        Args:
            province_name: Denormalized province name
            city_name: Denormalized city name

        Returns:
            Tenant records in directory iteration order
        """
        with tracer.start_as_current_span("tenant_directory.find_by_city") as span:
            documents = self.mongo_service.find(
                self.collection_name,
                {"province": province_name, "city": city_name}
            )
            records = self._to_records(documents)
            span.set_attributes({
                "tenant_directory.province": province_name,
                "tenant_directory.city": city_name,
                "tenant_directory.count": len(records)
            })
            return records

    def for_city_codes(
        self,
        index: CanonicalGeographyIndex,
        province_code: Optional[str],
        city_code: Optional[str]
    ) -> List[TenantRecord]:
        """Tenants for a canonical province/city code pair. Unresolved codes give an empty list."""
        resolved = index.resolve_city(province_code, city_code)
        if resolved is None:
            return []
        province, city = resolved
        return self.find_by_city(province.name, city.name)

    def get(self, tenant_id: str) -> Optional[TenantRecord]:
        """Tenant by id, or None when unknown or malformed."""
        if not tenant_id:
            return None
        document = self.mongo_service.find_one(self.collection_name, {"tenantId": tenant_id})
        if document is None:
            return None
        records = self._to_records([document])
        return records[0] if records else None
