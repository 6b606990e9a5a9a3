#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Load tenant records from a JSON file into the tenant directory.

Records are upserted by tenantId, so the script can be re-run after editing
the file. Intended for local and staging setups; production tenants come
from the provisioning flow.

Usage:
    python scripts/seed_tenant_directory.py tenants.json
"""

import sys
import os
import json
import argparse
import logging
from typing import Any, Dict, Iterable, List, Tuple

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pydantic import ValidationError
from pymongo import UpdateOne

from models.base import utc_now
from models.entities import TenantRecord
from services.mongodb import get_mongodb_service, close_mongodb_connection, TENANT_DIRECTORY

logger = logging.getLogger(__name__)


def parse_records(raw: Iterable[Dict[str, Any]]) -> Tuple[List[TenantRecord], List[str]]:
    """
    Validate raw tenant entries.

    Returns:
        The valid records and one message per rejected entry
    """
    records, errors = [], []
    for position, entry in enumerate(raw):
        try:
            record = TenantRecord.model_validate(entry)
        except ValidationError as e:
            errors.append(f"entry {position}: {e.errors()[0]['msg']}")
            continue
        if record.created_at is None:
            record.created_at = utc_now()
        records.append(record)
    return records, errors


def build_operations(records: Iterable[TenantRecord]) -> List[UpdateOne]:
    """Upserts keyed by tenantId."""
    operations = []
    for record in records:
        document = record.to_document()
        document["_id"] = record.tenant_id
        operations.append(UpdateOne({"_id": record.tenant_id}, {"$set": document}, upsert=True))
    return operations


def seed(collection, raw: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    """Validate and upsert tenant entries into a collection."""
    records, errors = parse_records(raw)
    for error in errors:
        logger.warning(f"Skipping tenant record: {error}")

    operations = build_operations(records)
    if not operations:
        return {"upserted": 0, "modified": 0, "rejected": len(errors)}

    result = collection.bulk_write(operations, ordered=False)
    return {
        "upserted": result.upserted_count,
        "modified": result.modified_count,
        "rejected": len(errors)
    }


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(description="Seed the tenant directory from a JSON file")
    parser.add_argument("path", help="JSON file holding a list of tenant records")
    args = parser.parse_args()

    with open(args.path, encoding="utf-8") as handle:
        raw = json.load(handle)
    if not isinstance(raw, list):
        logger.error("Expected a JSON list of tenant records")
        sys.exit(1)

    try:
        mongodb_service = get_mongodb_service()
        counts = seed(mongodb_service.get_collection(TENANT_DIRECTORY), raw)
        logger.info(
            f"Tenant directory seeded: {counts['upserted']} inserted, "
            f"{counts['modified']} updated, {counts['rejected']} rejected"
        )
    except Exception as e:
        logger.error(f"Failed to seed tenant directory: {e}")
        sys.exit(1)
    finally:
        close_mongodb_connection()


if __name__ == "__main__":
    main()
