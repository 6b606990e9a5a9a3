#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Create the MongoDB indexes for the tenant directory, onboarding invites
and audit log collections.
"""

import sys
import os
import logging

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.mongodb import (
    get_mongodb_service, close_mongodb_connection,
    TENANT_DIRECTORY, ONBOARDING_INVITES, AUDIT_LOGS
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    """Create MongoDB indexes."""
    try:
        mongodb_service = get_mongodb_service()

        health = mongodb_service.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            sys.exit(1)

        logger.info(f"Connected to MongoDB {health.get('version')} - Database: {health.get('database')}")

        mongodb_service.create_indexes()

        for name in (TENANT_DIRECTORY, ONBOARDING_INVITES, AUDIT_LOGS):
            indexes = sorted(mongodb_service.get_collection(name).index_information())
            logger.info(f"{name}: {', '.join(indexes)}")

    except Exception as e:
        logger.error(f"Failed to create indexes: {e}")
        sys.exit(1)
    finally:
        close_mongodb_connection()


if __name__ == "__main__":
    main()
