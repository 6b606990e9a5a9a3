# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with connection pooling and collection helpers.
"""

import os
import logging
from typing import List, Dict, Optional, Any
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    DuplicateKeyError
)
from bson import ObjectId

from models.base import utc_now

logger = logging.getLogger(__name__)

TENANT_DIRECTORY = "tenant_directory"
ONBOARDING_INVITES = "onboarding_invites"
USERS = "users"
AUDIT_LOGS = "audit_logs"


class MongoDBService:
    """MongoDB service with connection pooling."""

    def __init__(self, connection_string: str = None, database_name: str = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/barangay_onboarding_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'barangay_onboarding_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True,
                    tz_aware=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    def create(self, collection: str, document: Dict, user_id: str) -> str:
        """Insert a document stamped with its creator."""
        try:
            document["createdAt"] = document.get("createdAt") or utc_now()
            document["createdBy"] = user_id

            if "_id" not in document:
                document["_id"] = ObjectId()

            result = self.get_collection(collection).insert_one(document)

            logger.info(f"Created document in {collection}: {result.inserted_id}")
            return str(result.inserted_id)

        except DuplicateKeyError as e:
            logger.error(f"Duplicate key error in {collection}: {e}")
            raise ValueError("Document with this identifier already exists")
        except Exception as e:
            logger.error(f"Failed to create document in {collection}: {e}")
            raise

    def find(self, collection: str, query: Dict) -> List[Dict]:
        """Find documents in natural order."""
        try:
            documents = list(self.get_collection(collection).find(query))
            logger.debug(f"Found {len(documents)} documents in {collection}")
            return documents
        except Exception as e:
            logger.error(f"Failed to find documents in {collection}: {e}")
            raise

    def find_one(self, collection: str, query: Dict) -> Optional[Dict]:
        """Find a single document."""
        try:
            return self.get_collection(collection).find_one(query)
        except Exception as e:
            logger.error(f"Failed to find document in {collection}: {e}")
            raise

    # Index Management

    def create_indexes(self) -> None:
        """Create performance indexes for all collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            # Tenant directory indexes
            tenants = self.get_collection(TENANT_DIRECTORY)
            tenants.create_index("tenantId", unique=True)
            tenants.create_index([("province", ASCENDING), ("city", ASCENDING)])
            tenants.create_index("status")

            # Onboarding invite indexes
            invites = self.get_collection(ONBOARDING_INVITES)
            invites.create_index("expiresAt")
            invites.create_index([("province", ASCENDING), ("city", ASCENDING), ("barangay", ASCENDING)])
            invites.create_index("status")

            # Audit logs indexes
            audit_logs = self.get_collection(AUDIT_LOGS)
            audit_logs.create_index([("tenantId", ASCENDING), ("timestamp", DESCENDING)])
            audit_logs.create_index([("userId", ASCENDING), ("timestamp", DESCENDING)])
            audit_logs.create_index([("entity", ASCENDING), ("timestamp", DESCENDING)])
            audit_logs.create_index("traceId")

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise


# Singleton instance for application use
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Get singleton MongoDB service instance."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service


def close_mongodb_connection() -> None:
    """Close MongoDB connection (for cleanup)."""
    global _mongodb_service
    if _mongodb_service:
        _mongodb_service.close_connection()
        _mongodb_service = None
