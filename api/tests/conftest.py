# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest
from unittest.mock import MagicMock

# Set test environment before the app module is imported
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ.setdefault('LOG_LEVEL', 'WARNING')

from domain.geography import CanonicalGeographyIndex
from models.entities import VerificationResult
from services.auth import AuthService
from services.mongodb import TENANT_DIRECTORY
from fakes import make_mongo_service, tenant_document, bearer


@pytest.fixture(scope="session")
def geography_index():
    """Bundled canonical geography."""
    return CanonicalGeographyIndex.load()


@pytest.fixture(scope="session")
def auth_service():
    """Auth service with a generated key pair."""
    return AuthService()


@pytest.fixture
def mongo_service():
    return make_mongo_service()


@pytest.fixture
def malolos_tenants():
    """Tenant directory documents for City of Malolos, in directory order."""
    return [
        tenant_document("malolos-atlag", "Atlag", centroid={"lat": 14.8433, "lng": 120.8114}),
        tenant_document("malolos-longos", " longos ", status="Onboarding"),
        tenant_document("malolos-san-vicente", "San Vicente"),
        tenant_document("malolos-mojon", "Mojon", status="Rejected"),
    ]


@pytest.fixture
def seeded_mongo(mongo_service, malolos_tenants):
    collection = mongo_service.get_collection(TENANT_DIRECTORY)
    for document in malolos_tenants:
        collection.insert_one(dict(document))
    return mongo_service


@pytest.fixture
def adjudicator_gateway():
    """Submission gateway double answering `verified`."""
    gateway = MagicMock()
    gateway.submit.return_value = VerificationResult(status="verified")
    return gateway


@pytest.fixture
def app(seeded_mongo, geography_index, auth_service, adjudicator_gateway):
    """Flask application wired to in-memory services."""
    from app import create_app

    application = create_app(
        config_overrides={
            'TESTING': True,
            'BASE_URL': 'https://api.example.com',
            'APP_ORIGIN': 'https://portal.example.com'
        },
        services={
            'mongodb_service': seeded_mongo,
            'redis_service': None,
            'auth_service': auth_service,
            'geography_index': geography_index,
            'gateway': adjudicator_gateway
        }
    )
    return application


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers(auth_service):
    return bearer(auth_service, "admin-1", "admin")


@pytest.fixture
def super_admin_headers(auth_service):
    return bearer(auth_service, "super-1", "super_admin")


@pytest.fixture
def resident_headers(auth_service):
    return bearer(auth_service, "resident-1", "resident")
