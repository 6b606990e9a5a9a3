# SPDX-License-Identifier: Apache-2.0

"""
Barangay Onboarding API - Flask Application Entry Point

This module builds the Flask application with OpenAPI 3.0 support,
configures middleware, and wires the services behind tenant coverage,
onboarding invites and resident verification.
"""

import os
from typing import Any, Dict, Optional
from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag

from observability.config import setup_observability
from observability.middleware import add_observability_middleware
from middleware.cors import configure_cors
from middleware.error_handler import ErrorHandlerMiddleware, register_custom_error_handlers
from middleware.validation import ValidationMiddleware, VALIDATION_ERROR_STATUS
from middleware.auth import AuthMiddleware
from domain.geography import CanonicalGeographyIndex
from models.entities import Coordinates
from services.hal import create_hal_formatter
from services.mongodb import MongoDBService
from services.redis import RedisService
from services.auth import AuthService
from services.audit import AuditService
from services.health import HealthCheckService, SERVICE_NAME, SERVICE_VERSION
from services.tenant_directory import TenantDirectory
from services.drafts import DraftStore
from services.invites import InviteTokenIssuer
from services.adjudicator import SubmissionGateway
from services.verification import VerificationWizard, WizardSessions
from models.base import utc_now

info = Info(
    title="Barangay Onboarding API",
    version=SERVICE_VERSION,
    description="Tenant coverage, onboarding invites and resident verification with HATEOAS links"
)

tags = [
    Tag(name="Jurisdictions", description="Canonical geography and tenant coverage"),
    Tag(name="Invites", description="Onboarding invite tokens"),
    Tag(name="Verification", description="Resident verification wizard"),
    Tag(name="Health", description="System health and status")
]

health_tag = Tag(name="Health", description="System health and status")


def load_config(app, config_overrides: Optional[Dict[str, Any]] = None):
    """Read configuration from the environment, then apply overrides."""
    app.config['ENVIRONMENT'] = os.getenv('ENVIRONMENT', 'development')
    app.config['DEBUG'] = app.config['ENVIRONMENT'] == 'development'
    app.config['DOCS_ENABLED'] = os.getenv('DOCS_ENABLED', 'true').lower() == 'true'

    # Database configuration
    app.config['MONGODB_URI'] = os.getenv('MONGODB_URI', 'mongodb://localhost:27017/barangay_onboarding_dev')
    app.config['MONGODB_DATABASE'] = os.getenv('MONGODB_DATABASE', 'barangay_onboarding_dev')
    app.config['REDIS_URL'] = os.getenv('REDIS_URL', '')
    app.config['REDIS_TOKEN'] = os.getenv('REDIS_TOKEN', '')

    # URLs
    app.config['BASE_URL'] = os.getenv('BASE_URL', 'http://localhost:5000')
    app.config['APP_ORIGIN'] = os.getenv('APP_ORIGIN', 'http://localhost:3000')

    # Adjudicator boundary
    app.config['ADJUDICATOR_URL'] = os.getenv('ADJUDICATOR_URL', 'http://localhost:8080/api/resident/verify-identity')
    app.config['ADJUDICATOR_TIMEOUT_SECONDS'] = float(os.getenv('ADJUDICATOR_TIMEOUT_SECONDS', '30'))

    # Onboarding and verification
    app.config['INVITE_TTL_DAYS'] = int(os.getenv('INVITE_TTL_DAYS', '7'))
    app.config['DEFAULT_CENTROID_LAT'] = float(os.getenv('DEFAULT_CENTROID_LAT', '14.5995'))
    app.config['DEFAULT_CENTROID_LNG'] = float(os.getenv('DEFAULT_CENTROID_LNG', '120.9842'))
    app.config['MAX_IMAGE_BYTES'] = int(os.getenv('MAX_IMAGE_BYTES', str(5 * 1024 * 1024)))
    app.config['PSGC_DATA_DIR'] = os.getenv('PSGC_DATA_DIR')

    # Feature flags
    app.config['OTEL_ENABLED'] = os.getenv('OTEL_ENABLED', 'true').lower() == 'true'

    if config_overrides:
        app.config.update(config_overrides)

    # Base64 inflates images by a third; leave room for the JSON envelope
    if not app.config.get('MAX_CONTENT_LENGTH'):
        app.config['MAX_CONTENT_LENGTH'] = app.config['MAX_IMAGE_BYTES'] * 2


def build_services(config, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Construct the service graph.

    Args:
        config: Application config
        overrides: Prebuilt services by name, used instead of the defaults

    Returns:
        Dictionary of services keyed by the attribute name they get on the app
    """
    services = dict(overrides or {})

    if 'mongodb_service' not in services:
        services['mongodb_service'] = MongoDBService(config['MONGODB_URI'], config['MONGODB_DATABASE'])
    if 'redis_service' not in services:
        services['redis_service'] = (
            RedisService(config['REDIS_URL'], config['REDIS_TOKEN']) if config['REDIS_URL'] else None
        )
    if 'auth_service' not in services:
        services['auth_service'] = AuthService()
    if 'geography_index' not in services:
        services['geography_index'] = CanonicalGeographyIndex.load(config['PSGC_DATA_DIR'])

    mongodb_service = services['mongodb_service']
    geography_index = services['geography_index']

    if 'audit_service' not in services:
        services['audit_service'] = AuditService(mongodb_service)
    if 'tenant_directory' not in services:
        services['tenant_directory'] = TenantDirectory(mongodb_service)
    if 'draft_store' not in services:
        services['draft_store'] = DraftStore(mongodb_service)
    if 'invite_issuer' not in services:
        services['invite_issuer'] = InviteTokenIssuer(
            mongodb_service,
            geography_index,
            config['APP_ORIGIN'],
            ttl_days=config['INVITE_TTL_DAYS']
        )
    if 'gateway' not in services:
        services['gateway'] = SubmissionGateway(
            config['ADJUDICATOR_URL'],
            timeout=config['ADJUDICATOR_TIMEOUT_SECONDS']
        )
    if 'health_service' not in services:
        services['health_service'] = HealthCheckService(
            mongodb_service,
            services['redis_service'],
            geography_index
        )

    if 'wizard_sessions' not in services:
        default_centroid = Coordinates(lat=config['DEFAULT_CENTROID_LAT'], lng=config['DEFAULT_CENTROID_LNG'])

        def open_wizard(user_id: str) -> VerificationWizard:
            return VerificationWizard.resume(
                user_id,
                services['draft_store'],
                directory=services['tenant_directory'],
                geography_index=geography_index,
                gateway=services['gateway'],
                audit_service=services['audit_service'],
                default_centroid=default_centroid,
                max_image_bytes=config['MAX_IMAGE_BYTES']
            )

        services['wizard_sessions'] = WizardSessions(open_wizard)

    return services


def create_app(config_overrides: Optional[Dict[str, Any]] = None, services: Optional[Dict[str, Any]] = None) -> OpenAPI:
    """
    Application factory.

    Args:
        config_overrides: Config values applied after the environment
        services: Prebuilt services to use instead of the defaults

    Returns:
        Configured OpenAPI application
    """
    setup_observability()

    base_url = (config_overrides or {}).get('BASE_URL') or os.getenv('BASE_URL', 'http://localhost:5000')
    validation_middleware = ValidationMiddleware(base_url)

    app = OpenAPI(
        __name__,
        info=info,
        validation_error_status=VALIDATION_ERROR_STATUS,
        validation_error_callback=validation_middleware.error_callback
    )

    load_config(app, config_overrides)

    add_observability_middleware(app)

    built = build_services(app.config, services)

    hal_formatter = create_hal_formatter(app.config['BASE_URL'])
    auth_middleware = AuthMiddleware(built['auth_service'], built['redis_service'])
    ErrorHandlerMiddleware(app, app.config['BASE_URL'])
    register_custom_error_handlers(app, hal_formatter)

    configure_cors(app, allow_credentials=True)

    # Make services available to routes
    for name, service in built.items():
        setattr(app, name, service)
    app.hal_formatter = hal_formatter
    app.validation_middleware = validation_middleware
    app.auth_middleware = auth_middleware

    from routes.jurisdictions import jurisdictions_bp
    from routes.invites import admin_invites_bp, public_invites_bp
    from routes.verification import verification_bp

    app.register_api(jurisdictions_bp)
    app.register_api(admin_invites_bp)
    app.register_api(public_invites_bp)
    app.register_api(verification_bp)

    @app.get('/api/healthz', tags=[health_tag])
    def health_check():
        """Health check with dependency status."""
        try:
            health_data = app.health_service.get_comprehensive_health()
            status_code = 503 if health_data["status"] == "unhealthy" else 200
        except Exception as e:
            health_data = {
                "status": "unhealthy",
                "service": SERVICE_NAME,
                "version": SERVICE_VERSION,
                "environment": app.config['ENVIRONMENT'],
                "timestamp": utc_now().isoformat(),
                "error": f"Health check service failed: {str(e)}"
            }
            status_code = 503

        return jsonify(hal_formatter.format_resource(health_data, '/api/healthz')), status_code

    return app


app = create_app()


if __name__ == '__main__':
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=app.config['DEBUG']
    )
