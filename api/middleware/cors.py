# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
CORS (Cross-Origin Resource Sharing) middleware.
Lets the onboarding and resident portal frontend call the API.
"""

from flask import Flask, request, make_response
from typing import List, Optional
import os
import logging

logger = logging.getLogger(__name__)

DEV_ORIGINS = [
    'http://localhost:3000',
    'http://127.0.0.1:3000',
    'http://localhost:5173',
    'http://127.0.0.1:5173'
]


class CORSMiddleware:
    """CORS middleware for Flask applications."""

    def __init__(
        self,
        app: Flask,
        allowed_origins: Optional[List[str]] = None,
        allow_credentials: bool = True,
        max_age: int = 86400
    ):
        """
        Initialize CORS middleware.

        Args:
            app: Flask application
            allowed_origins: List of allowed origins, `prefix*` wildcards allowed
            allow_credentials: Whether to allow credentials
            max_age: Preflight cache duration in seconds
        """
        self.app = app
        self.allowed_origins = allowed_origins or self._get_default_origins(app)
        self.allowed_methods = ['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS', 'HEAD']
        self.allowed_headers = [
            'Accept',
            'Authorization',
            'Content-Type',
            'X-Requested-With',
            'X-Session-ID',
            'X-Request-ID',
            'X-Trace-ID'
        ]
        self.expose_headers = ['Content-Length', 'Content-Type', 'X-Request-ID', 'X-Trace-ID']
        self.allow_credentials = allow_credentials
        self.max_age = max_age

        self.register_cors_handlers()

    def _get_default_origins(self, app: Flask) -> List[str]:
        """Frontend origin plus local dev servers and any configured extras."""
        origins = []

        app_origin = app.config.get('APP_ORIGIN') or os.getenv('APP_ORIGIN')
        if app_origin:
            origins.append(app_origin.rstrip('/'))

        if app.config.get('ENVIRONMENT', os.getenv('ENVIRONMENT')) == 'development':
            origins.extend(DEV_ORIGINS)

        vercel_url = os.getenv('VERCEL_URL')
        if vercel_url:
            origins.append(f"https://{vercel_url}")

        custom_origins = os.getenv('CORS_ALLOWED_ORIGINS')
        if custom_origins:
            origins.extend(o.strip() for o in custom_origins.split(',') if o.strip())

        return origins

    def is_origin_allowed(self, origin: Optional[str]) -> bool:
        """
        Check if origin is allowed.

        Args:
            origin: Request origin

        Returns:
            True if origin is allowed
        """
        if not origin:
            return False

        for allowed_origin in self.allowed_origins:
            if allowed_origin in ('*', origin):
                return True
            if allowed_origin.endswith('*') and origin.startswith(allowed_origin[:-1]):
                return True

        return False

    def add_cors_headers(self, response, origin: str):
        """Add CORS headers for an allowed origin."""
        response.headers['Access-Control-Allow-Origin'] = origin
        response.headers['Vary'] = 'Origin'

        if self.allow_credentials:
            response.headers['Access-Control-Allow-Credentials'] = 'true'

        response.headers['Access-Control-Allow-Methods'] = ', '.join(self.allowed_methods)
        response.headers['Access-Control-Allow-Headers'] = ', '.join(self.allowed_headers)
        response.headers['Access-Control-Expose-Headers'] = ', '.join(self.expose_headers)
        response.headers['Access-Control-Max-Age'] = str(self.max_age)

        return response

    def register_cors_handlers(self):
        """Register CORS handlers with Flask application."""

        @self.app.before_request
        def handle_preflight():
            if request.method == 'OPTIONS':
                origin = request.headers.get('Origin')

                if not self.is_origin_allowed(origin):
                    logger.warning(f"CORS preflight rejected for origin: {origin}")
                    return make_response('', 403)

                return self.add_cors_headers(make_response('', 200), origin)

        @self.app.after_request
        def add_cors_headers_to_response(response):
            origin = request.headers.get('Origin')

            if self.is_origin_allowed(origin):
                self.add_cors_headers(response, origin)
            elif origin and request.method != 'OPTIONS':
                logger.warning(f"CORS rejected for origin: {origin}")

            return response


def configure_cors(app: Flask, **kwargs) -> CORSMiddleware:
    """
    Configure CORS for Flask application.

    Args:
        app: Flask application
        **kwargs: CORS configuration options

    Returns:
        Configured CORSMiddleware instance
    """
    return CORSMiddleware(app, **kwargs)
