# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for JWT token validation and user context extraction.

This module provides Flask decorators for validating JWT tokens, checking
the blocklist, and building the user context passed to protected routes.
"""

from functools import wraps
from flask import request, jsonify, g, current_app
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
import logging

from models.entities import UserContext
from services.auth import TokenValidationError
from services.hal import PROBLEM_BASE_URL

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


def _problem(error_type: str, title: str, status: int, detail: str):
    return jsonify({
        "type": f"{PROBLEM_BASE_URL}/{error_type}",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": request.path
    }), status


class AuthMiddleware:
    """
    JWT authentication middleware for Flask applications.

    Handles token extraction, validation, blocklist checking, and user context
    building for protected endpoints.
    """

    def __init__(self, auth_service, redis_service):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: JWT authentication service
            redis_service: Redis service for token blocklist
        """
        self.auth_service = auth_service
        self.redis_service = redis_service

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract JWT token from request headers.

        Returns:
            JWT token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '').strip()

        if not auth_header:
            return None

        if auth_header.startswith('Bearer '):
            return auth_header[7:].strip() or None

        return auth_header

    def is_token_blocked(self, token: str) -> bool:
        """
        Check if token is in the Redis blocklist.

        Args:
            token: JWT token to check

        Returns:
            True if token is blocked, False otherwise
        """
        if self.redis_service is None:
            return False
        try:
            token_id = self.auth_service.extract_token_id(token)
        except TokenValidationError:
            # Malformed tokens are rejected by validation right after
            return False
        return self.redis_service.is_token_blocked(token_id)

    def build_user_context(self, token: str, token_payload: Dict[str, Any], request_info: Dict[str, Any]) -> UserContext:
        """
        Build user context from validated token payload and request information.

        Args:
            token: Raw bearer credential, forwarded to the adjudicator
            token_payload: Decoded JWT payload
            request_info: Request metadata (IP, user agent, etc.)

        Returns:
            UserContext object for request processing
        """
        return UserContext(
            user_id=token_payload["sub"],
            role=token_payload.get("role", "resident"),
            tenant_id=token_payload.get("tenant_id"),
            email=token_payload.get("email"),
            permissions=token_payload.get("permissions", []),
            credential=token,
            token_payload=token_payload,
            ip_address=request_info.get("ip_address"),
            user_agent=request_info.get("user_agent"),
            session_id=request_info.get("session_id")
        )

    def get_request_info(self) -> Dict[str, Any]:
        """
        Extract request metadata for user context.

        Returns:
            Dictionary with request information
        """
        return {
            "ip_address": request.remote_addr,
            "user_agent": request.headers.get('User-Agent', ''),
            "session_id": request.headers.get('X-Session-ID'),
            "request_id": request.headers.get('X-Request-ID')
        }


def require_auth(auth_middleware: AuthMiddleware) -> Callable:
    """
    Decorator to require JWT authentication for Flask routes.

    Args:
        auth_middleware: Configured AuthMiddleware instance

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            with tracer.start_as_current_span("auth.middleware.validate_request") as span:
                span.set_attribute("auth.operation", "validate_request")

                token = auth_middleware.extract_token_from_request()
                if not token:
                    span.set_attribute("auth.result", "missing_token")
                    logger.warning("Authentication failed: missing token")
                    return _problem("authentication-required", "Authentication Required", 401,
                                    "Missing authorization token")

                if auth_middleware.is_token_blocked(token):
                    span.set_attribute("auth.result", "token_blocked")
                    logger.warning("Authentication failed: token is blocked")
                    return _problem("token-revoked", "Token Revoked", 401, "Token has been revoked")

                try:
                    token_payload = auth_middleware.auth_service.validate_token(token, "access")
                    user_context = auth_middleware.build_user_context(
                        token, token_payload, auth_middleware.get_request_info()
                    )
                except (TokenValidationError, KeyError, ValueError) as e:
                    span.set_attribute("auth.result", "invalid_token")
                    logger.warning(f"Authentication failed: {str(e)}")
                    return _problem("invalid-token", "Invalid Token", 401, str(e))

                g.user_context = user_context

                span.set_attributes({
                    "auth.result": "success",
                    "user.id": user_context.user_id,
                    "user.role": user_context.role
                })

                logger.debug(
                    "Authentication successful",
                    extra={
                        "user_id": user_context.user_id,
                        "role": user_context.role,
                        "ip_address": user_context.ip_address
                    }
                )

            return f(user_context, *args, **kwargs)

        return decorated_function
    return decorator


def require_permission(permission: str, auth_middleware: AuthMiddleware) -> Callable:
    """
    Decorator to require specific permission for Flask routes.

    Args:
        permission: Required permission string
        auth_middleware: Configured AuthMiddleware instance

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        @require_auth(auth_middleware)
        def decorated_function(user_context, *args, **kwargs):
            with tracer.start_as_current_span("auth.middleware.check_permission") as span:
                span.set_attributes({
                    "auth.operation": "check_permission",
                    "auth.required_permission": permission,
                    "user.id": user_context.user_id
                })

                if not user_context.has_permission(permission):
                    span.set_attribute("auth.permission_result", "denied")
                    logger.warning(
                        f"Authorization failed: missing permission '{permission}'",
                        extra={
                            "user_id": user_context.user_id,
                            "role": user_context.role,
                            "required_permission": permission,
                            "user_permissions": user_context.permissions
                        }
                    )
                    return _problem("insufficient-permissions", "Insufficient Permissions", 403,
                                    f"Missing required permission: {permission}")

                span.set_attribute("auth.permission_result", "granted")

            return f(user_context, *args, **kwargs)

        return decorated_function
    return decorator


def require_jwt(permission: Optional[str] = None) -> Callable:
    """
    Route decorator resolving the app's AuthMiddleware at request time.

    Args:
        permission: Permission the caller must hold, if any
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            auth_middleware = current_app.auth_middleware
            if permission:
                return require_permission(permission, auth_middleware)(f)(*args, **kwargs)
            return require_auth(auth_middleware)(f)(*args, **kwargs)
        return decorated_function
    return decorator
