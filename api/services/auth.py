# SPDX-License-Identifier: Apache-2.0

"""
Authentication service for JWT token management.

This module provides JWT access token generation and validation using RS256
signing. Tokens are minted by the platform's identity flow; this service
verifies them and carries the caller's role, permissions and tenant.
"""

import os
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List, Tuple
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from opentelemetry import trace
import logging

from models.enums import Permission, UserRole

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


# Default permission grants per role
ROLE_PERMISSIONS: Dict[str, List[str]] = {
    UserRole.SUPER_ADMIN.value: [
        Permission.JURISDICTION_READ.value,
        Permission.INVITE_CREATE.value,
    ],
    UserRole.ADMIN.value: [
        Permission.JURISDICTION_READ.value,
    ],
    UserRole.RESIDENT.value: [
        Permission.VERIFICATION_WRITE.value,
    ],
}


class AuthenticationError(Exception):
    """Raised when authentication fails."""
    pass


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


class AuthService:
    """
    JWT authentication service with RS256 signing.

    Provides token generation for operator tooling and tests, and
    validation for every authenticated request.
    """

    def __init__(
        self,
        private_key: Optional[str] = None,
        public_key: Optional[str] = None,
        access_token_expire_minutes: Optional[int] = None
    ):
        """
        Initialize the authentication service.

        Args:
            private_key: RS256 private key for token signing (PEM format)
            public_key: RS256 public key for token verification (PEM format)
            access_token_expire_minutes: Access token lifetime
        """
        private_key = private_key or os.getenv("JWT_PRIVATE_KEY")
        public_key = public_key or os.getenv("JWT_PUBLIC_KEY")

        if not private_key or not public_key:
            # A generated pair must be used together
            logger.warning("No JWT key pair configured, generating development key pair")
            private_key, public_key = self._generate_dev_key_pair()
        else:
            # Env files carry PEM keys on one line with escaped newlines
            private_key = private_key.replace("\\n", "\n")
            public_key = public_key.replace("\\n", "\n")

        self.private_key = private_key
        self.public_key = public_key
        self.algorithm = "RS256"
        self.access_token_expire_minutes = access_token_expire_minutes or int(
            os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "60")
        )

    def _generate_dev_key_pair(self) -> Tuple[str, str]:
        """Generate RSA key pair for development use."""
        private_key = rsa.generate_private_key(
            public_exponent=65537,
            key_size=2048
        )

        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        ).decode('utf-8')

        public_key = private_key.public_key()
        public_pem = public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        ).decode('utf-8')

        return private_pem, public_pem

    def generate_access_token(
        self,
        user_id: str,
        role: str = UserRole.RESIDENT.value,
        permissions: Optional[List[str]] = None,
        tenant_id: Optional[str] = None,
        email: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Generate an access token.

        Args:
            user_id: Subject of the token
            role: Role claim
            permissions: Explicit permissions, defaults to the role's grants
            tenant_id: Tenant the user belongs to, if any
            email: Optional email claim

        Returns:
            Dictionary containing access_token and metadata
        """
        with tracer.start_as_current_span("auth.generate_access_token") as span:
            role = UserRole(role).value
            if permissions is None:
                permissions = list(ROLE_PERMISSIONS.get(role, []))

            span.set_attributes({
                "auth.operation": "generate_access_token",
                "user.id": user_id,
                "user.role": role
            })

            now = datetime.now(timezone.utc)
            access_exp = now + timedelta(minutes=self.access_token_expire_minutes)

            payload = {
                "sub": user_id,
                "role": role,
                "permissions": permissions,
                "iat": now,
                "exp": access_exp,
                "type": "access"
            }
            if tenant_id:
                payload["tenant_id"] = tenant_id
            if email:
                payload["email"] = email

            try:
                access_token = jwt.encode(
                    payload,
                    self.private_key,
                    algorithm=self.algorithm
                )
            except Exception as e:
                span.set_attribute("auth.tokens_generated", "error")
                logger.error(f"Token generation failed: {str(e)}")
                raise AuthenticationError(f"Failed to generate token: {str(e)}")

            span.set_attribute("auth.tokens_generated", "success")
            logger.info(
                "JWT access token generated",
                extra={
                    "user_id": user_id,
                    "role": role,
                    "tenant_id": tenant_id,
                    "access_expires_at": access_exp.isoformat()
                }
            )

            return {
                "access_token": access_token,
                "token_type": "Bearer",
                "expires_in": self.access_token_expire_minutes * 60,
                "access_expires_at": access_exp.isoformat()
            }

    def validate_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate
            token_type: Expected token type

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid or expired
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attributes({
                "auth.operation": "validate_token",
                "auth.token_type": token_type
            })

            try:
                payload = jwt.decode(
                    token,
                    self.public_key,
                    algorithms=[self.algorithm],
                    options={"verify_exp": True}
                )

                if payload.get("type") != token_type:
                    raise TokenValidationError(f"Invalid token type. Expected {token_type}")

                span.set_attributes({
                    "auth.validation_result": "success",
                    "user.id": payload.get("sub"),
                    "user.role": payload.get("role", "")
                })

                logger.debug(
                    "Token validated successfully",
                    extra={
                        "user_id": payload.get("sub"),
                        "role": payload.get("role"),
                        "token_type": token_type
                    }
                )

                return payload

            except TokenValidationError:
                span.set_attribute("auth.validation_result", "wrong_type")
                raise

            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")

            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

    def extract_token_id(self, token: str) -> str:
        """
        Extract a unique identifier from a token for blocklist purposes.

        Args:
            token: JWT token string

        Returns:
            Unique token identifier
        """
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
            return f"{payload.get('sub')}:{payload.get('iat')}:{payload.get('type')}"

        except jwt.InvalidTokenError as e:
            logger.error(f"Failed to extract token ID: {str(e)}")
            raise TokenValidationError(f"Invalid token format: {str(e)}")


# Singleton instance for application use
_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    """Get singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
