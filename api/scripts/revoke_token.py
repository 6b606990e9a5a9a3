#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Revoke an access token before it expires.

Adds the token to the Redis blocklist for the rest of its lifetime, after
which it is refused by every API instance.

Usage:
    python scripts/revoke_token.py <token>
"""

import sys
import os
import argparse
import logging
from datetime import datetime, timezone
from typing import Optional

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import jwt

from services.auth import get_auth_service, TokenValidationError
from services.redis import RedisService

logger = logging.getLogger(__name__)


def remaining_lifetime(token: str, now: Optional[datetime] = None) -> int:
    """Seconds until the token expires, at least one."""
    payload = jwt.decode(token, options={"verify_signature": False})
    expires_at = payload.get("exp")
    if expires_at is None:
        raise TokenValidationError("Token has no expiry")
    now = now or datetime.now(timezone.utc)
    return max(1, int(expires_at - now.timestamp()))


def revoke(token: str, redis_service: RedisService, auth_service=None) -> bool:
    """Blocklist a token for its remaining lifetime."""
    auth_service = auth_service or get_auth_service()
    token_id = auth_service.extract_token_id(token)
    return redis_service.block_token(token_id, remaining_lifetime(token))


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(description="Revoke an access token")
    parser.add_argument("token", help="Encoded access token")
    args = parser.parse_args()

    redis_service = RedisService()
    if not redis_service.is_available():
        logger.error("REDIS_URL is not configured, nothing to revoke against")
        sys.exit(1)

    try:
        if not revoke(args.token, redis_service):
            logger.error("Redis refused the blocklist entry")
            sys.exit(1)
    except (TokenValidationError, jwt.InvalidTokenError) as e:
        logger.error(f"Cannot revoke token: {e}")
        sys.exit(1)

    logger.info("Token revoked")


if __name__ == "__main__":
    main()
