# SPDX-License-Identifier: Apache-2.0

"""
Redis service for the JWT token blocklist.

Uses the Upstash HTTP client for serverless compatibility. Every operation
degrades to a no-op when Redis is not configured so local setups run
without it.
"""

import os
import time
from typing import Optional, Dict, Any
from upstash_redis import Redis
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

BLOCKLIST_PREFIX = "jwt:blocked:"


class RedisConnectionError(Exception):
    """Raised when Redis connection fails."""
    pass


class RedisService:
    """Upstash Redis wrapper holding revoked token ids."""

    def __init__(self, redis_url: Optional[str] = None, redis_token: Optional[str] = None, client: Any = None):
        """
        Initialize the Redis service.

        Args:
            redis_url: Upstash Redis HTTP URL
            redis_token: Upstash Redis authentication token
            client: Pre-built client, bypasses URL configuration
        """
        self.redis_url = redis_url or os.getenv("REDIS_URL")
        self.redis_token = redis_token or os.getenv("REDIS_TOKEN")
        self.client = client

        if self.client is not None:
            return

        if not self.redis_url:
            logger.warning("No REDIS_URL configured, Redis operations will be disabled")
            return

        try:
            if self.redis_token:
                self.client = Redis(url=self.redis_url, token=self.redis_token)
            else:
                self.client = Redis.from_env()

            if self.client.ping() != "PONG":
                raise RedisConnectionError("Redis ping failed")

            logger.info("Redis service initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize Redis service: {str(e)}")
            self.client = None

    def is_available(self) -> bool:
        """Check if Redis service is available."""
        return self.client is not None

    def is_token_blocked(self, token_id: str) -> bool:
        """
        Check if a JWT token is in the blocklist.

        Args:
            token_id: Unique token identifier

        Returns:
            True if token is blocked, False otherwise
        """
        if not self.is_available():
            logger.warning("Redis unavailable for token blocklist check - allowing token")
            return False

        with tracer.start_as_current_span("redis.is_token_blocked") as span:
            span.set_attribute("auth.token_id", token_id)
            try:
                blocked = self.client.exists(BLOCKLIST_PREFIX + token_id) > 0
            except Exception as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis EXISTS failed: {str(e)}")
                return False

            span.set_attribute("auth.token_blocked", blocked)
            return blocked

    def block_token(self, token_id: str, ttl_seconds: int) -> bool:
        """
        Add a JWT token to the blocklist.

        Args:
            token_id: Unique token identifier
            ttl_seconds: Time to live (should match token expiration)

        Returns:
            True if token was blocked, False otherwise
        """
        if not self.is_available():
            logger.error("Redis unavailable - cannot block token")
            return False

        with tracer.start_as_current_span("redis.block_token") as span:
            span.set_attributes({
                "auth.token_id": token_id,
                "redis.ttl": ttl_seconds
            })
            try:
                result = self.client.setex(BLOCKLIST_PREFIX + token_id, ttl_seconds, "1") == "OK"
            except Exception as e:
                logger.error(f"Redis SETEX failed: {str(e)}")
                result = False

            span.set_attribute("auth.token_block_result", "success" if result else "failed")
            if result:
                logger.info(f"Token blocked: {token_id} (TTL: {ttl_seconds}s)")
            return result

    def health_check(self) -> Dict[str, Any]:
        """Ping Redis and report latency."""
        if not self.is_available():
            return {
                "status": "unavailable",
                "message": "Redis client not initialized",
                "timestamp": time.time()
            }

        start_time = time.time()
        try:
            healthy = self.client.ping() == "PONG"
        except Exception as e:
            return {
                "status": "unhealthy",
                "message": str(e),
                "timestamp": time.time()
            }

        return {
            "status": "healthy" if healthy else "degraded",
            "response_time_ms": round((time.time() - start_time) * 1000, 2),
            "timestamp": time.time()
        }
