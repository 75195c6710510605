# SPDX-License-Identifier: Apache-2.0

"""
Redis service for caching and JWT token blocklist.

Redis is an optional accelerator: cache operations degrade to a no-op when
the server is unreachable. Blocklist reads raise instead, so the auth
middleware can refuse tokens it cannot check.
"""

import os
import json
from typing import Optional, List, Dict, Any, Union
import redis
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class RedisService:
    """
    Redis service using the redis-py client.

    Provides JWT token blocklist checks, the ledger statistics cache and the
    application status counts cache.
    """

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        """
        Initialize the Redis service.

        Args:
            redis_url: Redis connection URL (redis://host:port/db)
            client: Pre-built client, used instead of connecting to redis_url
        """
        self.redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379")

        if client is not None:
            self.client = client
            return

        try:
            self.client = redis.from_url(self.redis_url, decode_responses=True)
            logger.info(f"Redis service initialized for {self.redis_url}")
        except Exception as e:
            logger.error(f"Failed to initialize Redis service: {str(e)}")
            self.client = None

    def ping(self) -> bool:
        if not self.client:
            return False
        try:
            return bool(self.client.ping())
        except Exception as e:
            logger.warning(f"Redis ping failed: {str(e)}")
            return False

    def set(self, key: str, value: Union[str, Dict, List], ttl: Optional[int] = None) -> bool:
        """
        Set a key-value pair in Redis.

        Args:
            key: Redis key
            value: Value to store (will be JSON serialized if not string)
            ttl: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        if not self.client:
            logger.warning("Redis client not available, skipping set operation")
            return False

        with tracer.start_as_current_span("redis.set") as span:
            span.set_attributes({
                "redis.key": key,
                "redis.ttl": ttl or 0
            })

            try:
                if isinstance(value, (dict, list)):
                    value = json.dumps(value, default=str)

                if ttl:
                    result = self.client.setex(key, ttl, value)
                else:
                    result = self.client.set(key, value)

                span.set_attribute("redis.result", "success")
                return bool(result)

            except Exception as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis set failed for key {key}: {str(e)}")
                return False

    def get(self, key: str) -> Optional[Any]:
        """
        Get a value from Redis, decoding JSON when possible.

        Args:
            key: Redis key

        Returns:
            Value if found, None otherwise
        """
        if not self.client:
            return None

        with tracer.start_as_current_span("redis.get") as span:
            span.set_attribute("redis.key", key)

            try:
                value = self.client.get(key)

                if value is None:
                    span.set_attribute("redis.result", "not_found")
                    return None

                span.set_attribute("redis.result", "hit")
                try:
                    return json.loads(value)
                except (json.JSONDecodeError, TypeError):
                    return value

            except Exception as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis get failed for key {key}: {str(e)}")
                return None

    def delete(self, key: str) -> bool:
        """Delete a key from Redis."""
        if not self.client:
            return False

        with tracer.start_as_current_span("redis.delete") as span:
            span.set_attribute("redis.key", key)

            try:
                return bool(self.client.delete(key))
            except Exception as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis delete failed for key {key}: {str(e)}")
                return False

    def incr(self, key: str) -> Optional[int]:
        """Increment a counter, returning None when Redis is unavailable."""
        if not self.client:
            return None

        with tracer.start_as_current_span("redis.incr") as span:
            span.set_attribute("redis.key", key)

            try:
                return int(self.client.incr(key))
            except Exception as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis incr failed for key {key}: {str(e)}")
                return None

    # JWT Token Blocklist

    def is_token_blocked(self, jti: str) -> bool:
        """
        Check if a JWT token is in the blocklist.

        Args:
            jti: JWT ID to check

        Returns:
            True if token is blocked, False otherwise

        Raises:
            redis.RedisError: If the blocklist cannot be read
        """
        if not self.client:
            return False
        return bool(self.client.exists(f"blocklist:jwt:{jti}"))

    def health_check(self) -> Dict[str, Any]:
        if not self.client:
            return {"status": "unavailable", "url": self.redis_url}
        return {"status": "healthy" if self.ping() else "unhealthy"}
