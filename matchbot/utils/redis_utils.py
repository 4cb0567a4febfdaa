"""
Redis utility module for centralized Redis configuration and connection logic.

Provides secure Redis connection management with production validation.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

from matchbot.config import Config
from matchbot.utils.matchmaking_exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


class RedisUtils:
    """Centralized Redis configuration and connection utilities."""

    @staticmethod
    def get_secure_redis_url() -> Optional[str]:
        """Get Redis URL with security validation for production deployments."""
        # Try configured URL first (for cloud deployments)
        env_redis_url = Config.REDIS_URL
        if env_redis_url:
            if RedisUtils._validate_redis_security(env_redis_url):
                return env_redis_url
            else:
                logger.error("REDIS_URL contains insecure configuration")
                return None

        if not Config.DEBUG:
            # Production mode - no insecure defaults allowed
            logger.error("Production deployment requires secure Redis configuration. Set REDIS_URL with rediss:// protocol and authentication.")
            return None
        else:
            # Development mode - allow localhost for testing
            logger.warning("Development mode: using insecure localhost Redis. Do not use in production!")
            return 'redis://localhost:6379'

    @staticmethod
    def _validate_redis_security(redis_url: str) -> bool:
        """Validate that Redis URL meets security requirements."""
        if not redis_url:
            return False

        if Config.DEBUG:
            # Development mode - accept anything, but flag plaintext remote hosts
            if not redis_url.startswith(('rediss://', 'redis://localhost', 'redis://127.0.0.1')):
                logger.warning(f"Potentially insecure Redis URL in development: {redis_url}")
            return True

        if not redis_url.startswith('rediss://'):
            logger.error("Production Redis must use rediss:// (TLS) protocol")
            return False
        if '@' not in redis_url:
            logger.error("Production Redis must include authentication credentials")
            return False
        return True

    @staticmethod
    async def create_redis_client() -> 'redis.Redis':
        """Create a Redis client with secure configuration, or raise StoreUnavailable."""
        redis_url = RedisUtils.get_secure_redis_url()
        if not redis_url:
            raise StoreUnavailable('connect', 'no acceptable REDIS_URL configured')

        client = redis.from_url(redis_url, decode_responses=True)
        try:
            # Test connection
            await client.ping()
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            logger.error(f"Failed to connect to Redis: {e}")
            await client.aclose()
            raise StoreUnavailable('connect', str(e)) from e

        logger.info("Successfully connected to Redis")
        return client
