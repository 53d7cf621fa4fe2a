import logging

from upstash_redis.asyncio import Redis

from app.config import get_settings

logger = logging.getLogger(__name__)

# Presence is the only Redis consumer; the client exists only when it is enabled
_redis_client: Redis | None = None


async def init_redis_client() -> Redis:
    """Create the Upstash client used for presence and check it answers.

    Must be called during app startup (lifespan), and only when
    settings.presence_enabled is true.

    Raises:
        RuntimeError: If Upstash credentials are not configured.
    """
    global _redis_client
    settings = get_settings()
    if not settings.presence_enabled:
        raise RuntimeError(
            "UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN are required for presence"
        )
    client = Redis(url=settings.UPSTASH_REDIS_REST_URL, token=settings.UPSTASH_REDIS_REST_TOKEN)
    await client.ping()
    _redis_client = client
    logger.info("Upstash Redis client ready for presence tracking")
    return client


def get_redis_client() -> Redis:
    """Get the presence Redis client.

    Raises:
        RuntimeError: If init_redis_client has not run.
    """
    if _redis_client is None:
        raise RuntimeError("Redis client not initialized. Call init_redis_client first.")
    return _redis_client


async def close_redis_client() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.close()
        _redis_client = None
        logger.info("Upstash Redis client closed")
