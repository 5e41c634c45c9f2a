# ABOUTME: Redis connection helper for the Redis-backed session store.
# ABOUTME: Verifies the connection with PING, retrying with exponential backoff before giving up.

from loguru import logger
from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)


@retry(
    retry=retry_if_exception_type(RedisConnectionError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)
def _ping(redis_conn: Redis) -> None:
    redis_conn.ping()


def create_redis_connection(url: str = "redis://localhost:6379") -> Redis:
    """
    Create a Redis connection for the session store.

    Args:
        url: Redis connection URL (default: redis://localhost:6379)

    Returns:
        Redis connection instance

    Raises:
        ConnectionError: When Redis is not accessible after retries
    """
    try:
        redis_conn = Redis.from_url(url, decode_responses=False)
        _ping(redis_conn)
        logger.info(f"Redis connection established: {url}")
        return redis_conn
    except Exception as e:
        logger.error(f"Failed to connect to Redis at {url}: {e}")
        raise ConnectionError(f"Redis connection failed: {e}") from e
