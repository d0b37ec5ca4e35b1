"""
Redis Connection Management

Provides the async Redis client used as the shared lock store with:
- Connection from REDIS_URL
- Connection health check functionality
"""

import time
from dataclasses import dataclass
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import ConnectionError, TimeoutError

from .config import Settings


def create_redis_client(settings: Settings) -> Redis:
    """
    Create an async Redis client from settings.

    The client owns a connection pool; close it with `await client.aclose()`.

    Args:
        settings: Application settings (redis_url, redis_socket_timeout)

    Returns:
        Redis: async Redis client returning str values
    """
    return Redis.from_url(
        settings.redis_url,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
        decode_responses=True,
    )


@dataclass
class RedisHealthStatus:
    """Health status for Redis connection."""
    healthy: bool
    latency_ms: Optional[float] = None
    error: Optional[str] = None


async def check_redis_health(client: Redis) -> RedisHealthStatus:
    """
    Check the health of the Redis connection.

    Performs a PING command and measures latency.

    Args:
        client: Redis client to probe

    Returns:
        RedisHealthStatus: Health status including latency and any errors
    """
    try:
        start = time.perf_counter()
        pong = await client.ping()
        latency_ms = (time.perf_counter() - start) * 1000

        if not pong:
            return RedisHealthStatus(healthy=False, error="PING returned False")

        return RedisHealthStatus(healthy=True, latency_ms=round(latency_ms, 2))

    except ConnectionError as e:
        return RedisHealthStatus(healthy=False, error=f"Connection failed: {str(e)}")
    except TimeoutError as e:
        return RedisHealthStatus(healthy=False, error=f"Connection timeout: {str(e)}")
    except Exception as e:
        return RedisHealthStatus(healthy=False, error=f"Unexpected error: {str(e)}")
