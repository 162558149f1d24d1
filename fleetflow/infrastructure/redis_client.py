"""Redis async client used by the cross-process event relay."""

from __future__ import annotations

import redis.asyncio as aioredis

from fleetflow.config import settings


def create_redis(url: str | None = None) -> aioredis.Redis:
    """Return a Redis client that owns its connection pool.

    Closing the client also disconnects the pool.
    """
    return aioredis.from_url(url or settings.redis_url, decode_responses=True)
