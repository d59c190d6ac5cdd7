"""Redis client for the push notification hand-off and the live-update relay."""

from __future__ import annotations

import redis.asyncio as redis

from shared.config import get_settings

_redis_client: redis.Redis | None = None


def create_redis(redis_url: str) -> redis.Redis:
    """Build a client that decodes replies to str (pub/sub payloads are JSON text)."""
    return redis.from_url(redis_url, encoding="utf-8", decode_responses=True)


def channel_name(*parts: str) -> str:
    """Join channel segments: ``channel_name("live", "locations") == "live:locations"``."""
    return ":".join(part.strip(":") for part in parts if part)


async def get_redis() -> redis.Redis:
    """Return the process-wide client, creating it on first use."""
    global _redis_client
    if _redis_client is None:
        _redis_client = create_redis(get_settings().redis_url)
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
