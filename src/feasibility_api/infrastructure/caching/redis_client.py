# src/feasibility_api/infrastructure/caching/redis_client.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Async Redis client factory (process-wide singleton)."""

from __future__ import annotations

from contextlib import suppress
from typing import TYPE_CHECKING, Any, Protocol, cast, runtime_checkable

import redis.asyncio as aioredis

if TYPE_CHECKING:
    from redis.asyncio.client import Redis as _RedisGeneric

    type AioredisRedis = _RedisGeneric[str]
else:
    from redis.asyncio.client import Redis as AioredisRedis  # type: ignore[assignment]

from feasibility_api.config.settings import Settings, get_settings

__all__ = [
    "RedisClient",
    "init_redis",
    "close_redis",
    "get_redis_client",
]


@runtime_checkable
class RedisClient(Protocol):
    """Minimal async Redis protocol used by the answer store."""

    async def ping(self) -> Any: ...
    async def aclose(self) -> None: ...

    async def get(self, key: str) -> Any: ...
    async def set(self, key: str, value: Any) -> Any: ...
    async def delete(self, *keys: str) -> Any: ...
    async def publish(self, channel: str, message: str) -> Any: ...
    def pubsub(self, **kwargs: Any) -> Any: ...


_client: RedisClient | None = None
_DEFAULT_REDIS_URL = "redis://localhost:6379/0"


def _create_aioredis_client(url: str) -> AioredisRedis:
    """Build the concrete asyncio Redis client from URL."""
    _from_url: Any = aioredis.from_url
    client = _from_url(
        url=url,
        encoding="utf-8",
        decode_responses=True,
        health_check_interval=15,
        socket_timeout=3.0,
        socket_connect_timeout=3.0,
    )
    return cast(AioredisRedis, client)


def init_redis(settings: Settings) -> None:
    """Initialize the global async Redis client (idempotent)."""
    global _client
    if _client is not None:
        return
    url = str(settings.redis_url or _DEFAULT_REDIS_URL)
    _client = cast(RedisClient, _create_aioredis_client(url))


async def close_redis() -> None:
    """Close the global Redis client at shutdown."""
    global _client
    if _client is not None:
        with suppress(RuntimeError):
            await _client.aclose()
        _client = None


def get_redis_client() -> RedisClient:
    """Return the initialized Redis client (lazy-inits on first use)."""
    global _client
    if _client is None:
        init_redis(get_settings())
    if _client is None:
        raise RuntimeError("Redis client not initialized (init_redis failed)")
    return _client

