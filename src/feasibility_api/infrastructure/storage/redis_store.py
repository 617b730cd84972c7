# src/feasibility_api/infrastructure/storage/redis_store.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Key/Value Store (Redis-backed).

Synopsis:
    Implements the application StoragePort on top of the shared Redis client
    provided by ``infrastructure/caching/redis_client.py``. Values are plain
    strings or JSON documents and every key is namespaced. Answer sessions
    publish one versioned change message per persisted batch on the change
    channel so other writers of the same project can apply last-write-wins
    updates (see ``change_listener.py``).

Design:
    * Reads degrade: transport errors and undecodable JSON return the
      caller's fallback and log a warning.
    * Writes raise ``StorageUnavailableError`` when Redis rejects them.
    * Change notifications are best-effort; a failed publish is logged and
      never fails the write that preceded it.
    * Key policy: ``{namespace}:{key}``; channel ``{namespace}:changes``.

Layer:
    infrastructure/storage
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from redis.exceptions import RedisError

from feasibility_api.domain.exceptions.storage import StorageUnavailableError
from feasibility_api.infrastructure.caching.redis_client import RedisClient, get_redis_client
from feasibility_api.infrastructure.logging.logger import get_json_logger

__all__ = ["RedisKeyValueStore"]

logger = get_json_logger(__name__)

# Connection failures surface as RedisError subclasses or raw socket errors.
_TRANSPORT_ERRORS = (RedisError, OSError)


class RedisKeyValueStore:
    """Redis-backed implementation of the StoragePort Protocol."""

    def __init__(
        self, client: RedisClient | None = None, *, namespace: str = "feasibility"
    ) -> None:
        """Initialize the store adapter.

        Args:
            client: Redis client; defaults to the process-wide client.
            namespace: Prefix applied to all keys to avoid collisions.
        """
        self._client = client
        self._ns = namespace.strip(":")
        self._ready = False

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    @property
    def channel(self) -> str:
        """Pub/sub channel carrying change notifications."""
        return f"{self._ns}:changes"

    def _k(self, key: str) -> str:
        return f"{self._ns}:{key.lstrip(':')}"

    def _redis(self) -> RedisClient:
        if self._client is None:
            self._client = get_redis_client()
        return self._client

    async def _read(self, key: str) -> str | None:
        try:
            raw = await self._redis().get(self._k(key))
        except _TRANSPORT_ERRORS as exc:
            logger.warning(
                "storage.read.failed",
                extra={"extra": {"key": key, "error": type(exc).__name__}},
            )
            return None
        return raw if raw is None or isinstance(raw, str) else str(raw)

    async def _write(self, key: str, raw: str) -> None:
        try:
            await self._redis().set(self._k(key), raw)
        except _TRANSPORT_ERRORS as exc:
            raise StorageUnavailableError(
                "Storage write failed.", details={"key": key, "error": type(exc).__name__}
            ) from exc

    # ------------------------------------------------------------------ #
    # StoragePort implementation
    # ------------------------------------------------------------------ #
    async def when_ready(self) -> None:
        """Ping Redis once.

        Raises:
            StorageUnavailableError: If Redis cannot be reached.
        """
        if self._ready:
            return
        try:
            await self._redis().ping()
        except _TRANSPORT_ERRORS as exc:
            raise StorageUnavailableError(
                "Storage is not available.", details={"error": type(exc).__name__}
            ) from exc
        self._ready = True

    async def get_string(self, key: str, fallback: str | None = None) -> str | None:
        raw = await self._read(key)
        return fallback if raw is None else raw

    async def set_string(self, key: str, value: str) -> None:
        await self._write(key, value)

    async def get_json(self, key: str, fallback: Any = None) -> Any:
        """Return the decoded JSON value under ``key`` or ``fallback``."""
        raw = await self._read(key)
        if raw is None:
            return fallback
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("storage.decode.failed", extra={"extra": {"key": key}})
            return fallback

    async def set_json(self, key: str, value: Any) -> None:
        """Serialize ``value`` as JSON and store it.

        Raises:
            StorageUnavailableError: If Redis rejects the write.
        """
        await self._write(key, json.dumps(value, ensure_ascii=False, default=str))

    async def remove(self, key: str) -> None:
        try:
            await self._redis().delete(self._k(key))
        except _TRANSPORT_ERRORS as exc:
            raise StorageUnavailableError(
                "Storage delete failed.", details={"key": key, "error": type(exc).__name__}
            ) from exc

    async def publish(self, message: Mapping[str, Any]) -> None:
        """Publish ``message`` as JSON on :attr:`channel` (best-effort)."""
        try:
            await self._redis().publish(self.channel, json.dumps(dict(message), default=str))
        except _TRANSPORT_ERRORS as exc:
            logger.warning(
                "storage.publish.failed",
                extra={"extra": {"key": message.get("key"), "error": type(exc).__name__}},
            )
