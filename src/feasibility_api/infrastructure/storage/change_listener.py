# src/feasibility_api/infrastructure/storage/change_listener.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Change-channel subscriber (Redis pub/sub).

Synopsis:
    Receives the versioned change messages that answer sessions publish
    after each persisted batch and hands them to a handler, normally
    ``AnswerSessionRegistry.apply_remote_change``.

Message schema (JSON string on ``{namespace}:changes``):
    {"key": "<project>:answersVersion", "op": "set", "version": 7,
     "records": ["feasibilityStudyAnswers", ...]}

Design:
    * Polls ``get_message(timeout=...)`` so cancellation at shutdown is
      prompt.
    * Transport errors drop the subscription; it is re-established after
      ``retry_s``.
    * Malformed messages are logged and skipped.

Layer:
    infrastructure/storage
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

from redis.exceptions import RedisError

from feasibility_api.domain.enums.storage_key import StorageKey, split_project_key
from feasibility_api.infrastructure.caching.redis_client import RedisClient, get_redis_client
from feasibility_api.infrastructure.logging.logger import get_json_logger

__all__ = ["ChangeHandler", "RedisChangeListener"]

logger = get_json_logger(__name__)

type ChangeHandler = Callable[[str, int, list[str]], Awaitable[bool]]

_TRANSPORT_ERRORS = (RedisError, OSError)


class RedisChangeListener:
    """Subscribe to the change channel and dispatch versioned updates."""

    def __init__(
        self,
        channel: str,
        handler: ChangeHandler,
        *,
        client: RedisClient | None = None,
        poll_timeout_s: float = 1.0,
        retry_s: float = 2.0,
    ) -> None:
        """Initialize the listener.

        Args:
            channel: Pub/sub channel (``RedisKeyValueStore.channel``).
            handler: Coroutine called with ``(project_id, version, records)``.
            client: Redis client; defaults to the process-wide client.
            poll_timeout_s: Blocking wait per poll.
            retry_s: Pause before resubscribing after a transport error.
        """
        self._channel = channel
        self._handler = handler
        self._client = client
        self._poll_timeout_s = poll_timeout_s
        self._retry_s = retry_s

    def _redis(self) -> RedisClient:
        if self._client is None:
            self._client = get_redis_client()
        return self._client

    async def handle(self, raw: Any) -> bool:
        """Decode one message and pass it to the handler.

        Returns:
            bool: The handler's result, or ``False`` for skipped messages.
        """
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("storage.changes.malformed", extra={"extra": {"channel": self._channel}})
            return False
        if not isinstance(message, dict):
            return False
        key = message.get("key")
        version = message.get("version")
        records = message.get("records")
        if (
            not isinstance(key, str)
            or isinstance(version, bool)
            or not isinstance(version, int)
            or not isinstance(records, list)
        ):
            return False
        project_id, name = split_project_key(key)
        if not project_id or name != StorageKey.ANSWERS_VERSION.value:
            return False
        return await self._handler(
            project_id, version, [record for record in records if isinstance(record, str)]
        )

    async def run(self) -> None:
        """Listen until cancelled, resubscribing after transport errors."""
        while True:
            try:
                await self._listen()
            except _TRANSPORT_ERRORS as exc:
                logger.warning(
                    "storage.changes.disconnected",
                    extra={"extra": {"channel": self._channel, "error": type(exc).__name__}},
                )
                await asyncio.sleep(self._retry_s)

    async def _listen(self) -> None:
        pubsub = self._redis().pubsub()
        try:
            await pubsub.subscribe(self._channel)
            logger.info("storage.changes.subscribed", extra={"extra": {"channel": self._channel}})
            while True:
                message = await pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=self._poll_timeout_s
                )
                if not message or message.get("type") != "message":
                    continue
                try:
                    await self.handle(message.get("data"))
                except Exception:
                    logger.exception(
                        "storage.changes.handler_failed",
                        extra={"extra": {"channel": self._channel}},
                    )
        finally:
            await pubsub.aclose()
