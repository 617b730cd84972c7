# src/feasibility_api/infrastructure/storage/memory_store.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""In-memory key/value store.

Backs the service when ``ENVIRONMENT=test`` and the offline CLI. Values are
kept JSON-encoded so both adapters observe the same round-trip semantics.
``fail_writes`` lets tests exercise the storage-unavailable paths and
``published`` records change notifications instead of broadcasting them.

Layer:
    infrastructure/storage
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from feasibility_api.domain.exceptions.storage import StorageUnavailableError

__all__ = ["InMemoryKeyValueStore"]


class InMemoryKeyValueStore:
    """Process-local implementation of the StoragePort Protocol."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self.fail_writes = False
        self.writes: list[str] = []
        self.published: list[dict[str, Any]] = []

    def _check_writable(self, key: str) -> None:
        if self.fail_writes:
            raise StorageUnavailableError("Storage write failed.", details={"key": key})

    async def when_ready(self) -> None:
        return None

    async def get_string(self, key: str, fallback: str | None = None) -> str | None:
        return self._data.get(key, fallback)

    async def set_string(self, key: str, value: str) -> None:
        self._check_writable(key)
        self._data[key] = value
        self.writes.append(key)

    async def get_json(self, key: str, fallback: Any = None) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return fallback
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return fallback

    async def set_json(self, key: str, value: Any) -> None:
        self._check_writable(key)
        self._data[key] = json.dumps(value, ensure_ascii=False, default=str)
        self.writes.append(key)

    async def remove(self, key: str) -> None:
        self._check_writable(key)
        self._data.pop(key, None)

    async def publish(self, message: Mapping[str, Any]) -> None:
        self.published.append(dict(message))

    def keys(self) -> list[str]:
        """Return the stored keys (test helper)."""
        return list(self._data)
