# src/feasibility_api/application/interfaces/storage_port.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Application Interface: Key/Value Storage Port.

Synopsis:
    Async key/value persistence used by the answer session and the report
    use case. Enables swapping Redis, in-memory, or other stores.

Layer:
    application/interfaces

Notes:
    - Reads never raise for transport failures: they return ``fallback`` and
      the implementation records a warning.
    - Writes raise ``StorageUnavailableError`` when the store cannot accept
      them; callers decide whether the write is best-effort.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol


class StoragePort(Protocol):
    """Async key/value store with string and JSON accessors."""

    async def when_ready(self) -> None:
        """Wait until the store can serve requests.

        Raises:
            StorageUnavailableError: If the store cannot be initialized.
        """

    async def get_string(self, key: str, fallback: str | None = None) -> str | None:
        """Return the string stored under ``key`` or ``fallback``."""

    async def set_string(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""

    async def get_json(self, key: str, fallback: Any = None) -> Any:
        """Return the decoded JSON value under ``key`` or ``fallback``.

        Undecodable payloads are treated like missing keys.
        """

    async def set_json(self, key: str, value: Any) -> None:
        """Store ``value`` (JSON-serializable) under ``key``."""

    async def remove(self, key: str) -> None:
        """Delete ``key``; missing keys are ignored."""

    async def publish(self, message: Mapping[str, Any]) -> None:
        """Broadcast a change notification to other writers.

        Best-effort: implementations log delivery failures and never raise.
        """
