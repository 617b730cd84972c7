# src/feasibility_api/application/services/write_scheduler.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Debounced and throttled write scheduler.

Purpose:
    Coalesce rapid answer edits into a single pending write and space out the
    actual store writes.

Layer:
    application/services

Design:
    - Exactly one pending slot. Submitting merges the new key/value pairs
      into the slot; the latest value per key wins.
    - A write becomes due once the slot has been quiet for ``debounce_s``
      *and* at least ``throttle_s`` has elapsed since the previous write.
    - Time is read from an injected clock and the caller drives the
      scheduler through :meth:`tick`; no timers or tasks are created here.
    - :meth:`flush` writes immediately regardless of timing; it is called
      before report generation and at shutdown.
    - A failed write puts its values back into the slot (unless newer
      values arrived meanwhile) and re-raises.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

type Clock = Callable[[], float]
type WriteFn = Callable[[dict[str, Any]], Awaitable[None]]


class WriteScheduler:
    """Single-slot debounce + throttle queue."""

    def __init__(
        self,
        write: WriteFn,
        *,
        debounce_s: float = 0.4,
        throttle_s: float = 1.5,
        clock: Clock = time.monotonic,
    ) -> None:
        """Initialize the scheduler.

        Args:
            write: Coroutine that persists a batch of key/value pairs.
            debounce_s: Quiet window after the last submit.
            throttle_s: Minimum spacing between two writes.
            clock: Monotonic clock in seconds.

        Raises:
            ValueError: If a window is negative.
        """
        if debounce_s < 0 or throttle_s < 0:
            raise ValueError("debounce_s and throttle_s must be >= 0")
        self._write = write
        self._debounce_s = debounce_s
        self._throttle_s = throttle_s
        self._clock = clock
        self._pending: dict[str, Any] = {}
        self._last_submit: float | None = None
        self._last_write: float | None = None

    @property
    def has_pending(self) -> bool:
        """Return ``True`` when a write is waiting in the slot."""
        return bool(self._pending)

    def submit(self, values: Mapping[str, Any]) -> None:
        """Merge ``values`` into the pending slot and restart the quiet window."""
        if not values:
            return
        self._pending.update(values)
        self._last_submit = self._clock()

    def discard(self, keys: Iterable[str]) -> None:
        """Drop ``keys`` from the pending slot (superseded by another writer)."""
        for key in keys:
            self._pending.pop(key, None)

    def next_due(self) -> float | None:
        """Return the clock value at which the pending write becomes due."""
        if not self._pending or self._last_submit is None:
            return None
        due = self._last_submit + self._debounce_s
        if self._last_write is not None:
            due = max(due, self._last_write + self._throttle_s)
        return due

    async def tick(self) -> bool:
        """Write the pending slot if it is due.

        Returns:
            bool: ``True`` when a write was performed.
        """
        due = self.next_due()
        if due is None or self._clock() < due:
            return False
        await self._run()
        return True

    async def flush(self) -> bool:
        """Write the pending slot now, ignoring debounce and throttle.

        Returns:
            bool: ``True`` when a write was performed.
        """
        if not self._pending:
            return False
        await self._run()
        return True

    async def _run(self) -> None:
        batch, self._pending = self._pending, {}
        self._last_write = self._clock()
        try:
            await self._write(batch)
        except Exception:
            # Newer submissions take precedence over the failed batch.
            self._pending = {**batch, **self._pending}
            if self._last_submit is None:
                self._last_submit = self._last_write
            raise
