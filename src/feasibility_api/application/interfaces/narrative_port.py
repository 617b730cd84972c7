# src/feasibility_api/application/interfaces/narrative_port.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Application Interface: Narrative Generator Port.

Synopsis:
    Abstraction over the external text-generation service that turns the
    assembled report payload into a narrative report (JSON text).

Layer:
    application/interfaces
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol


class NarrativeGenerator(Protocol):
    """Text-generation collaborator."""

    async def generate(self, prompt: str, context_lines: Sequence[str] = ()) -> str:
        """Return the raw model output for ``prompt``.

        Args:
            prompt: Main instruction, including the serialized payload.
            context_lines: Extra plain-text lines sent as separate user turns.

        Returns:
            str: Non-empty raw content; parsing is the caller's concern.

        Raises:
            NarrativeUnavailableError: On transport failure, an open circuit,
                or an empty response.
        """
