# src/feasibility_api/domain/exceptions/narrative.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Narrative generation exceptions.

Layer:
    domain/exceptions
"""
from __future__ import annotations

from typing import Any

from feasibility_api.domain.exceptions.base import DomainError

UNAVAILABLE_MESSAGE = (
    "AI service is currently unavailable. Please contact support to enable the report generator."
)


class UpstreamFormatError(DomainError):
    """Generator output did not contain a parseable JSON object."""

    code = "UPSTREAM_FORMAT_ERROR"


class NarrativeUnavailableError(DomainError):
    """Generator transport failed or every chunked retry was exhausted."""

    code = "NARRATIVE_UNAVAILABLE"

    def __init__(
        self, message: str = UNAVAILABLE_MESSAGE, *, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message, details=details)
