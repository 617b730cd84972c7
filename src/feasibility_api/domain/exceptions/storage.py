# src/feasibility_api/domain/exceptions/storage.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Storage exceptions.

Layer:
    domain/exceptions

Notes:
    Reads never raise these; the key/value adapters degrade to the caller's
    fallback. Only failed writes and an unusable store surface as errors.
"""
from __future__ import annotations

from feasibility_api.domain.exceptions.base import DomainError


class StorageUnavailableError(DomainError):
    """The key/value store is not ready or a write failed."""

    code = "STORAGE_UNAVAILABLE"
