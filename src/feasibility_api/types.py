# src/feasibility_api/types.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Project-wide typing helpers.

``AnswerMap`` models a JSON-serializable answer record keyed by field
identifier (raw or canonical).
"""

from __future__ import annotations

from typing import Any

type AnswerMap = dict[str, Any]

__all__ = ["AnswerMap"]
