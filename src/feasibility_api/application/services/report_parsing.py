# src/feasibility_api/application/services/report_parsing.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Narrative output parsing.

Purpose:
    Turn raw generator text into a report object. Generators wrap JSON in
    code fences or surround it with prose; the first balanced ``{...}``
    object is extracted with string/escape awareness before decoding.

Layer:
    application/services
"""

from __future__ import annotations

import json
import re
from typing import Any, Final

from feasibility_api.domain.exceptions.narrative import UpstreamFormatError

RAW_PREVIEW_CHARS: Final[int] = 400

_FENCED = re.compile(r"```(?:json)?([\s\S]*?)```", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Return the body of the first fenced block, or ``text`` unchanged."""
    match = _FENCED.search(text)
    return match.group(1).strip() if match else text


def extract_first_json_object(text: str) -> str | None:
    """Return the first balanced JSON object substring of ``text``.

    Braces inside string literals (including escaped quotes) do not count
    toward nesting depth.
    """
    cleaned = strip_code_fences(text).strip()
    start = cleaned.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(cleaned)):
        ch = cleaned[index]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return cleaned[start : index + 1]
    return None


def parse_model_json(text: str) -> dict[str, Any]:
    """Decode generator output into a report object.

    Args:
        text: Raw generator output.

    Returns:
        dict[str, Any]: Decoded object; ``sections`` defaults to ``[]`` when
        absent or not a list.

    Raises:
        UpstreamFormatError: If no JSON object can be decoded.
    """
    trimmed = text.strip()
    parsed: Any = None
    if trimmed.startswith("{") and trimmed.endswith("}"):
        try:
            parsed = json.loads(trimmed)
        except json.JSONDecodeError:
            parsed = None
    if not isinstance(parsed, dict):
        candidate = extract_first_json_object(text)
        if candidate is None:
            raise UpstreamFormatError(
                "Narrative output did not contain a JSON object.",
                details={"raw": text[:RAW_PREVIEW_CHARS]},
            )
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as exc:
            raise UpstreamFormatError(
                "Narrative output contained malformed JSON.",
                details={"raw": candidate[:RAW_PREVIEW_CHARS], "error": str(exc)},
            ) from exc
        if not isinstance(parsed, dict):
            raise UpstreamFormatError("Narrative output was not a JSON object.")
    if not isinstance(parsed.get("sections"), list):
        parsed["sections"] = []
    return parsed
