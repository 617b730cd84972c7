# src/feasibility_api/application/services/report_payload.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Report payload assembler.

Purpose:
    Package the cover page, per-section inputs, raw answers, author,
    comparison selection and financial statements into the payload sent to
    the narrative generator, and fit it under a serialized-size budget.

Layer:
    application/services

Design:
    - Pure assembly: no financial computation happens here.
    - Page order is fixed: cover page, executive summary, table of contents,
      then ``section:1-1`` .. ``section:1-19``.
    - Size fitting tightens string and array limits uniformly through fixed
      tiers; it never drops a specific field.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any, Final

from feasibility_api.domain.services.answer_merge import is_empty
from feasibility_api.domain.services.narrative_formatters import (
    FORMATTER_REGISTRY,
    format_section,
    study_type,
)
from feasibility_api.domain.services.report_outline import (
    FINANCIAL_SECTION_ID,
    INVESTMENTS_SECTION_ID,
    PAGE_ORDER,
    REQUIRED_SECTION_IDS,
)
from feasibility_api.domain.services.value_parsing import first_present, to_string_or_none

# (max string length, max array length), loosest first.
FIT_TIERS: Final[tuple[tuple[int, int], ...]] = (
    (2000, 100),
    (1000, 60),
    (600, 30),
    (300, 15),
)
DEFAULT_MAX_CHARS: Final[int] = 40000
CONTEXT_LINE_MAX: Final[int] = 800

CONFIDENTIALITY: Final[dict[str, str]] = {
    "en": (
        "Confidential: This document is intended solely for the project owner and relevant "
        "stakeholders. Do not copy or distribute without prior permission."
    ),
    "ar": (
        "سري: هذا المستند مخصص فقط لمالك المشروع والجهات ذات الصلة. "
        "يُحظر النسخ أو المشاركة دون إذن مسبق."
    ),
}

# Cover basic-info field -> canonical answer keys, first present wins.
BASIC_INFO_FIELDS: Final[tuple[tuple[str, tuple[str, ...]], ...]] = (
    ("sector", ("projectSector", "sector")),
    ("projectType", ("projectType", "specifiedProjectType")),
    ("specifiedProjectType", ("specifiedProjectType",)),
    ("country", ("country", "userCountry")),
    ("city", ("city", "userCity")),
    ("area", ("area",)),
    ("fundingMethod", ("fundingMethod",)),
    ("personalContribution", ("personalContribution",)),
    ("loanAmount", ("loanAmount",)),
    ("interestValue", ("interestValue",)),
    ("currency", ("currency", "selectedCurrency")),
    ("totalCapital", ("totalCapital",)),
    ("loanMonths", ("loanMonths",)),
    ("targetAudience", ("targetAudience",)),
    ("projectStatus", ("projectStatus",)),
    ("duration", ("duration",)),
    ("durationUnit", ("durationUnit",)),
)

_TAGS = re.compile(r"<[^>]*>")
_CONTROL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_FENCE = re.compile(r"`{3,}")
_SPACES = re.compile(r"[\t ]{2,}")


# -----------------------------------------------------------------------------
# Sanitization
# -----------------------------------------------------------------------------


def sanitize_string(value: Any, max_len: int = 2000) -> Any:
    """Strip tags and control characters, normalize quotes, and truncate.

    Non-strings are returned unchanged.
    """
    if not isinstance(value, str):
        return value
    s = _TAGS.sub("", value)
    s = _CONTROL.sub("", s)
    s = s.replace("“", '"').replace("”", '"')
    s = s.replace("‘", "'").replace("’", "'")
    s = _FENCE.sub("``", s)
    s = _SPACES.sub(" ", s)
    return s[:max_len].strip()


def deep_filter(data: Any) -> Any:
    """Recursively drop empty values (``None``, blanks, empty containers)."""
    if isinstance(data, (list, tuple)):
        items = (deep_filter(v) for v in data)
        return [v for v in items if not is_empty(v)]
    if isinstance(data, Mapping):
        out: dict[str, Any] = {}
        for key, value in data.items():
            filtered = deep_filter(value)
            if not is_empty(filtered):
                out[key] = filtered
        return out
    return data


def sanitize_data(data: Any, *, max_string: int, max_array: int) -> Any:
    """Apply :func:`sanitize_string` and array truncation throughout ``data``."""
    if isinstance(data, (list, tuple)):
        items = (sanitize_data(v, max_string=max_string, max_array=max_array) for v in data[:max_array])
        return [v for v in items if not is_empty(v)]
    if isinstance(data, Mapping):
        out: dict[str, Any] = {}
        for key, value in data.items():
            sanitized = sanitize_data(value, max_string=max_string, max_array=max_array)
            if not is_empty(sanitized):
                out[key] = sanitized
        return out
    if isinstance(data, str):
        return sanitize_string(data, max_string)
    return data


def serialized_size(data: Any) -> int:
    """Return the compact JSON length of ``data``."""
    return len(json.dumps(data, ensure_ascii=False, separators=(",", ":"), default=str))


def fit_to_limit(data: Any, max_chars: int = DEFAULT_MAX_CHARS) -> Any:
    """Return ``data`` sanitized with the loosest tier that fits ``max_chars``.

    The tightest tier is returned even if it still exceeds the budget.
    """
    fitted: Any = data
    for max_string, max_array in FIT_TIERS:
        fitted = sanitize_data(data, max_string=max_string, max_array=max_array)
        if serialized_size(fitted) <= max_chars:
            return fitted
    return fitted


# -----------------------------------------------------------------------------
# Cover page & section inputs
# -----------------------------------------------------------------------------


def _text(answers: Mapping[str, Any], *keys: str) -> str | None:
    return to_string_or_none(first_present(answers, keys))


def resolve_author(
    answers: Mapping[str, Any], override: Mapping[str, Any] | None = None
) -> dict[str, str | None]:
    """Return ``{fullName, email}``, preferring ``override`` over profile answers."""
    given = override or {}
    return {
        "fullName": _text(given, "fullName") or _text(answers, "fullName", "userName", "name"),
        "email": _text(given, "email") or _text(answers, "email", "userEmail"),
    }


def build_timestamp(now: datetime) -> dict[str, str]:
    return {
        "iso": now.isoformat(),
        "date": now.strftime("%Y-%m-%d"),
        "time": now.strftime("%H:%M"),
        "formatted": now.strftime("%Y-%m-%d %H:%M"),
        "issueDate": now.strftime("%B %d, %Y").replace(" 0", " "),
    }


def build_cover_page(
    answers: Mapping[str, Any],
    *,
    language: str = "en",
    author: Mapping[str, Any] | None = None,
    now: Callable[[], datetime] = lambda: datetime.now(tz=UTC),
) -> dict[str, Any]:
    """Build the cover page from canonical answers.

    Args:
        answers: Merged canonical answers (start form and profile included).
        language: Report language (selects the confidentiality note).
        author: Optional ``{fullName, email}`` override.
        now: Clock used for the issue timestamp.

    Returns:
        dict[str, Any]: Cover page with absent fields omitted.
    """
    cover = {
        "studyType": study_type(answers),
        "projectName": _text(answers, "projectName"),
        "projectDescription": _text(answers, "projectDescription"),
        "visionMission": _text(answers, "visionMission", "notes"),
        "basicInfo": {name: _text(answers, *keys) for name, keys in BASIC_INFO_FIELDS},
        "author": resolve_author(answers, author),
        "timestamp": build_timestamp(now()),
        "confidentiality": CONFIDENTIALITY.get(language.lower(), CONFIDENTIALITY["en"]),
    }
    return deep_filter(cover)


def build_section_inputs(
    answers: Mapping[str, Any],
    financial_statements: Mapping[str, Any] | None = None,
) -> dict[str, dict[str, Any]]:
    """Render every report section's inputs through the formatter registry.

    The financial statement mirror, when given, is attached to the financial
    section so the generator sees the exact computed figures.
    """
    inputs = {sid: format_section(sid, answers) for sid in FORMATTER_REGISTRY}
    if financial_statements:
        inputs[FINANCIAL_SECTION_ID] = {
            **inputs.get(FINANCIAL_SECTION_ID, {}),
            "financialStatements": dict(financial_statements),
        }
    return {sid: inputs.get(sid, {}) for sid in REQUIRED_SECTION_IDS}


def build_context_lines(
    cover_page: Mapping[str, Any], survey_lines: Sequence[Any] = ()
) -> list[str]:
    """Return plain-text context lines: cover identifiers, then survey sentences."""
    basic = cover_page.get("basicInfo") or {}
    author = cover_page.get("author") or {}
    lines: list[str] = []
    for label, value in (
        ("Project Name", cover_page.get("projectName")),
        ("Project Type", basic.get("projectType")),
        ("Project Sector", basic.get("sector")),
        ("User Name", author.get("fullName")),
        ("User Email", author.get("email")),
    ):
        text = to_string_or_none(value)
        if text:
            lines.append(f"{label}: {text}")
    lines.extend(s.strip() for s in survey_lines if isinstance(s, str) and s.strip())
    cleaned = (sanitize_string(line, CONTEXT_LINE_MAX) for line in lines)
    return [line for line in cleaned if line]


# -----------------------------------------------------------------------------
# Assembly
# -----------------------------------------------------------------------------


def assemble_payload(
    *,
    cover_page: Mapping[str, Any],
    section_inputs: Mapping[str, Any],
    raw_answers: Mapping[str, Any],
    author: Mapping[str, Any],
    comparison: Sequence[str] | None,
    language: str,
    financial_statements: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Assemble the full, untrimmed payload.

    Returns:
        dict[str, Any]: Payload with the fixed page order and the
        ``forceFinancialSectionId`` / ``includeAllFields`` /
        ``disallowTruncation`` constraints.
    """
    investments = section_inputs.get(INVESTMENTS_SECTION_ID) or {}
    return {
        "order": {
            "pages": list(PAGE_ORDER),
            "requiredSectionIds": list(REQUIRED_SECTION_IDS),
        },
        "formatting": {"paragraphsAlignment": "justify", "coverPageAlignment": "center"},
        "coverPage": dict(cover_page),
        "sectionInputs": {sid: section_inputs.get(sid, {}) for sid in REQUIRED_SECTION_IDS},
        "rawSurvey": dict(raw_answers),
        "author": {
            "fullName": author.get("fullName") or "",
            "email": author.get("email") or "",
        },
        "additionalInvestments": investments.get("additionalInvestments"),
        "comparison": list(comparison) if comparison else None,
        "language": language,
        "financial": dict(financial_statements) if financial_statements else None,
        "constraints": {
            "forceFinancialSectionId": FINANCIAL_SECTION_ID,
            "includeAllFields": True,
            "disallowTruncation": True,
        },
    }
