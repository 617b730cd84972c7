# src/feasibility_api/domain/services/value_parsing.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Shared value coercion helpers.

Purpose:
    Total, side-effect-free coercions used by canonicalization, the structured
    section builder and the projection input extractor. Every helper accepts
    arbitrary JSON-ish input and returns ``None`` (or an empty list) instead of
    raising when the value cannot be interpreted.

Layer:
    domain/services
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Final

__all__ = [
    "dedupe_strings",
    "ensure_string_list",
    "first_present",
    "is_truthy",
    "normalize_investment_table",
    "normalize_license_table",
    "normalize_risk_table",
    "normalize_staff_table",
    "normalize_technology_table",
    "parse_equipment_list",
    "parse_percent",
    "to_number_or_none",
    "to_string_or_none",
]

_LEADING_NUMBER: Final[re.Pattern[str]] = re.compile(
    r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
)
_LIST_SPLIT: Final[re.Pattern[str]] = re.compile(r"[,;]+")
_TRUTHY: Final[frozenset[str]] = frozenset({"true", "yes", "1", "on"})


def to_string_or_none(value: Any) -> str | None:
    """Coerce ``value`` into a trimmed non-empty string, else ``None``.

    Lists are joined with ``", "`` after dropping blank items; booleans render
    as ``"true"``/``"false"``; non-finite numbers yield ``None``.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return _format_number(value)
    if isinstance(value, (list, tuple)):
        parts = [str(v).strip() for v in value if v is not None]
        parts = [p for p in parts if p]
        return ", ".join(parts) if parts else None
    return str(value).strip() or None


def _format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_number_or_none(value: Any) -> float | None:
    """Parse a leading number, ignoring thousands separators.

    ``"12,500 USD"`` -> ``12500.0``; ``"abc"`` -> ``None``; ``True`` -> ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if not isinstance(value, str):
        return None
    match = _LEADING_NUMBER.match(value.replace(",", ""))
    if match is None:
        return None
    number = float(match.group(1))
    return number if math.isfinite(number) else None


def parse_percent(value: Any) -> float | None:
    """Parse ``"8%"``/``"8"``/``8`` into the number ``8.0`` (percent units)."""
    return to_number_or_none(value.replace("%", " ") if isinstance(value, str) else value)


def ensure_string_list(value: Any) -> list[str]:
    """Coerce ``value`` into a list of trimmed, non-empty strings.

    Delimited strings split on commas and semicolons; sequences are trimmed and
    stringified element-wise.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        out: list[str] = []
        for item in value:
            text = to_string_or_none(item) if not isinstance(item, (list, tuple)) else None
            if text:
                out.append(text)
        return out
    if isinstance(value, str):
        return [part.strip() for part in _LIST_SPLIT.split(value) if part.strip()]
    text = to_string_or_none(value)
    return [text] if text else []


def dedupe_strings(values: Iterable[str]) -> list[str]:
    """Drop case-insensitive duplicates while keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        if not value:
            continue
        key = value.lower()
        if key not in seen:
            seen.add(key)
            out.append(value)
    return out


def is_truthy(value: Any) -> bool:
    """Interpret checkbox-style answers (``true``/``yes``/``1``/``on``)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    if isinstance(value, (int, float)):
        return math.isfinite(value) and value != 0
    return False


def first_present(source: Mapping[str, Any], keys: Sequence[str]) -> Any:
    """Return the first value under ``keys`` that is neither ``None`` nor blank."""
    for key in keys:
        value = source.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


# ----------------------------------------------------------------------------
# Table normalizers
# ----------------------------------------------------------------------------

type _RowSpec = tuple[str, Sequence[str], Callable[[Any], Any]]


def _normalize_rows(
    entries: Any,
    *,
    identity: _RowSpec,
    extras: Sequence[_RowSpec],
) -> list[dict[str, Any]]:
    """Normalize a list of row objects.

    Rows whose identifying field is missing are dropped entirely.
    """
    if not isinstance(entries, (list, tuple)):
        return []
    rows: list[dict[str, Any]] = []
    id_name, id_keys, id_coerce = identity
    for item in entries:
        if not isinstance(item, Mapping):
            continue
        ident = id_coerce(first_present(item, id_keys))
        if ident is None:
            continue
        row: dict[str, Any] = {id_name: ident}
        for name, keys, coerce in extras:
            value = coerce(first_present(item, keys))
            if value is not None:
                row[name] = value
        rows.append(row)
    return rows


def normalize_technology_table(entries: Any) -> list[dict[str, Any]]:
    """Rows of ``{type, cost}``."""
    return _normalize_rows(
        entries,
        identity=("type", ("type", "name", "technology"), to_string_or_none),
        extras=(("cost", ("cost", "value", "price"), to_number_or_none),),
    )


def normalize_license_table(entries: Any) -> list[dict[str, Any]]:
    """Rows of ``{type, cost}``."""
    return _normalize_rows(
        entries,
        identity=("type", ("type", "name"), to_string_or_none),
        extras=(("cost", ("cost", "value", "price"), to_number_or_none),),
    )


def normalize_staff_table(entries: Any) -> list[dict[str, Any]]:
    """Rows of ``{jobTitle, employeeCount, monthlySalary}``."""
    return _normalize_rows(
        entries,
        identity=("jobTitle", ("jobTitle", "title", "role"), to_string_or_none),
        extras=(
            ("employeeCount", ("employeeCount", "count", "quantity"), to_number_or_none),
            ("monthlySalary", ("monthlySalary", "salary", "monthlyCost"), to_number_or_none),
        ),
    )


def normalize_risk_table(entries: Any) -> list[dict[str, Any]]:
    """Rows of ``{name, probability, impact}``."""
    return _normalize_rows(
        entries,
        identity=("name", ("type", "name", "risk"), to_string_or_none),
        extras=(
            ("probability", ("probability",), to_number_or_none),
            ("impact", ("impact",), to_number_or_none),
        ),
    )


def normalize_investment_table(entries: Any) -> list[dict[str, Any]]:
    """Rows of ``{type, value, return}``; ``return`` keeps its raw text."""
    return _normalize_rows(
        entries,
        identity=("type", ("type", "name"), to_string_or_none),
        extras=(
            ("value", ("value", "amount", "cost"), to_number_or_none),
            ("return", ("return", "expectedReturn"), to_string_or_none),
        ),
    )


def parse_equipment_list(value: Any) -> list[dict[str, Any]]:
    """Parse equipment from a row list or ``"Oven: 500; Fridge: 300"`` text.

    Returns:
        list[dict[str, Any]]: Rows of ``{name, cost?}``; unnamed rows are dropped.
    """
    if isinstance(value, (list, tuple)):
        rows: list[dict[str, Any]] = []
        for item in value:
            if isinstance(item, Mapping):
                name = to_string_or_none(first_present(item, ("name", "type", "title", "label")))
                cost = to_number_or_none(first_present(item, ("cost", "value", "price")))
            else:
                name, cost = to_string_or_none(item), None
            if name is None:
                continue
            row: dict[str, Any] = {"name": name}
            if cost is not None:
                row["cost"] = cost
            rows.append(row)
        return rows

    raw = to_string_or_none(value)
    if raw is None:
        return []
    rows = []
    for chunk in raw.split(";"):
        part = chunk.strip()
        if not part:
            continue
        name, _, amount = part.partition(":")
        name = name.strip()
        if not name:
            continue
        row = {"name": name}
        cost = to_number_or_none(amount)
        if cost is not None:
            row["cost"] = cost
        rows.append(row)
    return rows
