# src/feasibility_api/domain/entities/base.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Base Entity (Domain Layer).

Purpose:
    Mixin for immutable domain entities. Provides frozen dataclass semantics,
    a small validation hook for invariants, and the camelCase wire form shared
    by every entity in the financial model.

Layer:
    domain/entities
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any


def camel_case(name: str) -> str:
    """Convert a snake_case attribute name into its camelCase wire key."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_wire(value: Any) -> Any:
    """Recursively convert entities, tuples and mappings into JSON-ready values."""
    if isinstance(value, BaseEntity):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {str(k): to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    return value


@dataclass(frozen=True, slots=True)
class BaseEntity:
    """Base mixin for domain entities.

    ``BaseEntity`` declares no fields of its own; it provides the common
    dataclass configuration (frozen + slots), the :meth:`__post_init__`
    invariant hook and :meth:`to_dict`.
    """

    def __post_init__(self) -> None:  # noqa: D401
        """Hook for subclasses to extend with invariant checks."""
        return

    def to_dict(self) -> dict[str, Any]:
        """Return the entity as a camelCase JSON-ready mapping."""
        return {camel_case(f.name): to_wire(getattr(self, f.name)) for f in fields(self)}
