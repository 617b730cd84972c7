# src/feasibility_api/domain/services/answer_merge.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Answer merge engine.

Purpose:
    Combine partial answer sets from several named sources into one map using
    a "non-empty wins, deep-merge objects" rule.

Layer:
    domain/services

Notes:
    Merging is order-dependent by contract. Callers pass sources from lowest to
    highest trust/freshness; ``SOURCE_PRECEDENCE`` documents the order used by
    the answer session. Inputs are never mutated.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final

from feasibility_api.types import AnswerMap


class AnswerSource(str, Enum):
    """Named producers of raw answers."""

    SURVEY = "survey"
    SIMULATED = "simulated"
    FORM_SNAPSHOT = "form_snapshot"
    USER_PROFILE = "user_profile"
    FORM_FIELDS = "form_fields"


SOURCE_PRECEDENCE: Final[tuple[AnswerSource, ...]] = (
    AnswerSource.SURVEY,
    AnswerSource.SIMULATED,
    AnswerSource.FORM_SNAPSHOT,
    AnswerSource.USER_PROFILE,
    AnswerSource.FORM_FIELDS,
)


@dataclass(frozen=True, slots=True)
class NamedSource:
    """A raw answer map tagged with the producer that supplied it."""

    source: AnswerSource
    answers: Mapping[str, Any] = field(default_factory=dict)


def is_empty(value: Any) -> bool:
    """Return ``True`` for ``None``, blank strings, empty sequences and mappings.

    ``0`` and ``False`` are values, not emptiness.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    if isinstance(value, Mapping):
        return len(value) == 0
    return False


def deep_merge(base: Mapping[str, Any], update: Mapping[str, Any]) -> AnswerMap:
    """Merge ``update`` over ``base`` without ever writing emptiness over data.

    Rules per key:
        * both mappings -> merged recursively;
        * empty ``update`` value -> ``base`` value kept;
        * otherwise the ``update`` value replaces (lists wholesale).

    Args:
        base: Lower-precedence answers.
        update: Higher-precedence answers.

    Returns:
        AnswerMap: A new merged mapping.
    """
    out: AnswerMap = copy.deepcopy(dict(base))
    for key, value in update.items():
        current = out.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            out[key] = deep_merge(current, value)
        elif is_empty(value):
            if key not in out:
                out[key] = copy.deepcopy(value)
        else:
            out[key] = copy.deepcopy(value)
    return out


def merge_all(sources: Iterable[Mapping[str, Any] | NamedSource]) -> AnswerMap:
    """Fold ``sources`` left to right with :func:`deep_merge`.

    Args:
        sources: Answer maps (or :class:`NamedSource` wrappers) ordered from
            lowest to highest precedence. ``None`` entries are skipped.

    Returns:
        AnswerMap: The merged answers.
    """
    merged: AnswerMap = {}
    for src in sources:
        answers = src.answers if isinstance(src, NamedSource) else src
        if not isinstance(answers, Mapping):
            continue
        merged = deep_merge(merged, answers)
    return merged


def merge_named(sources: Iterable[NamedSource]) -> AnswerMap:
    """Merge named sources in ``SOURCE_PRECEDENCE`` order regardless of input order.

    Sources sharing a producer keep their relative order.
    """
    rank = {name: i for i, name in enumerate(SOURCE_PRECEDENCE)}
    ordered = sorted(sources, key=lambda s: rank[s.source])
    return merge_all(ordered)
