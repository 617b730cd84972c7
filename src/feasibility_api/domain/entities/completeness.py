# src/feasibility_api/domain/entities/completeness.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Section completeness entities (Domain Layer).

Purpose:
    Immutable results of the per-section completeness evaluation and the
    report-readiness gate derived from it.

Layer:
    domain/entities
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from feasibility_api.domain.entities.base import BaseEntity


@dataclass(frozen=True, slots=True)
class CompletenessReport(BaseEntity):
    """Per-section completeness flags.

    Attributes:
        sections: Section key -> ``True`` when the section is populated.
        missing: Section keys that are incomplete, in evaluation order.
        missing_labels: Human-readable labels for ``missing``.
    """

    sections: Mapping[str, bool] = field(default_factory=dict)
    missing: tuple[str, ...] = ()
    missing_labels: tuple[str, ...] = ()

    @property
    def is_complete(self) -> bool:
        """Return ``True`` when no evaluated section is missing."""
        return not self.missing

    def is_section_complete(self, key: str) -> bool:
        """Return the flag for ``key`` (unknown sections are incomplete)."""
        return bool(self.sections.get(key, False))

    def to_dict(self) -> dict[str, Any]:
        """Return the persisted ``sectionCompleteness`` shape."""
        return {
            "sections": {key: {"complete": flag} for key, flag in self.sections.items()},
            "missing": list(self.missing),
            "missingLabels": list(self.missing_labels),
            "isComplete": self.is_complete,
        }


@dataclass(frozen=True, slots=True)
class ReportReadiness(BaseEntity):
    """Outcome of the gate checked before report generation.

    Attributes:
        missing: Labels of the blocking sections (``"Cover Page"`` included).
    """

    missing: tuple[str, ...] = ()

    @property
    def ready(self) -> bool:
        """Return ``True`` when nothing blocks report generation."""
        return not self.missing

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the gate."""
        return {"ready": self.ready, "missing": list(self.missing)}
