# src/feasibility_api/domain/exceptions/report.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Report gating exceptions.

Layer:
    domain/exceptions
"""
from __future__ import annotations

from collections.abc import Sequence

from feasibility_api.domain.exceptions.base import DomainError


class ReportNotReadyError(DomainError):
    """Required sections are incomplete; report generation is blocked."""

    code = "REPORT_NOT_READY"

    def __init__(self, missing: Sequence[str]) -> None:
        labels = list(missing)
        super().__init__(
            "Complete the following sections before generating the report: " + ", ".join(labels),
            details={"missing": labels},
        )
        self.missing = labels
