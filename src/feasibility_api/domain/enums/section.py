# src/feasibility_api/domain/enums/section.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Structured section keys.

Layer:
    domain/enums
"""

from __future__ import annotations

from enum import Enum


class SectionKey(str, Enum):
    """The eighteen structured survey sections, in builder order."""

    PROJECT_OVERVIEW = "projectOverview"
    MARKET = "market"
    MARKETING = "marketing"
    TECHNICAL = "technical"
    TECHNOLOGY = "technology"
    OPERATIONS = "operations"
    ORGANIZATION = "organization"
    LEGAL = "legal"
    ENVIRONMENTAL = "environmental"
    SOCIAL = "social"
    CULTURAL = "cultural"
    BEHAVIORAL = "behavioral"
    POLITICAL = "political"
    TIMING = "timing"
    RISK = "risk"
    ECONOMIC = "economic"
    FINANCIAL = "financial"
    INVESTMENTS = "investments"


class StudyType(str, Enum):
    """Study depth selected on the start form."""

    PRELIMINARY = "preliminary"
    BRIEF = "brief"
    COMPREHENSIVE = "comprehensive"

    @property
    def label(self) -> str:
        """Return the human title used on the cover page."""
        return f"{self.value.capitalize()} Feasibility Study"
