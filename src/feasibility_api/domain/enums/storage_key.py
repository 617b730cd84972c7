# src/feasibility_api/domain/enums/storage_key.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Logical names of the persisted records of one feasibility project.

Layer:
    domain/enums
"""

from __future__ import annotations

from enum import Enum


class StorageKey(str, Enum):
    """Persisted record names (scoped per project by the session)."""

    ANSWERS = "feasibilityStudyAnswers"
    ANSWERS_VERSION = "answersVersion"
    SIMULATED_ANSWERS = "simulatedFeasibilityAnswers"
    START_FORM = "startFeasibilityForm"
    USER_INFO = "userInfo"
    UNIFIED_SCHEMA = "feasibilityUnifiedSchema"
    SURVEY_DATA = "surveyData"
    PREFERRED_LANGUAGE = "preferredLanguage"
    COMPARISON_ANSWERS = "comparisonAnswers"
    STRUCTURED_SECTIONS = "structuredSections"
    SECTION_COMPLETENESS = "sectionCompleteness"


def project_key(project_id: str, key: StorageKey | str) -> str:
    """Return the store key of ``key`` for ``project_id``."""
    name = key.value if isinstance(key, StorageKey) else key
    return f"{project_id}:{name}"


def split_project_key(key: str) -> tuple[str, str]:
    """Return ``(project_id, name)`` for a key built by :func:`project_key`."""
    project_id, _, name = key.rpartition(":")
    return project_id, name
