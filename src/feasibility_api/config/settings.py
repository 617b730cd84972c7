# src/feasibility_api/config/settings.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Feasibility API Configuration (Pydantic Settings, v2)

Summary:
    Typed, validated application configuration. Only adapters, dependencies
    and infrastructure read it; domain and application code receive plain
    values through constructors.

Design:
    - Pydantic v2 BaseSettings with explicit aliases and constrained ranges.
    - Environment enumeration for behavior toggles (``test`` selects the
      in-memory store).
    - Singleton accessor ``get_settings()`` with LRU cache.
    - Narrative client settings live beside the client
      (``infrastructure/external_apis/narrative/settings.py``).
"""

from __future__ import annotations

import logging
from enum import Enum
from functools import lru_cache

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

MIN_SESSION_TICK_S = 0.05


class Environment(str, Enum):
    """Logical deployment environment."""

    DEVELOPMENT = "development"
    TEST = "test"
    CI = "ci"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Typed application configuration."""

    # ---------------------------
    # Core environment & storage
    # ---------------------------
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Logical deployment environment.",
        validation_alias="ENVIRONMENT",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the answer store.",
        validation_alias="REDIS_URL",
    )
    storage_namespace: str = Field(
        default="feasibility",
        min_length=1,
        max_length=64,
        description="Prefix applied to every stored key and change channel.",
        validation_alias="STORAGE_NAMESPACE",
    )

    # ---------------------------
    # Answer writes
    # ---------------------------
    write_debounce_ms: int = Field(
        default=400,
        ge=0,
        le=60_000,
        description="Quiet window after the last edit before a write is due.",
        validation_alias="WRITE_DEBOUNCE_MS",
    )
    write_throttle_ms: int = Field(
        default=1500,
        ge=0,
        le=60_000,
        description="Minimum spacing between two store writes for one project.",
        validation_alias="WRITE_THROTTLE_MS",
    )
    session_idle_ttl_s: int = Field(
        default=900,
        ge=1,
        le=86_400,
        description="Seconds a flushed answer session may stay idle before it is evicted.",
        validation_alias="SESSION_IDLE_TTL_S",
    )
    survey_sentence_cap: int = Field(
        default=60,
        ge=1,
        le=1000,
        description="Maximum number of survey sentences persisted and sent as context.",
        validation_alias="SURVEY_SENTENCE_CAP",
    )

    # ---------------------------
    # Analysis & reports
    # ---------------------------
    payload_max_chars: int = Field(
        default=40_000,
        ge=1_000,
        le=1_000_000,
        description="Serialized size budget of the full report payload.",
        validation_alias="PAYLOAD_MAX_CHARS",
    )
    projection_years: int = Field(
        default=5,
        ge=1,
        le=30,
        description="Income statement and cash-flow horizon in years.",
        validation_alias="PROJECTION_YEARS",
    )
    default_language: str = Field(
        default="en",
        min_length=2,
        max_length=16,
        description="Report language when none is requested or stored.",
        validation_alias="DEFAULT_LANGUAGE",
    )

    # ---------------------------
    # Observability
    # ---------------------------
    log_level: str = Field(
        default="INFO",
        description="Root log level.",
        validation_alias="LOG_LEVEL",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {value}")
        return level

    @property
    def write_debounce_s(self) -> float:
        return self.write_debounce_ms / 1000.0

    @property
    def write_throttle_s(self) -> float:
        return self.write_throttle_ms / 1000.0

    @property
    def session_tick_s(self) -> float:
        """Interval of the background task that drives debounced writes."""
        return max(self.write_debounce_s, MIN_SESSION_TICK_S)

    @property
    def uses_memory_store(self) -> bool:
        """Return ``True`` when the in-memory store should back the service."""
        return self.environment is Environment.TEST


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton `Settings` instance.

    Returns:
        Settings: Validated application settings.

    Raises:
        RuntimeError: If configuration is invalid.
    """
    try:
        settings = Settings()
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc
    logger.info(
        "Settings initialized",
        extra={
            "environment": settings.environment.value,
            "storage_namespace": settings.storage_namespace,
            "memory_store": settings.uses_memory_store,
            "projection_years": settings.projection_years,
        },
    )
    return settings
