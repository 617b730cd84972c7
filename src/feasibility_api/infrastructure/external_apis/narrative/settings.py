# src/feasibility_api/infrastructure/external_apis/narrative/settings.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Pydantic settings for the narrative (chat-completions) transport client."""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class NarrativeSettings(BaseSettings):
    """Configuration for the narrative generator client.

    Environment variables (with ``model_config.env_prefix``):

    * ``NARRATIVE_BASE_URL``
    * ``NARRATIVE_API_KEY``
    * ``NARRATIVE_MODEL``
    * ``NARRATIVE_TEMPERATURE``
    * ``NARRATIVE_TIMEOUT_S``
    * ``NARRATIVE_MAX_RETRIES``
    """

    base_url: str = Field(
        "https://api.openai.com/v1",
        description="Base URL of an OpenAI-compatible chat-completions API.",
    )
    api_key: SecretStr | None = Field(
        None,
        description="Bearer token; when unset the generator reports itself unavailable.",
    )
    model: str = Field("gpt-4o-mini", description="Model identifier.")
    temperature: float = Field(0.2, ge=0.0, le=2.0, description="Sampling temperature.")
    timeout_s: float = Field(
        60.0,
        gt=0.0,
        le=600.0,
        description="Per-request timeout in seconds.",
    )
    max_retries: int = Field(
        2,
        ge=0,
        le=10,
        description="Retry attempts for transport failures and 429/5xx responses.",
    )

    model_config: SettingsConfigDict = SettingsConfigDict(
        env_prefix="NARRATIVE_",
        extra="ignore",
    )

    @property
    def configured(self) -> bool:
        """Return ``True`` when an API key is present."""
        return self.api_key is not None and bool(self.api_key.get_secret_value())
