# src/feasibility_api/dependencies/feasibility.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Dependency wiring for the feasibility service (store, generator, use cases).

Overview:
    Provides FastAPI dependency providers for the answer session registry,
    the narrative generator and the analysis/report use cases.

Layer:
    dependencies

Design:
    * Always return the real use case types.
    * Select the store implementation by environment:
        - In-memory store in tests (hermetic, no Redis dependency).
        - RedisKeyValueStore otherwise.
    * The registry and generator are process-wide singletons; the answer
      session registry holds each project's snapshot and pending writes.
    * Background tasks (debounced-write tick, change-channel listener) are
      started and cancelled by the application lifespan.
    * Tests override ``get_narrative_generator`` via
      ``app.dependency_overrides`` or call ``reset_dependencies()``.
"""

from __future__ import annotations

import asyncio
from typing import Annotated

from fastapi import Depends

from feasibility_api.application.interfaces.narrative_port import NarrativeGenerator
from feasibility_api.application.interfaces.storage_port import StoragePort
from feasibility_api.application.use_cases.answers.save_answers import AnswerSessionRegistry
from feasibility_api.application.use_cases.reports.analyze_project import AnalyzeProject
from feasibility_api.application.use_cases.reports.generate_report import GenerateReport
from feasibility_api.config.settings import Settings, get_settings
from feasibility_api.infrastructure.external_apis.narrative.client import ChatCompletionsClient
from feasibility_api.infrastructure.external_apis.narrative.settings import NarrativeSettings
from feasibility_api.infrastructure.logging.logger import get_json_logger
from feasibility_api.infrastructure.storage.change_listener import RedisChangeListener
from feasibility_api.infrastructure.storage.memory_store import InMemoryKeyValueStore
from feasibility_api.infrastructure.storage.redis_store import RedisKeyValueStore

logger = get_json_logger(__name__)

_registry: AnswerSessionRegistry | None = None
_generator: ChatCompletionsClient | None = None


# =============================================================================
# Store & registry
# =============================================================================


def build_store(settings: Settings) -> StoragePort:
    """Return the key/value store selected by ``settings``."""
    if settings.uses_memory_store:
        return InMemoryKeyValueStore()
    return RedisKeyValueStore(namespace=settings.storage_namespace)


def get_session_registry() -> AnswerSessionRegistry:
    """Return the process-wide answer session registry."""
    global _registry
    if _registry is None:
        settings = get_settings()
        _registry = AnswerSessionRegistry(
            build_store(settings),
            debounce_s=settings.write_debounce_s,
            throttle_s=settings.write_throttle_s,
            sentence_cap=settings.survey_sentence_cap,
            idle_ttl_s=float(settings.session_idle_ttl_s),
        )
        logger.info(
            "dependencies.registry.created",
            extra={"extra": {"memory_store": settings.uses_memory_store}},
        )
    return _registry


# =============================================================================
# Narrative generator
# =============================================================================


def get_narrative_generator() -> NarrativeGenerator:
    """Return the process-wide chat-completions client."""
    global _generator
    if _generator is None:
        _generator = ChatCompletionsClient(NarrativeSettings())
    return _generator


# =============================================================================
# Use cases
# =============================================================================


def get_analyze_project(
    registry: Annotated[AnswerSessionRegistry, Depends(get_session_registry)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AnalyzeProject:
    return AnalyzeProject(registry, years=settings.projection_years)


def get_generate_report(
    registry: Annotated[AnswerSessionRegistry, Depends(get_session_registry)],
    generator: Annotated[NarrativeGenerator, Depends(get_narrative_generator)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> GenerateReport:
    return GenerateReport(
        registry,
        generator,
        years=settings.projection_years,
        default_language=settings.default_language,
        payload_max_chars=settings.payload_max_chars,
        sentence_cap=settings.survey_sentence_cap,
    )


# =============================================================================
# Lifecycle
# =============================================================================


def start_background_tasks(settings: Settings) -> list[asyncio.Task[None]]:
    """Start the write tick and, with Redis, the change-channel listener."""
    registry = get_session_registry()
    tasks = [asyncio.create_task(registry.run(settings.session_tick_s), name="answers-tick")]
    store = registry.store
    if isinstance(store, RedisKeyValueStore):
        listener = RedisChangeListener(store.channel, registry.apply_remote_change)
        tasks.append(asyncio.create_task(listener.run(), name="answers-changes"))
    logger.info(
        "dependencies.tasks.started",
        extra={"extra": {"tasks": [task.get_name() for task in tasks]}},
    )
    return tasks


async def stop_background_tasks(tasks: list[asyncio.Task[None]]) -> None:
    """Cancel background tasks and wait for them to finish."""
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


async def shutdown_dependencies() -> None:
    """Flush pending answer writes and close the generator client."""
    global _generator
    if _registry is not None:
        failures = await _registry.flush_all()
        if failures:
            logger.warning(
                "dependencies.shutdown.flush_failed", extra={"extra": {"failures": failures}}
            )
    if _generator is not None:
        await _generator.aclose()
        _generator = None


def reset_dependencies() -> None:
    """Drop the cached registry and generator (test helper)."""
    global _registry, _generator
    _registry = None
    _generator = None
