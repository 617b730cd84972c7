# tests/unit/dependencies/test_background_tasks.py
from __future__ import annotations

import fakeredis.aioredis
import pytest

from feasibility_api.application.use_cases.answers.save_answers import AnswerSessionRegistry
from feasibility_api.config.settings import get_settings
from feasibility_api.dependencies import feasibility as deps
from feasibility_api.infrastructure.storage.redis_store import RedisKeyValueStore


@pytest.mark.asyncio
async def test_memory_store_runs_only_the_write_tick() -> None:
    tasks = deps.start_background_tasks(get_settings())

    assert [task.get_name() for task in tasks] == ["answers-tick"]
    await deps.stop_background_tasks(tasks)
    assert all(task.cancelled() for task in tasks)


@pytest.mark.asyncio
async def test_redis_store_also_listens_for_changes(monkeypatch: pytest.MonkeyPatch) -> None:
    store = RedisKeyValueStore(fakeredis.aioredis.FakeRedis(decode_responses=True), namespace="t")
    registry = AnswerSessionRegistry(store, debounce_s=0, throttle_s=0)
    monkeypatch.setattr(deps, "get_session_registry", lambda: registry)

    tasks = deps.start_background_tasks(get_settings())

    assert [task.get_name() for task in tasks] == ["answers-tick", "answers-changes"]
    await deps.stop_background_tasks(tasks)
    assert all(task.done() for task in tasks)
