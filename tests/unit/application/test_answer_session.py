# tests/unit/application/test_answer_session.py
from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
from prometheus_client import REGISTRY

from feasibility_api.application.schemas.dto.answers import SaveAnswersDTO
from feasibility_api.application.use_cases.answers.save_answers import (
    AnswerSession,
    AnswerSessionRegistry,
)
from feasibility_api.domain.enums.storage_key import StorageKey
from feasibility_api.domain.services.answer_merge import AnswerSource
from feasibility_api.domain.services.field_mapping import SCHEMA_VERSION
from feasibility_api.infrastructure.storage.memory_store import InMemoryKeyValueStore


def _session(store: InMemoryKeyValueStore, **kwargs: Any) -> AnswerSession:
    return AnswerSession(store, "p1", debounce_s=0, throttle_s=0, **kwargs)


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class _YieldingStore(InMemoryKeyValueStore):
    """Store that yields to the loop on every call and flags overlapping batches."""

    def __init__(self) -> None:
        super().__init__()
        self.in_flight = 0
        self.overlapped = False

    async def get_json(self, key: str, fallback: Any = None) -> Any:
        await asyncio.sleep(0)
        return await super().get_json(key, fallback)

    async def set_json(self, key: str, value: Any) -> None:
        self.in_flight += 1
        self.overlapped = self.overlapped or self.in_flight > 1
        try:
            await asyncio.sleep(0)
            await super().set_json(key, value)
        finally:
            self.in_flight -= 1


def _remote_updates(result: str) -> float:
    return (
        REGISTRY.get_sample_value(
            "feasibility_answer_remote_updates_total", {"result": result}
        )
        or 0.0
    )


@pytest.mark.asyncio
async def test_save_canonicalizes_and_persists_derived_records(
    ready_answers: dict[str, Any],
) -> None:
    store = InMemoryKeyValueStore()
    session = _session(store)

    result = await session.save(SaveAnswersDTO(answers=ready_answers))

    assert result.persisted is True
    assert result.version == 1
    assert result.completeness.report_ready is True
    saved = await store.get_json("p1:feasibilityStudyAnswers")
    assert saved["projectName"] == "Harbor Bakery"
    assert saved["marketSize"] == 100000.0
    assert "project-name" not in saved
    assert (await store.get_json("p1:feasibilityUnifiedSchema"))["version"] == SCHEMA_VERSION
    assert (await store.get_json("p1:sectionCompleteness"))["sections"]["market"] == {
        "complete": True
    }
    assert isinstance(await store.get_json("p1:surveyData"), list)
    assert (await store.get_json("p1:structuredSections"))["market"]["competitorsCount"] == 0


@pytest.mark.asyncio
async def test_partial_updates_merge_and_never_blank_existing_answers() -> None:
    store = InMemoryKeyValueStore()
    session = _session(store)

    await session.save(SaveAnswersDTO(answers={"project-name": "Harbor", "city": "Porto"}))
    second = await session.save(SaveAnswersDTO(answers={"project-name": "", "area": "Ribeira"}))

    assert second.version == 2
    snapshot = session.snapshot()
    assert snapshot["projectName"] == "Harbor"
    assert snapshot["city"] == "Porto"
    assert snapshot["area"] == "Ribeira"


@pytest.mark.asyncio
async def test_load_merges_source_records_by_precedence() -> None:
    store = InMemoryKeyValueStore(
        {
            "p1:simulatedFeasibilityAnswers": json.dumps(
                {"project-name": "Simulated", "market-size": "5000"}
            ),
            "p1:feasibilityStudyAnswers": json.dumps({"projectName": "Edited"}),
            "p1:userInfo": json.dumps({"fullName": "Dana Reyes"}),
        }
    )
    session = _session(store)

    await session.load()

    snapshot = session.snapshot()
    assert snapshot["projectName"] == "Edited"
    assert snapshot["marketSize"] == 5000.0
    assert snapshot["fullName"] == "Dana Reyes"


@pytest.mark.asyncio
async def test_simulated_answers_are_stored_in_their_own_record() -> None:
    store = InMemoryKeyValueStore()
    session = _session(store)

    await session.save(
        SaveAnswersDTO(answers={"market-size": "7000"}, source=AnswerSource.SIMULATED)
    )

    assert await store.get_json("p1:simulatedFeasibilityAnswers") == {"market-size": "7000"}
    assert session.snapshot()["marketSize"] == 7000.0


@pytest.mark.asyncio
async def test_storage_failure_is_reported_not_raised() -> None:
    store = InMemoryKeyValueStore()
    session = _session(store)
    store.fail_writes = True

    result = await session.save(SaveAnswersDTO(answers={"project-name": "Harbor"}))

    assert result.persisted is False
    assert session.has_pending_writes
    assert session.snapshot()["projectName"] == "Harbor"

    store.fail_writes = False
    assert await session.flush() is True
    assert (await store.get_json("p1:feasibilityStudyAnswers"))["projectName"] == "Harbor"


@pytest.mark.asyncio
async def test_unflushed_save_waits_for_the_scheduler() -> None:
    store = InMemoryKeyValueStore()
    session = AnswerSession(store, "p1", debounce_s=60, throttle_s=60)

    result = await session.save(SaveAnswersDTO(answers={"project-name": "Harbor"}, flush=False))

    assert result.persisted is False
    assert session.has_pending_writes
    assert "p1:feasibilityStudyAnswers" not in store.keys()


@pytest.mark.asyncio
async def test_remote_update_is_last_write_wins() -> None:
    session = _session(InMemoryKeyValueStore())
    await session.save(SaveAnswersDTO(answers={"project-name": "Local"}))

    assert not await session.apply_remote_update({"project-name": "Stale"}, version=1)
    assert await session.apply_remote_update({"project-name": "Remote"}, version=5)
    assert session.version == 5
    assert session.snapshot()["projectName"] == "Remote"


@pytest.mark.asyncio
async def test_registry_reuses_sessions_and_counts_flush_failures() -> None:
    store = InMemoryKeyValueStore()
    registry = AnswerSessionRegistry(store, debounce_s=60, throttle_s=60)
    session = registry.get("p1")
    assert registry.get("p1") is session
    assert registry.store is store

    await session.save(SaveAnswersDTO(answers={"project-name": "Harbor"}, flush=False))
    store.fail_writes = True
    assert await registry.flush_all() == 1

    store.fail_writes = False
    assert await registry.flush_all() == 0
    assert not session.has_pending_writes


@pytest.mark.asyncio
async def test_concurrent_saves_are_serialized_and_keep_both_updates() -> None:
    store = _YieldingStore()
    session = _session(store)

    first, second = await asyncio.gather(
        session.save(SaveAnswersDTO(answers={"project-name": "Harbor"})),
        session.save(SaveAnswersDTO(answers={"city": "Porto"})),
    )

    assert sorted([first.version, second.version]) == [1, 2]
    assert store.overlapped is False
    saved = await store.get_json("p1:feasibilityStudyAnswers")
    assert saved["projectName"] == "Harbor"
    assert saved["city"] == "Porto"
    assert await store.get_json("p1:answersVersion") == 2


@pytest.mark.asyncio
async def test_save_persists_and_announces_the_version() -> None:
    store = InMemoryKeyValueStore()
    session = _session(store)

    await session.save(SaveAnswersDTO(answers={"project-name": "Harbor"}))

    assert await store.get_json("p1:answersVersion") == 1
    assert store.published == [
        {
            "key": "p1:answersVersion",
            "op": "set",
            "version": 1,
            "records": ["feasibilityStudyAnswers"],
        }
    ]


@pytest.mark.asyncio
async def test_reloaded_session_continues_from_the_stored_version() -> None:
    store = InMemoryKeyValueStore()
    await _session(store).save(SaveAnswersDTO(answers={"project-name": "Harbor"}))

    reloaded = _session(store)
    await reloaded.load()
    result = await reloaded.save(SaveAnswersDTO(answers={"city": "Porto"}))

    assert result.version == 2
    assert reloaded.snapshot()["projectName"] == "Harbor"


@pytest.mark.asyncio
async def test_remote_update_drops_the_superseded_pending_write() -> None:
    store = InMemoryKeyValueStore()
    session = AnswerSession(store, "p1", debounce_s=60, throttle_s=60)
    await session.save(SaveAnswersDTO(answers={"project-name": "Local"}, flush=False))

    assert await session.apply_remote_update({"project-name": "Remote"}, version=5)
    await session.flush()

    assert "p1:feasibilityStudyAnswers" not in store.keys()
    assert await store.get_json("p1:answersVersion") == 5
    assert "p1:structuredSections" in store.keys()
    assert store.published == []


@pytest.mark.asyncio
async def test_registry_applies_changes_announced_by_another_writer() -> None:
    store = InMemoryKeyValueStore()
    local = AnswerSessionRegistry(store, debounce_s=0, throttle_s=0)
    remote = AnswerSessionRegistry(store, debounce_s=0, throttle_s=0)
    await local.get("p1").save(SaveAnswersDTO(answers={"project-name": "Local"}))
    await remote.get("p1").save(SaveAnswersDTO(answers={"project-name": "Remote"}))
    applied_before = _remote_updates("applied")
    ignored_before = _remote_updates("ignored")

    announced = store.published[-1]
    assert announced["version"] == 2
    assert await local.apply_remote_change("p1", announced["version"], announced["records"])

    session = local.get("p1")
    assert session.version == 2
    assert session.snapshot()["projectName"] == "Remote"
    assert not await local.apply_remote_change("p1", 2, announced["records"])
    assert not await local.apply_remote_change("p2", 9, announced["records"])
    assert _remote_updates("applied") == applied_before + 1
    assert _remote_updates("ignored") == ignored_before + 2


@pytest.mark.asyncio
async def test_tick_all_writes_debounced_updates_once_due() -> None:
    store = InMemoryKeyValueStore()
    clock = _Clock()
    registry = AnswerSessionRegistry(store, debounce_s=1.0, throttle_s=0, clock=clock)
    session = registry.get("p1")
    await session.save(SaveAnswersDTO(answers={"project-name": "Harbor"}, flush=False))

    assert await registry.tick_all() == 0
    assert "p1:feasibilityStudyAnswers" not in store.keys()

    clock.now += 1.0
    assert await registry.tick_all() == 1
    assert not session.has_pending_writes
    assert (await store.get_json("p1:feasibilityStudyAnswers"))["projectName"] == "Harbor"


@pytest.mark.asyncio
async def test_idle_sessions_are_evicted_and_reload_from_the_store() -> None:
    store = InMemoryKeyValueStore()
    clock = _Clock()
    registry = AnswerSessionRegistry(
        store, debounce_s=60, throttle_s=0, idle_ttl_s=10, clock=clock
    )
    await registry.get("p1").save(SaveAnswersDTO(answers={"project-name": "Harbor"}))
    await registry.get("p2").save(SaveAnswersDTO(answers={"project-name": "Dock"}, flush=False))

    clock.now += 5
    assert registry.evict_idle() == []

    clock.now += 5
    await registry.tick_all()
    assert "p1" not in registry
    assert "p2" in registry
    assert len(registry) == 1

    revived = registry.get("p1")
    await revived.load()
    assert revived.version == 1
    assert revived.snapshot()["projectName"] == "Harbor"


def test_registry_rejects_non_positive_idle_ttl() -> None:
    with pytest.raises(ValueError):
        AnswerSessionRegistry(InMemoryKeyValueStore(), idle_ttl_s=0)


@pytest.mark.asyncio
async def test_run_keeps_ticking_until_cancelled() -> None:
    store = InMemoryKeyValueStore()
    registry = AnswerSessionRegistry(store, debounce_s=0.05, throttle_s=0)
    await registry.get("p1").save(SaveAnswersDTO(answers={"project-name": "Harbor"}, flush=False))
    assert registry.get("p1").has_pending_writes

    task = asyncio.create_task(registry.run(0.01))
    for _ in range(100):
        if not registry.get("p1").has_pending_writes:
            break
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert (await store.get_json("p1:feasibilityStudyAnswers"))["projectName"] == "Harbor"
    assert await store.get_json(registry.get("p1").key(StorageKey.ANSWERS_VERSION)) == 1
