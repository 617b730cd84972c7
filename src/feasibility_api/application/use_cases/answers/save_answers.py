# src/feasibility_api/application/use_cases/answers/save_answers.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Use Case: Answer session (load, save, remote update).

Purpose:
    Own the in-memory snapshot of one project's answers. Every save follows
    "read latest, merge the partial update, write the whole record" and
    refreshes the derived structured sections, completeness and survey
    sentences.

Layer:
    application/use_cases/answers

Notes:
    - Each producer (survey/form fields, simulated survey, start form, user
      profile) owns one persisted record. The merged view is rebuilt from
      those records in ``SOURCE_PRECEDENCE`` order and never written back
      over a source record.
    - Survey and form-field updates share the answers record, which ranks
      highest because it holds the user's direct edits.
    - A per-session lock serializes load, merge and write so concurrent
      requests for one project never merge into a stale snapshot.
    - Writes go through a :class:`WriteScheduler`. Storage failures on write
      are logged and reported as ``persisted=False``; they never block data
      entry. The registry's ``tick_all`` drives debounced writes.
    - The session version is persisted with the records. Every persisted
      batch that touches a source record is announced with that version;
      ``apply_remote_records`` implements last-write-wins for such
      announcements from another writer of the same project.
"""

from __future__ import annotations

import asyncio
import copy
import time
from collections.abc import Callable, Iterable, Mapping
from contextlib import suppress
from typing import TYPE_CHECKING, Any, Final

from feasibility_api.application.interfaces.storage_port import StoragePort
from feasibility_api.application.schemas.dto.answers import (
    AnswersSavedDTO,
    CompletenessDTO,
    SaveAnswersDTO,
    SectionStateDTO,
)
from feasibility_api.application.services.write_scheduler import Clock, WriteScheduler
from feasibility_api.domain.entities.completeness import CompletenessReport, ReportReadiness
from feasibility_api.domain.enums.storage_key import StorageKey, project_key
from feasibility_api.domain.exceptions.storage import StorageUnavailableError
from feasibility_api.domain.services.answer_merge import (
    AnswerSource,
    NamedSource,
    deep_merge,
    merge_named,
)
from feasibility_api.domain.services.field_mapping import canonicalize_answers, unified_schema
from feasibility_api.domain.services.narrative_formatters import survey_sentences
from feasibility_api.domain.services.section_completeness import (
    check_report_readiness,
    compute_completeness,
)
from feasibility_api.domain.services.structured_sections import build_structured_sections
from feasibility_api.infrastructure.logging.logger import get_json_logger
from feasibility_api.infrastructure.observability.metrics import (
    get_answer_remote_updates_total,
    get_answer_writes_total,
)
from feasibility_api.types import AnswerMap

if TYPE_CHECKING:  # typing-only
    from prometheus_client import Counter

logger = get_json_logger(__name__)

# Source -> record that stores it.
SOURCE_RECORDS: Final[dict[AnswerSource, StorageKey]] = {
    AnswerSource.SURVEY: StorageKey.ANSWERS,
    AnswerSource.FORM_FIELDS: StorageKey.ANSWERS,
    AnswerSource.SIMULATED: StorageKey.SIMULATED_ANSWERS,
    AnswerSource.FORM_SNAPSHOT: StorageKey.START_FORM,
    AnswerSource.USER_PROFILE: StorageKey.USER_INFO,
}

# Merge rank of each record.
RECORD_SOURCES: Final[tuple[tuple[StorageKey, AnswerSource], ...]] = (
    (StorageKey.SIMULATED_ANSWERS, AnswerSource.SIMULATED),
    (StorageKey.START_FORM, AnswerSource.FORM_SNAPSHOT),
    (StorageKey.USER_INFO, AnswerSource.USER_PROFILE),
    (StorageKey.ANSWERS, AnswerSource.FORM_FIELDS),
)

DERIVED_RECORDS: Final[tuple[StorageKey, ...]] = (
    StorageKey.STRUCTURED_SECTIONS,
    StorageKey.SECTION_COMPLETENESS,
    StorageKey.SURVEY_DATA,
)

DEFAULT_SENTENCE_CAP: Final[int] = 60
DEFAULT_IDLE_TTL_S: Final[float] = 900.0


def completeness_dto(report: CompletenessReport, readiness: ReportReadiness) -> CompletenessDTO:
    """Combine completeness flags with the report gate."""
    return CompletenessDTO(
        sections={k: SectionStateDTO(complete=v) for k, v in report.sections.items()},
        missing=list(report.missing),
        missingLabels=list(report.missing_labels),
        isComplete=report.is_complete,
        reportReady=readiness.ready,
        blocking=list(readiness.missing),
    )


def _stored_version(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0
    return max(0, int(value))


def _count(counter: Callable[[], Counter], result: str) -> None:
    with suppress(Exception):
        counter().labels(result=result).inc()


class AnswerSession:
    """Explicit answer snapshot for one project."""

    def __init__(
        self,
        store: StoragePort,
        project_id: str,
        *,
        debounce_s: float = 0.4,
        throttle_s: float = 1.5,
        sentence_cap: int = DEFAULT_SENTENCE_CAP,
        clock: Clock = time.monotonic,
    ) -> None:
        """Initialize the session.

        Args:
            store: Key/value store.
            project_id: Project identifier (scopes every key).
            debounce_s: Write debounce window.
            throttle_s: Minimum spacing between writes.
            sentence_cap: Maximum number of persisted survey sentences.
            clock: Monotonic clock used by the write scheduler.
        """
        self._store = store
        self._project_id = project_id
        self._sentence_cap = sentence_cap
        self._scheduler = WriteScheduler(
            self._write_batch, debounce_s=debounce_s, throttle_s=throttle_s, clock=clock
        )
        self._lock = asyncio.Lock()
        self._records: dict[StorageKey, AnswerMap] = {key: {} for key, _ in RECORD_SOURCES}
        self._loaded = False
        self._version = 0
        self._answers: AnswerMap = {}
        self._sections: dict[str, Any] = build_structured_sections({})
        self._completeness = compute_completeness(self._sections)

    # ------------------------------------------------------------------ #
    # State accessors
    # ------------------------------------------------------------------ #
    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def version(self) -> int:
        return self._version

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def busy(self) -> bool:
        """Return ``True`` while a load, save or write holds the session lock."""
        return self._lock.locked()

    @property
    def has_pending_writes(self) -> bool:
        return self._scheduler.has_pending

    def snapshot(self) -> AnswerMap:
        """Return a copy of the merged canonical answers."""
        return copy.deepcopy(self._answers)

    def sections(self) -> dict[str, Any]:
        """Return a copy of the current structured sections."""
        return copy.deepcopy(self._sections)

    @property
    def completeness(self) -> CompletenessReport:
        return self._completeness

    def readiness(self) -> ReportReadiness:
        """Return the report-generation gate for the current snapshot."""
        return check_report_readiness(self._answers, self._completeness)

    def key(self, name: StorageKey | str) -> str:
        """Return the project-scoped store key for ``name``."""
        return project_key(self._project_id, name)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    async def load(self) -> None:
        """Read every source record once and rebuild the derived state.

        Raises:
            StorageUnavailableError: If the store cannot be initialized.
        """
        async with self._lock:
            await self._load()

    async def save(self, update: SaveAnswersDTO) -> AnswersSavedDTO:
        """Merge a partial update, refresh derived state and schedule the write.

        Args:
            update: Partial answers and their source.

        Returns:
            AnswersSavedDTO: New version, whether the write reached the store,
            and the refreshed completeness.
        """
        async with self._lock:
            await self._load()
            record_key = SOURCE_RECORDS[update.source]
            incoming = (
                canonicalize_answers(update.answers)
                if record_key is StorageKey.ANSWERS
                else dict(update.answers)
            )
            self._records[record_key] = deep_merge(self._records[record_key], incoming)
            self._version += 1
            self._recompute()

            self._scheduler.submit(
                {
                    self.key(record_key): self._records[record_key],
                    **self._derived(),
                    self.key(StorageKey.ANSWERS_VERSION): self._version,
                }
            )
            persisted = await self._drive(flush=update.flush)
            version = self._version
        logger.info(
            "answers.saved",
            extra={
                "extra": {
                    "project_id": self._project_id,
                    "source": update.source.value,
                    "version": version,
                    "persisted": persisted,
                    "missing_sections": len(self._completeness.missing),
                }
            },
        )
        return AnswersSavedDTO(
            projectId=self._project_id,
            version=version,
            persisted=persisted,
            completeness=completeness_dto(self._completeness, self.readiness()),
        )

    async def flush(self) -> bool:
        """Write any pending update now.

        Raises:
            StorageUnavailableError: If the store rejects the write.
        """
        async with self._lock:
            return await self._scheduler.flush()

    async def tick(self) -> bool:
        """Write the pending update if the scheduler says it is due."""
        async with self._lock:
            return await self._drive(flush=False)

    async def apply_remote_update(
        self,
        record: Mapping[str, Any],
        version: int,
        source: AnswerSource = AnswerSource.FORM_FIELDS,
    ) -> bool:
        """Replace one source record with a newer broadcast copy.

        Args:
            record: The whole record as written by the other writer.
            version: Writer's version; older or equal versions are ignored.
            source: Producer whose record is replaced.

        Returns:
            bool: ``True`` when local state was overwritten.
        """
        return await self.apply_remote_records({SOURCE_RECORDS[source]: record}, version)

    async def apply_remote_records(
        self, records: Mapping[StorageKey, Mapping[str, Any]], version: int
    ) -> bool:
        """Replace source records with the copies another writer persisted.

        Pending local writes for the replaced records are dropped; the other
        writer's copy is newer.

        Args:
            records: Whole records keyed by their storage name.
            version: Writer's version; older or equal versions are ignored.

        Returns:
            bool: ``True`` when local state was overwritten.
        """
        async with self._lock:
            if version <= self._version:
                return False
            replaced = [key for key in records if key in self._records]
            for record_key in replaced:
                record = records[record_key]
                self._records[record_key] = (
                    canonicalize_answers(record)
                    if record_key is StorageKey.ANSWERS
                    else dict(record)
                )
            self._version = version
            self._recompute()
            self._scheduler.discard(
                self.key(name)
                for name in (*replaced, *DERIVED_RECORDS, StorageKey.ANSWERS_VERSION)
            )
            if self._scheduler.has_pending:
                self._scheduler.submit(
                    {**self._derived(), self.key(StorageKey.ANSWERS_VERSION): self._version}
                )
        logger.info(
            "answers.remote_update.applied",
            extra={
                "extra": {
                    "project_id": self._project_id,
                    "version": version,
                    "records": [key.value for key in replaced],
                }
            },
        )
        return True

    # ------------------------------------------------------------------ #
    # Internals (callers hold ``self._lock``)
    # ------------------------------------------------------------------ #
    async def _load(self) -> None:
        if self._loaded:
            return
        await self._store.when_ready()
        for record_key, _ in RECORD_SOURCES:
            value = await self._store.get_json(self.key(record_key), {})
            self._records[record_key] = dict(value) if isinstance(value, Mapping) else {}
        self._version = max(
            self._version,
            _stored_version(await self._store.get_json(self.key(StorageKey.ANSWERS_VERSION), 0)),
        )
        schema = unified_schema()
        stored_schema = await self._store.get_json(self.key(StorageKey.UNIFIED_SCHEMA), None)
        if stored_schema != schema:
            self._scheduler.submit({self.key(StorageKey.UNIFIED_SCHEMA): schema})
        self._recompute()
        self._loaded = True
        logger.info(
            "answers.session.loaded",
            extra={
                "extra": {
                    "project_id": self._project_id,
                    "keys": len(self._answers),
                    "version": self._version,
                }
            },
        )

    def _recompute(self) -> None:
        merged = merge_named(
            NamedSource(source, canonicalize_answers(self._records[key]))
            for key, source in RECORD_SOURCES
        )
        self._answers = merged
        self._sections = build_structured_sections(merged)
        self._completeness = compute_completeness(self._sections)

    def _derived(self) -> dict[str, Any]:
        return {
            self.key(StorageKey.STRUCTURED_SECTIONS): self._sections,
            self.key(StorageKey.SECTION_COMPLETENESS): self._completeness.to_dict(),
            self.key(StorageKey.SURVEY_DATA): survey_sentences(self._answers, self._sentence_cap),
        }

    async def _drive(self, *, flush: bool) -> bool:
        try:
            if flush:
                return await self._scheduler.flush()
            return await self._scheduler.tick()
        except StorageUnavailableError as exc:
            logger.warning(
                "answers.write.deferred",
                extra={"extra": {"project_id": self._project_id, "reason": str(exc)}},
            )
            return False

    async def _write_batch(self, batch: dict[str, Any]) -> None:
        try:
            for key, value in batch.items():
                if isinstance(value, str):
                    await self._store.set_string(key, value)
                else:
                    await self._store.set_json(key, value)
        except StorageUnavailableError:
            _count(get_answer_writes_total, "error")
            raise
        _count(get_answer_writes_total, "success")
        version_key = self.key(StorageKey.ANSWERS_VERSION)
        records = [name.value for name, _ in RECORD_SOURCES if self.key(name) in batch]
        if records and version_key in batch:
            await self._store.publish(
                {"key": version_key, "op": "set", "version": batch[version_key], "records": records}
            )


class AnswerSessionRegistry:
    """Process-wide map of project id -> :class:`AnswerSession`.

    Sessions idle for ``idle_ttl_s`` with nothing left to write are evicted
    by :meth:`tick_all`; the next request reloads them from the store.
    """

    def __init__(
        self,
        store: StoragePort,
        *,
        debounce_s: float = 0.4,
        throttle_s: float = 1.5,
        sentence_cap: int = DEFAULT_SENTENCE_CAP,
        idle_ttl_s: float = DEFAULT_IDLE_TTL_S,
        clock: Clock = time.monotonic,
    ) -> None:
        if idle_ttl_s <= 0:
            raise ValueError("idle_ttl_s must be > 0")
        self._store = store
        self._clock = clock
        self._idle_ttl_s = idle_ttl_s
        self._options: dict[str, Any] = {
            "debounce_s": debounce_s,
            "throttle_s": throttle_s,
            "sentence_cap": sentence_cap,
            "clock": clock,
        }
        self._sessions: dict[str, AnswerSession] = {}
        self._last_used: dict[str, float] = {}

    @property
    def store(self) -> StoragePort:
        return self._store

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, project_id: object) -> bool:
        return project_id in self._sessions

    def get(self, project_id: str) -> AnswerSession:
        """Return the session for ``project_id``, creating it on first use."""
        session = self._sessions.get(project_id)
        if session is None:
            session = AnswerSession(self._store, project_id, **self._options)
            self._sessions[project_id] = session
        self._last_used[project_id] = self._clock()
        return session

    async def tick_all(self) -> int:
        """Write every session whose debounced update is due, then evict idle ones.

        Returns:
            int: Number of sessions that wrote.
        """
        written = 0
        for session in list(self._sessions.values()):
            if session.has_pending_writes and await session.tick():
                written += 1
        self.evict_idle()
        return written

    def evict_idle(self) -> list[str]:
        """Drop sessions idle past the TTL with no pending writes."""
        now = self._clock()
        evicted = [
            project_id
            for project_id, session in self._sessions.items()
            if not session.has_pending_writes
            and not session.busy
            and now - self._last_used.get(project_id, now) >= self._idle_ttl_s
        ]
        for project_id in evicted:
            del self._sessions[project_id]
            self._last_used.pop(project_id, None)
        if evicted:
            logger.info(
                "answers.sessions.evicted",
                extra={"extra": {"count": len(evicted), "remaining": len(self._sessions)}},
            )
        return evicted

    async def run(self, interval_s: float) -> None:
        """Call :meth:`tick_all` every ``interval_s`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval_s)
            try:
                await self.tick_all()
            except Exception:
                logger.exception("answers.tick.failed", extra={"extra": {"sessions": len(self)}})

    async def apply_remote_change(
        self, project_id: str, version: int, records: Iterable[str]
    ) -> bool:
        """Re-read records another writer persisted and apply them.

        Projects without a loaded session are ignored; their next load reads
        the store anyway.

        Returns:
            bool: ``True`` when a local snapshot was overwritten.
        """
        session = self._sessions.get(project_id)
        if session is None or not session.loaded or version <= session.version:
            _count(get_answer_remote_updates_total, "ignored")
            return False
        known = {key.value: key for key, _ in RECORD_SOURCES}
        fresh: dict[StorageKey, Mapping[str, Any]] = {}
        for name in records:
            record_key = known.get(name)
            if record_key is None:
                continue
            value = await self._store.get_json(session.key(record_key), {})
            fresh[record_key] = value if isinstance(value, Mapping) else {}
        applied = bool(fresh) and await session.apply_remote_records(fresh, version)
        _count(get_answer_remote_updates_total, "applied" if applied else "ignored")
        return applied

    async def flush_all(self) -> int:
        """Flush every session with pending writes; return how many failed."""
        failures = 0
        for session in list(self._sessions.values()):
            if not session.has_pending_writes:
                continue
            try:
                await session.flush()
            except StorageUnavailableError as exc:
                failures += 1
                logger.warning(
                    "answers.flush.failed",
                    extra={"extra": {"project_id": session.project_id, "reason": str(exc)}},
                )
        return failures
