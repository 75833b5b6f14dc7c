"""Roll-up pipeline — select a batch, summarize it, persist, mark consumed.

One engine serves both levels.  A derive call holds the lock stripe for
its (owner, level) pair for its whole duration.  The commit runs under
the store's file lock and the consumption write is conditional, so two
racing calls, even from separate processes, never both claim the same
inputs.
Failures before the artifact is written leave no trace; the batch stays
available and nothing is retried automatically.
"""

from __future__ import annotations

import logging
import threading

from pydantic import BaseModel, Field

from worklog.errors import (
    Cancelled,
    DuplicateBatch,
    InsufficientInputs,
    PartialCommit,
    SummarizationFailed,
    WorklogError,
)
from worklog.records.models import Analysis, Card
from worklog.records.store import RecordStore
from worklog.rollup.eligibility import Eligibility, Level, evaluate
from worklog.rollup.levels import DEFAULT_LEVELS, RollupLevel
from worklog.summarizer.gateway import Summarizer
from worklog.summarizer.models import SCHEMAS, Summary, SummaryItem

logger = logging.getLogger(__name__)

#: Derive locks are striped so the lock table stays bounded across owners.
LOCK_STRIPES = 64


class DeriveResult(BaseModel):
    """Outcome of a successful derive."""

    artifact: Analysis | Card
    message: str
    warnings: list[str] = Field(default_factory=list)


def _check_cancelled(cancel: threading.Event | None, stage: str) -> None:
    if cancel is not None and cancel.is_set():
        raise Cancelled(f"derive cancelled {stage}")


class RollupPipeline:
    """Derives analyses and cards for one store and summarizer."""

    def __init__(
        self,
        store: RecordStore,
        summarizer: Summarizer,
        levels: dict[Level, RollupLevel] | None = None,
    ) -> None:
        self._store = store
        self._summarizer = summarizer
        self._levels = dict(levels or DEFAULT_LEVELS)
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]

    def _level(self, level: Level | str) -> RollupLevel:
        return self._levels[Level(level)]

    def _lock_for(self, owner_id: str, level: Level) -> threading.Lock:
        return self._locks[hash((owner_id, str(level))) % LOCK_STRIPES]

    # ── Read side ────────────────────────────────────────────────

    def eligibility(self, level: Level | str, owner_id: str) -> Eligibility:
        """Current eligibility; takes no pipeline lock."""
        rollup = self._level(level)
        available, malformed = rollup.available(self._store, owner_id)
        return evaluate(rollup.level, len(available), malformed)

    # ── Derive ───────────────────────────────────────────────────

    def derive(
        self,
        level: Level | str,
        owner_id: str,
        *,
        cancel: threading.Event | None = None,
    ) -> DeriveResult:
        """Build the next artifact for *owner_id* at *level*.

        Args:
            level: Which artifact to derive.
            owner_id: The acting identity; only its records are read.
            cancel: Optional event; when set before the write, the call
                aborts with ``Cancelled`` and changes nothing.

        Raises:
            InsufficientInputs: Fewer than a batch of available inputs.
            DuplicateBatch: The batch already produced a card.
            SummarizationFailed: The summarizer failed or went off-schema.
            ConcurrentModification: A racing call claimed part of the batch.
            PartialCommit: Non-atomic store failed after the artifact write.
        """
        rollup = self._level(level)
        with self._lock_for(owner_id, rollup.level):
            return self._derive_locked(rollup, owner_id, cancel)

    def _derive_locked(
        self, rollup: RollupLevel, owner_id: str, cancel: threading.Event | None
    ) -> DeriveResult:
        available, malformed = rollup.available(self._store, owner_id)
        if len(available) < rollup.size:
            raise InsufficientInputs(
                len(available), rollup.size, noun=rollup.noun, malformed=malformed
            )
        batch = available[: rollup.size]
        input_ids = [r.id for r in batch]

        existing = rollup.find_duplicate(self._store, owner_id, batch)
        if existing is not None:
            raise DuplicateBatch(input_ids, existing)

        entries = rollup.source_entries(self._store, owner_id, batch)
        _check_cancelled(cancel, "before summarizing")
        summary = self._summarize(rollup, entries, rollup.summary_context(batch))
        _check_cancelled(cancel, "before persisting")

        artifact = rollup.build(owner_id, batch, entries, summary)
        self._commit(rollup, owner_id, batch, artifact)
        logger.info(
            "Derived %s %s for owner %s from %s",
            rollup.level,
            artifact.id,
            owner_id,
            ", ".join(input_ids),
        )

        warnings = rollup.after_commit(self._store, owner_id, batch, artifact)
        return DeriveResult(
            artifact=artifact,
            message=rollup.success_message(artifact),
            warnings=warnings,
        )

    def _summarize(self, rollup: RollupLevel, entries: list, context: str) -> Summary:
        items = [SummaryItem(date=e.date, contents=list(e.contents)) for e in entries]
        try:
            summary = self._summarizer.summarize(rollup.summary_kind, items, context=context)
        except SummarizationFailed as exc:
            logger.warning("Summarizer failed for %s batch: %s", rollup.level, exc.reason)
            raise
        except Exception as exc:
            logger.warning("Summarizer raised for %s batch: %s", rollup.level, exc)
            raise SummarizationFailed(str(exc)) from exc

        expected = SCHEMAS[rollup.summary_kind]
        if not isinstance(summary, expected):
            raise SummarizationFailed(
                f"expected a {rollup.summary_kind} summary, got {type(summary).__name__}"
            )
        return summary

    def _commit(
        self, rollup: RollupLevel, owner_id: str, batch: list, artifact: Analysis | Card
    ) -> None:
        """Persist the artifact and mark its inputs as one unit."""
        store = self._store
        if store.atomic:
            with store.transaction():
                store.insert(rollup.artifact_table, artifact)
                rollup.consume(store, owner_id, batch, artifact)
            return

        store.insert(rollup.artifact_table, artifact)
        try:
            rollup.consume(store, owner_id, batch, artifact)
        except WorklogError as exc:
            unmarked = [r.id for r in batch]
            logger.error(
                "PARTIAL COMMIT: %s %s persisted for owner %s but inputs %s are not "
                "confirmed consumed (%s); run reconcile",
                rollup.level,
                artifact.id,
                owner_id,
                ", ".join(unmarked),
                exc.message,
            )
            raise PartialCommit(artifact.id, unmarked, exc.message) from exc
