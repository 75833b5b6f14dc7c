"""Roll-up level definitions.

A level tells the generic pipeline where its inputs live, how many make
a batch, what to ask the summarizer, how to build the artifact and how
to stamp the consumed inputs.  ``AnalysisLevel`` turns five entries into
an analysis; ``CardLevel`` turns four analyses into a card.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date
from typing import Any, cast

from worklog.errors import ConcurrentModification, WorklogError
from worklog.records.models import (
    ANALYSIS_BATCH_SIZE,
    CARD_BATCH_SIZE,
    Analysis,
    Card,
    Entry,
    Table,
)
from worklog.records.store import RecordStore
from worklog.rollup.dedup import find_duplicate_card
from worklog.rollup.eligibility import (
    Level,
    available_analyses,
    available_entries,
    entry_order,
    malformed_analyses,
)
from worklog.summarizer.models import (
    PatternSummary,
    PortfolioSummary,
    Summary,
    SummaryItem,
    SummaryKind,
)

logger = logging.getLogger(__name__)


def period_bounds(entries: Sequence[Entry]) -> tuple[date, date]:
    """Earliest and latest entry date."""
    dates = [e.date for e in entries]
    return min(dates), max(dates)


def _claim(
    store: RecordStore,
    table: Table,
    ids: list[str],
    owner_id: str,
    field: str,
    value: str,
) -> None:
    """Stamp *field* on every record, failing if any was already stamped."""
    claimed = store.update_fields_batch(table, ids, owner_id, {field: value}, only_if_unset=field)
    if claimed != len(ids):
        raise ConcurrentModification(expected=len(ids), claimed=claimed)


class RollupLevel(ABC):
    """One aggregation level of the roll-up pipeline."""

    level: Level
    input_table: Table
    artifact_table: Table
    size: int
    noun: str
    summary_kind: SummaryKind

    @abstractmethod
    def available(self, store: RecordStore, owner_id: str) -> tuple[list[Any], int]:
        """Return (available inputs oldest first, malformed count)."""

    @abstractmethod
    def source_entries(self, store: RecordStore, owner_id: str, batch: list[Any]) -> list[Entry]:
        """Entries underlying the batch, oldest first."""

    def summary_context(self, batch: list[Any]) -> str:
        return ""

    def find_duplicate(self, store: RecordStore, owner_id: str, batch: list[Any]) -> str | None:
        return None

    @abstractmethod
    def build(
        self, owner_id: str, batch: list[Any], entries: list[Entry], summary: Summary
    ) -> Analysis | Card:
        """Construct the artifact record (not yet persisted)."""

    @abstractmethod
    def consume(
        self, store: RecordStore, owner_id: str, batch: list[Any], artifact: Analysis | Card
    ) -> None:
        """Mark every input as consumed by *artifact*.

        Raises:
            ConcurrentModification: If any input was already claimed.
        """

    def after_commit(
        self, store: RecordStore, owner_id: str, batch: list[Any], artifact: Analysis | Card
    ) -> list[str]:
        """Best-effort follow-up writes.  Returns warnings, never raises."""
        return []

    @abstractmethod
    def success_message(self, artifact: Analysis | Card) -> str: ...


class AnalysisLevel(RollupLevel):
    """Five entries → one pattern analysis."""

    level = Level.ANALYSIS
    input_table = Table.ENTRIES
    artifact_table = Table.ANALYSES
    size = ANALYSIS_BATCH_SIZE
    noun = "entries"
    summary_kind = SummaryKind.PATTERN

    def available(self, store: RecordStore, owner_id: str) -> tuple[list[Entry], int]:
        return available_entries(store.list(Table.ENTRIES, owner_id)), 0

    def source_entries(
        self, store: RecordStore, owner_id: str, batch: list[Entry]
    ) -> list[Entry]:
        return sorted(batch, key=entry_order)

    def build(
        self, owner_id: str, batch: list[Entry], entries: list[Entry], summary: Summary
    ) -> Analysis:
        summary = cast(PatternSummary, summary)
        start, end = period_bounds(entries)
        return Analysis(
            owner_id=owner_id,
            source_entry_ids=[e.id for e in entries],
            pattern=summary.pattern,
            workflow=summary.workflow,
            top_keywords=list(summary.keywords),
            insight=summary.insight,
            period_start=start,
            period_end=end,
        )

    def consume(
        self, store: RecordStore, owner_id: str, batch: list[Entry], artifact: Analysis | Card
    ) -> None:
        _claim(store, Table.ENTRIES, [e.id for e in batch], owner_id, "consumed_by", artifact.id)

    def after_commit(
        self, store: RecordStore, owner_id: str, batch: list[Entry], artifact: Analysis | Card
    ) -> list[str]:
        analysis = cast(Analysis, artifact)
        ids = [e.id for e in batch]
        try:
            store.update_fields_batch(
                Table.ENTRIES, ids, owner_id, {"keywords": list(analysis.top_keywords)}
            )
        except (WorklogError, ValueError) as exc:
            logger.warning("Keyword back-fill failed for analysis %s: %s", analysis.id, exc)
            return [f"keywords were not copied onto entries: {exc}"]
        return []

    def success_message(self, artifact: Analysis | Card) -> str:
        return f"Pattern analysis created from {self.size} entries"


class CardLevel(RollupLevel):
    """Four analyses → one portfolio card."""

    level = Level.CARD
    input_table = Table.ANALYSES
    artifact_table = Table.CARDS
    size = CARD_BATCH_SIZE
    noun = "analyses"
    summary_kind = SummaryKind.PORTFOLIO

    def available(self, store: RecordStore, owner_id: str) -> tuple[list[Analysis], int]:
        analyses = store.list(Table.ANALYSES, owner_id)
        malformed = malformed_analyses(analyses)
        if malformed:
            logger.warning(
                "Owner %s has %d malformed analyses: %s",
                owner_id,
                len(malformed),
                ", ".join(a.id for a in malformed),
            )
        return available_analyses(analyses), len(malformed)

    @staticmethod
    def entry_ids(batch: list[Analysis]) -> list[str]:
        """Union of the analyses' entries, first occurrence wins."""
        return list(dict.fromkeys(eid for a in batch for eid in a.source_entry_ids))

    def source_entries(
        self, store: RecordStore, owner_id: str, batch: list[Analysis]
    ) -> list[Entry]:
        entries = store.get_many(Table.ENTRIES, self.entry_ids(batch), owner_id)
        return sorted(entries, key=entry_order)

    def summary_context(self, batch: list[Analysis]) -> str:
        return "\n".join(
            f"- {a.period_start.isoformat()} to {a.period_end.isoformat()}: "
            f"{a.pattern} ({a.insight})"
            for a in batch
        )

    def find_duplicate(
        self, store: RecordStore, owner_id: str, batch: list[Analysis]
    ) -> str | None:
        return find_duplicate_card(store.list(Table.CARDS, owner_id), [a.id for a in batch])

    def build(
        self, owner_id: str, batch: list[Analysis], entries: list[Entry], summary: Summary
    ) -> Card:
        summary = cast(PortfolioSummary, summary)
        start, end = period_bounds(entries)
        return Card(
            owner_id=owner_id,
            source_analysis_ids=[a.id for a in batch],
            source_entry_ids=self.entry_ids(batch),
            title=summary.title,
            period_start=start,
            period_end=end,
            tasks=list(summary.tasks),
            results=list(summary.results),
            thinking_summary=summary.thinking_summary,
            keywords=list(summary.keywords),
        )

    def consume(
        self, store: RecordStore, owner_id: str, batch: list[Analysis], artifact: Analysis | Card
    ) -> None:
        _claim(store, Table.ANALYSES, [a.id for a in batch], owner_id, "consumed_by", artifact.id)
        _claim(store, Table.ENTRIES, self.entry_ids(batch), owner_id, "card_id", artifact.id)

    def success_message(self, artifact: Analysis | Card) -> str:
        card = cast(Card, artifact)
        return (
            f"Portfolio card created from {self.size} analyses "
            f"({len(card.source_entry_ids)} entries)"
        )


DEFAULT_LEVELS: dict[Level, RollupLevel] = {
    Level.ANALYSIS: AnalysisLevel(),
    Level.CARD: CardLevel(),
}
