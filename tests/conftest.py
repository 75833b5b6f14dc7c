"""Shared fixtures: record stores, a scripted summarizer, record seeding."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from pathlib import Path

import pytest
from worklog.errors import SummarizationFailed
from worklog.records.models import Analysis, Entry, Table
from worklog.records.store import RecordStore
from worklog.summarizer.models import (
    PatternSummary,
    PortfolioSummary,
    SummaryItem,
    SummaryKind,
)

OWNER = "owner-a"
FIRST_DAY = date(2025, 3, 3)


class FakeSummarizer:
    """Returns canned summaries and records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[SummaryKind, list[SummaryItem], str]] = []
        self.fail_with: Exception | None = None

    def summarize(self, kind, items, *, context=""):
        self.calls.append((kind, list(items), context))
        if self.fail_with is not None:
            raise self.fail_with
        if kind == SummaryKind.PATTERN:
            return PatternSummary(
                pattern="Morning reviews, afternoon fixes",
                workflow="Review, fix, ship.",
                keywords=["review", "bugfix"],
                insight="Batch reviews earlier.",
            )
        return PortfolioSummary(
            title="Checkout revamp",
            tasks=["Rebuilt checkout form"],
            results=["Conversion up"],
            thinking_summary="Incremental delivery.",
            keywords=["checkout"],
        )


class Seeder:
    """Inserts entries and analyses into a store for one owner by default."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    @staticmethod
    def day(n: int) -> date:
        return FIRST_DAY + timedelta(days=n - 1)

    def make_entry(self, n: int, owner_id: str = OWNER, **kwargs: object) -> Entry:
        return Entry(
            owner_id=owner_id,
            date=self.day(n),
            contents=[f"work on day {n}"],
            **kwargs,  # type: ignore[arg-type]
        )

    def entries(self, days, owner_id: str = OWNER) -> list[Entry]:
        created = [self.make_entry(n, owner_id) for n in days]
        for entry in created:
            self.store.insert(Table.ENTRIES, entry)
        return created

    def analysis(
        self,
        first_day: int,
        *,
        size: int = 5,
        owner_id: str = OWNER,
        minute: int = 0,
    ) -> Analysis:
        """Insert ``size`` entries plus the analysis that consumed them."""
        entries = [self.make_entry(first_day + i, owner_id) for i in range(size)]
        analysis = Analysis(
            owner_id=owner_id,
            source_entry_ids=[e.id for e in entries],
            pattern=f"pattern from day {first_day}",
            workflow="w",
            top_keywords=["k"],
            insight="i",
            period_start=entries[0].date,
            period_end=entries[-1].date,
            created_at=datetime(2025, 6, 1, tzinfo=UTC) + timedelta(minutes=minute),
        )
        with self.store.transaction():
            for entry in entries:
                consumed = entry.model_copy(update={"consumed_by": analysis.id})
                self.store.insert(Table.ENTRIES, consumed)
            self.store.insert(Table.ANALYSES, analysis)
        return analysis


@pytest.fixture
def owner() -> str:
    return OWNER


@pytest.fixture
def summarizer() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
def failing_summarizer() -> FakeSummarizer:
    fake = FakeSummarizer()
    fake.fail_with = SummarizationFailed("model returned prose")
    return fake


@pytest.fixture
def store(tmp_path: Path) -> RecordStore:
    return RecordStore(tmp_path)


@pytest.fixture
def seed(store: RecordStore) -> Seeder:
    return Seeder(store)
