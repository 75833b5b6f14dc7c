"""Record models — pure Pydantic v2 data types, no I/O.

Entries are logged by the user; analyses and cards are derived by the
roll-up pipeline.  The ``consumed_by`` field on entries and analyses is
the consumption ledger: once set it points at the artifact that used the
record and is never cleared.
"""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

ANALYSIS_BATCH_SIZE = 5
CARD_BATCH_SIZE = 4


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


class Table(StrEnum):
    """Store tables."""

    ENTRIES = "entries"
    ANALYSES = "analyses"
    CARDS = "cards"


class Entry(BaseModel):
    """One day's list of work items."""

    id: str = Field(default_factory=new_id)
    owner_id: str
    date: date
    contents: list[str]
    keywords: list[str] | None = None
    consumed_by: str | None = None  # analysis id
    card_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_available(self) -> bool:
        return self.consumed_by is None


class Analysis(BaseModel):
    """Pattern analysis derived from exactly five entries."""

    id: str = Field(default_factory=new_id)
    owner_id: str
    source_entry_ids: list[str]
    pattern: str
    workflow: str
    top_keywords: list[str] = Field(default_factory=list)
    insight: str
    period_start: date
    period_end: date
    consumed_by: str | None = None  # card id
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_well_formed(self) -> bool:
        return len(self.source_entry_ids) == ANALYSIS_BATCH_SIZE

    @property
    def is_available(self) -> bool:
        return self.consumed_by is None and self.is_well_formed


class Card(BaseModel):
    """Portfolio card derived from four analyses."""

    id: str = Field(default_factory=new_id)
    owner_id: str
    source_analysis_ids: list[str]
    source_entry_ids: list[str]
    title: str
    period_start: date
    period_end: date
    tasks: list[str] = Field(default_factory=list)
    results: list[str] = Field(default_factory=list)
    thinking_summary: str
    keywords: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def batch_key(self) -> tuple[str, ...]:
        """Order-independent identity of the analyses this card consumed."""
        return tuple(sorted(self.source_analysis_ids))


Record = Entry | Analysis | Card

RECORD_TYPES: dict[Table, type[BaseModel]] = {
    Table.ENTRIES: Entry,
    Table.ANALYSES: Analysis,
    Table.CARDS: Card,
}
