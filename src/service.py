"""Operations exposed to the product shell.

``WorklogService`` is the single entry point a web handler or the CLI
calls.  Every method takes the acting ``owner_id`` explicitly.
"""

from __future__ import annotations

import logging
import threading
from datetime import date
from pathlib import Path

from worklog.config import WorklogConfig
from worklog.errors import EntryInUse, InvalidEntry
from worklog.records.models import Analysis, Card, Entry, Table
from worklog.records.store import RecordStore
from worklog.rollup.eligibility import Eligibility, Level
from worklog.rollup.pipeline import DeriveResult, RollupPipeline
from worklog.rollup.reconcile import ReconcileReport, reconcile
from worklog.summarizer.gateway import ClaudeSummarizer, Summarizer

logger = logging.getLogger(__name__)


def normalize_contents(contents: list[str]) -> list[str]:
    """Strip each item and drop empty ones.

    Raises:
        InvalidEntry: If nothing is left.
    """
    cleaned = [c.strip() for c in contents if c and c.strip()]
    if not cleaned:
        raise InvalidEntry("an entry needs at least one non-empty work item")
    return cleaned


class WorklogService:
    """Entry management plus the roll-up operations, scoped per owner."""

    def __init__(self, store: RecordStore, summarizer: Summarizer) -> None:
        self._store = store
        self._pipeline = RollupPipeline(store, summarizer)

    @classmethod
    def from_config(cls, config: WorklogConfig) -> WorklogService:
        """Build a service backed by the configured data dir and Claude."""
        data_dir: Path = config.storage.path
        summarizer = ClaudeSummarizer(
            model=config.summarizer.model,
            timeout=config.summarizer.timeout,
            max_tokens=config.summarizer.max_tokens,
        )
        return cls(RecordStore(data_dir), summarizer)

    @property
    def store(self) -> RecordStore:
        return self._store

    # ── Entries ──────────────────────────────────────────────────

    def add_entry(
        self, owner_id: str, contents: list[str], entry_date: date | None = None
    ) -> Entry:
        entry = Entry(
            owner_id=owner_id,
            date=entry_date or date.today(),
            contents=normalize_contents(contents),
        )
        self._store.insert(Table.ENTRIES, entry)
        logger.debug("Added entry %s for owner %s on %s", entry.id, owner_id, entry.date)
        return entry

    def get_entry(self, owner_id: str, entry_id: str) -> Entry:
        return self._store.get(Table.ENTRIES, entry_id, owner_id)

    def update_entry(self, owner_id: str, entry_id: str, contents: list[str]) -> Entry:
        """Replace an entry's work items.

        Consumed entries may be edited; derived artifacts keep the
        summary they were built from.
        """
        return self._store.update_fields(
            Table.ENTRIES, entry_id, owner_id, {"contents": normalize_contents(contents)}
        )

    def delete_entry(self, owner_id: str, entry_id: str) -> None:
        """Delete an entry that no artifact references yet.

        Raises:
            NotFound / Forbidden: Unknown id or another owner's entry.
            EntryInUse: The entry was already rolled up.
        """
        with self._store.transaction():
            entry = self._store.get(Table.ENTRIES, entry_id, owner_id)
            if entry.consumed_by is not None:
                raise EntryInUse(entry_id, entry.consumed_by)
            self._store.delete(Table.ENTRIES, entry_id, owner_id)
        logger.info("Deleted entry %s for owner %s", entry_id, owner_id)

    def list_entries(self, owner_id: str) -> list[Entry]:
        """Entries newest first."""
        entries = self._store.list(Table.ENTRIES, owner_id)
        return sorted(entries, key=lambda e: (e.date, e.created_at), reverse=True)

    # ── Artifacts ────────────────────────────────────────────────

    def get_analysis(self, owner_id: str, analysis_id: str) -> Analysis:
        return self._store.get(Table.ANALYSES, analysis_id, owner_id)

    def list_analyses(self, owner_id: str) -> list[Analysis]:
        analyses = self._store.list(Table.ANALYSES, owner_id)
        return sorted(analyses, key=lambda a: a.created_at, reverse=True)

    def get_card(self, owner_id: str, card_id: str) -> Card:
        return self._store.get(Table.CARDS, card_id, owner_id)

    def list_cards(self, owner_id: str) -> list[Card]:
        cards = self._store.list(Table.CARDS, owner_id)
        return sorted(cards, key=lambda c: c.created_at, reverse=True)

    # ── Roll-up ──────────────────────────────────────────────────

    def eligibility(self, owner_id: str, level: Level | str) -> Eligibility:
        return self._pipeline.eligibility(level, owner_id)

    def derive_analysis(
        self, owner_id: str, *, cancel: threading.Event | None = None
    ) -> DeriveResult:
        return self._pipeline.derive(Level.ANALYSIS, owner_id, cancel=cancel)

    def derive_card(self, owner_id: str, *, cancel: threading.Event | None = None) -> DeriveResult:
        return self._pipeline.derive(Level.CARD, owner_id, cancel=cancel)

    def reconcile(self, owner_id: str, *, dry_run: bool = False) -> ReconcileReport:
        return reconcile(self._store, owner_id, dry_run=dry_run)
