"""Records domain — entries, analyses, cards and their JSON-backed store."""

from worklog.records.models import (
    ANALYSIS_BATCH_SIZE,
    CARD_BATCH_SIZE,
    Analysis,
    Card,
    Entry,
    Record,
    Table,
)
from worklog.records.store import RecordStore

__all__ = [
    "ANALYSIS_BATCH_SIZE",
    "CARD_BATCH_SIZE",
    "Analysis",
    "Card",
    "Entry",
    "Record",
    "RecordStore",
    "Table",
]
