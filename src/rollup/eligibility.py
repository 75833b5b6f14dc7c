"""Batch eligibility — pure functions over entry and analysis collections.

Nothing here touches storage; callers pass in the records they already
loaded.  Safe to call as often as a display needs.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum

from pydantic import BaseModel

from worklog.records.models import ANALYSIS_BATCH_SIZE, CARD_BATCH_SIZE, Analysis, Entry


class Level(StrEnum):
    """Roll-up level, named after the artifact it produces."""

    ANALYSIS = "analysis"
    CARD = "card"


REQUIRED_SIZE: dict[Level, int] = {
    Level.ANALYSIS: ANALYSIS_BATCH_SIZE,
    Level.CARD: CARD_BATCH_SIZE,
}


class Eligibility(BaseModel):
    """How close an owner is to the next derive at one level."""

    level: Level
    available_count: int
    required_size: int
    remaining: int
    can_trigger: bool
    malformed_count: int = 0


def entry_order(entry: Entry) -> tuple:
    return (entry.date, entry.created_at, entry.id)


def analysis_order(analysis: Analysis) -> tuple:
    return (analysis.created_at, analysis.id)


def available_entries(entries: Iterable[Entry]) -> list[Entry]:
    """Unconsumed entries, oldest first."""
    return sorted((e for e in entries if e.is_available), key=entry_order)


def available_analyses(analyses: Iterable[Analysis]) -> list[Analysis]:
    """Unconsumed, well-formed analyses, oldest first."""
    return sorted((a for a in analyses if a.is_available), key=analysis_order)


def malformed_analyses(analyses: Iterable[Analysis]) -> list[Analysis]:
    """Unconsumed analyses that do not cover exactly five entries."""
    return sorted(
        (a for a in analyses if a.consumed_by is None and not a.is_well_formed),
        key=analysis_order,
    )


def evaluate(level: Level, available_count: int, malformed_count: int = 0) -> Eligibility:
    required = REQUIRED_SIZE[Level(level)]
    return Eligibility(
        level=Level(level),
        available_count=available_count,
        required_size=required,
        remaining=max(0, required - available_count),
        can_trigger=available_count >= required,
        malformed_count=malformed_count,
    )


def entry_eligibility(entries: Iterable[Entry]) -> Eligibility:
    return evaluate(Level.ANALYSIS, len(available_entries(entries)))


def analysis_eligibility(analyses: Iterable[Analysis]) -> Eligibility:
    analyses = list(analyses)
    return evaluate(
        Level.CARD,
        len(available_analyses(analyses)),
        malformed_count=len(malformed_analyses(analyses)),
    )
