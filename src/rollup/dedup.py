"""Dedup guard — one card per distinct set of analyses."""

from __future__ import annotations

from collections.abc import Iterable

from worklog.records.models import Card


def batch_key(ids: Iterable[str]) -> tuple[str, ...]:
    """Order-independent key for a set of input ids."""
    return tuple(sorted(ids))


def find_duplicate_card(cards: Iterable[Card], analysis_ids: Iterable[str]) -> str | None:
    """Return the id of a card already built from exactly these analyses."""
    key = batch_key(analysis_ids)
    for card in cards:
        if card.batch_key == key:
            return card.id
    return None
