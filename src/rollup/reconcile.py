"""Reconciliation sweep for the consumption ledger.

Finds artifacts whose inputs do not point back at them (the result of a
partial commit on a non-atomic store, or of data written by older
versions) and stamps the inputs that are still unclaimed.  Inputs
claimed by a different artifact are reported, never overwritten.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from worklog.records.models import Analysis, Card, Entry, Table
from worklog.records.store import RecordStore

logger = logging.getLogger(__name__)


class LedgerFix(BaseModel):
    table: Table
    record_id: str
    field: str
    artifact_id: str


class LedgerConflict(BaseModel):
    table: Table
    record_id: str
    field: str
    artifact_id: str
    claimed_by: str


class ReconcileReport(BaseModel):
    owner_id: str
    fixes: list[LedgerFix] = Field(default_factory=list)
    conflicts: list[LedgerConflict] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)
    applied: bool = False

    @property
    def is_clean(self) -> bool:
        return not (self.fixes or self.conflicts or self.missing)


def _check(
    report: ReconcileReport,
    table: Table,
    records: dict[str, Entry] | dict[str, Analysis],
    record_ids: list[str],
    field: str,
    artifact_id: str,
) -> None:
    for rid in record_ids:
        record = records.get(rid)
        if record is None:
            report.missing.append(f"{table}:{rid}")
            continue
        current = getattr(record, field)
        if current is None:
            planned = next(
                (
                    f.artifact_id
                    for f in report.fixes
                    if f.table == table and f.record_id == rid and f.field == field
                ),
                None,
            )
            current = planned
        if current is None:
            report.fixes.append(
                LedgerFix(table=table, record_id=rid, field=field, artifact_id=artifact_id)
            )
        elif current != artifact_id:
            report.conflicts.append(
                LedgerConflict(
                    table=table,
                    record_id=rid,
                    field=field,
                    artifact_id=artifact_id,
                    claimed_by=current,
                )
            )


def reconcile(store: RecordStore, owner_id: str, *, dry_run: bool = False) -> ReconcileReport:
    """Audit and repair one owner's consumption ledger.

    Args:
        store: Record store to sweep.
        owner_id: Owner whose records are checked.
        dry_run: Report what would change without writing.

    Returns:
        Report of fixes (applied unless ``dry_run``), conflicts and
        references to records that no longer exist.
    """
    report = ReconcileReport(owner_id=owner_id)
    with store.transaction():
        entries: dict[str, Entry] = {e.id: e for e in store.list(Table.ENTRIES, owner_id)}
        analyses: dict[str, Analysis] = {a.id: a for a in store.list(Table.ANALYSES, owner_id)}
        cards: list[Card] = store.list(Table.CARDS, owner_id)

        for analysis in analyses.values():
            _check(
                report, Table.ENTRIES, entries, analysis.source_entry_ids, "consumed_by", analysis.id
            )
        for card in cards:
            _check(
                report, Table.ANALYSES, analyses, card.source_analysis_ids, "consumed_by", card.id
            )
            _check(report, Table.ENTRIES, entries, card.source_entry_ids, "card_id", card.id)

        if not dry_run:
            for fix in report.fixes:
                store.update_fields(
                    fix.table, fix.record_id, owner_id, {fix.field: fix.artifact_id}
                )
            report.applied = bool(report.fixes)

    for conflict in report.conflicts:
        logger.warning(
            "Ledger conflict: %s %s.%s is %s, but %s lists it",
            conflict.table,
            conflict.record_id,
            conflict.field,
            conflict.claimed_by,
            conflict.artifact_id,
        )
    if report.fixes:
        logger.info(
            "%s %d ledger stamps for owner %s",
            "Would apply" if dry_run else "Applied",
            len(report.fixes),
            owner_id,
        )
    return report
