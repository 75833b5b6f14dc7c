"""Error taxonomy for the roll-up pipeline.

Every error carries a stable machine-readable ``kind`` and a human message
so the product shell can render it without inspecting the class.
"""

from __future__ import annotations

from typing import Any


class WorklogError(Exception):
    """Base error for all worklog operations."""

    kind = "worklog_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly payload."""
        return {"kind": self.kind, "message": self.message, **self.details}


class InsufficientInputs(WorklogError):
    """Not enough available inputs to form a batch."""

    kind = "insufficient_inputs"

    def __init__(self, have: int, need: int, *, noun: str = "entries", malformed: int = 0) -> None:
        missing = need - have
        message = f"need {missing} more {noun} ({have}/{need} available)"
        if malformed:
            message += f"; {malformed} malformed {noun} excluded"
        super().__init__(message, have=have, need=need, malformed=malformed)
        self.have = have
        self.need = need
        self.malformed = malformed


class DuplicateBatch(WorklogError):
    """The selected inputs already produced an artifact."""

    kind = "duplicate_batch"

    def __init__(self, input_ids: list[str], existing_id: str) -> None:
        super().__init__(
            f"these {len(input_ids)} analyses already produced card {existing_id}",
            input_ids=list(input_ids),
            existing_id=existing_id,
        )
        self.input_ids = list(input_ids)
        self.existing_id = existing_id


class SummarizationFailed(WorklogError):
    """The summarizer gateway failed or returned an off-schema response."""

    kind = "summarization_failed"

    def __init__(self, reason: str) -> None:
        super().__init__(f"summarization failed: {reason}", reason=reason)
        self.reason = reason


class ConcurrentModification(WorklogError):
    """A racing derive call claimed part of the selected batch."""

    kind = "concurrent_modification"

    def __init__(self, expected: int, claimed: int) -> None:
        super().__init__(
            f"{expected - claimed} of {expected} inputs were claimed concurrently; "
            "re-check eligibility and retry",
            expected=expected,
            claimed=claimed,
        )
        self.expected = expected
        self.claimed = claimed


class PartialCommit(WorklogError):
    """The artifact was written but its inputs were not all marked consumed."""

    kind = "partial_commit"

    def __init__(self, artifact_id: str, unmarked_ids: list[str], reason: str) -> None:
        super().__init__(
            f"artifact {artifact_id} persisted but {len(unmarked_ids)} inputs "
            f"were not marked consumed: {reason}",
            artifact_id=artifact_id,
            unmarked_ids=list(unmarked_ids),
        )
        self.artifact_id = artifact_id
        self.unmarked_ids = list(unmarked_ids)


class NotFound(WorklogError):
    kind = "not_found"

    def __init__(self, table: str, record_id: str) -> None:
        super().__init__(f"{table} record {record_id} not found", table=table, id=record_id)


class Forbidden(WorklogError):
    kind = "forbidden"

    def __init__(self, table: str, record_id: str) -> None:
        super().__init__(
            f"{table} record {record_id} belongs to another owner", table=table, id=record_id
        )


class EntryInUse(WorklogError):
    """Deleting an entry that a derived artifact already references."""

    kind = "entry_in_use"

    def __init__(self, entry_id: str, consumed_by: str) -> None:
        super().__init__(
            f"entry {entry_id} is part of analysis {consumed_by} and cannot be deleted",
            id=entry_id,
            consumed_by=consumed_by,
        )


class InvalidEntry(WorklogError):
    kind = "invalid_entry"


class Cancelled(WorklogError):
    kind = "cancelled"


class StoreError(WorklogError):
    """Storage layer failure (I/O, corrupt file)."""

    kind = "store_error"
