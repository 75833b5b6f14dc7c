"""JSON-backed record store for entries, analyses and cards.

Persists all three tables in a single JSON file.  Every mutation runs
inside :meth:`RecordStore.transaction`; nested transactions join the
outermost one, which reloads from disk on entry, writes the file once
on success and restores its snapshot on failure.  Reads and writes are
always scoped to an owner: touching another owner's record raises
``Forbidden`` instead of being filtered out.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from worklog.errors import Forbidden, NotFound, StoreError
from worklog.records.models import RECORD_TYPES, Analysis, Card, Entry, Record, Table

logger = logging.getLogger(__name__)

STORE_FILENAME = ".worklog-store.json"

# Alias to avoid shadowing by RecordStore.list method
_list = list


class _StoreData(BaseModel):
    """Internal wrapper for JSON serialization."""

    entries: list[Entry] = Field(default_factory=list)
    analyses: list[Analysis] = Field(default_factory=list)
    cards: list[Card] = Field(default_factory=list)


def _atomic_write(path: Path, content: str) -> None:
    """Write via a temp file in the same directory, then rename over *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class RecordStore:
    """Owner-scoped CRUD over the entries, analyses and cards tables.

    With ``data_dir=None`` the store lives only in memory.
    """

    #: Steps inside one transaction commit or roll back together.
    atomic = True

    def __init__(self, data_dir: Path | None = None) -> None:
        self._path = data_dir / STORE_FILENAME if data_dir is not None else None
        self._lock = threading.RLock()
        self._depth = 0
        self._data = self._load()

    @property
    def path(self) -> Path | None:
        return self._path

    # ── Private helpers ──────────────────────────────────────────

    def _load(self) -> _StoreData:
        if self._path is None or not self._path.exists():
            return _StoreData()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return _StoreData.model_validate(raw)
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.error("Corrupt record store at %s: %s", self._path, exc)
            raise StoreError(f"corrupt record store at {self._path}") from exc
        except OSError as exc:
            raise StoreError(f"cannot read record store at {self._path}: {exc}") from exc

    def _save(self) -> None:
        if self._path is None:
            return
        try:
            _atomic_write(self._path, self._data.model_dump_json(indent=2))
        except OSError as exc:
            raise StoreError(f"cannot write record store at {self._path}: {exc}") from exc

    def _refresh(self) -> None:
        """Pick up writes made through other store instances."""
        if self._path is not None and self._depth == 0:
            self._data = self._load()

    def _rows(self, table: Table) -> _list[Any]:
        return getattr(self._data, Table(table).value)

    def _require(self, table: Table, record_id: str, owner_id: str) -> Any:
        for row in self._rows(table):
            if row.id == record_id:
                if row.owner_id != owner_id:
                    raise Forbidden(table, record_id)
                return row
        raise NotFound(table, record_id)

    def _replace(self, table: Table, updated: Any) -> None:
        rows = self._rows(table)
        for i, row in enumerate(rows):
            if row.id == updated.id:
                rows[i] = updated
                return
        raise NotFound(table, updated.id)

    @staticmethod
    def _patched(row: Any, patch: dict[str, Any]) -> Any:
        unknown = set(patch) - set(type(row).model_fields)
        if unknown:
            raise ValueError(f"unknown fields for {type(row).__name__}: {sorted(unknown)}")
        if {"id", "owner_id"} & set(patch):
            raise ValueError("id and owner_id are immutable")
        return type(row).model_validate({**row.model_dump(), **patch})

    # ── Transactions ─────────────────────────────────────────────

    @contextmanager
    def _file_lock(self) -> Iterator[None]:
        """Exclusive lock shared by every store instance on the same file."""
        if self._path is None:
            yield
            return
        lock_path = self._path.with_name(self._path.name + ".lock")
        try:
            lock_path.parent.mkdir(parents=True, exist_ok=True)
            lock_fd = open(lock_path, "a")
        except OSError as exc:
            raise StoreError(f"cannot open store lock {lock_path}: {exc}") from exc
        with lock_fd:
            fcntl.flock(lock_fd.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_fd.fileno(), fcntl.LOCK_UN)

    @contextmanager
    def transaction(self) -> Iterator[RecordStore]:
        """Group writes so they persist together or not at all.

        The outermost transaction holds the file lock from the reload
        through the save, so writers in other processes are serialized.
        """
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            with self._file_lock():
                self._refresh()
                snapshot = self._data.model_copy(deep=True)
                self._depth = 1
                try:
                    yield self
                    self._save()
                except BaseException:
                    self._data = snapshot
                    raise
                finally:
                    self._depth = 0

    # ── Write operations ─────────────────────────────────────────

    def insert(self, table: Table, record: Record) -> Record:
        """Insert a new record.  Raises StoreError on id collision."""
        expected = RECORD_TYPES[Table(table)]
        if not isinstance(record, expected):
            raise TypeError(f"{table} expects {expected.__name__}, got {type(record).__name__}")
        with self.transaction():
            if any(row.id == record.id for row in self._rows(table)):
                raise StoreError(f"{table} record {record.id} already exists")
            self._rows(table).append(record.model_copy(deep=True))
        return record

    def update_fields(
        self, table: Table, record_id: str, owner_id: str, patch: dict[str, Any]
    ) -> Record:
        """Apply *patch* to one record and return the updated copy."""
        with self.transaction():
            row = self._require(table, record_id, owner_id)
            updated = self._patched(row, patch)
            self._replace(table, updated)
        return updated.model_copy(deep=True)

    def update_fields_batch(
        self,
        table: Table,
        record_ids: _list[str],
        owner_id: str,
        patch: dict[str, Any],
        *,
        only_if_unset: str | None = None,
    ) -> int:
        """Apply *patch* to many records in one write.

        Ownership of every id is checked before anything changes.  With
        ``only_if_unset`` a record is patched only while that field is
        still ``None``; the return value counts the records patched.
        """
        with self.transaction():
            rows = [self._require(table, rid, owner_id) for rid in record_ids]
            updated = 0
            for row in rows:
                if only_if_unset is not None and getattr(row, only_if_unset) is not None:
                    continue
                self._replace(table, self._patched(row, patch))
                updated += 1
        return updated

    def delete(self, table: Table, record_id: str, owner_id: str) -> None:
        with self.transaction():
            self._require(table, record_id, owner_id)
            rows = self._rows(table)
            rows[:] = [row for row in rows if row.id != record_id]

    # ── Read operations ──────────────────────────────────────────

    def get(self, table: Table, record_id: str, owner_id: str) -> Record:
        """Return a copy of one record.  Raises NotFound or Forbidden."""
        with self._lock:
            self._refresh()
            return self._require(table, record_id, owner_id).model_copy(deep=True)

    def get_many(self, table: Table, record_ids: _list[str], owner_id: str) -> _list[Record]:
        """Return copies of several records in the order of *record_ids*."""
        with self._lock:
            self._refresh()
            return [
                self._require(table, rid, owner_id).model_copy(deep=True) for rid in record_ids
            ]

    def list(
        self,
        table: Table,
        owner_id: str,
        where: Callable[[Any], bool] | None = None,
    ) -> _list[Record]:
        """Return copies of an owner's records, optionally filtered."""
        with self._lock:
            self._refresh()
            results = [row for row in self._rows(table) if row.owner_id == owner_id]
            if where is not None:
                results = [row for row in results if where(row)]
            return [row.model_copy(deep=True) for row in results]

    def count(self, table: Table, owner_id: str) -> int:
        return len(self.list(table, owner_id))
