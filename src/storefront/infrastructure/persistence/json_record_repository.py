"""JSON-file-backed implementation of RecordRepository.

One file holds one entity type as a JSON array of objects.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path

from storefront.domain.exceptions import PersistenceError, ValidationError
from storefront.domain.model.record import Record, record_id
from storefront.domain.repository.record_repository import Filters, RecordRepository
from storefront.infrastructure.persistence.filters import matches, sort_records


class JsonRecordRepository(RecordRepository):

    def __init__(self, file_path: Path, id_field: str = "entity_id") -> None:
        self._file_path = file_path
        self._id_field = id_field
        self._lock = threading.Lock()
        self._ensure_file()

    # --- RecordRepository interface -------------------------------------------

    def load(self, entity_id: int | str) -> Record | None:
        for raw in self._load_raw():
            if matches(raw, {self._id_field: entity_id}):
                return dict(raw)
        return None

    def query(self, filters: Filters, sort: str | None = None) -> list[Record]:
        found = [dict(raw) for raw in self._load_raw() if matches(raw, filters)]
        return sort_records(found, sort)

    def save(self, record: Record) -> Record:
        if not isinstance(record, dict):
            raise ValidationError("Record must be an object")

        with self._lock:
            records = self._load_raw()
            saved = dict(record)

            if record_id(saved, self._id_field) is None:
                saved[self._id_field] = self._next_id(records)

            # Upsert: replace if exists, otherwise append
            for i, raw in enumerate(records):
                if matches(raw, {self._id_field: saved[self._id_field]}):
                    records[i] = saved
                    break
            else:
                records.append(saved)

            self._persist_raw(records)
        return dict(saved)

    def delete(self, entity_id: int | str) -> None:
        with self._lock:
            records = self._load_raw()
            kept = [r for r in records if not matches(r, {self._id_field: entity_id})]
            if len(kept) != len(records):
                self._persist_raw(kept)

    # --- Helpers --------------------------------------------------------------

    def _next_id(self, records: list[Record]) -> int:
        ids = [record_id(r, self._id_field) for r in records]
        return max((i for i in ids if i is not None), default=0) + 1

    # --- File helpers ---------------------------------------------------------

    def _load_raw(self) -> list[Record]:
        try:
            return json.loads(self._file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Cannot read {self._file_path}: {exc}") from exc

    def _persist_raw(self, records: list[Record]) -> None:
        try:
            self._file_path.write_text(
                json.dumps(records, indent=2, default=str) + "\n", encoding="utf-8"
            )
        except OSError as exc:
            raise PersistenceError(f"Cannot write {self._file_path}: {exc}") from exc

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_path.write_text("[]", encoding="utf-8")
