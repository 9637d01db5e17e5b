"""Abstract repository for domain records.

Defined in the domain layer so the facade never depends on the concrete
commerce platform. One instance serves one entity type (customers,
addresses, products, ...); concrete implementations (JSON, SQL, remote)
live in the infrastructure layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from storefront.domain.model.record import Record

# {field: value} for equality (membership for list fields), or
# {field: {"eq"|"neq"|"in"|"nin"|"gt"|"lt": value}}
Filters = dict[str, Any]


class RecordRepository(ABC):

    @abstractmethod
    def load(self, entity_id: int | str) -> Record | None:
        """Return a record by its id, or None if not found."""

    @abstractmethod
    def query(self, filters: Filters, sort: str | None = None) -> list[Record]:
        """Return matching records, ordered by ``sort`` ("field ASC|DESC")."""

    @abstractmethod
    def save(self, record: Record) -> Record:
        """Persist a new or updated record and return it with its id set.

        Raises ValidationError when the record is rejected and
        PersistenceError when the store fails.
        """

    @abstractmethod
    def delete(self, entity_id: int | str) -> None:
        """Remove a record. Raises PersistenceError when the store fails."""
