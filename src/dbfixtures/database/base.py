"""Database access contract consumed by the executor and the verifier."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable

from dbfixtures.dataset.models import CellValue, Table

type Record = Mapping[str, CellValue]


@runtime_checkable
class DatabaseAccess(Protocol):
    """Table-level primitives over one database connection.

    Records map fixture column names to cell values; implementations match
    them to physical columns case-insensitively.
    """

    def fetch_rows(self, table: str, columns: Sequence[str] | None = None) -> Table:
        """Snapshot the current content of a table as text cells."""
        ...

    def has_table(self, table: str) -> bool: ...

    def primary_key_columns(self, table: str) -> list[str]:
        """Primary key columns, falling back to the first column."""
        ...

    def insert_row(self, table: str, record: Record) -> None: ...

    def update_row(self, table: str, record: Record) -> int:
        """Update the row matching the record's key; returns rows matched."""
        ...

    def delete_row(self, table: str, record: Record) -> int: ...

    def delete_all(self, table: str) -> int: ...

    def truncate(self, table: str) -> None:
        """Remove all rows and reset identity counters."""
        ...

    def foreign_key_edges(self) -> set[tuple[str, str]]:
        """(child, parent) pairs for every foreign key."""
        ...
