"""DatabaseAccess over a SQLAlchemy connection.

Tables are reflected on first use. Table and column names from fixtures match
the physical names case-insensitively, so USERS.csv targets a "users" table.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import (
    Column,
    Connection,
    MetaData,
    and_,
    delete,
    func,
    insert,
    inspect,
    select,
    text,
    update,
)
from sqlalchemy import Table as SqlTable
from sqlalchemy.exc import DBAPIError

from dbfixtures.core.config import DEFAULT_BINARY_PREFIX
from dbfixtures.core.exceptions import ExecutionError
from dbfixtures.core.logging import get_logger, increment_db_query, increment_db_write
from dbfixtures.database.base import Record
from dbfixtures.database.values import to_cell, to_db_value
from dbfixtures.dataset.models import Table

logger = get_logger(__name__)


class SqlAlchemyDatabase:
    """Implements DatabaseAccess on one open Connection.

    The caller owns the connection and its transaction; nothing here commits.
    """

    def __init__(self, connection: Connection, binary_prefix: str = DEFAULT_BINARY_PREFIX):
        self.connection = connection
        self.binary_prefix = binary_prefix
        self._metadata = MetaData()
        self._tables: dict[str, SqlTable] = {}
        self._names: dict[str, str] | None = None

    @property
    def dialect_name(self) -> str:
        return self.connection.dialect.name

    # --- reflection -------------------------------------------------------

    def _physical_names(self) -> dict[str, str]:
        if self._names is None:
            names = inspect(self.connection).get_table_names()
            self._names = {name.casefold(): name for name in names}
        return self._names

    def has_table(self, table: str) -> bool:
        return table.casefold() in self._physical_names()

    def _table(self, table: str) -> SqlTable:
        key = table.casefold()
        if key not in self._tables:
            physical = self._physical_names().get(key)
            if physical is None:
                raise ExecutionError("Table does not exist in the database", table=table)
            self._tables[key] = SqlTable(physical, self._metadata, autoload_with=self.connection)
        return self._tables[key]

    def _column(self, sql_table: SqlTable, name: str) -> Column[Any]:
        folded = name.casefold()
        for column in sql_table.columns:
            if column.name.casefold() == folded:
                return column
        raise ValueError(f"Column '{name}' does not exist in table '{sql_table.name}'")

    def _key_columns(self, sql_table: SqlTable) -> list[Column[Any]]:
        key = list(sql_table.primary_key.columns)
        return key or [next(iter(sql_table.columns))]

    def primary_key_columns(self, table: str) -> list[str]:
        return [column.name for column in self._key_columns(self._table(table))]

    def foreign_key_edges(self) -> set[tuple[str, str]]:
        inspector = inspect(self.connection)
        edges = set()
        for name in inspector.get_table_names():
            for fk in inspector.get_foreign_keys(name):
                edges.add((name, fk["referred_table"]))
        increment_db_query()
        return edges

    # --- reads ------------------------------------------------------------

    def fetch_rows(self, table: str, columns: Sequence[str] | None = None) -> Table:
        """Snapshot a table, ordered by its key.

        Requested columns that do not exist are left out of the result.
        """
        sql_table = self._table(table)
        if columns is None:
            selected = [(column.name, column) for column in sql_table.columns]
        else:
            selected = []
            for name in columns:
                try:
                    selected.append((name, self._column(sql_table, name)))
                except ValueError:
                    continue

        if not selected:
            # Row count still matters when every column is filtered out
            count = self.connection.execute(
                select(func.count()).select_from(sql_table)
            ).scalar_one()
            increment_db_query()
            return Table(name=table, columns=(), rows=((),) * int(count))

        stmt = select(*(column for _, column in selected)).order_by(
            *self._key_columns(sql_table)
        )
        result = self.connection.execute(stmt)
        increment_db_query()
        rows = tuple(tuple(to_cell(value) for value in row) for row in result)
        return Table(name=table, columns=tuple(name for name, _ in selected), rows=rows)

    # --- writes -----------------------------------------------------------

    def _bind(self, sql_table: SqlTable, record: Record) -> dict[str, Any]:
        values = {}
        for name, value in record.items():
            column = self._column(sql_table, name)
            values[column.name] = to_db_value(value, column.type, self.binary_prefix)
        return values

    def _key_clause(self, sql_table: SqlTable, values: dict[str, Any]) -> Any:
        clauses = []
        for column in self._key_columns(sql_table):
            if column.name not in values:
                raise ValueError(f"Key column '{column.name}' missing from row")
            clauses.append(column == values[column.name])
        return and_(*clauses)

    def insert_row(self, table: str, record: Record) -> None:
        sql_table = self._table(table)
        self.connection.execute(insert(sql_table).values(self._bind(sql_table, record)))
        increment_db_write()

    def update_row(self, table: str, record: Record) -> int:
        sql_table = self._table(table)
        values = self._bind(sql_table, record)
        where = self._key_clause(sql_table, values)
        key_names = {column.name for column in self._key_columns(sql_table)}
        changes = {name: value for name, value in values.items() if name not in key_names}

        if not changes:
            # Nothing to set; report whether the key exists
            count = self.connection.execute(
                select(func.count()).select_from(sql_table).where(where)
            ).scalar_one()
            increment_db_query()
            return int(count)

        result = self.connection.execute(update(sql_table).where(where).values(changes))
        increment_db_write()
        return result.rowcount

    def delete_row(self, table: str, record: Record) -> int:
        sql_table = self._table(table)
        where = self._key_clause(sql_table, self._bind(sql_table, record))
        result = self.connection.execute(delete(sql_table).where(where))
        increment_db_write()
        return result.rowcount

    def delete_all(self, table: str) -> int:
        result = self.connection.execute(delete(self._table(table)))
        increment_db_write()
        return result.rowcount

    def truncate(self, table: str) -> None:
        """Remove all rows and reset identity counters.

        PostgreSQL uses TRUNCATE ... RESTART IDENTITY; SQLite has no TRUNCATE,
        so rows are deleted and the table's sqlite_sequence entry is removed.
        When the database rejects TRUNCATE, rows are deleted instead and
        identity counters are left as they are.
        """
        sql_table = self._table(table)
        quoted = self.connection.dialect.identifier_preparer.format_table(sql_table)

        if self.dialect_name == "sqlite":
            self.connection.execute(delete(sql_table))
            has_sequence = self.connection.execute(
                text(
                    "SELECT 1 FROM sqlite_master "
                    "WHERE type = 'table' AND name = 'sqlite_sequence'"
                )
            ).first()
            if has_sequence is not None:
                self.connection.execute(
                    text("DELETE FROM sqlite_sequence WHERE name = :name"),
                    {"name": sql_table.name},
                )
        else:
            statement = f"TRUNCATE TABLE {quoted}"
            if self.dialect_name == "postgresql":
                statement += " RESTART IDENTITY"
            try:
                with self.connection.begin_nested():
                    self.connection.execute(text(statement))
            except DBAPIError as e:
                # No TRUNCATE support, or the table is referenced by a foreign key
                logger.warning(
                    "truncate_fallback_delete",
                    table=sql_table.name,
                    dialect=self.dialect_name,
                    error=str(e.orig),
                )
                self.connection.execute(delete(sql_table))

        increment_db_write()
        logger.debug("table_truncated", table=sql_table.name, dialect=self.dialect_name)
