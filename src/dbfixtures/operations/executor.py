"""Apply a dataset to a database under one of the nine operations.

Tables are processed one at a time in the computed order (reverse order for
deletion-type operations). The first failure aborts the remaining tables;
undoing earlier tables is left to the caller's transaction.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager

from dbfixtures.core.exceptions import DbFixturesError, ExecutionError, RowNotFoundError
from dbfixtures.core.logging import get_logger, record_rows_processed, record_tables_processed
from dbfixtures.core.models import Operation
from dbfixtures.database.base import DatabaseAccess, Record
from dbfixtures.dataset.models import Dataset, Table
from dbfixtures.ordering.orderer import TableOrder

logger = get_logger(__name__)


@contextmanager
def _wrap_errors(action: str, table: str, row_index: int | None = None) -> Iterator[None]:
    try:
        yield
    except DbFixturesError:
        raise
    except Exception as e:
        raise ExecutionError(f"{action} failed: {e}", table=table, row_index=row_index) from e


class OperationExecutor:
    """Runs operations through a DatabaseAccess collaborator."""

    def __init__(self, database: DatabaseAccess):
        self.database = database
        self._handlers: dict[Operation, Callable[[Table], int]] = {
            Operation.INSERT: self._insert,
            Operation.UPDATE: self._update,
            Operation.REFRESH: self._refresh,
            Operation.DELETE: self._delete,
            Operation.DELETE_ALL: self._delete_all,
            Operation.TRUNCATE_TABLE: self._truncate,
            Operation.CLEAN_INSERT: self._clean_insert,
            Operation.TRUNCATE_INSERT: self._truncate_insert,
        }

    def execute(
        self,
        dataset: Dataset,
        operation: Operation,
        order: TableOrder | None = None,
    ) -> int:
        """Apply a dataset.

        Args:
            dataset: Tables to apply
            operation: Mutation semantics
            order: Table order; defaults to dataset order

        Returns:
            Number of rows written or deleted

        Raises:
            ExecutionError: If the database rejects a statement
            RowNotFoundError: If UPDATE targets a missing key
        """
        if operation is Operation.NONE or dataset.is_empty:
            logger.debug("operation_skipped", operation=operation.value)
            return 0

        order = order or TableOrder(tuple(dataset.table_names))
        sequence = order.reverse if operation.is_deletion else order.forward
        handler = self._handlers[operation]

        total = 0
        for name in sequence:
            table = dataset.get_table(name)
            if table is None:
                continue
            affected = handler(table)
            total += affected
            record_tables_processed(1)
            record_rows_processed(table.row_count)
            logger.debug(
                "table_applied",
                table=name,
                operation=operation.value,
                rows=table.row_count,
                affected=affected,
            )

        logger.info(
            "operation_applied", operation=operation.value, tables=len(sequence), rows=total
        )
        return total

    def _key(self, table: Table, record: Record) -> dict[str, object]:
        with _wrap_errors("Primary key lookup", table.name):
            key_columns = {c.casefold() for c in self.database.primary_key_columns(table.name)}
        return {name: value for name, value in record.items() if name.casefold() in key_columns}

    def _insert(self, table: Table) -> int:
        for index, record in enumerate(table.records()):
            with _wrap_errors("Insert", table.name, index):
                self.database.insert_row(table.name, record)
        return table.row_count

    def _update(self, table: Table) -> int:
        for index, record in enumerate(table.records()):
            with _wrap_errors("Update", table.name, index):
                matched = self.database.update_row(table.name, record)
            if matched == 0:
                raise RowNotFoundError(table.name, index, self._key(table, record))
        return table.row_count

    def _refresh(self, table: Table) -> int:
        for index, record in enumerate(table.records()):
            with _wrap_errors("Refresh", table.name, index):
                if self.database.update_row(table.name, record) == 0:
                    self.database.insert_row(table.name, record)
        return table.row_count

    def _delete(self, table: Table) -> int:
        deleted = 0
        for index, record in enumerate(table.records()):
            with _wrap_errors("Delete", table.name, index):
                deleted += self.database.delete_row(table.name, record)
        return deleted

    def _delete_all(self, table: Table) -> int:
        with _wrap_errors("Delete all", table.name):
            return self.database.delete_all(table.name)

    def _truncate(self, table: Table) -> int:
        with _wrap_errors("Truncate", table.name):
            self.database.truncate(table.name)
        return 0

    def _clean_insert(self, table: Table) -> int:
        self._delete_all(table)
        return self._insert(table)

    def _truncate_insert(self, table: Table) -> int:
        self._truncate(table)
        return self._insert(table)
