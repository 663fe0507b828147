"""Compare an expected dataset with the live database."""

from __future__ import annotations

from collections.abc import Iterable

from dbfixtures.assertion.comparator import DataSetComparator
from dbfixtures.assertion.models import ComparisonResult
from dbfixtures.core.exceptions import DbFixturesError, ExecutionError
from dbfixtures.core.logging import get_logger, record_tables_processed
from dbfixtures.database.base import DatabaseAccess
from dbfixtures.dataset.models import Dataset

logger = get_logger(__name__)


class ExpectationVerifier:
    """Snapshots the expected tables and diffs them.

    Only the expected columns are fetched, so columns present in the database
    but absent from the fixture are not compared. A table missing from the
    database is reported as a missing table.
    """

    def __init__(self, database: DatabaseAccess, comparator: DataSetComparator | None = None):
        self.database = database
        self.comparator = comparator or DataSetComparator()

    def snapshot(self, expected: Dataset) -> Dataset:
        tables = []
        for table in expected.tables:
            try:
                if not self.database.has_table(table.name):
                    continue
                columns = [
                    column
                    for column in table.columns
                    if column.casefold() not in self.comparator.excluded_columns
                ]
                tables.append(self.database.fetch_rows(table.name, columns))
            except DbFixturesError:
                raise
            except Exception as e:
                raise ExecutionError(f"Fetch failed: {e}", table=table.name) from e
        return Dataset(tables=tuple(tables))

    def verify(self, expected: Dataset, excluded_tables: Iterable[str] = ()) -> ComparisonResult:
        """Compare the expected dataset with current database content.

        Raises:
            ExecutionError: If reading a table fails
        """
        expected = expected.without_tables(excluded_tables)
        actual = self.snapshot(expected)
        record_tables_processed(len(actual.tables))

        result = self.comparator.compare(expected, actual)
        if result.has_differences:
            logger.info(
                "expectation_mismatch",
                tables=[t.table for t in result.tables],
                differences=result.difference_count,
            )
        else:
            logger.debug("expectation_matched", tables=expected.table_names)
        return result
