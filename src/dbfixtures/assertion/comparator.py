"""Dataset comparison.

Per table, structure is checked first (presence, column set, row count). A
structural mismatch skips the cell comparison for that table only. Rows are then
sorted on both sides by a composite key of every default-compared column and
matched positionally, so insertion order never causes a mismatch.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from dbfixtures.assertion.models import (
    CellMismatch,
    ComparisonResult,
    MismatchKind,
    StructuralMismatch,
    TableComparison,
)
from dbfixtures.assertion.strategies import ColumnMatcher, sort_key, values_equal
from dbfixtures.core.config import DEFAULT_BINARY_PREFIX
from dbfixtures.core.logging import get_logger
from dbfixtures.dataset.models import Dataset, Row, Table

logger = get_logger(__name__)


def _find_table(dataset: Dataset, name: str) -> Table | None:
    table = dataset.get_table(name)
    if table is not None:
        return table
    folded = name.casefold()
    for candidate in dataset.tables:
        if candidate.name.casefold() == folded:
            return candidate
    return None


class DataSetComparator:
    """Diffs an expected dataset against an actual one.

    Column strategies are keyed by column name or "TABLE.COLUMN"; both keys and
    excluded columns match case-insensitively. Columns without a strategy use
    values_equal.
    """

    def __init__(
        self,
        column_strategies: Mapping[str, ColumnMatcher] | None = None,
        excluded_columns: Iterable[str] = (),
        binary_prefix: str = DEFAULT_BINARY_PREFIX,
    ):
        self.column_strategies = {
            key.casefold(): matcher for key, matcher in (column_strategies or {}).items()
        }
        self.excluded_columns = frozenset(column.casefold() for column in excluded_columns)
        self.binary_prefix = binary_prefix

    def compare(self, expected: Dataset, actual: Dataset) -> ComparisonResult:
        """Compare two datasets table by table, aggregating every difference."""
        results: list[TableComparison] = []
        matched: set[str] = set()

        for expected_table in expected.tables:
            actual_table = _find_table(actual, expected_table.name)
            if actual_table is None:
                results.append(
                    TableComparison(
                        table=expected_table.name,
                        structural=(
                            StructuralMismatch(
                                kind=MismatchKind.MISSING_TABLE,
                                table=expected_table.name,
                                expected="exists",
                                actual="not found",
                            ),
                        ),
                    )
                )
                continue
            matched.add(actual_table.name)
            comparison = self.compare_table(expected_table, actual_table)
            if comparison.difference_count:
                results.append(comparison)

        for actual_table in actual.tables:
            if actual_table.name not in matched:
                results.append(
                    TableComparison(
                        table=actual_table.name,
                        structural=(
                            StructuralMismatch(
                                kind=MismatchKind.EXTRA_TABLE,
                                table=actual_table.name,
                                expected="not found",
                                actual="exists",
                            ),
                        ),
                    )
                )

        result = ComparisonResult(tables=tuple(results))
        logger.debug(
            "datasets_compared",
            tables=len(expected.tables),
            differences=result.difference_count,
        )
        return result

    def _matcher(self, table: str, column: str) -> ColumnMatcher | None:
        qualified = f"{table}.{column}".casefold()
        return self.column_strategies.get(qualified) or self.column_strategies.get(
            column.casefold()
        )

    def _visible_columns(self, table: Table) -> list[str]:
        return [c for c in table.columns if c.casefold() not in self.excluded_columns]

    def compare_table(self, expected: Table, actual: Table) -> TableComparison:
        """Compare two tables with the same logical name."""
        name = expected.name
        expected_columns = self._visible_columns(expected)
        actual_by_folded = {c.casefold(): c for c in self._visible_columns(actual)}
        expected_folded = {c.casefold() for c in expected_columns}

        structural = [
            StructuralMismatch(
                kind=MismatchKind.MISSING_COLUMN,
                table=name,
                column=column,
                expected="exists",
                actual="not found",
            )
            for column in expected_columns
            if column.casefold() not in actual_by_folded
        ]
        structural.extend(
            StructuralMismatch(
                kind=MismatchKind.EXTRA_COLUMN,
                table=name,
                column=column,
                expected="not found",
                actual="exists",
            )
            for folded, column in actual_by_folded.items()
            if folded not in expected_folded
        )
        if not structural and expected.row_count != actual.row_count:
            structural.append(
                StructuralMismatch(
                    kind=MismatchKind.ROW_COUNT,
                    table=name,
                    expected=str(expected.row_count),
                    actual=str(actual.row_count),
                )
            )
        if structural:
            return TableComparison(table=name, structural=tuple(structural))

        expected_rows = expected.select_columns(expected_columns).rows
        actual_rows = actual.select_columns(
            [actual_by_folded[c.casefold()] for c in expected_columns]
        ).rows
        matchers = [self._matcher(name, column) for column in expected_columns]
        key_positions = [i for i, matcher in enumerate(matchers) if matcher is None]

        def row_key(row: Row) -> tuple[tuple[int, object], ...]:
            return tuple(sort_key(row[i], self.binary_prefix) for i in key_positions)

        cells = []
        for index, (expected_row, actual_row) in enumerate(
            zip(sorted(expected_rows, key=row_key), sorted(actual_rows, key=row_key), strict=True)
        ):
            for position, column in enumerate(expected_columns):
                expected_value = expected_row[position]
                actual_value = actual_row[position]
                matcher = matchers[position]
                if matcher is None:
                    equal = values_equal(expected_value, actual_value, self.binary_prefix)
                else:
                    equal = matcher.matches(expected_value, actual_value)
                if not equal:
                    cells.append(
                        CellMismatch(
                            table=name,
                            row_index=index,
                            column=column,
                            expected=expected_value,
                            actual=actual_value,
                        )
                    )
        return TableComparison(table=name, cells=tuple(cells))
