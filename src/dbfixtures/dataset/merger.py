"""Combine datasets loaded from several fixture directories."""

from __future__ import annotations

from collections.abc import Sequence

from dbfixtures.core.logging import get_logger
from dbfixtures.core.models import TableMergeStrategy
from dbfixtures.dataset.models import CellValue, Dataset, Table

logger = get_logger(__name__)


def merge_datasets(
    datasets: Sequence[Dataset],
    strategy: TableMergeStrategy = TableMergeStrategy.UNION_ALL,
) -> Dataset:
    """Merge datasets table by table.

    Tables keep the order of their first appearance. Same-named tables are
    combined according to the strategy:
    - FIRST / LAST: keep one occurrence
    - UNION_ALL: concatenate rows
    - UNION: concatenate rows, dropping duplicates

    Column sets are unioned in first-seen order; cells missing from a source
    table become NULL.
    """
    if not datasets:
        return Dataset()
    if len(datasets) == 1:
        return datasets[0]

    grouped: dict[str, list[Table]] = {}
    for dataset in datasets:
        for table in dataset.tables:
            grouped.setdefault(table.name, []).append(table)

    merged = tuple(_merge_tables(tables, strategy) for tables in grouped.values())
    logger.debug(
        "datasets_merged",
        sources=len(datasets),
        tables=len(merged),
        strategy=strategy.value,
    )
    return Dataset(tables=merged)


def _merge_tables(tables: list[Table], strategy: TableMergeStrategy) -> Table:
    if len(tables) == 1:
        return tables[0]
    if strategy is TableMergeStrategy.FIRST:
        return tables[0]
    if strategy is TableMergeStrategy.LAST:
        return tables[-1]

    columns: list[str] = []
    for table in tables:
        columns.extend(c for c in table.columns if c not in columns)

    has_markers = any(t.scenario_markers is not None for t in tables)
    rows: list[tuple[CellValue, ...]] = []
    markers: list[str | None] = []
    seen: set[tuple[CellValue, ...]] = set()
    for table in tables:
        positions = [table.columns.index(c) if c in table.columns else None for c in columns]
        table_markers = table.scenario_markers or (None,) * table.row_count
        for row, marker in zip(table.rows, table_markers, strict=True):
            aligned = tuple(row[p] if p is not None else None for p in positions)
            if strategy is TableMergeStrategy.UNION:
                if aligned in seen:
                    continue
                seen.add(aligned)
            rows.append(aligned)
            markers.append(marker)

    return Table(
        name=tables[0].name,
        columns=tuple(columns),
        rows=tuple(rows),
        scenario_markers=tuple(markers) if has_markers else None,
    )
