"""Dataset, table and cell models.

A cell is one of:
- None   -> SQL NULL
- ""     -> empty string (distinct from NULL)
- str    -> any scalar materialized as text
- bytes  -> binary payload

Tables and datasets are immutable once constructed.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from pydantic import BaseModel, ConfigDict, model_validator

type CellValue = str | bytes | None
type Row = tuple[CellValue, ...]


class Table(BaseModel):
    """A named table: ordered columns plus ordered rows aligned to them.

    scenario_markers, when present, holds the raw scenario marker of each row.
    It is aligned with rows but is never exposed as a column.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    columns: tuple[str, ...]
    rows: tuple[tuple[str | bytes | None, ...], ...] = ()
    scenario_markers: tuple[str | None, ...] | None = None

    @model_validator(mode="after")
    def _check_alignment(self) -> Table:
        if not self.name:
            raise ValueError("Table name must not be empty")
        if len(set(self.columns)) != len(self.columns):
            raise ValueError(f"Duplicate column names in table '{self.name}'")
        width = len(self.columns)
        for index, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(
                    f"Row {index} of table '{self.name}' has {len(row)} values, "
                    f"expected {width}"
                )
        if self.scenario_markers is not None and len(self.scenario_markers) != len(self.rows):
            raise ValueError(f"Scenario markers of table '{self.name}' do not match its rows")
        return self

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def column_index(self, column: str) -> int:
        """Position of a column.

        Raises:
            KeyError: If the column does not exist
        """
        try:
            return self.columns.index(column)
        except ValueError:
            raise KeyError(f"Column '{column}' not found in table '{self.name}'") from None

    def value(self, row_index: int, column: str) -> CellValue:
        """Value of one cell."""
        return self.rows[row_index][self.column_index(column)]

    def records(self) -> list[dict[str, CellValue]]:
        """Rows as column -> value mappings, in row order."""
        return [dict(zip(self.columns, row, strict=True)) for row in self.rows]

    def select_columns(self, columns: Sequence[str]) -> Table:
        """Project the table onto a subset of its columns, in the given order."""
        indexes = [self.column_index(column) for column in columns]
        return self.model_copy(
            update={
                "columns": tuple(columns),
                "rows": tuple(tuple(row[i] for i in indexes) for row in self.rows),
            }
        )

    def with_rows(
        self,
        rows: Iterable[Row],
        scenario_markers: Iterable[str | None] | None = None,
    ) -> Table:
        """Copy of this table holding different rows."""
        return Table(
            name=self.name,
            columns=self.columns,
            rows=tuple(rows),
            scenario_markers=tuple(scenario_markers) if scenario_markers is not None else None,
        )


class Dataset(BaseModel):
    """Ordered sequence of uniquely named tables.

    Table order matters for application; comparison looks tables up by name.
    """

    model_config = ConfigDict(frozen=True)

    tables: tuple[Table, ...] = ()

    @model_validator(mode="after")
    def _check_unique_names(self) -> Dataset:
        seen: set[str] = set()
        for table in self.tables:
            if table.name in seen:
                raise ValueError(f"Duplicate table name in dataset: {table.name}")
            seen.add(table.name)
        return self

    @property
    def table_names(self) -> list[str]:
        return [table.name for table in self.tables]

    @property
    def is_empty(self) -> bool:
        return not self.tables

    def get_table(self, name: str) -> Table | None:
        """Look up a table by its case-sensitive name."""
        for table in self.tables:
            if table.name == name:
                return table
        return None

    def without_tables(self, names: Iterable[str]) -> Dataset:
        """Copy of the dataset minus the named tables."""
        excluded = set(names)
        return Dataset(tables=tuple(t for t in self.tables if t.name not in excluded))

    def reordered(self, names: Sequence[str]) -> Dataset:
        """Copy of the dataset with tables in the given order.

        Names not in the dataset are skipped; tables not named keep their
        relative order after the named ones.
        """
        by_name = {table.name: table for table in self.tables}
        ordered = [by_name[name] for name in names if name in by_name]
        named = {table.name for table in ordered}
        ordered.extend(t for t in self.tables if t.name not in named)
        return Dataset(tables=tuple(ordered))
