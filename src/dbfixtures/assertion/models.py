"""Comparison results.

Discrepancies are data, not exceptions: the comparator collects every mismatch
across every table and the caller decides whether a non-empty result fails the
test. assert_no_differences() is the opt-in for raising.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict

from dbfixtures.assertion.strategies import as_text
from dbfixtures.dataset.models import CellValue


class MismatchKind(str, Enum):
    """Structural differences between an expected and an actual table."""

    MISSING_TABLE = "missing_table"
    EXTRA_TABLE = "extra_table"
    MISSING_COLUMN = "missing_column"
    EXTRA_COLUMN = "extra_column"
    ROW_COUNT = "row_count"


class StructuralMismatch(BaseModel):
    """Table presence, column set or row count differs."""

    model_config = ConfigDict(frozen=True)

    kind: MismatchKind
    table: str
    column: str | None = None
    expected: str
    actual: str

    @property
    def path(self) -> str:
        if self.kind in (MismatchKind.MISSING_TABLE, MismatchKind.EXTRA_TABLE):
            return "table"
        if self.kind is MismatchKind.ROW_COUNT:
            return "row_count"
        return f"columns.{self.column}"


class CellMismatch(BaseModel):
    """One cell differs after both sides were sorted by the row key."""

    model_config = ConfigDict(frozen=True)

    table: str
    row_index: int
    column: str
    expected: str | bytes | None
    actual: str | bytes | None

    @property
    def path(self) -> str:
        return f"row[{self.row_index}].{self.column}"


class TableComparison(BaseModel):
    """All differences found for one table, structural first."""

    model_config = ConfigDict(frozen=True)

    table: str
    structural: tuple[StructuralMismatch, ...] = ()
    cells: tuple[CellMismatch, ...] = ()

    @property
    def difference_count(self) -> int:
        return len(self.structural) + len(self.cells)

    @property
    def differences(self) -> list[StructuralMismatch | CellMismatch]:
        return [*self.structural, *self.cells]


def _render(value: CellValue) -> str | None:
    return as_text(value)


class ComparisonResult(BaseModel):
    """Every discrepancy between an expected dataset and the actual state.

    Only tables with at least one difference are listed, in comparison order.
    """

    model_config = ConfigDict(frozen=True)

    tables: tuple[TableComparison, ...] = ()

    @property
    def has_differences(self) -> bool:
        return self.difference_count > 0

    @property
    def difference_count(self) -> int:
        return sum(table.difference_count for table in self.tables)

    @property
    def by_table(self) -> dict[str, TableComparison]:
        return {table.table: table for table in self.tables}

    def for_table(self, name: str) -> TableComparison | None:
        return self.by_table.get(name)

    @property
    def structural_mismatches(self) -> list[StructuralMismatch]:
        return [m for table in self.tables for m in table.structural]

    @property
    def cell_mismatches(self) -> list[CellMismatch]:
        return [m for table in self.tables for m in table.cells]

    def to_dict(self) -> dict[str, Any]:
        """Report structure: summary plus per-table differences."""
        tables: dict[str, Any] = {}
        for table in self.tables:
            differences = []
            for mismatch in table.differences:
                if isinstance(mismatch, CellMismatch):
                    expected, actual = _render(mismatch.expected), _render(mismatch.actual)
                else:
                    expected, actual = mismatch.expected, mismatch.actual
                differences.append({"path": mismatch.path, "expected": expected, "actual": actual})
            tables[table.table] = {"differences": differences}

        return {
            "summary": {
                "status": "FAILED" if self.has_differences else "PASSED",
                "total_differences": self.difference_count,
            },
            "tables": tables,
        }

    def summary_line(self) -> str:
        count = self.difference_count
        noun = "difference" if count == 1 else "differences"
        return f"Assertion failed: {count} {noun} in {', '.join(t.table for t in self.tables)}"

    def format_message(self) -> str:
        """Human-readable summary line followed by a YAML report."""
        if not self.has_differences:
            return "No differences found"
        report = yaml.safe_dump(
            self.to_dict(),
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
        )
        return f"{self.summary_line()}\n{report}".strip()

    def assert_no_differences(self) -> None:
        """Raise AssertionError with the full report when anything differs."""
        if self.has_differences:
            raise AssertionError(self.format_message())
