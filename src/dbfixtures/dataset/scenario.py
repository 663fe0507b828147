"""Scenario-based row filtering.

A fixture file may hold rows for several scenarios when its first header is the
scenario marker. A row whose marker cell is blank applies to every scenario.
"""

from __future__ import annotations

from collections.abc import Iterable

from dbfixtures.core.logging import get_logger
from dbfixtures.dataset.models import Dataset, Table

logger = get_logger(__name__)


class ScenarioFilter:
    """Keeps the rows matching any of the requested scenario names.

    An empty name set disables filtering. Filtering is idempotent: markers are
    preserved on the filtered table, so applying the same filter again is a no-op.
    """

    def __init__(self, scenario_names: Iterable[str] = ()):
        self.scenario_names = frozenset(name.strip() for name in scenario_names if name.strip())

    @property
    def is_active(self) -> bool:
        return bool(self.scenario_names)

    def includes(self, marker: str | None) -> bool:
        """Whether a row carrying this marker survives the filter."""
        if not self.is_active:
            return True
        if marker is None or not marker.strip():
            return True
        return marker.strip() in self.scenario_names

    def filter_table(self, table: Table) -> Table:
        """Filter one table; tables without markers are returned unchanged."""
        if not self.is_active or table.scenario_markers is None:
            return table

        kept = [
            (row, marker)
            for row, marker in zip(table.rows, table.scenario_markers, strict=True)
            if self.includes(marker)
        ]
        logger.debug(
            "scenario_rows_filtered",
            table=table.name,
            scenarios=sorted(self.scenario_names),
            kept=len(kept),
            dropped=table.row_count - len(kept),
        )
        return table.with_rows(
            (row for row, _ in kept),
            scenario_markers=(marker for _, marker in kept),
        )

    def apply(self, dataset: Dataset) -> Dataset:
        """Filter every table of a dataset."""
        if not self.is_active:
            return dataset
        return Dataset(tables=tuple(self.filter_table(table) for table in dataset.tables))
