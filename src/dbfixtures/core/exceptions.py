"""Error kinds raised by the fixture engine.

Parsing and resolution errors abort the current phase. Mutation errors abort the
remaining table sequence. Comparison discrepancies are never raised; they are
collected in a ComparisonResult instead.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path


class DbFixturesError(Exception):
    """Base class for all fixture engine errors."""


class ConfigurationError(DbFixturesError):
    """Invalid settings, unknown data format or unresolvable provider."""


class NotFoundError(DbFixturesError):
    """A fixture directory, file or table could not be found."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


class DataSourceNotFoundError(NotFoundError):
    """No data source is registered under the requested name."""

    def __init__(self, name: str):
        self.name = name
        if name:
            message = f"No data source registered for name: {name}"
        else:
            message = "No default data source registered"
        super().__init__(message)


class ParseError(DbFixturesError):
    """Malformed delimited content."""

    def __init__(
        self,
        path: Path,
        line: int,
        message: str,
        column: int | None = None,
    ):
        self.path = path
        self.line = line
        self.column = column
        self.message = message
        location = f"{path}:{line}" if column is None else f"{path}:{line}:{column}"
        super().__init__(f"{location}: {message}")


class CyclicDependencyError(DbFixturesError):
    """Table dependencies contain a cycle, so no safe write order exists."""

    def __init__(self, tables: Iterable[str]):
        self.tables = list(tables)
        super().__init__(f"Cyclic dependency between tables: {', '.join(self.tables)}")


class RowNotFoundError(DbFixturesError):
    """UPDATE targeted a key that does not exist in the table."""

    def __init__(self, table: str, row_index: int, key: dict[str, object]):
        self.table = table
        self.row_index = row_index
        self.key = key
        super().__init__(f"No row in table '{table}' matches key {key} (row {row_index})")


class ExecutionError(DbFixturesError):
    """The database collaborator failed while mutating or fetching a table."""

    def __init__(
        self,
        message: str,
        table: str | None = None,
        row_index: int | None = None,
    ):
        self.table = table
        self.row_index = row_index
        context = []
        if table is not None:
            context.append(f"table '{table}'")
        if row_index is not None:
            context.append(f"row {row_index}")
        suffix = f" ({', '.join(context)})" if context else ""
        super().__init__(f"{message}{suffix}")
