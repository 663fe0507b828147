"""Shared enums used across the fixture engine.

Domain models live in their own packages:
- dataset/models.py     -> Dataset, Table and cell values
- convention/models.py  -> TestIdentity, ResolvedFixture
- assertion/models.py   -> ComparisonResult and mismatches
"""

from __future__ import annotations

from enum import Enum


class Operation(str, Enum):
    """Mutation semantics applied when loading a preparation dataset."""

    NONE = "NONE"
    UPDATE = "UPDATE"
    INSERT = "INSERT"
    REFRESH = "REFRESH"
    DELETE = "DELETE"
    DELETE_ALL = "DELETE_ALL"
    TRUNCATE_TABLE = "TRUNCATE_TABLE"
    CLEAN_INSERT = "CLEAN_INSERT"
    TRUNCATE_INSERT = "TRUNCATE_INSERT"

    @property
    def is_deletion(self) -> bool:
        """Deletion-type operations run children before parents."""
        return self in (Operation.DELETE, Operation.DELETE_ALL, Operation.TRUNCATE_TABLE)


class TableOrderingStrategy(str, Enum):
    """Policy for sequencing multi-table operations."""

    AUTO = "AUTO"  # Foreign-key dependency resolved
    DECLARED = "DECLARED"  # Explicit load-order file
    NONE = "NONE"  # Input order as-is


class TableMergeStrategy(str, Enum):
    """How tables with the same name from several directories are combined."""

    FIRST = "FIRST"
    LAST = "LAST"
    UNION = "UNION"  # Concatenate, drop duplicate rows
    UNION_ALL = "UNION_ALL"  # Concatenate, keep duplicates


class UnlistedTablePolicy(str, Enum):
    """What the parser does with files the load-order file does not list."""

    APPEND = "APPEND"
    IGNORE = "IGNORE"
    ERROR = "ERROR"


class DataFormat(str, Enum):
    """Supported fixture file formats, keyed by file extension."""

    CSV = "csv"
    TSV = "tsv"


class FixtureRole(str, Enum):
    """Whether a fixture prepares the database or describes its expected state."""

    PREPARATION = "preparation"
    EXPECTATION = "expectation"
