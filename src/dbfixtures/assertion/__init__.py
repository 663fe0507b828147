"""Comparison of expected and actual datasets."""

from dbfixtures.assertion.comparator import DataSetComparator
from dbfixtures.assertion.models import (
    CellMismatch,
    ComparisonResult,
    MismatchKind,
    StructuralMismatch,
    TableComparison,
)
from dbfixtures.assertion.strategies import (
    ColumnMatcher,
    ComparisonStrategy,
    StrategyKind,
    values_equal,
)
from dbfixtures.assertion.verifier import ExpectationVerifier

__all__ = [
    "CellMismatch",
    "ColumnMatcher",
    "ComparisonResult",
    "ComparisonStrategy",
    "DataSetComparator",
    "ExpectationVerifier",
    "MismatchKind",
    "StrategyKind",
    "StructuralMismatch",
    "TableComparison",
    "values_equal",
]
