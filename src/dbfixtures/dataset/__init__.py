"""Fixture datasets: in-memory model, delimited files, scenario filtering."""

from dbfixtures.dataset.delimited import (
    CSV,
    TSV,
    DelimitedParser,
    DelimitedWriter,
    DelimiterConfig,
    read_load_order,
)
from dbfixtures.dataset.formats import (
    DelimitedFormatProvider,
    FormatProvider,
    FormatRegistry,
    default_format_registry,
)
from dbfixtures.dataset.merger import merge_datasets
from dbfixtures.dataset.models import CellValue, Dataset, Row, Table
from dbfixtures.dataset.scenario import ScenarioFilter

__all__ = [
    "CSV",
    "TSV",
    "CellValue",
    "Dataset",
    "DelimitedFormatProvider",
    "DelimitedParser",
    "DelimitedWriter",
    "DelimiterConfig",
    "FormatProvider",
    "FormatRegistry",
    "Row",
    "ScenarioFilter",
    "Table",
    "default_format_registry",
    "merge_datasets",
    "read_load_order",
]
