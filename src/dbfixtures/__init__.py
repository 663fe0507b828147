"""Database test fixtures.

Loads tabular fixtures from delimited files, applies them to a relational
database, and compares database state against expected fixtures.

Example:
    from dbfixtures import FixtureContext, FixtureEngine, TestIdentity

    engine = FixtureEngine(FixtureContext.create())
    engine.prepare(TestIdentity(class_name="tests.UserTest", method_name="create"))
"""

__version__ = "0.1.0"

from dbfixtures.assertion import ComparisonResult, ComparisonStrategy, DataSetComparator
from dbfixtures.convention import TestIdentity
from dbfixtures.core.models import FixtureRole, Operation, TableOrderingStrategy
from dbfixtures.dataset import Dataset, Table
from dbfixtures.engine import FixtureContext, FixtureEngine

__all__ = [
    "ComparisonResult",
    "ComparisonStrategy",
    "DataSetComparator",
    "Dataset",
    "FixtureContext",
    "FixtureEngine",
    "FixtureRole",
    "Operation",
    "Table",
    "TableOrderingStrategy",
    "TestIdentity",
    "__version__",
]
