"""Table ordering for multi-table mutations."""

from dbfixtures.ordering.orderer import (
    DependencyOracle,
    TableOrder,
    TableOrderer,
    build_dependency_graph,
)

__all__ = [
    "DependencyOracle",
    "TableOrder",
    "TableOrderer",
    "build_dependency_graph",
]
