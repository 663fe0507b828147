"""Safe application order for multi-table mutations.

Foreign-key edges are supplied by an oracle as (child, parent) pairs: the child
references the parent, so the parent is written first. The dependency graph is a
networkx DiGraph with parent -> child edges.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

import networkx as nx

from dbfixtures.core.exceptions import CyclicDependencyError, DbFixturesError, ExecutionError
from dbfixtures.core.logging import get_logger
from dbfixtures.core.models import TableOrderingStrategy

logger = get_logger(__name__)

type DependencyOracle = Callable[[], Iterable[tuple[str, str]]]


@dataclass(frozen=True)
class TableOrder:
    """One computed order with forward (insert) and reverse (delete) views."""

    forward: tuple[str, ...]

    @property
    def reverse(self) -> tuple[str, ...]:
        return tuple(reversed(self.forward))

    def __len__(self) -> int:
        return len(self.forward)


def build_dependency_graph(
    tables: Sequence[str],
    edges: Iterable[tuple[str, str]],
) -> nx.DiGraph:  # type: ignore[type-arg]
    """Build the parent -> child graph restricted to the given tables.

    Edge endpoints match table names case-insensitively. Self-references and
    edges touching tables outside the set are dropped.
    """
    by_folded = {name.casefold(): name for name in tables}
    G: nx.DiGraph = nx.DiGraph()  # type: ignore[type-arg]
    G.add_nodes_from(tables)

    for child, parent in edges:
        child_name = by_folded.get(child.casefold())
        parent_name = by_folded.get(parent.casefold())
        if child_name is None or parent_name is None or child_name == parent_name:
            continue
        G.add_edge(parent_name, child_name)
    return G


class TableOrderer:
    """Computes table orders under a TableOrderingStrategy."""

    def __init__(
        self,
        dependency_oracle: DependencyOracle | None = None,
        declared_order: Sequence[str] | None = None,
    ):
        self.dependency_oracle = dependency_oracle
        self.declared_order = list(declared_order or ())

    def order(
        self,
        tables: Sequence[str],
        strategy: TableOrderingStrategy = TableOrderingStrategy.AUTO,
    ) -> TableOrder:
        """Order a set of tables.

        Args:
            tables: Table names in input order
            strategy: AUTO, DECLARED or NONE

        Raises:
            CyclicDependencyError: If AUTO finds a dependency cycle
            ExecutionError: If the dependency oracle fails
        """
        tables = list(dict.fromkeys(tables))
        if strategy is TableOrderingStrategy.AUTO:
            ordered = self._auto(tables)
        elif strategy is TableOrderingStrategy.DECLARED:
            ordered = self._declared(tables)
        else:
            ordered = tables

        logger.debug("tables_ordered", strategy=strategy.value, order=ordered)
        return TableOrder(tuple(ordered))

    def _auto(self, tables: list[str]) -> list[str]:
        if self.dependency_oracle is None or len(tables) < 2:
            return tables

        try:
            edges = list(self.dependency_oracle())
        except DbFixturesError:
            raise
        except Exception as e:
            raise ExecutionError(f"Failed to read table dependencies: {e}") from e

        G = build_dependency_graph(tables, edges)
        position = {name: index for index, name in enumerate(tables)}
        try:
            # Kahn's algorithm, ties broken by input position
            return list(nx.lexicographical_topological_sort(G, key=position.__getitem__))
        except nx.NetworkXUnfeasible:
            cyclic = [
                name
                for component in nx.strongly_connected_components(G)
                if len(component) > 1
                for name in component
            ]
            raise CyclicDependencyError(sorted(cyclic, key=position.__getitem__)) from None

    def _declared(self, tables: list[str]) -> list[str]:
        present = set(tables)
        ordered = [name for name in dict.fromkeys(self.declared_order) if name in present]
        listed = set(ordered)
        ordered.extend(name for name in tables if name not in listed)
        return ordered
