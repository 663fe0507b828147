"""Fixture engine facade used by test-framework adapters.

Example:
    from sqlalchemy import create_engine
    from dbfixtures import FixtureContext, FixtureEngine, TestIdentity

    context = FixtureContext.create()
    context.data_sources.register(create_engine("sqlite:///app.db"))
    engine = FixtureEngine(context)

    identity = TestIdentity(class_name="tests.UserRepositoryTest", method_name="findAll")
    engine.prepare(identity)
    # ... run the code under test ...
    engine.verify(identity).assert_no_differences()
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from dbfixtures.assertion.comparator import DataSetComparator
from dbfixtures.assertion.models import ComparisonResult
from dbfixtures.assertion.strategies import ColumnMatcher
from dbfixtures.assertion.verifier import ExpectationVerifier
from dbfixtures.convention.models import ResolvedFixture, TestIdentity
from dbfixtures.convention.resolver import ConventionResolver
from dbfixtures.convention.scenario_names import (
    ScenarioNameResolverRegistry,
    default_scenario_resolvers,
)
from dbfixtures.core.config import ConventionSettings, Settings
from dbfixtures.core.exceptions import ExecutionError
from dbfixtures.core.logging import (
    configure_logging,
    end_phase_metrics,
    get_logger,
    log_context,
    start_phase_metrics,
)
from dbfixtures.core.models import FixtureRole, Operation, TableOrderingStrategy
from dbfixtures.database.registry import DEFAULT_DATA_SOURCE, DataSourceRegistry
from dbfixtures.database.sqlalchemy_access import SqlAlchemyDatabase
from dbfixtures.dataset.delimited import read_load_order
from dbfixtures.dataset.formats import FormatRegistry, default_format_registry
from dbfixtures.dataset.merger import merge_datasets
from dbfixtures.dataset.models import Dataset
from dbfixtures.operations.executor import OperationExecutor
from dbfixtures.ordering.orderer import TableOrderer

logger = get_logger(__name__)


@dataclass
class FixtureContext:
    """Everything one test-invocation scope needs.

    Constructed and owned by the caller; nothing here is process-global.
    """

    conventions: ConventionSettings = field(default_factory=ConventionSettings)
    data_sources: DataSourceRegistry = field(default_factory=DataSourceRegistry)
    scenario_resolvers: ScenarioNameResolverRegistry = field(
        default_factory=default_scenario_resolvers
    )
    formats: FormatRegistry | None = None

    def __post_init__(self) -> None:
        if self.formats is None:
            self.formats = default_format_registry(self.conventions)

    @classmethod
    def create(cls, settings: Settings | None = None) -> FixtureContext:
        """Context with conventions taken from settings (or the environment).

        Also configures logging from the settings' log level and format.
        """
        settings = settings or Settings()
        configure_logging(settings.log_level, settings.log_format)
        return cls(conventions=settings.conventions())


class FixtureEngine:
    """Resolve, parse, apply and verify fixtures for one test identity."""

    def __init__(self, context: FixtureContext):
        self.context = context
        self.resolver = ConventionResolver(context.conventions)

    @property
    def conventions(self) -> ConventionSettings:
        return self.context.conventions

    def _with_scenario(self, identity: TestIdentity) -> TestIdentity:
        return identity.with_scenario(self.context.scenario_resolvers.resolve_name(identity))

    def _load(
        self,
        identity: TestIdentity,
        role: FixtureRole,
        sources: Sequence[Path | str] | None,
        excluded_tables: Iterable[str] = (),
    ) -> tuple[ResolvedFixture, Dataset]:
        identity = self._with_scenario(identity)
        resolved = self.resolver.resolve(identity, role, sources, excluded_tables)
        if resolved.is_empty:
            logger.info("no_fixture_found", test=identity.display_name, role=role.value)
            return resolved, Dataset()

        assert self.context.formats is not None
        provider = self.context.formats.for_format(self.conventions.data_format)
        datasets = [
            provider.parse(directory, resolved.scenario_names) for directory in resolved.directories
        ]
        dataset = merge_datasets(datasets, self.conventions.table_merge_strategy)
        return resolved, resolved.apply_exclusions(dataset)

    def load(
        self,
        identity: TestIdentity,
        role: FixtureRole,
        sources: Sequence[Path | str] | None = None,
    ) -> Dataset:
        """Resolve and parse the fixture for an identity and role.

        Returns:
            Merged, scenario-filtered dataset; empty when there is no fixture
        """
        _, dataset = self._load(identity, role, sources)
        return dataset

    def _declared_order(self, resolved: ResolvedFixture) -> list[str]:
        names: list[str] = []
        for directory in resolved.directories:
            listed = read_load_order(directory, self.conventions.load_order_file_name) or []
            names.extend(name for name in listed if name not in names)
        return names

    def prepare(
        self,
        identity: TestIdentity,
        operation: Operation | None = None,
        ordering: TableOrderingStrategy | None = None,
        data_source: str = DEFAULT_DATA_SOURCE,
        sources: Sequence[Path | str] | None = None,
    ) -> int:
        """Load the preparation fixture into the database.

        Everything runs in one transaction that commits on success.

        Args:
            identity: Test identity
            operation: Mutation semantics; defaults to the configured one (CLEAN_INSERT)
            ordering: Table ordering; defaults to the configured one (AUTO)
            data_source: Logical data source name, "" for the default
            sources: Explicit fixture directories

        Returns:
            Number of rows written or deleted
        """
        operation = operation or self.conventions.preparation_operation
        ordering = ordering or self.conventions.table_ordering

        with log_context(test=identity.display_name, phase=FixtureRole.PREPARATION.value):
            start_phase_metrics(FixtureRole.PREPARATION.value)
            try:
                resolved, dataset = self._load(identity, FixtureRole.PREPARATION, sources)
                if dataset.is_empty or operation is Operation.NONE:
                    return 0

                engine = self.context.data_sources.get(data_source)
                try:
                    with engine.begin() as connection:
                        database = SqlAlchemyDatabase(connection, self.conventions.binary_prefix)
                        orderer = TableOrderer(
                            dependency_oracle=database.foreign_key_edges,
                            declared_order=self._declared_order(resolved),
                        )
                        order = orderer.order(dataset.table_names, ordering)
                        return OperationExecutor(database).execute(dataset, operation, order)
                except SQLAlchemyError as e:
                    raise ExecutionError(f"Database access failed: {e}") from e
            finally:
                metrics = end_phase_metrics()
                if metrics:
                    logger.info("phase_completed", **metrics.to_dict())

    def verify(
        self,
        identity: TestIdentity,
        data_source: str = DEFAULT_DATA_SOURCE,
        sources: Sequence[Path | str] | None = None,
        excluded_tables: Iterable[str] = (),
        excluded_columns: Iterable[str] = (),
        column_strategies: Mapping[str, ColumnMatcher] | None = None,
    ) -> ComparisonResult:
        """Compare the expectation fixture with the database.

        Returns:
            ComparisonResult; empty when there is no expectation fixture
        """
        with log_context(test=identity.display_name, phase=FixtureRole.EXPECTATION.value):
            start_phase_metrics(FixtureRole.EXPECTATION.value)
            try:
                _, expected = self._load(
                    identity, FixtureRole.EXPECTATION, sources, excluded_tables
                )
                if expected.is_empty:
                    return ComparisonResult()

                comparator = DataSetComparator(
                    column_strategies=column_strategies,
                    excluded_columns=[*self.conventions.global_exclude_columns, *excluded_columns],
                    binary_prefix=self.conventions.binary_prefix,
                )
                engine = self.context.data_sources.get(data_source)
                try:
                    with engine.connect() as connection:
                        database = SqlAlchemyDatabase(connection, self.conventions.binary_prefix)
                        return ExpectationVerifier(database, comparator).verify(expected)
                except SQLAlchemyError as e:
                    raise ExecutionError(f"Database access failed: {e}") from e
            finally:
                metrics = end_phase_metrics()
                if metrics:
                    logger.info("phase_completed", **metrics.to_dict())
