"""End-to-end tests for the fixture engine against SQLite."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
import structlog
from sqlalchemy import Engine, create_engine, text

from dbfixtures import (
    ComparisonStrategy,
    FixtureContext,
    FixtureEngine,
    FixtureRole,
    Operation,
    TableOrderingStrategy,
    TestIdentity,
)
from dbfixtures.core.config import ConventionSettings
from dbfixtures.core.exceptions import DataSourceNotFoundError, ExecutionError
from dbfixtures.core.models import DataFormat

WriteFiles = Callable[[Path, dict[str, str]], Path]

IDENTITY = TestIdentity(class_name="tests.UserRepositoryTest", method_name="findAll")


@pytest.fixture
def method_dir(tmp_path: Path) -> Path:
    return tmp_path / "tests" / "UserRepositoryTest" / "findAll"


@pytest.fixture
def fixture_engine(conventions: ConventionSettings, engine: Engine) -> FixtureEngine:
    context = FixtureContext(conventions=conventions)
    context.data_sources.register(engine)
    return FixtureEngine(context)


def _fetch(engine: Engine, sql: str) -> list[tuple]:
    with engine.connect() as conn:
        return [tuple(row) for row in conn.execute(text(sql))]


class TestPrepare:
    """Tests for loading preparation fixtures."""

    def test_auto_ordering_respects_foreign_keys(
        self,
        fixture_engine: FixtureEngine,
        engine: Engine,
        method_dir: Path,
        write_files: WriteFiles,
    ) -> None:
        # Alphabetical file order would insert CHILD first
        write_files(
            method_dir,
            {
                "CHILD.csv": "ID,PARENT_ID,LABEL\n10,1,first\n",
                "PARENT.csv": "ID,NAME\n1,root\n",
            },
        )

        written = fixture_engine.prepare(IDENTITY)

        assert written == 2
        assert _fetch(engine, "SELECT ID, PARENT_ID, LABEL FROM CHILD") == [(10, 1, "first")]

    def test_declared_order_from_load_order_file(
        self,
        fixture_engine: FixtureEngine,
        engine: Engine,
        method_dir: Path,
        write_files: WriteFiles,
    ) -> None:
        write_files(
            method_dir,
            {
                "load-order.txt": "# parents first\nPARENT\nCHILD\n",
                "CHILD.csv": "ID,PARENT_ID,LABEL\n10,1,first\n",
                "PARENT.csv": "ID,NAME\n1,root\n",
            },
        )

        fixture_engine.prepare(IDENTITY, ordering=TableOrderingStrategy.DECLARED)

        assert _fetch(engine, "SELECT COUNT(*) FROM CHILD") == [(1,)]

    def test_unordered_insert_violates_foreign_key(
        self,
        fixture_engine: FixtureEngine,
        engine: Engine,
        method_dir: Path,
        write_files: WriteFiles,
    ) -> None:
        write_files(
            method_dir,
            {
                "CHILD.csv": "ID,PARENT_ID,LABEL\n10,1,first\n",
                "PARENT.csv": "ID,NAME\n1,root\n",
            },
        )

        with pytest.raises(ExecutionError) as exc_info:
            fixture_engine.prepare(IDENTITY, ordering=TableOrderingStrategy.NONE)

        assert exc_info.value.table == "CHILD"
        assert _fetch(engine, "SELECT COUNT(*) FROM PARENT") == [(0,)]

    def test_clean_insert_replaces_existing_rows(
        self,
        fixture_engine: FixtureEngine,
        engine: Engine,
        method_dir: Path,
        write_files: WriteFiles,
    ) -> None:
        with engine.begin() as conn:
            conn.execute(text("INSERT INTO USERS (ID, NAME) VALUES (1, 'a'), (2, 'b'), (3, 'c')"))
        write_files(method_dir, {"USERS.csv": "ID,NAME\n7,seeded\n"})

        fixture_engine.prepare(IDENTITY)

        assert _fetch(engine, "SELECT ID, NAME FROM USERS") == [(7, "seeded")]

    def test_scenario_rows_filtered(
        self,
        fixture_engine: FixtureEngine,
        engine: Engine,
        method_dir: Path,
        write_files: WriteFiles,
    ) -> None:
        write_files(
            method_dir,
            {
                "USERS.csv": (
                    "[Scenario],ID,NAME\n"
                    ",1,shared\n"
                    "admin,2,root\n"
                    "guest,3,visitor\n"
                ),
            },
        )

        fixture_engine.prepare(IDENTITY.with_scenario("admin"))

        assert _fetch(engine, "SELECT ID, NAME FROM USERS ORDER BY ID") == [
            (1, "shared"),
            (2, "root"),
        ]

    def test_scenario_directory_wins(
        self,
        fixture_engine: FixtureEngine,
        engine: Engine,
        method_dir: Path,
        write_files: WriteFiles,
    ) -> None:
        write_files(method_dir, {"USERS.csv": "ID,NAME\n1,method-level\n"})
        write_files(method_dir / "admin", {"USERS.csv": "ID,NAME\n2,scenario-level\n"})

        fixture_engine.prepare(IDENTITY.with_scenario("admin"))

        assert _fetch(engine, "SELECT NAME FROM USERS") == [("scenario-level",)]

    def test_no_fixture_is_noop(self, fixture_engine: FixtureEngine, engine: Engine) -> None:
        assert fixture_engine.prepare(IDENTITY) == 0

    def test_operation_none_writes_nothing(
        self,
        fixture_engine: FixtureEngine,
        engine: Engine,
        method_dir: Path,
        write_files: WriteFiles,
    ) -> None:
        write_files(method_dir, {"USERS.csv": "ID,NAME\n1,a\n"})

        assert fixture_engine.prepare(IDENTITY, operation=Operation.NONE) == 0
        assert _fetch(engine, "SELECT COUNT(*) FROM USERS") == [(0,)]

    def test_unknown_data_source(
        self, fixture_engine: FixtureEngine, method_dir: Path, write_files: WriteFiles
    ) -> None:
        write_files(method_dir, {"USERS.csv": "ID,NAME\n1,a\n"})

        with pytest.raises(DataSourceNotFoundError):
            fixture_engine.prepare(IDENTITY, data_source="reporting")

    def test_explicit_sources_are_merged(
        self,
        fixture_engine: FixtureEngine,
        engine: Engine,
        tmp_path: Path,
        write_files: WriteFiles,
    ) -> None:
        write_files(tmp_path / "shared" / "a", {"USERS.csv": "ID,NAME\n1,a\n"})
        write_files(tmp_path / "shared" / "b", {"USERS.csv": "ID,NAME\n2,b\n"})

        fixture_engine.prepare(IDENTITY, sources=["shared/a", "shared/b"])

        assert _fetch(engine, "SELECT ID FROM USERS ORDER BY ID") == [(1,), (2,)]

    def test_tsv_format(self, tmp_path: Path, engine: Engine, write_files: WriteFiles) -> None:
        conventions = ConventionSettings(base_directory=tmp_path, data_format=DataFormat.TSV)
        context = FixtureContext(conventions=conventions)
        context.data_sources.register(engine)
        write_files(
            tmp_path / "tests" / "UserRepositoryTest" / "findAll",
            {"USERS.tsv": "ID\tNAME\n1\tTab, with comma\n"},
        )

        FixtureEngine(context).prepare(IDENTITY)

        assert _fetch(engine, "SELECT NAME FROM USERS") == [("Tab, with comma",)]


class TestVerify:
    """Tests for verifying expectation fixtures."""

    def test_prepare_then_verify_round_trip(
        self, fixture_engine: FixtureEngine, method_dir: Path, write_files: WriteFiles
    ) -> None:
        write_files(method_dir, {"USERS.csv": "ID,NAME,ACTIVE\n2,b,false\n1,a,true\n"})
        write_files(method_dir / "expected", {"USERS.csv": "ID,NAME,ACTIVE\n1,a,1\n2,b,0\n"})

        fixture_engine.prepare(IDENTITY)
        result = fixture_engine.verify(IDENTITY)

        assert not result.has_differences
        result.assert_no_differences()

    def test_reports_differences(
        self,
        fixture_engine: FixtureEngine,
        engine: Engine,
        method_dir: Path,
        write_files: WriteFiles,
    ) -> None:
        with engine.begin() as conn:
            conn.execute(text("INSERT INTO USERS (ID, NAME) VALUES (1, 'actual')"))
        write_files(method_dir / "expected", {"USERS.csv": "ID,NAME\n1,expected\n"})

        result = fixture_engine.verify(IDENTITY)

        assert [(m.column, m.expected, m.actual) for m in result.cell_mismatches] == [
            ("NAME", "expected", "actual")
        ]
        with pytest.raises(AssertionError, match=r"row\[0\]\.NAME"):
            result.assert_no_differences()

    def test_no_expectation_is_empty_result(self, fixture_engine: FixtureEngine) -> None:
        assert not fixture_engine.verify(IDENTITY).has_differences

    def test_exclusions_and_strategies(
        self,
        fixture_engine: FixtureEngine,
        engine: Engine,
        method_dir: Path,
        write_files: WriteFiles,
    ) -> None:
        with engine.begin() as conn:
            conn.execute(
                text(
                    "INSERT INTO USERS (ID, NAME, EMAIL, CREATED_AT) "
                    "VALUES (1, 'ALICE', 'alice@example.com', '2024-05-01 12:00:00')"
                )
            )
        write_files(
            method_dir / "expected",
            {
                "USERS.csv": "ID,NAME,EMAIL,CREATED_AT\n1,alice,ignored,whenever\n",
                "AUDIT.csv": "ID\n1\n",
            },
        )

        result = fixture_engine.verify(
            IDENTITY,
            excluded_tables=["AUDIT"],
            excluded_columns=["created_at"],
            column_strategies={
                "NAME": ComparisonStrategy.CASE_INSENSITIVE,
                "USERS.EMAIL": ComparisonStrategy.regex(r".+@example\.com"),
            },
        )

        assert not result.has_differences

    def test_global_exclude_columns(
        self, tmp_path: Path, engine: Engine, write_files: WriteFiles
    ) -> None:
        conventions = ConventionSettings(
            base_directory=tmp_path, global_exclude_columns=["created_at"]
        )
        context = FixtureContext(conventions=conventions)
        context.data_sources.register(engine)
        with engine.begin() as conn:
            conn.execute(text("INSERT INTO USERS (ID, CREATED_AT) VALUES (1, '2024-05-01')"))
        write_files(
            tmp_path / "tests" / "UserRepositoryTest" / "findAll" / "expected",
            {"USERS.csv": "ID,CREATED_AT\n1,2000-01-01\n"},
        )

        assert not FixtureEngine(context).verify(IDENTITY).has_differences


class TestUnreachableDatabase:
    """Tests for connection failures surfacing as library errors."""

    @pytest.fixture
    def broken_engine(self, conventions: ConventionSettings, tmp_path: Path) -> FixtureEngine:
        context = FixtureContext(conventions=conventions)
        # The parent directory does not exist, so SQLite cannot open the file
        context.data_sources.register(create_engine(f"sqlite:///{tmp_path}/missing/db.sqlite"))
        return FixtureEngine(context)

    def test_prepare_raises_execution_error(
        self, broken_engine: FixtureEngine, method_dir: Path, write_files: WriteFiles
    ) -> None:
        write_files(method_dir, {"USERS.csv": "ID,NAME\n1,a\n"})

        with pytest.raises(ExecutionError, match="Database access failed"):
            broken_engine.prepare(IDENTITY)

    def test_verify_raises_execution_error(
        self, broken_engine: FixtureEngine, method_dir: Path, write_files: WriteFiles
    ) -> None:
        write_files(method_dir / "expected", {"USERS.csv": "ID,NAME\n1,a\n"})

        with pytest.raises(ExecutionError, match="Database access failed"):
            broken_engine.verify(IDENTITY)


class TestLoad:
    """Tests for resolving and parsing without touching the database."""

    def test_method_name_is_default_scenario(
        self, fixture_engine: FixtureEngine, method_dir: Path, write_files: WriteFiles
    ) -> None:
        write_files(
            method_dir,
            {"USERS.csv": "[Scenario],ID\nfindAll,1\nother,2\n,3\n"},
        )

        dataset = fixture_engine.load(IDENTITY, FixtureRole.PREPARATION)

        assert dataset.get_table("USERS").rows == (("1",), ("3",))

    def test_class_level_expectation(
        self, fixture_engine: FixtureEngine, tmp_path: Path, write_files: WriteFiles
    ) -> None:
        write_files(
            tmp_path / "tests" / "UserRepositoryTest" / "expected",
            {"USERS.csv": "ID\n1\n"},
        )

        dataset = fixture_engine.load(IDENTITY, FixtureRole.EXPECTATION)

        assert dataset.table_names == ["USERS"]

    def test_create_from_settings(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("DBFIXTURES_BASE_DIRECTORY", str(tmp_path))
        monkeypatch.setenv("DBFIXTURES_EXPECTATION_DIRECTORY", "verify")

        try:
            context = FixtureContext.create()
        finally:
            structlog.reset_defaults()

        assert context.conventions.base_directory == tmp_path
        assert context.conventions.expectation_directory == "verify"
