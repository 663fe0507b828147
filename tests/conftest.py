"""Shared pytest fixtures for all tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.pool import StaticPool

from dbfixtures.core.config import ConventionSettings

SCHEMA = [
    """
    CREATE TABLE PARENT (
        ID INTEGER PRIMARY KEY AUTOINCREMENT,
        NAME VARCHAR(50)
    )
    """,
    """
    CREATE TABLE CHILD (
        ID INTEGER PRIMARY KEY,
        PARENT_ID INTEGER REFERENCES PARENT(ID),
        LABEL VARCHAR(50)
    )
    """,
    """
    CREATE TABLE USERS (
        ID INTEGER PRIMARY KEY,
        NAME VARCHAR(50),
        EMAIL VARCHAR(100),
        ACTIVE BOOLEAN,
        SCORE NUMERIC(10, 2),
        CREATED_AT TIMESTAMP,
        AVATAR BLOB
    )
    """,
]


@pytest.fixture
def engine() -> Iterator[Engine]:
    """In-memory SQLite engine with the test schema.

    A single shared connection keeps the in-memory database alive between
    connections checked out by the code under test.
    """
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Enable foreign keys for SQLite
    @event.listens_for(test_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    with test_engine.begin() as conn:
        for statement in SCHEMA:
            conn.execute(text(statement))

    yield test_engine
    test_engine.dispose()


@pytest.fixture
def write_files() -> Callable[[Path, dict[str, str]], Path]:
    """Write a mapping of relative file names to contents under a directory."""

    def _write(directory: Path, files: dict[str, str]) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        for name, content in files.items():
            path = directory / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return directory

    return _write


@pytest.fixture
def conventions(tmp_path: Path) -> ConventionSettings:
    """Conventions rooted at a temporary fixture tree."""
    return ConventionSettings(base_directory=tmp_path)
