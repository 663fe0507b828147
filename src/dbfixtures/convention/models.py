"""Test identity and resolved fixture locations."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator

from dbfixtures.core.models import FixtureRole
from dbfixtures.dataset.models import Dataset


class TestIdentity(BaseModel):
    """Identifies one test invocation.

    class_name is a dotted name such as "com.example.UserRepositoryTest";
    scenario is the optional scenario name used for row filtering.
    """

    __test__ = False  # not a pytest test class

    model_config = ConfigDict(frozen=True)

    class_name: str
    method_name: str
    scenario: str | None = None

    @field_validator("class_name", "method_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("scenario")
    @classmethod
    def _blank_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @property
    def display_name(self) -> str:
        return f"{self.class_name}.{self.method_name}"

    def with_scenario(self, scenario: str | None) -> TestIdentity:
        return TestIdentity(
            class_name=self.class_name, method_name=self.method_name, scenario=scenario
        )


class ResolvedFixture(BaseModel):
    """Directories to parse for one identity and role.

    An empty directory list means there is no fixture, which is valid.
    """

    model_config = ConfigDict(frozen=True)

    role: FixtureRole
    directories: tuple[Path, ...] = ()
    scenario_names: tuple[str, ...] = ()
    excluded_tables: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.directories

    def apply_exclusions(self, dataset: Dataset) -> Dataset:
        """Drop the excluded tables from a parsed dataset."""
        if not self.excluded_tables:
            return dataset
        return dataset.without_tables(self.excluded_tables)
