"""Map a test identity and role to the fixture directories to parse.

Layout under the base directory, for class com.example.UserTest and method
findAll with scenario "admin":

    com/example/UserTest/findAll/admin/             (scenario-specific)
    com/example/UserTest/findAll/                   (method-level, rows filtered)
    com/example/UserTest/                           (class-level, rows filtered)

The expectation role inserts the expectation subdirectory after each method or
class segment, e.g. com/example/UserTest/findAll/expected/admin/. The first
existing candidate wins.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

from dbfixtures.convention.models import ResolvedFixture, TestIdentity
from dbfixtures.core.config import ConventionSettings
from dbfixtures.core.logging import get_logger
from dbfixtures.core.models import FixtureRole

logger = get_logger(__name__)


def class_path(class_name: str) -> Path:
    """Path segments for a dotted class name.

    Nested classes ("Outer$Inner") stay one segment.
    """
    segments = [segment for segment in class_name.split(".") if segment]
    return Path(*segments)


class ConventionResolver:
    """Computes candidate fixture directories from naming conventions."""

    def __init__(self, conventions: ConventionSettings | None = None):
        self.conventions = conventions or ConventionSettings()

    @property
    def base_directory(self) -> Path:
        return self.conventions.base_directory or Path.cwd()

    def candidates(self, identity: TestIdentity, role: FixtureRole) -> list[Path]:
        """Candidate directories in preference order, existing or not."""
        class_dir = self.base_directory / class_path(identity.class_name)
        method_dir = self._with_role(class_dir / identity.method_name, role)

        candidates = []
        if identity.scenario:
            candidates.append(method_dir / identity.scenario)
        candidates.append(method_dir)
        candidates.append(self._with_role(class_dir, role))
        return candidates

    def resolve(
        self,
        identity: TestIdentity,
        role: FixtureRole,
        sources: Sequence[Path | str] | None = None,
        excluded_tables: Iterable[str] = (),
    ) -> ResolvedFixture:
        """Resolve the directories holding the fixture for one test.

        Args:
            identity: Test identity; its scenario narrows rows when set
            role: Preparation or expectation
            sources: Explicit directories, absolute or relative to the base
                directory, used instead of the conventional candidates
            excluded_tables: Tables removed from the parsed result

        Returns:
            ResolvedFixture, empty when no directory exists
        """
        if sources:
            directories = self._explicit(sources, role)
        else:
            directories = self._conventional(identity, role)

        scenario_names = (identity.scenario,) if identity.scenario else ()
        resolved = ResolvedFixture(
            role=role,
            directories=tuple(directories),
            scenario_names=scenario_names,
            excluded_tables=frozenset(excluded_tables),
        )
        logger.debug(
            "fixture_resolved",
            test=identity.display_name,
            role=role.value,
            directories=[str(d) for d in resolved.directories],
            scenario=identity.scenario,
        )
        return resolved

    def _conventional(self, identity: TestIdentity, role: FixtureRole) -> list[Path]:
        for candidate in self.candidates(identity, role):
            if candidate.is_dir():
                return [candidate]
        return []

    def _explicit(self, sources: Sequence[Path | str], role: FixtureRole) -> list[Path]:
        directories = []
        for source in sources:
            path = Path(source)
            if not path.is_absolute():
                path = self.base_directory / path
            path = self._with_role(path, role)
            if path.is_dir():
                directories.append(path)
            else:
                logger.warning("fixture_source_missing", path=str(path), role=role.value)
        return directories

    def _with_role(self, directory: Path, role: FixtureRole) -> Path:
        if role is FixtureRole.EXPECTATION:
            return directory / self.conventions.expectation_directory
        return directory
