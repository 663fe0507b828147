"""Convention-based fixture location."""

from dbfixtures.convention.models import ResolvedFixture, TestIdentity
from dbfixtures.convention.resolver import ConventionResolver, class_path
from dbfixtures.convention.scenario_names import (
    ExplicitScenarioResolver,
    ScenarioNameResolver,
    ScenarioNameResolverRegistry,
    default_scenario_resolvers,
)

__all__ = [
    "ConventionResolver",
    "ExplicitScenarioResolver",
    "ResolvedFixture",
    "ScenarioNameResolver",
    "ScenarioNameResolverRegistry",
    "TestIdentity",
    "class_path",
    "default_scenario_resolvers",
]
