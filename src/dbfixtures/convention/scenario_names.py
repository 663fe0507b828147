"""Scenario-name resolution.

Framework adapters contribute resolvers that derive a scenario name from a test
identity (for example a parameterized test's display name). The highest priority
resolver whose can_resolve() accepts the identity wins; equal priorities keep
registration order. Without a match the test method name is the scenario.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from dbfixtures.convention.models import TestIdentity
from dbfixtures.core.logging import get_logger
from dbfixtures.core.registry import ProviderRegistry

logger = get_logger(__name__)


@runtime_checkable
class ScenarioNameResolver(Protocol):
    """Derives a scenario name from a test identity."""

    priority: int

    def can_resolve(self, identity: TestIdentity) -> bool: ...

    def resolve(self, identity: TestIdentity) -> str: ...


class ExplicitScenarioResolver:
    """Uses the scenario already carried by the identity."""

    priority = 100

    def can_resolve(self, identity: TestIdentity) -> bool:
        return identity.scenario is not None

    def resolve(self, identity: TestIdentity) -> str:
        assert identity.scenario is not None
        return identity.scenario


class ScenarioNameResolverRegistry(ProviderRegistry[ScenarioNameResolver]):
    """Resolvers ordered by their declared priority."""

    def __init__(self) -> None:
        super().__init__("scenario name resolver")

    def add(self, name: str, resolver: ScenarioNameResolver) -> None:
        """Register a resolver under its own declared priority."""
        self.register(name, resolver, priority=resolver.priority)

    def resolve_name(self, identity: TestIdentity) -> str:
        """Scenario name for an identity, falling back to its method name."""
        resolver = self.resolve(lambda r: r.can_resolve(identity))
        if resolver is None:
            return identity.method_name
        name = resolver.resolve(identity)
        logger.debug(
            "scenario_name_resolved",
            test=identity.display_name,
            resolver=type(resolver).__name__,
            scenario=name,
        )
        return name


def default_scenario_resolvers() -> ScenarioNameResolverRegistry:
    """Registry holding the built-in explicit-scenario resolver."""
    registry = ScenarioNameResolverRegistry()
    registry.add("explicit", ExplicitScenarioResolver())
    return registry
