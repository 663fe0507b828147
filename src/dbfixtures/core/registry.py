"""Registry of named providers resolved by capability and priority.

Format providers and scenario-name resolvers are registered here instead of
being discovered through reflection. Each registry is an ordinary object owned
by whoever constructs it.

Usage:
    from dbfixtures.core.registry import ProviderRegistry

    formats: ProviderRegistry[FormatProvider] = ProviderRegistry("format")

    @formats.provider("csv")
    class CsvProvider(FormatProvider):
        ...

    # Highest priority provider whose predicate matches wins
    provider = formats.resolve(lambda p: p.supports("csv"))
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass

from dbfixtures.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class Registration[T]:
    """One registered provider."""

    name: str
    provider: T
    priority: int
    sequence: int


class ProviderRegistry[T]:
    """Named providers ordered by descending priority, then registration order.

    Registration is serialized by a lock; lookups read an immutable snapshot
    and never block.
    """

    def __init__(self, kind: str):
        self.kind = kind
        self._lock = threading.Lock()
        self._registrations: tuple[Registration[T], ...] = ()
        self._sequence = 0

    def register(self, name: str, provider: T, priority: int = 0) -> None:
        """Register a provider under a unique name.

        Raises:
            ConfigurationError: If the name is already registered
        """
        with self._lock:
            if any(r.name == name for r in self._registrations):
                raise ConfigurationError(f"{self.kind} provider '{name}' is already registered")
            registration = Registration(name, provider, priority, self._sequence)
            self._sequence += 1
            self._registrations = tuple(
                sorted(
                    (*self._registrations, registration),
                    key=lambda r: (-r.priority, r.sequence),
                )
            )

    def provider(self, name: str, priority: int = 0) -> Callable[[type[T]], type[T]]:
        """Decorator registering an instance of the decorated class.

        Example:
            @registry.provider("tsv")
            class TsvProvider(FormatProvider):
                ...
        """

        def decorator(cls: type[T]) -> type[T]:
            self.register(name, cls(), priority)
            return cls

        return decorator

    def unregister(self, name: str) -> None:
        """Remove a provider; unknown names are ignored."""
        with self._lock:
            self._registrations = tuple(r for r in self._registrations if r.name != name)

    def get(self, name: str) -> T | None:
        """Look up a provider by name."""
        for registration in self._registrations:
            if registration.name == name:
                return registration.provider
        return None

    def resolve(self, predicate: Callable[[T], bool]) -> T | None:
        """Return the highest priority provider accepted by the predicate.

        Equal priorities resolve to the provider registered first.
        """
        for registration in self._registrations:
            if predicate(registration.provider):
                return registration.provider
        return None

    def names(self) -> list[str]:
        """List registered names in resolution order."""
        return [r.name for r in self._registrations]

    def providers(self) -> list[T]:
        """List registered providers in resolution order."""
        return [r.provider for r in self._registrations]

    def __len__(self) -> int:
        return len(self._registrations)

    def __contains__(self, name: object) -> bool:
        return any(r.name == name for r in self._registrations)
