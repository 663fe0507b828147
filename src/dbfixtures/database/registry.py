"""Logical data source names mapped to SQLAlchemy engines."""

from __future__ import annotations

import threading
from types import MappingProxyType

from sqlalchemy import Engine

from dbfixtures.core.exceptions import DataSourceNotFoundError
from dbfixtures.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DATA_SOURCE = ""


class DataSourceRegistry:
    """Read-mostly map of data source names to engines.

    The empty name is the default data source. Registration replaces the
    snapshot under a lock; lookups read the current snapshot without locking.
    One registry belongs to one FixtureContext, never to the process.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._engines: MappingProxyType[str, Engine] = MappingProxyType({})

    def register(self, engine: Engine, name: str = DEFAULT_DATA_SOURCE) -> None:
        """Register an engine, replacing any previous one with the same name."""
        with self._lock:
            engines = dict(self._engines)
            engines[name] = engine
            self._engines = MappingProxyType(engines)
        logger.debug("data_source_registered", name=name or "<default>", url=str(engine.url))

    def unregister(self, name: str = DEFAULT_DATA_SOURCE) -> None:
        with self._lock:
            engines = dict(self._engines)
            engines.pop(name, None)
            self._engines = MappingProxyType(engines)

    def get(self, name: str = DEFAULT_DATA_SOURCE) -> Engine:
        """Resolve a data source.

        Raises:
            DataSourceNotFoundError: If nothing is registered under the name
        """
        engine = self._engines.get(name)
        if engine is None:
            raise DataSourceNotFoundError(name)
        return engine

    def has(self, name: str = DEFAULT_DATA_SOURCE) -> bool:
        return name in self._engines

    def names(self) -> list[str]:
        return list(self._engines)

    def __len__(self) -> int:
        return len(self._engines)
