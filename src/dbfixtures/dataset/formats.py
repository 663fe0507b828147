"""Fixture format providers, looked up by file extension."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

from dbfixtures.core.config import ConventionSettings
from dbfixtures.core.exceptions import ConfigurationError
from dbfixtures.core.models import DataFormat
from dbfixtures.core.registry import ProviderRegistry
from dbfixtures.dataset.delimited import DelimitedParser, DelimitedWriter, DelimiterConfig
from dbfixtures.dataset.models import Dataset


class FormatProvider(ABC):
    """Reads (and writes) one fixture file format."""

    @property
    @abstractmethod
    def extension(self) -> str:
        """File extension handled, without the dot."""

    def supports(self, extension: str) -> bool:
        return extension.strip(". ").lower() == self.extension

    @abstractmethod
    def parse(self, directory: Path, scenario_names: Iterable[str] = ()) -> Dataset:
        """Parse a fixture directory into a Dataset."""

    @abstractmethod
    def write(self, dataset: Dataset, directory: Path) -> list[Path]:
        """Write a Dataset into a fixture directory."""


class DelimitedFormatProvider(FormatProvider):
    """CSV/TSV provider backed by DelimitedParser and DelimitedWriter."""

    def __init__(self, config: DelimiterConfig, conventions: ConventionSettings | None = None):
        self.parser = DelimitedParser(config, conventions)
        self.writer = DelimitedWriter(config, conventions)

    @property
    def extension(self) -> str:
        return self.parser.config.suffix.lstrip(".")

    def parse(self, directory: Path, scenario_names: Iterable[str] = ()) -> Dataset:
        return self.parser.parse(directory, scenario_names)

    def write(self, dataset: Dataset, directory: Path) -> list[Path]:
        return self.writer.write(dataset, directory)


class FormatRegistry(ProviderRegistry[FormatProvider]):
    """Format providers keyed by extension."""

    def __init__(self) -> None:
        super().__init__("format")

    def for_extension(self, extension: str) -> FormatProvider:
        """Resolve the provider for an extension.

        Raises:
            ConfigurationError: If no provider supports the extension
        """
        provider = self.resolve(lambda p: p.supports(extension))
        if provider is None:
            raise ConfigurationError(
                f"No format provider for extension '{extension}'. "
                f"Registered: {', '.join(self.names()) or 'none'}"
            )
        return provider

    def for_format(self, data_format: DataFormat) -> FormatProvider:
        return self.for_extension(data_format.value)


def default_format_registry(conventions: ConventionSettings | None = None) -> FormatRegistry:
    """Registry with the built-in CSV and TSV providers."""
    registry = FormatRegistry()
    for data_format in DataFormat:
        registry.register(
            data_format.value,
            DelimitedFormatProvider(DelimiterConfig.for_format(data_format), conventions),
        )
    return registry
