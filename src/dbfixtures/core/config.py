"""Configuration management.

Uses pydantic-settings for type-safe configuration from environment variables,
and an immutable ConventionSettings model for the fixture naming conventions.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dbfixtures.core.exceptions import ConfigurationError
from dbfixtures.core.models import (
    DataFormat,
    Operation,
    TableMergeStrategy,
    TableOrderingStrategy,
    UnlistedTablePolicy,
)

DEFAULT_EXPECTATION_DIRECTORY = "expected"
DEFAULT_SCENARIO_MARKER = "[Scenario]"
DEFAULT_LOAD_ORDER_FILE_NAME = "load-order.txt"
DEFAULT_BINARY_PREFIX = "[BASE64]"


class ConventionSettings(BaseModel):
    """Naming and layout conventions for fixture directories.

    Immutable; use model_copy(update=...) to derive variants. Unknown keys are
    rejected so a misspelled or retired setting fails loudly.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_directory: Path | None = None
    expectation_directory: str = DEFAULT_EXPECTATION_DIRECTORY
    scenario_marker: str = DEFAULT_SCENARIO_MARKER
    data_format: DataFormat = DataFormat.CSV
    load_order_file_name: str = DEFAULT_LOAD_ORDER_FILE_NAME
    binary_prefix: str = DEFAULT_BINARY_PREFIX
    table_merge_strategy: TableMergeStrategy = TableMergeStrategy.UNION_ALL
    unlisted_table_policy: UnlistedTablePolicy = UnlistedTablePolicy.APPEND
    preparation_operation: Operation = Operation.CLEAN_INSERT
    table_ordering: TableOrderingStrategy = TableOrderingStrategy.AUTO
    global_exclude_columns: frozenset[str] = frozenset()

    @field_validator("scenario_marker", "load_order_file_name", "binary_prefix")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("expectation_directory")
    @classmethod
    def _strip_slashes(cls, value: str) -> str:
        # Accept "/expected" as well as "expected"
        stripped = value.strip().strip("/")
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("global_exclude_columns", mode="before")
    @classmethod
    def _upper_columns(cls, value: Any) -> frozenset[str]:
        return frozenset(str(column).upper() for column in value or ())


class Settings(BaseSettings):
    """Application settings.

    All settings can be overridden via environment variables.
    Prefix: DBFIXTURES_
    """

    model_config = SettingsConfigDict(
        env_prefix="DBFIXTURES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Fixture layout
    base_directory: Path | None = Field(
        default=None,
        description="Root of the fixture tree. Defaults to the current directory.",
    )
    expectation_directory: str = Field(default=DEFAULT_EXPECTATION_DIRECTORY)
    scenario_marker: str = Field(default=DEFAULT_SCENARIO_MARKER)
    data_format: DataFormat = Field(default=DataFormat.CSV)
    load_order_file_name: str = Field(default=DEFAULT_LOAD_ORDER_FILE_NAME)
    binary_prefix: str = Field(default=DEFAULT_BINARY_PREFIX)

    # Loading
    table_merge_strategy: TableMergeStrategy = Field(default=TableMergeStrategy.UNION_ALL)
    unlisted_table_policy: UnlistedTablePolicy = Field(default=UnlistedTablePolicy.APPEND)
    preparation_operation: Operation = Field(default=Operation.CLEAN_INSERT)
    table_ordering: TableOrderingStrategy = Field(default=TableOrderingStrategy.AUTO)

    # Comparison
    global_exclude_columns: list[str] = Field(default_factory=list)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")  # 'json' or 'console'

    def conventions(self) -> ConventionSettings:
        """Build the immutable convention settings from these settings."""
        return ConventionSettings(
            base_directory=self.base_directory,
            expectation_directory=self.expectation_directory,
            scenario_marker=self.scenario_marker,
            data_format=self.data_format,
            load_order_file_name=self.load_order_file_name,
            binary_prefix=self.binary_prefix,
            table_merge_strategy=self.table_merge_strategy,
            unlisted_table_policy=self.unlisted_table_policy,
            preparation_operation=self.preparation_operation,
            table_ordering=self.table_ordering,
            global_exclude_columns=frozenset(self.global_exclude_columns),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def load_conventions(config_path: Path | str) -> ConventionSettings:
    """Load convention settings from a YAML mapping.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated ConventionSettings

    Raises:
        ConfigurationError: If the file is missing, not a mapping, or fails validation
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML in {config_path}: {e}") from e

    if data is None:
        return ConventionSettings()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain a YAML mapping: {config_path}")

    try:
        return ConventionSettings(**data)
    except ValidationError as e:
        error_details = []
        for error in e.errors():
            location = " -> ".join(str(loc) for loc in error["loc"])
            error_details.append(f"{location}: {error['msg']}")
        raise ConfigurationError(
            f"Validation errors in {config_path}:\n" + "\n".join(error_details)
        ) from e
