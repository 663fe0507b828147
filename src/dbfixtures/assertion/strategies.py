"""Cell equality: the default normalizing comparison and per-column strategies.

Both sides of a comparison are cells (None, str or bytes). The default equality
treats numerically, boolean or timestamp-equivalent text as equal, so a fixture
"1" matches a fetched integer rendered as "1" and a fixture "true" matches "1".
"""

from __future__ import annotations

import base64
import math
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import ClassVar, Protocol, runtime_checkable

from dbfixtures.core.config import DEFAULT_BINARY_PREFIX
from dbfixtures.database.values import FALSE_VALUES, TRUE_VALUES
from dbfixtures.dataset.models import CellValue

FLOAT_EPSILON = 1e-6

_TIMESTAMP_ZERO_FRACTION = re.compile(r"^(\d{4}-\d{2}-\d{2})[ T](\d{2}:\d{2}:\d{2})(\.0+)?$")


@runtime_checkable
class ColumnMatcher(Protocol):
    """Custom per-column comparison."""

    def matches(self, expected: CellValue, actual: CellValue) -> bool: ...


def binary_text(value: bytes, binary_prefix: str = DEFAULT_BINARY_PREFIX) -> str:
    return binary_prefix + base64.b64encode(value).decode("ascii")


def as_text(value: CellValue, binary_prefix: str = DEFAULT_BINARY_PREFIX) -> str | None:
    if isinstance(value, bytes):
        return binary_text(value, binary_prefix)
    return value


def to_decimal(text: str) -> Decimal | None:
    """Finite decimal value of the text, or None."""
    try:
        number = Decimal(text.strip())
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def normalize_timestamp(text: str) -> str:
    """Drop an all-zero fraction and unify the date/time separator."""
    match = _TIMESTAMP_ZERO_FRACTION.match(text.strip())
    if match is None:
        return text
    return f"{match.group(1)} {match.group(2)}"


def _floats_close(expected: Decimal, actual: Decimal) -> bool:
    a, b = float(expected), float(actual)
    diff = abs(a - b)
    scale = max(abs(a), abs(b))
    if scale < FLOAT_EPSILON:
        return diff < FLOAT_EPSILON
    return diff / scale < FLOAT_EPSILON


def _is_fractional(text: str) -> bool:
    return any(ch in text for ch in ".eE")


def values_equal(
    expected: CellValue,
    actual: CellValue,
    binary_prefix: str = DEFAULT_BINARY_PREFIX,
) -> bool:
    """Default cell equality.

    - None equals only None; "" equals only ""
    - binary equals binary, or its prefixed base64 text
    - numbers compare as decimals; fractional values within a relative 1e-6
    - boolean literals (1/true/yes/y, 0/false/no/n) compare by truth value
    - timestamps ignore an all-zero fractional second
    """
    if expected is None or actual is None:
        return expected is None and actual is None
    if expected == actual:
        return True

    expected_text = as_text(expected, binary_prefix)
    actual_text = as_text(actual, binary_prefix)
    assert expected_text is not None and actual_text is not None
    if isinstance(expected, bytes) or isinstance(actual, bytes):
        return expected_text == actual_text
    if not expected_text.strip() or not actual_text.strip():
        return False

    expected_number = to_decimal(expected_text)
    actual_number = to_decimal(actual_text)
    if expected_number is not None and actual_number is not None:
        if expected_number == actual_number:
            return True
        if _is_fractional(expected_text) or _is_fractional(actual_text):
            return _floats_close(expected_number, actual_number)

    expected_folded = expected_text.strip().lower()
    actual_folded = actual_text.strip().lower()
    for literals in (TRUE_VALUES, FALSE_VALUES):
        if expected_folded in literals and actual_folded in literals:
            return True

    return normalize_timestamp(expected_text) == normalize_timestamp(actual_text)


def sort_key(value: CellValue, binary_prefix: str = DEFAULT_BINARY_PREFIX) -> tuple[int, object]:
    """Sort key consistent with values_equal for the common cases."""
    if value is None:
        return (0, "")
    text = as_text(value, binary_prefix)
    assert text is not None
    number = to_decimal(text) if not isinstance(value, bytes) else None
    if number is not None:
        return (1, number)
    folded = text.strip().lower()
    if folded in TRUE_VALUES:
        return (1, Decimal(1))
    if folded in FALSE_VALUES:
        return (1, Decimal(0))
    return (2, normalize_timestamp(text))


def _epoch_seconds(text: str) -> int | str:
    try:
        parsed = datetime.fromisoformat(text.strip().replace(" ", "T", 1))
    except ValueError:
        return text
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return math.floor(parsed.timestamp())


class StrategyKind(str, Enum):
    STRICT = "STRICT"
    IGNORE = "IGNORE"
    NUMERIC = "NUMERIC"
    CASE_INSENSITIVE = "CASE_INSENSITIVE"
    TIMESTAMP_FLEXIBLE = "TIMESTAMP_FLEXIBLE"
    NOT_NULL = "NOT_NULL"
    REGEX = "REGEX"


@dataclass(frozen=True)
class ComparisonStrategy:
    """Built-in column comparison strategy.

    Example:
        comparator = DataSetComparator(column_strategies={
            "CREATED_AT": ComparisonStrategy.TIMESTAMP_FLEXIBLE,
            "USERS.EMAIL": ComparisonStrategy.regex(r".+@example\\.com"),
        })
    """

    kind: StrategyKind
    pattern: re.Pattern[str] | None = None

    STRICT: ClassVar[ComparisonStrategy]
    IGNORE: ClassVar[ComparisonStrategy]
    NUMERIC: ClassVar[ComparisonStrategy]
    CASE_INSENSITIVE: ClassVar[ComparisonStrategy]
    TIMESTAMP_FLEXIBLE: ClassVar[ComparisonStrategy]
    NOT_NULL: ClassVar[ComparisonStrategy]

    @classmethod
    def regex(cls, pattern: str) -> ComparisonStrategy:
        """Actual value must fully match the pattern; the expected value is ignored."""
        return cls(StrategyKind.REGEX, re.compile(pattern))

    def matches(self, expected: CellValue, actual: CellValue) -> bool:
        kind = self.kind
        if kind is StrategyKind.IGNORE:
            return True
        if kind is StrategyKind.NOT_NULL:
            return actual is not None
        if kind is StrategyKind.REGEX:
            assert self.pattern is not None
            text = as_text(actual)
            return text is not None and self.pattern.fullmatch(text) is not None
        if kind is StrategyKind.STRICT:
            return expected == actual

        if expected is None or actual is None:
            return expected is None and actual is None
        expected_text = as_text(expected)
        actual_text = as_text(actual)
        assert expected_text is not None and actual_text is not None

        if kind is StrategyKind.NUMERIC:
            expected_number = to_decimal(expected_text)
            actual_number = to_decimal(actual_text)
            if expected_number is None or actual_number is None:
                return expected_text == actual_text
            return expected_number == actual_number
        if kind is StrategyKind.CASE_INSENSITIVE:
            return expected_text.casefold() == actual_text.casefold()
        return _epoch_seconds(expected_text) == _epoch_seconds(actual_text)


ComparisonStrategy.STRICT = ComparisonStrategy(StrategyKind.STRICT)
ComparisonStrategy.IGNORE = ComparisonStrategy(StrategyKind.IGNORE)
ComparisonStrategy.NUMERIC = ComparisonStrategy(StrategyKind.NUMERIC)
ComparisonStrategy.CASE_INSENSITIVE = ComparisonStrategy(StrategyKind.CASE_INSENSITIVE)
ComparisonStrategy.TIMESTAMP_FLEXIBLE = ComparisonStrategy(StrategyKind.TIMESTAMP_FLEXIBLE)
ComparisonStrategy.NOT_NULL = ComparisonStrategy(StrategyKind.NOT_NULL)
