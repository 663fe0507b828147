"""Conversion between text cells and database values.

Fixture cells are text (or bytes); columns have concrete SQL types. Values are
converted to the column's Python type before binding and rendered back to text
after fetching, so both sides of a comparison are text cells.
"""

from __future__ import annotations

import base64
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.types import TypeEngine

from dbfixtures.core.config import DEFAULT_BINARY_PREFIX
from dbfixtures.dataset.models import CellValue

TRUE_VALUES = frozenset({"1", "true", "t", "yes", "y"})
FALSE_VALUES = frozenset({"0", "false", "f", "no", "n"})


def python_type(sql_type: TypeEngine[Any]) -> type | None:
    """Python type of a column, or None when the dialect does not declare one."""
    try:
        return sql_type.python_type
    except NotImplementedError:
        return None


def parse_bool(text: str) -> bool:
    """Parse a boolean literal.

    Raises:
        ValueError: If the text is not a recognized boolean literal
    """
    folded = text.strip().lower()
    if folded in TRUE_VALUES:
        return True
    if folded in FALSE_VALUES:
        return False
    raise ValueError(f"Not a boolean: {text!r}")


def to_db_value(
    value: CellValue,
    sql_type: TypeEngine[Any],
    binary_prefix: str = DEFAULT_BINARY_PREFIX,
) -> Any:
    """Convert a cell to the Python value bound for a column.

    An empty string becomes NULL for non-text columns.

    Raises:
        ValueError: If the text cannot be converted to the column type
    """
    if value is None:
        return None

    target = python_type(sql_type)
    if isinstance(value, bytes):
        return value
    if target is None or target is str:
        return value
    if target is bytes:
        if value.startswith(binary_prefix):
            return base64.b64decode(value[len(binary_prefix) :].strip())
        return value.encode("utf-8")

    text = value.strip()
    if not text:
        return None
    if target is bool:
        return parse_bool(text)
    if target is int:
        try:
            return int(text)
        except ValueError:
            number = Decimal(text)
            if number != number.to_integral_value():
                raise ValueError(f"Not an integer: {text!r}") from None
            return int(number)
    if target is Decimal:
        try:
            return Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Not a decimal: {text!r}") from None
    if target is float:
        return float(text)
    if target is datetime:
        return datetime.fromisoformat(text)
    if target is date:
        return date.fromisoformat(text[:10])
    if target is time:
        return time.fromisoformat(text)
    return value


def to_cell(value: Any) -> CellValue:
    """Render a fetched database value as a cell."""
    if value is None:
        return None
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date | time):
        return value.isoformat()
    if isinstance(value, float):
        return repr(value)
    return str(value)
