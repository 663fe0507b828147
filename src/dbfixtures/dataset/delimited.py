"""Delimited fixture files (CSV, TSV) to Dataset and back.

Each file in a directory whose extension matches the configured one becomes a
table named after the file's base name. The first line is the header. Fields
follow RFC 4180 quoting: a double-quoted field may hold the delimiter and line
breaks, and a doubled quote inside it stands for one literal quote.

Cell encoding:
- bare empty field        -> None (NULL)
- quoted empty field ("") -> "" (empty string)
- bare [BASE64]<payload>  -> bytes
- anything else           -> str
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from dbfixtures.core.config import ConventionSettings
from dbfixtures.core.exceptions import ConfigurationError, NotFoundError, ParseError
from dbfixtures.core.logging import get_logger
from dbfixtures.core.models import DataFormat, UnlistedTablePolicy
from dbfixtures.dataset.models import CellValue, Dataset, Table
from dbfixtures.dataset.scenario import ScenarioFilter

logger = get_logger(__name__)

_QUOTE = '"'


@dataclass(frozen=True)
class DelimiterConfig:
    """Field separator plus the file extension it applies to."""

    delimiter: str
    extension: str

    CSV: ClassVar[DelimiterConfig]
    TSV: ClassVar[DelimiterConfig]

    def __post_init__(self) -> None:
        if len(self.delimiter) != 1 or self.delimiter in (_QUOTE, "\n", "\r"):
            raise ConfigurationError(f"Invalid delimiter: {self.delimiter!r}")
        if not self.extension.strip(". "):
            raise ConfigurationError("Extension must not be blank")

    @property
    def suffix(self) -> str:
        """Lower-case file suffix including the dot."""
        return "." + self.extension.strip(". ").lower()

    def matches(self, path: Path) -> bool:
        return path.is_file() and path.name.lower().endswith(self.suffix) and path.stem != ""

    @classmethod
    def for_format(cls, data_format: DataFormat) -> DelimiterConfig:
        return cls.TSV if data_format is DataFormat.TSV else cls.CSV


CSV = DelimiterConfig.CSV = DelimiterConfig(",", "csv")
TSV = DelimiterConfig.TSV = DelimiterConfig("\t", "tsv")


@dataclass(frozen=True)
class _Field:
    value: str
    quoted: bool


def read_load_order(directory: Path, file_name: str) -> list[str] | None:
    """Read a load-order file.

    Lines are trimmed; blank lines and lines starting with '#' are skipped and
    duplicate entries keep their first position.

    Returns:
        Listed table names, or None when the directory has no load-order file
    """
    order_file = directory / file_name
    if not order_file.is_file():
        return None

    names: list[str] = []
    for line in order_file.read_text(encoding="utf-8").splitlines():
        entry = line.strip()
        if entry and not entry.startswith("#") and entry not in names:
            names.append(entry)
    logger.debug("load_order_read", file=str(order_file), tables=len(names))
    return names


def _read_text(path: Path) -> str:
    raw = path.read_bytes()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        line = raw[: e.start].count(b"\n") + 1
        raise ParseError(path, line, f"File is not valid UTF-8: {e.reason}") from e
    return text.removeprefix("\ufeff")


def _records(text: str, delimiter: str, path: Path) -> Iterator[tuple[int, list[_Field]]]:
    """Split text into records of fields, yielding each with its starting line."""
    i = 0
    n = len(text)
    line = 1
    line_start = 0
    terminators = (delimiter, "\n", "\r")

    while i < n:
        record_line = line
        fields: list[_Field] = []
        while True:
            if i < n and text[i] == _QUOTE:
                open_line, open_column = line, i - line_start + 1
                i += 1
                buffer: list[str] = []
                while True:
                    if i >= n:
                        raise ParseError(path, open_line, "Unterminated quoted field", open_column)
                    ch = text[i]
                    if ch == _QUOTE:
                        if i + 1 < n and text[i + 1] == _QUOTE:
                            buffer.append(_QUOTE)
                            i += 2
                            continue
                        i += 1
                        break
                    if ch == "\n":
                        line += 1
                        line_start = i + 1
                    buffer.append(ch)
                    i += 1
                if i < n and text[i] not in terminators:
                    raise ParseError(
                        path,
                        line,
                        f"Unexpected character {text[i]!r} after closing quote",
                        i - line_start + 1,
                    )
                fields.append(_Field("".join(buffer), quoted=True))
            else:
                start = i
                while i < n and text[i] not in terminators:
                    i += 1
                fields.append(_Field(text[start:i], quoted=False))

            if i < n and text[i] == delimiter:
                i += 1
                continue

            # End of record
            if i < n and text[i] == "\r":
                i += 1
            if i < n and text[i] == "\n":
                i += 1
            line += 1
            line_start = i
            break

        yield record_line, fields


def _is_blank(fields: list[_Field]) -> bool:
    return all(not f.quoted and not f.value.strip() for f in fields)


class DelimitedParser:
    """Parses a directory of uniformly delimited files into a Dataset.

    Stateless after construction; safe to share between threads.
    """

    def __init__(
        self,
        config: DelimiterConfig = CSV,
        conventions: ConventionSettings | None = None,
    ):
        self.config = config
        self.conventions = conventions or ConventionSettings()

    def parse(self, directory: Path, scenario_names: Iterable[str] = ()) -> Dataset:
        """Parse every matching file in a directory.

        Args:
            directory: Fixture directory
            scenario_names: Scenarios to keep; empty keeps every row

        Returns:
            Dataset ordered by the load-order file, or alphabetically without one

        Raises:
            NotFoundError: If the directory does not exist, or the load-order
                file lists a table with no data file
            ParseError: If any file is malformed
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise NotFoundError(f"Fixture directory not found: {directory}", directory)

        files: dict[str, Path] = {}
        for path in sorted(directory.iterdir()):
            if not self.config.matches(path):
                continue
            if path.stem in files:
                raise ParseError(path, 1, f"Duplicate table name '{path.stem}'")
            files[path.stem] = path

        order = self._table_order(directory, files)
        tables = tuple(self.parse_file(files[name]) for name in order)
        logger.debug(
            "directory_parsed",
            directory=str(directory),
            extension=self.config.extension,
            tables=len(tables),
        )
        return ScenarioFilter(scenario_names).apply(Dataset(tables=tables))

    def _table_order(self, directory: Path, files: dict[str, Path]) -> list[str]:
        listed = read_load_order(directory, self.conventions.load_order_file_name)
        if listed is None:
            return sorted(files)

        order_file = directory / self.conventions.load_order_file_name
        for name in listed:
            if name not in files:
                raise NotFoundError(
                    f"Table '{name}' listed in {order_file} has no "
                    f"{self.config.suffix} file in {directory}",
                    order_file,
                )

        unlisted = sorted(set(files) - set(listed))
        policy = self.conventions.unlisted_table_policy
        if unlisted and policy is UnlistedTablePolicy.ERROR:
            raise ConfigurationError(
                f"Tables not listed in {order_file}: {', '.join(unlisted)}"
            )
        if policy is UnlistedTablePolicy.IGNORE:
            if unlisted:
                logger.debug("unlisted_tables_ignored", tables=unlisted)
            return listed
        return listed + unlisted

    def parse_file(self, path: Path) -> Table:
        """Parse a single file into an unfiltered table."""
        records = _records(_read_text(path), self.config.delimiter, path)

        header = next(records, None)
        if header is None:
            raise ParseError(path, 1, "File is empty")
        header_line, header_fields = header
        names = [f.value.strip() for f in header_fields]
        if not any(names):
            raise ParseError(path, header_line, "Missing header")

        has_marker = names[0] == self.conventions.scenario_marker
        columns = names[1:] if has_marker else names
        for position, name in enumerate(columns, start=2 if has_marker else 1):
            if not name:
                raise ParseError(path, header_line, "Empty column name", position)
        duplicates = sorted({name for name in columns if columns.count(name) > 1})
        if duplicates:
            raise ParseError(path, header_line, f"Duplicate column names: {', '.join(duplicates)}")

        width = len(names)
        rows: list[tuple[CellValue, ...]] = []
        markers: list[str | None] = []
        for line, fields in records:
            if _is_blank(fields):
                continue
            if len(fields) > width:
                raise ParseError(
                    path, line, f"Row has {len(fields)} fields but header has {width}"
                )
            cells = [self._to_cell(f, path, line) for f in fields]
            cells.extend([None] * (width - len(cells)))
            if has_marker:
                marker = cells[0]
                markers.append(marker if isinstance(marker, str) else None)
                cells = cells[1:]
            rows.append(tuple(cells))

        logger.debug(
            "table_parsed",
            file=path.name,
            table=path.stem,
            columns=len(columns),
            rows=len(rows),
        )
        return Table(
            name=path.stem,
            columns=tuple(columns),
            rows=tuple(rows),
            scenario_markers=tuple(markers) if has_marker else None,
        )

    def _to_cell(self, field: _Field, path: Path, line: int) -> CellValue:
        if field.quoted:
            return field.value
        if not field.value:
            return None
        prefix = self.conventions.binary_prefix
        if field.value.startswith(prefix):
            payload = field.value[len(prefix) :].strip()
            try:
                return base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ParseError(path, line, f"Invalid base64 payload: {e}") from e
        return field.value


class DelimitedWriter:
    """Serializes a Dataset into a directory that DelimitedParser reads back unchanged."""

    def __init__(
        self,
        config: DelimiterConfig = CSV,
        conventions: ConventionSettings | None = None,
    ):
        self.config = config
        self.conventions = conventions or ConventionSettings()

    def write(self, dataset: Dataset, directory: Path) -> list[Path]:
        """Write one file per table plus a load-order file.

        Returns:
            Paths of the table files written, in dataset order
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        written = []
        for table in dataset.tables:
            path = directory / f"{table.name}{self.config.suffix}"
            path.write_text(self.render(table), encoding="utf-8")
            written.append(path)

        order_file = directory / self.conventions.load_order_file_name
        listing = "".join(f"{name}\n" for name in dataset.table_names)
        order_file.write_text(listing, encoding="utf-8")
        logger.debug("dataset_written", directory=str(directory), tables=len(written))
        return written

    def render(self, table: Table) -> str:
        """Render one table as delimited text."""
        header = list(table.columns)
        if table.scenario_markers is not None:
            header.insert(0, self.conventions.scenario_marker)

        lines = [self.config.delimiter.join(self._encode_text(name) for name in header)]
        markers = table.scenario_markers or (None,) * table.row_count
        for row, marker in zip(table.rows, markers, strict=True):
            cells = [self._encode(value) for value in row]
            if table.scenario_markers is not None:
                cells.insert(0, self._encode(marker))
            lines.append(self.config.delimiter.join(cells))
        return "\n".join(lines) + "\n"

    def _encode(self, value: CellValue) -> str:
        if value is None:
            return ""
        if isinstance(value, bytes):
            return self.conventions.binary_prefix + base64.b64encode(value).decode("ascii")
        return self._encode_text(value)

    def _encode_text(self, value: str) -> str:
        needs_quotes = (
            not value.strip()
            or self.config.delimiter in value
            or _QUOTE in value
            or "\n" in value
            or "\r" in value
            or value.startswith(self.conventions.binary_prefix)
        )
        if needs_quotes:
            return _QUOTE + value.replace(_QUOTE, _QUOTE * 2) + _QUOTE
        return value
