"""Tests for delimited fixture parsing and writing."""

from __future__ import annotations

from pathlib import Path

import pytest

from dbfixtures.core.config import ConventionSettings
from dbfixtures.core.exceptions import ConfigurationError, NotFoundError, ParseError
from dbfixtures.core.models import DataFormat, UnlistedTablePolicy
from dbfixtures.dataset.delimited import (
    CSV,
    TSV,
    DelimitedParser,
    DelimitedWriter,
    DelimiterConfig,
    read_load_order,
)
from dbfixtures.dataset.models import Dataset, Table


class TestCellParsing:
    """Tests for null, empty string and binary cells."""

    def test_users_quoted_empty_and_bare_empty(self, tmp_path: Path, write_files) -> None:
        """Quoted empty is an empty string, bare empty is NULL."""
        write_files(
            tmp_path,
            {"USERS.csv": 'ID,NAME,EMAIL\n1,Alice,alice@example.com\n2,"",\n'},
        )

        dataset = DelimitedParser().parse(tmp_path)

        users = dataset.get_table("USERS")
        assert users is not None
        assert users.columns == ("ID", "NAME", "EMAIL")
        assert users.row_count == 2
        assert users.rows[0] == ("1", "Alice", "alice@example.com")
        assert users.value(1, "NAME") == ""
        assert users.value(1, "EMAIL") is None

    def test_bare_empty_name_is_null(self, tmp_path: Path, write_files) -> None:
        """A bare empty NAME is NULL."""
        write_files(tmp_path, {"USERS.csv": "ID,NAME,EMAIL\n2,,\n"})

        users = DelimitedParser().parse(tmp_path).get_table("USERS")

        assert users is not None
        assert users.rows == (("2", None, None),)

    def test_quoted_field_with_delimiter_newline_and_quote(self, tmp_path: Path) -> None:
        """Quoted fields may hold delimiters, line breaks and doubled quotes."""
        path = tmp_path / "NOTES.csv"
        path.write_text('ID,TEXT\n1,"a,b"\n2,"line1\nline2"\n3,"say ""hi"""\n', encoding="utf-8")

        table = DelimitedParser().parse_file(path)

        assert [row[1] for row in table.rows] == ["a,b", "line1\nline2", 'say "hi"']

    def test_binary_prefix_decodes_base64(self, tmp_path: Path) -> None:
        """Bare [BASE64] fields become bytes."""
        path = tmp_path / "FILES.csv"
        path.write_text("ID,DATA\n1,[BASE64]AAEC\n", encoding="utf-8")

        table = DelimitedParser().parse_file(path)

        assert table.value(0, "DATA") == b"\x00\x01\x02"

    def test_quoted_binary_prefix_stays_text(self, tmp_path: Path) -> None:
        """A quoted value starting with the prefix is plain text."""
        path = tmp_path / "FILES.csv"
        path.write_text('ID,DATA\n1,"[BASE64]AAEC"\n', encoding="utf-8")

        table = DelimitedParser().parse_file(path)

        assert table.value(0, "DATA") == "[BASE64]AAEC"

    def test_invalid_base64_is_parse_error(self, tmp_path: Path) -> None:
        """Invalid payloads fail with the file and line."""
        path = tmp_path / "FILES.csv"
        path.write_text("ID,DATA\n1,[BASE64]not*base64\n", encoding="utf-8")

        with pytest.raises(ParseError) as exc_info:
            DelimitedParser().parse_file(path)

        assert exc_info.value.line == 2
        assert exc_info.value.path == path

    def test_short_rows_are_padded_and_blank_rows_skipped(self, tmp_path: Path) -> None:
        """Narrow rows get trailing NULLs; blank lines are dropped."""
        path = tmp_path / "T.csv"
        path.write_text("A,B,C\n1\n\n2,x\n", encoding="utf-8")

        table = DelimitedParser().parse_file(path)

        assert table.rows == (("1", None, None), ("2", "x", None))

    def test_crlf_and_bom(self, tmp_path: Path) -> None:
        """Windows line endings and a UTF-8 BOM are accepted."""
        path = tmp_path / "T.csv"
        path.write_bytes("\ufeffA,B\r\n1,2\r\n".encode())

        table = DelimitedParser().parse_file(path)

        assert table.columns == ("A", "B")
        assert table.rows == (("1", "2"),)

    def test_tsv(self, tmp_path: Path) -> None:
        """TSV files split on tabs, commas stay inside values."""
        path = tmp_path / "T.tsv"
        path.write_text("A\tB\n1,5\tx\n", encoding="utf-8")

        table = DelimitedParser(TSV).parse_file(path)

        assert table.rows == (("1,5", "x"),)


class TestParseErrors:
    """Tests for malformed content."""

    def test_unterminated_quote(self, tmp_path: Path) -> None:
        """An unterminated quote reports the line it opened on."""
        path = tmp_path / "T.csv"
        path.write_text('A,B\n1,2\n3,"open\n', encoding="utf-8")

        with pytest.raises(ParseError) as exc_info:
            DelimitedParser().parse_file(path)

        assert exc_info.value.line == 3
        assert exc_info.value.column == 3
        assert "T.csv:3:3" in str(exc_info.value)

    def test_text_after_closing_quote(self, tmp_path: Path) -> None:
        """Characters between a closing quote and the delimiter are rejected."""
        path = tmp_path / "T.csv"
        path.write_text('A,B\n1,"x"y\n', encoding="utf-8")

        with pytest.raises(ParseError) as exc_info:
            DelimitedParser().parse_file(path)

        assert exc_info.value.line == 2

    def test_row_wider_than_header(self, tmp_path: Path) -> None:
        """Extra fields are an error."""
        path = tmp_path / "T.csv"
        path.write_text("A,B\n1,2,3\n", encoding="utf-8")

        with pytest.raises(ParseError, match="3 fields"):
            DelimitedParser().parse_file(path)

    def test_duplicate_header(self, tmp_path: Path) -> None:
        """Duplicate column names are an error."""
        path = tmp_path / "T.csv"
        path.write_text("A,B,A\n1,2,3\n", encoding="utf-8")

        with pytest.raises(ParseError, match="Duplicate column names: A"):
            DelimitedParser().parse_file(path)

    def test_empty_file(self, tmp_path: Path) -> None:
        """A file with no header is an error."""
        path = tmp_path / "T.csv"
        path.write_text("", encoding="utf-8")

        with pytest.raises(ParseError, match="empty"):
            DelimitedParser().parse_file(path)

    def test_invalid_utf8(self, tmp_path: Path) -> None:
        """Non UTF-8 content is a parse error with a line number."""
        path = tmp_path / "T.csv"
        path.write_bytes(b"A,B\n1,\xff\n")

        with pytest.raises(ParseError) as exc_info:
            DelimitedParser().parse_file(path)

        assert exc_info.value.line == 2


class TestDirectoryParsing:
    """Tests for table discovery, ordering and scenario filtering."""

    def test_missing_directory(self, tmp_path: Path) -> None:
        """A non-existent directory is NotFoundError."""
        with pytest.raises(NotFoundError):
            DelimitedParser().parse(tmp_path / "missing")

    def test_empty_directory(self, tmp_path: Path) -> None:
        """An empty directory yields an empty dataset."""
        assert DelimitedParser().parse(tmp_path).is_empty

    def test_alphabetical_without_load_order(self, tmp_path: Path, write_files) -> None:
        """Tables are ordered by file name, other extensions are ignored."""
        write_files(
            tmp_path,
            {"PARENT.csv": "ID\n1\n", "CHILD.csv": "ID\n1\n", "notes.txt": "ignored"},
        )

        dataset = DelimitedParser().parse(tmp_path)

        assert dataset.table_names == ["CHILD", "PARENT"]

    def test_load_order_file(self, tmp_path: Path, write_files) -> None:
        """Listed tables come first in file order, unlisted ones are appended."""
        write_files(
            tmp_path,
            {
                "load-order.txt": "# parents first\nPARENT\n\n  CHILD  \n",
                "CHILD.csv": "ID\n1\n",
                "PARENT.csv": "ID\n1\n",
                "AUDIT.csv": "ID\n1\n",
            },
        )

        dataset = DelimitedParser().parse(tmp_path)

        assert dataset.table_names == ["PARENT", "CHILD", "AUDIT"]

    def test_load_order_missing_table(self, tmp_path: Path, write_files) -> None:
        """A listed table without a file is NotFoundError."""
        write_files(tmp_path, {"load-order.txt": "PARENT\nGHOST\n", "PARENT.csv": "ID\n1\n"})

        with pytest.raises(NotFoundError, match="GHOST"):
            DelimitedParser().parse(tmp_path)

    def test_unlisted_policy_ignore(self, tmp_path: Path, write_files) -> None:
        """IGNORE drops tables the load-order file does not list."""
        write_files(
            tmp_path,
            {"load-order.txt": "PARENT\n", "PARENT.csv": "ID\n1\n", "AUDIT.csv": "ID\n1\n"},
        )
        conventions = ConventionSettings(unlisted_table_policy=UnlistedTablePolicy.IGNORE)

        dataset = DelimitedParser(CSV, conventions).parse(tmp_path)

        assert dataset.table_names == ["PARENT"]

    def test_unlisted_policy_error(self, tmp_path: Path, write_files) -> None:
        """ERROR rejects unlisted tables."""
        write_files(
            tmp_path,
            {"load-order.txt": "PARENT\n", "PARENT.csv": "ID\n1\n", "AUDIT.csv": "ID\n1\n"},
        )
        conventions = ConventionSettings(unlisted_table_policy=UnlistedTablePolicy.ERROR)

        with pytest.raises(ConfigurationError, match="AUDIT"):
            DelimitedParser(CSV, conventions).parse(tmp_path)

    def test_scenario_filter(self, tmp_path: Path, write_files) -> None:
        """Only matching and blank-marker rows survive; the marker is never a column."""
        write_files(
            tmp_path,
            {"USERS.csv": "[Scenario],ID,NAME\nadmin,1,Root\n,2,Shared\nguest,3,Visitor\n"},
        )

        users = DelimitedParser().parse(tmp_path, scenario_names=["admin"]).get_table("USERS")

        assert users is not None
        assert users.columns == ("ID", "NAME")
        assert users.rows == (("1", "Root"), ("2", "Shared"))

    def test_no_scenario_keeps_all_rows(self, tmp_path: Path, write_files) -> None:
        """Without a requested scenario every row is kept."""
        write_files(tmp_path, {"USERS.csv": "[Scenario],ID\nadmin,1\nguest,2\n"})

        users = DelimitedParser().parse(tmp_path).get_table("USERS")

        assert users is not None
        assert users.row_count == 2
        assert users.columns == ("ID",)

    def test_read_load_order_absent(self, tmp_path: Path) -> None:
        """No load-order file yields None."""
        assert read_load_order(tmp_path, "load-order.txt") is None


class TestDelimiterConfig:
    """Tests for delimiter configuration."""

    def test_for_format(self) -> None:
        assert DelimiterConfig.for_format(DataFormat.TSV) == TSV
        assert DelimiterConfig.for_format(DataFormat.CSV) == CSV
        assert DelimiterConfig.TSV.delimiter == "\t"

    def test_extension_match_is_case_insensitive(self, tmp_path: Path) -> None:
        path = tmp_path / "USERS.CSV"
        path.write_text("ID\n", encoding="utf-8")

        assert CSV.matches(path)
        assert not TSV.matches(path)

    def test_rejects_quote_delimiter(self) -> None:
        with pytest.raises(ConfigurationError):
            DelimiterConfig('"', "csv")


class TestRoundTrip:
    """Tests for writing a dataset and parsing it back."""

    def test_write_then_parse_reconstructs_dataset(self, tmp_path: Path) -> None:
        """Null, empty string, quoting, binary and scenario markers survive."""
        dataset = Dataset(
            tables=(
                Table(
                    name="USERS",
                    columns=("ID", "NAME", "NOTE"),
                    rows=(
                        ("1", "Alice", None),
                        ("2", "", "a,b"),
                        ("3", " ", 'say "hi"\nbye'),
                        ("4", "[BASE64]literal", b"\x00\xff"),
                    ),
                    scenario_markers=("admin", None, "guest", None),
                ),
                Table(name="EMPTY", columns=("ID",)),
            )
        )

        DelimitedWriter().write(dataset, tmp_path)
        parsed = DelimitedParser().parse(tmp_path)

        assert parsed == dataset

    def test_tsv_round_trip(self, tmp_path: Path) -> None:
        """Tabs inside values are quoted in TSV output."""
        dataset = Dataset(
            tables=(Table(name="T", columns=("A", "B"), rows=(("x\ty", None), ("", "z"))),)
        )

        DelimitedWriter(TSV).write(dataset, tmp_path)

        assert DelimitedParser(TSV).parse(tmp_path) == dataset

    def test_render_quotes_only_when_needed(self) -> None:
        table = Table(name="T", columns=("A", "B"), rows=(("plain", ""),))

        assert DelimitedWriter().render(table) == 'A,B\nplain,""\n'
