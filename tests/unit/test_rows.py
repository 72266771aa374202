"""
Unit tests for data row extraction (FormParser.read_data_rows).

Rows are read back from synthetic workbooks using the layout parsed
from the same stream; empty and formatting-only rows must be skipped
and blank values reported as None.
"""

from __future__ import annotations

from io import BytesIO

import pytest

from form_structures import FormParseError, parse_layout, read_data_rows
from tests.conftest import GROUPED_PATHS, write_grouped_header


def _parse_then_read(stream: BytesIO):
    layout = parse_layout(stream)
    stream.seek(0)
    return layout, read_data_rows(stream, layout)


class TestReadDataRows:

    def test_skips_empty_row(self, filled_stream):
        _, rows = _parse_then_read(filled_stream)
        assert [r.row_number for r in rows] == [5, 7, 8]

    def test_values_keyed_by_path(self, filled_stream):
        layout, rows = _parse_then_read(filled_stream)
        first = rows[0]
        assert list(first.values) == GROUPED_PATHS
        assert first.values[layout.structure.columns[0].path] == "alpha"
        assert first.values[layout.structure.columns[1].path] == "10"
        assert first.values[layout.structure.columns[2].path] == "x"
        assert first.values["Group B / B2"] == "2026-01-22"
        assert first.values["Group B / B3"] == "TRUE"

    def test_missing_cells_are_none(self, filled_stream):
        _, rows = _parse_then_read(filled_stream)
        second = rows[1]
        assert second.values["Group A / A1"] == "beta"
        assert second.values["Group B / B2"] is None
        assert second.values["Group B / B3"] is None

    def test_formatting_only_row_is_skipped(self, make_workbook):
        def configure(ws):
            write_grouped_header(ws)
            ws["A5"] = "one"
            for col in range(1, 6):
                ws.cell(6, col).number_format = "yyyy-mm-dd"
            ws["A7"] = "two"

        layout, rows = _parse_then_read(make_workbook(configure))
        assert layout.used_last_row == 7
        assert [r.row_number for r in rows] == [5, 7]

    def test_trailing_formatted_rows_do_not_extend_range(self, make_workbook):
        def configure(ws):
            write_grouped_header(ws)
            ws["B5"] = "only"
            for row in range(6, 20):
                ws.cell(row, 1).number_format = "0.00"

        layout, rows = _parse_then_read(make_workbook(configure))
        assert layout.used_last_row == 5
        assert [r.row_number for r in rows] == [5]

    def test_whitespace_value_is_none(self, make_workbook):
        def configure(ws):
            write_grouped_header(ws)
            ws["A5"] = "   "
            ws["C5"] = "  padded  "

        _, rows = _parse_then_read(make_workbook(configure))
        assert len(rows) == 1
        assert rows[0].values["Group A / A1"] is None
        assert rows[0].values["Group B / B1"] == "padded"

    def test_cells_outside_leaf_columns_are_ignored(self, make_workbook):
        def configure(ws):
            write_grouped_header(ws)
            ws["G5"] = "note beside the table"
            ws["A6"] = "real"

        _, rows = _parse_then_read(make_workbook(configure))
        assert [r.row_number for r in rows] == [6]

    def test_number_formats(self, make_workbook):
        def configure(ws):
            write_grouped_header(ws)
            ws["A5"] = 1234.5
            ws["A5"].number_format = "#,##0.00"
            ws["B5"] = 0.25
            ws["B5"].number_format = "0%"
            ws["C5"] = 3.0
            ws["D5"] = 2.5
            ws["E5"] = 7
            ws["E5"].number_format = "0.000"

        _, rows = _parse_then_read(make_workbook(configure))
        values = rows[0].values
        assert values["Group A / A1"] == "1,234.50"
        assert values["Group A / A2"] == "25%"
        assert values["Group B / B1"] == "3"
        assert values["Group B / B2"] == "2.5"
        assert values["Group B / B3"] == "7.000"

    def test_separate_stream_with_same_layout(self, template_stream, filled_stream):
        """A layout parsed from the template reads rows from a filled copy."""
        layout = parse_layout(template_stream)
        rows = read_data_rows(filled_stream, layout)
        # used_last_row comes from the template, so only its range is scanned
        assert rows == []

        filled_layout = parse_layout(filled_stream.getvalue())
        assert filled_layout.structure.structure_hash == layout.structure.structure_hash
        assert len(read_data_rows(filled_stream.getvalue(), filled_layout)) == 3

    def test_not_an_xlsx(self, template_stream):
        layout = parse_layout(template_stream)
        with pytest.raises(FormParseError, match="Failed to read data rows"):
            read_data_rows(BytesIO(b"garbage"), layout)

    def test_formula_row_without_cached_value(self, make_workbook):
        """Formulas saved without results still make the row content."""

        def configure(ws):
            write_grouped_header(ws)
            ws["A5"] = "=1+1"

        layout, rows = _parse_then_read(make_workbook(configure))
        assert layout.used_last_row == 5
        assert [r.row_number for r in rows] == [5]
        assert rows[0].values["Group A / A1"] == "=1+1"
        assert rows[0].values["Group A / A2"] is None

    def test_currency_formats_keep_symbols(self, make_workbook):
        def configure(ws):
            write_grouped_header(ws)
            ws["A5"] = 12.5
            ws["A5"].number_format = '"$"#,##0.00'
            ws["B5"] = 1234.5
            ws["B5"].number_format = "[$€-407] #,##0.00"

        _, rows = _parse_then_read(make_workbook(configure))
        assert rows[0].values["Group A / A1"] == "$12.50"
        assert rows[0].values["Group A / A2"] == "€ 1,234.50"
