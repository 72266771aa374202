"""
Shared fixtures for form-structures tests.

All workbooks are synthetic: they are built with openpyxl in memory and
handed to the parser as ``BytesIO`` streams, so no input files are
required.
"""

from __future__ import annotations

from datetime import datetime
from io import BytesIO
from typing import Callable

import pytest
from openpyxl import Workbook
from openpyxl.worksheet.worksheet import Worksheet

GROUPED_LEAVES = ["A1", "A2", "B1", "B2", "B3"]
GROUPED_PATHS = [
    "Group A / A1",
    "Group A / A2",
    "Group B / B1",
    "Group B / B2",
    "Group B / B3",
]


def save_workbook(wb: Workbook) -> BytesIO:
    buf = BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf


def write_grouped_header(ws: Worksheet, form_number: str = "TEST-001",
                         title: str = "Demo form (5 columns)") -> None:
    """Rows 1-4 of the standard demo form: two groups over five leaves."""
    ws.cell(1, 1).value = form_number
    ws.cell(2, 1).value = title

    ws.cell(3, 1).value = "Group A"
    ws.merge_cells(start_row=3, start_column=1, end_row=3, end_column=2)
    ws.cell(3, 3).value = "Group B"
    ws.merge_cells(start_row=3, start_column=3, end_row=3, end_column=5)

    for col, label in enumerate(GROUPED_LEAVES, start=1):
        ws.cell(4, col).value = label


@pytest.fixture()
def make_workbook() -> Callable[[Callable[[Worksheet], None]], BytesIO]:
    """Factory: build a one-sheet workbook with a configure callback."""

    def _make(configure: Callable[[Worksheet], None]) -> BytesIO:
        wb = Workbook()
        ws = wb.active
        ws.title = "Form"
        configure(ws)
        return save_workbook(wb)

    return _make


@pytest.fixture()
def template_stream(make_workbook) -> BytesIO:
    """The grouped demo form without data rows."""
    return make_workbook(write_grouped_header)


@pytest.fixture()
def filled_stream(make_workbook) -> BytesIO:
    """The grouped demo form with three data rows and an empty row 6."""

    def configure(ws: Worksheet) -> None:
        write_grouped_header(ws, title="Demo form, filled")
        ws.cell(5, 1).value = "alpha"
        ws.cell(5, 2).value = 10
        ws.cell(5, 3).value = "x"
        ws.cell(5, 4).value = datetime(2026, 1, 22)
        ws.cell(5, 5).value = True
        # Row 6 intentionally left empty.
        ws.cell(7, 1).value = "beta"
        ws.cell(7, 2).value = 20
        ws.cell(7, 3).value = "y"
        ws.cell(8, 1).value = "gamma"
        ws.cell(8, 2).value = 30
        ws.cell(8, 3).value = "z"

    return make_workbook(configure)
