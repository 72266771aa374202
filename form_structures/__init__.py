"""
form-structures: learn spreadsheet form schemas and extract their data.

Public API surface:

- ``parse_layout(source, source_file_name)`` -- parse a form workbook
  into an ``ExcelFormLayout``: the ``FormStructure`` schema plus the
  header/data row boundaries and the worksheet column of every leaf.

- ``read_data_rows(source, layout)`` -- extract the non-empty data rows
  of a workbook laid out as ``layout``.

- ``parse(source, source_file_name)`` -- schema only.

``source`` is ``.xlsx`` bytes, a binary stream or a path. The module
level functions use default ``ParserOptions``; build a ``FormParser``
for custom options.
"""

from __future__ import annotations

from form_structures.config import ParserOptions, load_options, save_options
from form_structures.exceptions import FormParseError, FormStructuresError
from form_structures.models import (
    ColumnDefinition,
    ColumnType,
    ExcelFormLayout,
    FormDataRow,
    FormStructure,
    HeaderNode,
)
from form_structures.parser import FormParser
from form_structures.workbook import WorkbookSource

__all__ = [
    "parse_layout",
    "read_data_rows",
    "parse",
    "FormParser",
    "ParserOptions",
    "load_options",
    "save_options",
    "FormParseError",
    "FormStructuresError",
    "ColumnDefinition",
    "ColumnType",
    "ExcelFormLayout",
    "FormDataRow",
    "FormStructure",
    "HeaderNode",
]


def parse_layout(source: WorkbookSource, source_file_name: str | None = None) -> ExcelFormLayout:
    """Parse a form workbook into its schema and row boundaries.

    Raises:
        FormParseError: If the workbook does not follow the form outline.
    """
    return FormParser().parse_layout(source, source_file_name)


def read_data_rows(source: WorkbookSource, layout: ExcelFormLayout) -> list[FormDataRow]:
    """Extract non-empty data rows using a previously parsed layout.

    Raises:
        FormParseError: If the workbook cannot be read.
    """
    return FormParser().read_data_rows(source, layout)


def parse(source: WorkbookSource, source_file_name: str | None = None) -> FormStructure:
    """Parse only the schema of a form workbook."""
    return FormParser().parse(source, source_file_name)
