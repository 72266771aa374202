"""
Layout parser and row extractor for form-structures.

A form workbook follows a fixed outline on its first worksheet:

  - Row 1: form number (first non-empty cell), e.g. ``"TEST-001"``.
  - Row 2: form title (first non-empty cell).
  - Rows 3..N: a possibly multi-row header with merged group cells.
  - Optional row N+1: a column-index row ``1, 2, ..., K``.
  - Remaining rows: data.

``FormParser.parse_layout()`` learns the schema and the row boundaries;
``FormParser.read_data_rows()`` then extracts the non-empty data rows of
the same (or an identical) workbook using that layout.

Every failure is raised as ``FormParseError``. Errors from openpyxl or
other unexpected errors are wrapped with a generic message and chained.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from form_structures.config import ParserOptions
from form_structures.exceptions import FormParseError
from form_structures.hashing import compute_structure_hash
from form_structures.header import (
    FIRST_NUMBER,
    build_columns,
    probe_header,
    read_column_index_row,
)
from form_structures.models import ExcelFormLayout, FormDataRow, FormStructure
from form_structures.workbook import SheetSnapshot, WorkbookSource, open_first_worksheet

logger = logging.getLogger(__name__)


def normalize_form_number(raw: str) -> str:
    """Extract the first run of digits; keep the trimmed text if there is none.

    >>> normalize_form_number("Form #007-B")
    '007'
    """
    trimmed = raw.strip()
    m = FIRST_NUMBER.search(trimmed)
    return m.group() if m else trimmed


def _first_non_empty(sheet: SheetSnapshot, row: int, last_col: int) -> str | None:
    for col in range(1, last_col + 1):
        value = sheet.text(row, col).strip()
        if value:
            return value
    return None


class FormParser:
    """Parses form workbooks into layouts and data rows.

    Stateless apart from its options; safe to share between threads as
    long as each call gets its own stream.
    """

    def __init__(self, options: ParserOptions | None = None) -> None:
        self.options = options or ParserOptions()

    def parse(self, source: WorkbookSource, source_file_name: str | None = None) -> FormStructure:
        """Parse only the schema of a form workbook."""
        return self.parse_layout(source, source_file_name).structure

    def parse_layout(
        self,
        source: WorkbookSource,
        source_file_name: str | None = None,
    ) -> ExcelFormLayout:
        """Parse a form workbook into its schema and row boundaries.

        Args:
            source: ``.xlsx`` bytes, binary stream or path.
            source_file_name: Original file name, kept for diagnostics.

        Raises:
            FormParseError: If the workbook does not follow the form outline.
        """
        try:
            sheet = open_first_worksheet(source)
            return self._parse_sheet(sheet, source_file_name)
        except FormParseError:
            raise
        except Exception as exc:
            raise FormParseError("Failed to parse Excel file.") from exc

    def _parse_sheet(self, sheet: SheetSnapshot, source_file_name: str | None) -> ExcelFormLayout:
        used_last_row = sheet.last_row
        used_last_col = sheet.last_col
        if used_last_row == 0 or used_last_col == 0:
            raise FormParseError("Excel file is empty: no cells with content found.")

        raw_number = _first_non_empty(sheet, 1, used_last_col)
        if raw_number is None:
            raise FormParseError("Form number is missing: row 1 has no non-empty cells.")
        form_number = normalize_form_number(raw_number)

        form_title = _first_non_empty(sheet, 2, used_last_col)
        if form_title is None:
            raise FormParseError("Form title is missing: row 2 has no non-empty cells.")

        header_row_start = self.options.header_row_start
        header = probe_header(
            sheet,
            header_row_start=header_row_start,
            used_last_row=used_last_row,
            used_last_col=used_last_col,
            max_probe_rows=self.options.max_probe_rows,
        )
        columns = build_columns(header.nodes, self.options.path_separator)
        leaf_columns = header.leaf_columns

        # The index row stays out of the header tree; it only moves the data start
        last_header_row = header.last_header_row
        numbers = read_column_index_row(sheet, last_header_row + 1, leaf_columns)
        if numbers is not None:
            last_header_row += 1
            columns = [
                c.model_copy(update={"column_number": n}) for c, n in zip(columns, numbers)
            ]
            logger.info("Column-index row detected at row %d", last_header_row)

        if len(columns) != len(leaf_columns):
            raise FormParseError(
                f"Header leaf count mismatch: columns={len(columns)}, "
                f"leafColumns={len(leaf_columns)}."
            )

        structure = FormStructure(
            form_number=form_number,
            form_title=form_title,
            version=0,
            uploaded_at_utc=datetime.now(timezone.utc),
            header=header.nodes,
            columns=columns,
            structure_hash=compute_structure_hash(header.nodes, columns),
            source_file_name=source_file_name,
        )
        logger.info(
            "Parsed form %s (%s) from %s: %d columns, data from row %d",
            form_number, form_title, source_file_name or "<stream>",
            len(columns), last_header_row + 1,
        )

        return ExcelFormLayout(
            structure=structure,
            header_row_start=header_row_start,
            last_header_row=last_header_row,
            data_start_row=last_header_row + 1,
            used_last_row=used_last_row,
            leaf_columns=tuple(leaf_columns),
        )

    def read_data_rows(self, source: WorkbookSource, layout: ExcelFormLayout) -> list[FormDataRow]:
        """Extract the non-empty data rows of a workbook laid out as ``layout``.

        Rows where every leaf column is empty are skipped. Values are the
        trimmed display strings; blank values are ``None``.

        Raises:
            FormParseError: If the workbook cannot be read.
        """
        try:
            sheet = open_first_worksheet(source)
            return self._read_rows(sheet, layout)
        except FormParseError:
            raise
        except Exception as exc:
            raise FormParseError("Failed to read data rows from Excel file.") from exc

    def _read_rows(self, sheet: SheetSnapshot, layout: ExcelFormLayout) -> list[FormDataRow]:
        paths = [c.path for c in layout.structure.columns]
        rows: list[FormDataRow] = []
        for r in range(layout.data_start_row, layout.used_last_row + 1):
            if not any(sheet.has_content(r, col) for col in layout.leaf_columns):
                continue

            values: dict[str, str | None] = {}
            for path, col in zip(paths, layout.leaf_columns):
                text = sheet.display(r, col).strip()
                values[path] = text or None
            rows.append(FormDataRow(row_number=r, values=values))

        logger.info(
            "Read %d data rows from rows %d-%d",
            len(rows), layout.data_start_row, layout.used_last_row,
        )
        return rows
