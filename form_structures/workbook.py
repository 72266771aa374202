"""
Worksheet access for form-structures.

Wraps an openpyxl worksheet in a read-only ``SheetSnapshot`` that the
layout parser and the row extractor query by 1-based ``(row, column)``.

Three details matter for form parsing:

- **Content-based used range.** Templates routinely carry number/date
  formats on rows below the header that hold no value. openpyxl's
  ``max_row`` / ``max_column`` count such formatted cells, so the used
  range is computed from cells that hold an actual value or formula.
- **Formulas without cached results.** Workbooks written by libraries
  (openpyxl included) store formulas without a computed value, which
  ``data_only=True`` loads as ``None``. A second, formula view of the
  sheet keeps such cells as content; their formula text is shown.
- **Merged ranges.** Only the top-left anchor of a merge carries a
  value; every other cell of the range is a ``MergedCell`` with
  ``value=None``. ``merge_at()`` resolves any covered cell to its range.

Cells are snapshotted once on construction so lookups never create
cells in the underlying worksheet (``ws.cell()`` would).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from io import BytesIO
from pathlib import Path
from typing import IO, Any, Iterator, Union

from openpyxl import load_workbook
from openpyxl.cell.cell import Cell
from openpyxl.worksheet.worksheet import Worksheet

from form_structures.exceptions import FormParseError

logger = logging.getLogger(__name__)

WorkbookSource = Union[str, Path, bytes, bytearray, IO[bytes]]


@dataclass(frozen=True)
class MergeRange:
    """A merged rectangle, 1-based and inclusive."""

    top: int
    left: int
    bottom: int
    right: int

    def contains(self, row: int, col: int) -> bool:
        return self.top <= row <= self.bottom and self.left <= col <= self.right

    def is_anchor(self, row: int, col: int) -> bool:
        return row == self.top and col == self.left


def _has_content(value: Any) -> bool:
    return value is not None and value != ""


def open_first_worksheet(source: WorkbookSource) -> SheetSnapshot:
    """Load a workbook and snapshot its first worksheet.

    The workbook is read twice: once for cached values, once for formulas.

    Args:
        source: ``.xlsx`` bytes, a binary file object, or a filesystem path.

    Raises:
        FormParseError: If the workbook has no worksheets.
        Exception: Whatever openpyxl raises for unreadable input; callers
            wrap it into ``FormParseError``.
    """
    if isinstance(source, (bytes, bytearray)):
        source = BytesIO(source)
    # read_only worksheets do not expose merged ranges
    wb = load_workbook(filename=source, data_only=True, read_only=False)
    try:
        if not wb.worksheets:
            raise FormParseError("Excel file contains no worksheets.")
        ws = wb.worksheets[0]
        formulas = _read_formulas(source)
        return SheetSnapshot(ws, formulas)
    finally:
        wb.close()


def _read_formulas(source: WorkbookSource) -> dict[tuple[int, int], str]:
    """Formula text of every formula cell on the first worksheet."""
    wb = load_workbook(filename=source, data_only=False, read_only=False)
    try:
        formulas: dict[tuple[int, int], str] = {}
        for row in wb.worksheets[0].iter_rows():
            for cell in row:
                if cell.data_type != "f" or cell.value is None:
                    continue
                # Array formulas load as ArrayFormula objects carrying .text
                text = str(getattr(cell.value, "text", cell.value))
                formulas[(cell.row, cell.column)] = text
        return formulas
    finally:
        wb.close()


class SheetSnapshot:
    """Read-only view over the cells and merges of one worksheet.

    ``formulas`` maps ``(row, col)`` to formula text; it is consulted only
    for cells whose cached value is empty.
    """

    def __init__(
        self,
        ws: Worksheet,
        formulas: dict[tuple[int, int], str] | None = None,
    ) -> None:
        self.title = str(ws.title)
        self.merges: list[MergeRange] = [
            MergeRange(
                top=int(cr.min_row),
                left=int(cr.min_col),
                bottom=int(cr.max_row),
                right=int(cr.max_col),
            )
            for cr in ws.merged_cells.ranges
        ]
        self._cells: dict[tuple[int, int], Cell] = {}
        for row in ws.iter_rows():
            for cell in row:
                if _has_content(cell.value):
                    self._cells[(cell.row, cell.column)] = cell
        self._formulas: dict[tuple[int, int], str] = {
            key: text
            for key, text in (formulas or {}).items()
            if key not in self._cells and text
        }
        self._merge_index: dict[tuple[int, int], MergeRange] = {}
        for merge in self.merges:
            for r in range(merge.top, merge.bottom + 1):
                for c in range(merge.left, merge.right + 1):
                    self._merge_index.setdefault((r, c), merge)

        logger.debug(
            "Snapshot of sheet '%s': %d content cells, %d uncalculated formulas, "
            "%d merged ranges",
            self.title, len(self._cells), len(self._formulas), len(self.merges),
        )

    # -- Used range ----------------------------------------------------------

    @property
    def last_row(self) -> int:
        """Last row holding content, or 0 for a sheet without content."""
        return max((r for r, _ in self._content_keys()), default=0)

    @property
    def last_col(self) -> int:
        """Last column holding content, or 0 for a sheet without content."""
        return max((c for _, c in self._content_keys()), default=0)

    def _content_keys(self) -> Iterator[tuple[int, int]]:
        yield from self._cells
        yield from self._formulas

    # -- Cell access ---------------------------------------------------------

    def has_content(self, row: int, col: int) -> bool:
        return (row, col) in self._cells or (row, col) in self._formulas

    def merge_at(self, row: int, col: int) -> MergeRange | None:
        """Return the merged range covering a cell, if any."""
        return self._merge_index.get((row, col))

    def text(self, row: int, col: int) -> str:
        """Raw cell value as text (untrimmed); ``""`` for empty cells."""
        cell = self._cells.get((row, col))
        if cell is None:
            return self._formulas.get((row, col), "")
        return value_to_text(cell.value)

    def display(self, row: int, col: int) -> str:
        """Cell value rendered through its number format; ``""`` if empty.

        A formula without a cached result shows its formula text.
        """
        cell = self._cells.get((row, col))
        if cell is None:
            return self._formulas.get((row, col), "")
        return format_cell_value(cell.value, str(cell.number_format or ""))


# ---------------------------------------------------------------------------
# Value rendering
# ---------------------------------------------------------------------------

def value_to_text(value: Any) -> str:
    """Plain text of a cell value, without applying number formats."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date, time)):
        return _temporal_to_text(value)
    return str(value)


def _temporal_to_text(value: datetime | date | time) -> str:
    if isinstance(value, datetime):
        # Excel stores plain dates as midnight datetimes
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ", timespec="seconds")
    return value.isoformat()


def format_cell_value(value: Any, number_format: str) -> str:
    """Best-effort rendering of a cell value the way a spreadsheet shows it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (datetime, date, time)):
        return _temporal_to_text(value)
    if isinstance(value, (int, float, Decimal)):
        return _format_number(value, number_format)
    return str(value)


@dataclass(frozen=True)
class NumberSection:
    """One ``;``-separated section of a number format, split for rendering.

    ``prefix`` and ``suffix`` are the literal text around the digit
    placeholders (quoted text, escaped characters, currency symbols and
    ``[$...]`` tokens); ``body`` holds only the placeholders ``0#?.,``.
    """

    prefix: str
    body: str
    suffix: str
    scientific: bool = False

    @property
    def is_percent(self) -> bool:
        return "%" in self.prefix or "%" in self.suffix


def _format_number(value: int | float | Decimal, fmt: str) -> str:
    num = float(value)
    sections = _split_sections(fmt or "")
    sign = "-" if num < 0 else ""
    raw = sections[0]
    # An explicit negative section carries its own sign or parentheses
    if num < 0 and len(sections) > 1 and sections[1].strip():
        raw = sections[1]
        sign = ""
    section = parse_number_section(raw)
    num = abs(num)

    # Percent formats store fractions: 0.3 -> 30%
    if section.is_percent:
        num *= 100

    decimals = _infer_decimal_places(section.body)
    use_thousands = "," in section.body

    if section.scientific:
        core = f"{num:.{decimals or 0}E}"
    elif decimals is None:
        if num.is_integer():
            core = f"{int(num):,}" if use_thousands else str(int(num))
        else:
            core = f"{num:,.6f}" if use_thousands else f"{num:.6f}"
            core = core.rstrip("0").rstrip(".")
    elif use_thousands:
        core = f"{num:,.{decimals}f}"
    else:
        core = f"{num:.{decimals}f}"
    return f"{sign}{section.prefix}{core}{section.suffix}"


def _split_sections(fmt: str) -> list[str]:
    """Split a format on ``;`` outside quotes."""
    sections: list[str] = []
    current: list[str] = []
    in_quotes = False
    for ch in fmt:
        if ch == '"':
            in_quotes = not in_quotes
        if ch == ";" and not in_quotes:
            sections.append("".join(current))
            current = []
            continue
        current.append(ch)
    sections.append("".join(current))
    return sections


_PLACEHOLDERS = "0#?"
_BRACKET_CURRENCY = re.compile(r"^\$([^-]*)")


def parse_number_section(section: str) -> NumberSection:
    """Separate the literal affixes of a format section from its placeholders.

    Literal text between placeholders (e.g. the dash in ``000-000``) is
    dropped; text before the first placeholder is the prefix and text
    after the last one the suffix.
    """
    section = re.sub(r"(?i)general", "", section)
    prefix: list[str] = []
    pending: list[str] = []
    body: list[str] = []
    seen_placeholder = False
    scientific = False
    i = 0

    def literal(text: str) -> None:
        (pending if seen_placeholder else prefix).append(text)

    while i < len(section):
        ch = section[i]
        if ch == '"':
            end = section.find('"', i + 1)
            end = len(section) if end < 0 else end
            literal(section[i + 1:end])
            i = end + 1
            continue
        if ch == "\\" and i + 1 < len(section):
            literal(section[i + 1])
            i += 2
            continue
        if ch in "_*" and i + 1 < len(section):
            # Padding and fill directives take up width but print nothing
            i += 2
            continue
        if ch == "[":
            end = section.find("]", i + 1)
            end = len(section) if end < 0 else end
            # [$EUR-407] prints "EUR"; colours and conditions print nothing
            m = _BRACKET_CURRENCY.match(section[i + 1:end])
            if m and m.group(1):
                literal(m.group(1))
            i = end + 1
            continue
        if ch in "Ee" and seen_placeholder and section[i + 1:i + 2] in ("+", "-"):
            # Exponent digits are rendered by the E notation itself
            scientific = True
            i += 2
            while _is_placeholder(section, i):
                i += 1
            continue
        if ch in _PLACEHOLDERS or (
            ch in ".," and (seen_placeholder or _is_placeholder(section, i + 1))
        ):
            if ch in _PLACEHOLDERS:
                seen_placeholder = True
            pending.clear()
            body.append(ch)
            i += 1
            continue
        if ch != "@":
            literal(ch)
        i += 1

    return NumberSection(
        prefix="".join(prefix),
        body="".join(body),
        suffix="".join(pending),
        scientific=scientific,
    )


def _infer_decimal_places(body: str) -> int | None:
    """Decimal places of a placeholder run; None for ``General``."""
    if not any(ch in _PLACEHOLDERS for ch in body):
        return None
    if "." not in body:
        return 0
    return sum(1 for ch in body.split(".", 1)[1] if ch in _PLACEHOLDERS)


def _is_placeholder(section: str, i: int) -> bool:
    return i < len(section) and section[i] in _PLACEHOLDERS
