"""
Data models for form-structures.

Persistent schema types (``HeaderNode``, ``ColumnDefinition``,
``FormStructure``, ``FormDataRow``) are Pydantic models so a storage
layer can dump them to JSON and validate them on load. The transient
parser output (``ExcelFormLayout``) is a frozen dataclass: it is
produced once per parse call, consumed by the row extractor and never
mutated.

Row and column numbers are 1-based, matching worksheet coordinates.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ColumnType(str, Enum):
    """Data-type tag of a column, assigned outside the parser."""

    STRING = "string"
    DATE = "date"
    DATETIME = "datetime"
    INTEGER = "integer"
    DECIMAL = "decimal"


class HeaderNode(BaseModel):
    """One header cell or merged header region.

    ``children`` are ordered by column, then row. A node without
    children is a leaf and spans exactly one worksheet column.
    """

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., min_length=1)
    row_start: int
    row_end: int
    col_start: int
    col_end: int
    children: list[HeaderNode] = Field(default_factory=list)

    @property
    def col_span(self) -> int:
        return self.col_end - self.col_start + 1

    @property
    def is_leaf(self) -> bool:
        return not self.children


class ColumnDefinition(BaseModel):
    """One leaf column of the flattened schema.

    ``path`` is the stable identity of the column across files and
    versions; ``column_number`` is cosmetic and only present when the
    template carries a sequential column-index row.
    """

    index: int = Field(..., ge=1)
    name: str
    path: str
    column_number: str | None = None
    type: ColumnType = ColumnType.STRING


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FormStructure(BaseModel):
    """A versioned schema snapshot of a form."""

    form_number: str
    template_form_number: str | None = None
    form_title: str
    version: int = 0
    uploaded_at_utc: datetime = Field(default_factory=_utcnow)
    header: list[HeaderNode] = Field(default_factory=list)
    columns: list[ColumnDefinition] = Field(default_factory=list)
    structure_hash: str
    source_file_name: str | None = Field(None, exclude=True)

    def column_by_path(self, path: str) -> ColumnDefinition | None:
        for column in self.columns:
            if column.path == path:
                return column
        return None


class FormDataRow(BaseModel):
    """One extracted data row: source row number and values keyed by path."""

    row_number: int
    values: dict[str, str | None]


@dataclass(frozen=True)
class ExcelFormLayout:
    """Complete parser output for one workbook.

    Attributes:
        structure: The parsed schema (version is always 0 here).
        header_row_start: First header row (row 3 by default).
        last_header_row: Last header row, including a column-index row
            when one was detected.
        data_start_row: ``last_header_row + 1``.
        used_last_row: Last row holding actual content; bounds row scans.
        leaf_columns: Worksheet column numbers backing each column of
            ``structure.columns``, by position.
    """

    structure: FormStructure
    header_row_start: int
    last_header_row: int
    data_start_row: int
    used_last_row: int
    leaf_columns: tuple[int, ...]
