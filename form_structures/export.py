"""
Exporter for extracted form rows.

Turns ``FormDataRow`` lists into a pandas DataFrame (one column per
header path, in schema order) and writes them as CSV or Parquet.

Output file naming convention:
  {form_number}-{form_title}-v{version}.{format}
with characters that are invalid in file names replaced by ``_``.

CSV files are written with ``utf-8-sig`` encoding (BOM) so that
non-ASCII header labels display correctly when opened in Excel.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

import pandas as pd

from form_structures.exceptions import ExportError
from form_structures.models import FormDataRow, FormStructure

logger = logging.getLogger(__name__)

_SUPPORTED_FORMATS = {"csv", "parquet"}
_MAX_PART_LENGTH = 80
_INVALID_FILENAME_CHARS = set('<>:"/\\|?*') | {chr(i) for i in range(32)}

ROW_NUMBER_COLUMN = "row_number"


def safe_file_part(value: str | None, fallback: str) -> str:
    """Make a string usable as part of a file name."""
    s = (value or "").strip()
    if not s:
        return fallback
    s = "".join("_" if ch in _INVALID_FILENAME_CHARS else ch for ch in s).strip()
    if len(s) > _MAX_PART_LENGTH:
        s = s[:_MAX_PART_LENGTH].strip()
    return s or fallback


def form_file_stem(structure: FormStructure) -> str:
    number = safe_file_part(structure.form_number, fallback="form")
    title = safe_file_part(structure.form_title, fallback="")
    return f"{number}-{title}" if title else number


def rows_to_frame(rows: list[FormDataRow], structure: FormStructure) -> pd.DataFrame:
    """Build a DataFrame with ``row_number`` plus one column per header path.

    Missing values stay ``None``; all value columns have ``object`` dtype.
    """
    paths = [c.path for c in structure.columns]
    records = [
        [row.row_number] + [row.values.get(path) for path in paths] for row in rows
    ]
    # Explicit columns keep the schema even when rows is empty
    return pd.DataFrame(records, columns=[ROW_NUMBER_COLUMN] + paths)


def export_rows(
    rows: list[FormDataRow],
    structure: FormStructure,
    output_dir: str | Path,
    output_format: Literal["csv", "parquet"] = "csv",
) -> Path:
    """Write extracted rows to ``output_dir``.

    Returns:
        Path of the written file.

    Raises:
        ExportError: If *output_format* is unsupported, or if the write fails.
    """
    if output_format not in _SUPPORTED_FORMATS:
        raise ExportError(
            f"Unsupported output format: '{output_format}'. "
            f"Supported formats: {sorted(_SUPPORTED_FORMATS)}"
        )

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / f"{form_file_stem(structure)}-v{structure.version}.{output_format}"

    df = rows_to_frame(rows, structure)
    try:
        if output_format == "csv":
            df.to_csv(path, index=False, encoding="utf-8-sig")
        else:
            df.to_parquet(path, index=False, engine="pyarrow")
    except Exception as exc:
        raise ExportError(
            f"Failed to write {path.name} as {output_format}: {exc}"
        ) from exc

    logger.info(
        "Exported %d rows x %d columns -> %s", len(df), len(df.columns), path.name
    )
    return path
