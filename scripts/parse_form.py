"""
Demo script: parse a form workbook and optionally export its data rows.

Usage (after ``pip install -e .`` from the repository root, so that
``form_structures`` is importable; the script does no path setup):
    python scripts/parse_form.py forms/TEST-001.xlsx
    python scripts/parse_form.py forms/TEST-001-filled.xlsx --rows
    python scripts/parse_form.py forms/TEST-001-filled.xlsx --export outputs --format parquet
    python scripts/parse_form.py forms/TEST-001.xlsx --options parser.yaml

Logs the detected header boundaries and column paths. With --rows or
--export, also extracts the non-empty data rows.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("parse_form")


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Parse a spreadsheet form (.xlsx).")
    p.add_argument("path", help="Form workbook to parse")
    p.add_argument("--rows", action="store_true", help="Also log extracted data rows")
    p.add_argument("--export", metavar="DIR", help="Write extracted rows to DIR")
    p.add_argument("--format", choices=["csv", "parquet"], default="csv")
    p.add_argument("--options", metavar="YAML", help="Parser options file")
    return p


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    from form_structures import FormParseError, FormParser, load_options
    from form_structures.export import export_rows

    args = _build_arg_parser().parse_args(argv)
    path = Path(args.path)
    if not path.exists():
        log.error("File not found: %s", path)
        return 1

    options = load_options(args.options) if args.options else None
    parser = FormParser(options)

    try:
        layout = parser.parse_layout(path, source_file_name=path.name)
        rows = parser.read_data_rows(path, layout) if (args.rows or args.export) else []
    except FormParseError as exc:
        log.error("%s: %s", path.name, exc)
        return 1

    structure = layout.structure
    log.info("=" * 70)
    log.info("Form %s: %s", structure.form_number, structure.form_title)
    log.info("  header rows : %d-%d", layout.header_row_start, layout.last_header_row)
    log.info("  data rows   : %d-%d", layout.data_start_row, layout.used_last_row)
    log.info("  hash        : %s", structure.structure_hash)
    log.info("=" * 70)
    for column, ws_col in zip(structure.columns, layout.leaf_columns):
        log.info("  [%d] col %d  %s", column.index, ws_col, column.path)

    if args.rows:
        for row in rows:
            log.info("  row %d: %s", row.row_number, row.values)

    if args.export:
        written = export_rows(rows, structure, args.export, output_format=args.format)
        log.info("Exported %d rows to %s", len(rows), written)

    return 0


if __name__ == "__main__":
    sys.exit(main())
