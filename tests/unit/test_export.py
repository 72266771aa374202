"""
Unit tests for the row exporter (form_structures.export).

Writes to pytest's tmp_path and reads the files back with pandas.
"""

from __future__ import annotations

import pandas as pd
import pytest

from form_structures import parse_layout, read_data_rows
from form_structures.exceptions import ExportError
from form_structures.export import (
    ROW_NUMBER_COLUMN,
    export_rows,
    form_file_stem,
    rows_to_frame,
    safe_file_part,
)
from tests.conftest import GROUPED_PATHS


@pytest.fixture()
def extracted(filled_stream):
    layout = parse_layout(filled_stream)
    filled_stream.seek(0)
    return layout.structure, read_data_rows(filled_stream, layout)


class TestFileNames:

    def test_stem_from_number_and_title(self, extracted):
        structure, _ = extracted
        assert form_file_stem(structure) == "001-Demo form, filled"

    def test_invalid_characters_replaced(self, extracted):
        structure, _ = extracted
        odd = structure.model_copy(update={"form_title": 'a/b:c*d?"e"'})
        assert form_file_stem(odd) == "001-a_b_c_d__e_"

    def test_parts_are_capped(self):
        assert len(safe_file_part("x" * 200, fallback="f")) == 80
        assert safe_file_part("   ", fallback="f") == "f"

    def test_blank_title_is_dropped(self, extracted):
        structure, _ = extracted
        assert form_file_stem(structure.model_copy(update={"form_title": " "})) == "001"


class TestRowsToFrame:

    def test_columns_in_schema_order(self, extracted):
        structure, rows = extracted
        df = rows_to_frame(rows, structure)
        assert list(df.columns) == [ROW_NUMBER_COLUMN] + GROUPED_PATHS
        assert df[ROW_NUMBER_COLUMN].tolist() == [5, 7, 8]
        assert df["Group B / B2"].isna().tolist() == [False, True, True]

    def test_empty_rows_keep_schema(self, extracted):
        structure, _ = extracted
        df = rows_to_frame([], structure)
        assert df.empty
        assert list(df.columns) == [ROW_NUMBER_COLUMN] + GROUPED_PATHS


class TestExportRows:

    def test_csv(self, tmp_path, extracted):
        structure, rows = extracted
        path = export_rows(rows, structure, tmp_path / "out")
        assert path.name == "001-Demo form, filled-v0.csv"
        assert path.read_bytes().startswith(b"\xef\xbb\xbf")
        df = pd.read_csv(path, encoding="utf-8-sig", dtype=str)
        assert df["Group A / A1"].tolist() == ["alpha", "beta", "gamma"]

    def test_parquet(self, tmp_path, extracted):
        structure, rows = extracted
        path = export_rows(rows, structure, tmp_path, output_format="parquet")
        assert path.suffix == ".parquet"
        df = pd.read_parquet(path)
        assert df["Group A / A2"].tolist() == ["10", "20", "30"]
        assert df["Group B / B3"].tolist()[0] == "TRUE"

    def test_unsupported_format(self, tmp_path, extracted):
        structure, rows = extracted
        with pytest.raises(ExportError, match="Unsupported output format"):
            export_rows(rows, structure, tmp_path, output_format="xlsx")
