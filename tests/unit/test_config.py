"""
Unit tests for parser options (form_structures.config).
"""

from __future__ import annotations

import pydantic
import pytest

from form_structures.config import ParserOptions, load_options, save_options
from form_structures.exceptions import ConfigValidationError


class TestParserOptions:

    def test_defaults(self):
        options = ParserOptions()
        assert options.header_row_start == 3
        assert options.max_probe_rows == 50
        assert options.path_separator == " / "

    def test_rejects_invalid_values(self):
        with pytest.raises(pydantic.ValidationError):
            ParserOptions(header_row_start=0)
        with pytest.raises(pydantic.ValidationError):
            ParserOptions(path_separator="")


class TestOptionsYaml:

    def test_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "options.yaml"
        original = ParserOptions(max_probe_rows=10, path_separator=" > ")
        save_options(original, path)
        assert path.read_text(encoding="utf-8").startswith("#")
        assert load_options(path) == original

    def test_partial_file_uses_defaults(self, tmp_path):
        path = tmp_path / "options.yaml"
        path.write_text("max_probe_rows: 5\n", encoding="utf-8")
        options = load_options(path)
        assert options.max_probe_rows == 5
        assert options.header_row_start == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_options(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "options.yaml"
        path.write_text("# nothing here\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="empty"):
            load_options(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "options.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="mapping"):
            load_options(path)

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "options.yaml"
        path.write_text("max_probe_rows: -1\n", encoding="utf-8")
        with pytest.raises(pydantic.ValidationError):
            load_options(path)
