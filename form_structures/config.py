"""
Parser options and YAML I/O for form-structures.

``ParserOptions`` holds the few knobs of the layout parser. The defaults
describe the standard form layout: form number on row 1, title on row 2,
header starting on row 3, and a probe window of 50 rows for the
header/data boundary.

Key functions:
- load_options(path) -> ParserOptions: Load and validate from YAML.
- save_options(options, path): Serialize to YAML.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from form_structures.exceptions import ConfigValidationError

logger = logging.getLogger(__name__)


class ParserOptions(BaseModel):
    """Options for ``FormParser``."""

    header_row_start: int = Field(
        3, ge=1, description="First worksheet row of the header block"
    )
    max_probe_rows: int = Field(
        50,
        ge=0,
        description="How many rows past header_row_start the boundary probe may reach",
    )
    path_separator: str = Field(
        " / ",
        min_length=1,
        description="Separator between ancestor labels in a column path",
    )


def load_options(path: str | Path) -> ParserOptions:
    """Load and validate a parser options YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the file is empty or not a mapping.
        pydantic.ValidationError: If a value fails validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Options file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if raw is None:
        raise ConfigValidationError(f"Options file is empty: {path}")
    if not isinstance(raw, dict):
        raise ConfigValidationError(
            f"Options file must contain a mapping, got {type(raw).__name__}: {path}"
        )
    logger.info("Loaded parser options from %s", path)
    return ParserOptions.model_validate(raw)


def save_options(options: ParserOptions, path: str | Path) -> None:
    """Serialize parser options to YAML."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write("# form-structures parser options\n\n")
        yaml.dump(
            options.model_dump(mode="json"),
            f,
            allow_unicode=True,
            default_flow_style=False,
            sort_keys=False,
        )
    logger.info("Saved parser options to %s", path)
