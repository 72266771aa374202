"""
Content hashing for form-structures.

The structure hash identifies a form layout. It is computed over a
canonical JSON document containing only the header tree and the
``(index, name, path)`` triple of every column, so a template and a
filled-in copy of the same form hash identically regardless of form
number, title, upload time, column types or cell values.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Iterable

from form_structures.models import ColumnDefinition, HeaderNode


def sha256_hex(data: str | bytes) -> str:
    """Lower-case SHA-256 hex digest of text (UTF-8) or bytes."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: str | Path) -> str:
    """Compute SHA-256 hash of a file, e.g. for upload deduplication."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def stable_json(value: Any) -> str:
    """Serialize to JSON with sorted keys and no insignificant whitespace."""
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def _node_signature(node: HeaderNode) -> dict[str, Any]:
    return {
        "label": node.label,
        "rowStart": node.row_start,
        "rowEnd": node.row_end,
        "colStart": node.col_start,
        "colEnd": node.col_end,
        "children": [_node_signature(child) for child in node.children],
    }


def structure_signature(
    header: Iterable[HeaderNode],
    columns: Iterable[ColumnDefinition],
) -> str:
    """Canonical JSON text the structure hash is computed over."""
    return stable_json(
        {
            "header": [_node_signature(node) for node in header],
            "columns": [
                {"index": c.index, "name": c.name, "path": c.path} for c in columns
            ],
        }
    )


def compute_structure_hash(
    header: Iterable[HeaderNode],
    columns: Iterable[ColumnDefinition],
) -> str:
    return sha256_hex(structure_signature(header, columns))
