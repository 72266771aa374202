"""
Header inference for form-structures.

Finds the header/data boundary of a form and reconstructs its header
tree. Data rows below the header may themselves contain text, so the
boundary cannot be found by scanning for the last non-empty row.
Instead candidate bottom rows are probed one at a time, and the first
candidate that yields a structurally valid header wins.

Algorithm per candidate bottom row:
1. Collect header regions: one per merged range anchored inside the
   band, one per non-merged cell with text.
2. Gap check: regions ending on the candidate row must cover every
   column of the header.
3. Parenting: a region's parent is the closest region starting on an
   earlier row whose column span contains it.
4. Leaf validation: every leaf spans one column, and no worksheet
   column backs two leaves.

Each candidate produces either a ``HeaderResult`` or a ``HeaderFailure``;
only the final outcome of the probe is raised as ``FormParseError``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterator, Union

from form_structures.exceptions import FormParseError
from form_structures.models import ColumnDefinition, HeaderNode
from form_structures.workbook import SheetSnapshot

logger = logging.getLogger(__name__)

# First digit run of a cell; used for form numbers and column-index rows
FIRST_NUMBER = re.compile(r"\d+")


@dataclass(frozen=True)
class HeaderRegion:
    """A labelled rectangle of the header band, 1-based and inclusive."""

    row_start: int
    row_end: int
    col_start: int
    col_end: int
    label: str

    def contains_columns_of(self, other: HeaderRegion) -> bool:
        return self.col_start <= other.col_start and self.col_end >= other.col_end


@dataclass(frozen=True)
class HeaderFailure:
    """Why a candidate boundary does not yield a valid header."""

    message: str


@dataclass(frozen=True)
class HeaderResult:
    """A valid header for one boundary."""

    nodes: list[HeaderNode]
    last_header_row: int
    last_header_col: int
    leaf_columns: list[int]


HeaderOutcome = Union[HeaderResult, HeaderFailure, None]


@dataclass
class _MutableNode:
    """Tree-building node with a parent back-reference."""

    region: HeaderRegion
    parent: _MutableNode | None = None
    children: list[_MutableNode] = field(default_factory=list)

    def freeze(self) -> HeaderNode:
        ordered = sorted(
            self.children, key=lambda n: (n.region.col_start, n.region.row_start)
        )
        return HeaderNode(
            label=self.region.label,
            row_start=self.region.row_start,
            row_end=self.region.row_end,
            col_start=self.region.col_start,
            col_end=self.region.col_end,
            children=[child.freeze() for child in ordered],
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def probe_header(
    sheet: SheetSnapshot,
    header_row_start: int,
    used_last_row: int,
    used_last_col: int,
    max_probe_rows: int = 50,
) -> HeaderResult:
    """Find the smallest header boundary that yields a valid header tree.

    Raises:
        FormParseError: With the last structural error seen while probing,
            or a generic "Header is missing" message.
    """
    if used_last_row < header_row_start:
        raise FormParseError("Header is missing: no rows after title.")

    # A merge cannot be cut by the boundary, so start below the deepest one
    merged_bottom = max(
        (m.bottom for m in sheet.merges if m.top >= header_row_start), default=0
    )
    probe_start = max(header_row_start, merged_bottom)
    probe_end = min(used_last_row, header_row_start + max_probe_rows)

    last_failure: HeaderFailure | None = None
    for candidate in range(probe_start, probe_end + 1):
        outcome = build_header(sheet, header_row_start, candidate, used_last_col)
        if isinstance(outcome, HeaderResult):
            logger.info(
                "Header boundary accepted: rows %d-%d, columns 1-%d",
                header_row_start, outcome.last_header_row, outcome.last_header_col,
            )
            return outcome
        if isinstance(outcome, HeaderFailure):
            logger.debug("Header probe at row %d rejected: %s", candidate, outcome.message)
            last_failure = outcome

    if last_failure is not None:
        raise FormParseError(last_failure.message)
    raise FormParseError(
        f"Header is missing: no valid header boundary found starting from row "
        f"{header_row_start}."
    )


def build_header(
    sheet: SheetSnapshot,
    header_row_start: int,
    last_header_row: int,
    used_last_col: int,
) -> HeaderOutcome:
    """Try to build a header whose bottom edge is ``last_header_row``.

    Returns ``None`` when the band holds nothing to build a header from.
    """
    last_header_col = find_last_header_col(
        sheet, header_row_start, last_header_row, used_last_col
    )
    if last_header_col < 1:
        return None

    regions = collect_regions(sheet, header_row_start, last_header_row, last_header_col)
    if isinstance(regions, HeaderFailure):
        return regions
    if not regions:
        return None

    gap = check_bottom_edge(regions, last_header_row, last_header_col)
    if gap is not None:
        return gap

    roots = link_regions(regions)
    leaf_columns = collect_leaf_columns(roots)
    if isinstance(leaf_columns, HeaderFailure):
        return leaf_columns

    return HeaderResult(
        nodes=roots,
        last_header_row=last_header_row,
        last_header_col=last_header_col,
        leaf_columns=leaf_columns,
    )


def find_last_header_col(
    sheet: SheetSnapshot,
    row_start: int,
    row_end: int,
    used_last_col: int,
) -> int:
    """Rightmost column with label text or covered by a merge starting in the band."""
    last_with_text = 0
    for r in range(row_start, row_end + 1):
        for c in range(1, used_last_col + 1):
            if sheet.text(r, c).strip():
                last_with_text = max(last_with_text, c)

    last_merged = max(
        (m.right for m in sheet.merges if row_start <= m.top <= row_end), default=0
    )
    return max(last_with_text, last_merged)


def collect_regions(
    sheet: SheetSnapshot,
    row_start: int,
    row_end: int,
    last_col: int,
) -> list[HeaderRegion] | HeaderFailure:
    regions: list[HeaderRegion] = []
    for r in range(row_start, row_end + 1):
        for c in range(1, last_col + 1):
            label = sheet.text(r, c).strip()
            merge = sheet.merge_at(r, c)
            if merge is None:
                if label:
                    regions.append(HeaderRegion(r, r, c, c, label))
                continue

            if not merge.is_anchor(r, c):
                continue
            if merge.bottom > row_end:
                return HeaderFailure("Header probe ended inside a merged range.")
            if not label:
                return HeaderFailure(
                    f"Header cell is empty at row {r}, col {c} (merged range)."
                )
            regions.append(
                HeaderRegion(merge.top, merge.bottom, merge.left, merge.right, label)
            )
    return regions


def check_bottom_edge(
    regions: list[HeaderRegion],
    last_header_row: int,
    last_header_col: int,
) -> HeaderFailure | None:
    """Regions ending on the bottom row must tile columns 1..last_header_col.

    A header with no region on the bottom row passes unchecked.
    """
    covered = [False] * (last_header_col + 1)
    for region in regions:
        if region.row_end == last_header_row:
            for c in range(region.col_start, region.col_end + 1):
                covered[c] = True

    if not any(covered[1:]):
        return None
    for c in range(1, last_header_col + 1):
        if not covered[c]:
            return HeaderFailure(f"Header has a gap in bottom row at col {c}.")
    return None


def link_regions(regions: list[HeaderRegion]) -> list[HeaderNode]:
    """Parent each region under its closest containing region; return the roots."""
    nodes = [
        _MutableNode(region)
        for region in sorted(regions, key=lambda g: (g.row_start, g.col_start))
    ]
    for child in nodes:
        parent: _MutableNode | None = None
        for candidate in nodes:
            if candidate.region.row_start >= child.region.row_start:
                continue
            if not candidate.region.contains_columns_of(child.region):
                continue
            if parent is None or candidate.region.row_start > parent.region.row_start:
                parent = candidate
        if parent is not None:
            parent.children.append(child)
            child.parent = parent

    roots = [n for n in nodes if n.parent is None]
    roots.sort(key=lambda n: (n.region.col_start, n.region.row_start))
    return [root.freeze() for root in roots]


def iter_leaves(
    roots: list[HeaderNode],
) -> Iterator[tuple[HeaderNode, list[str]]]:
    """Depth-first leaves with the labels from the root down to each leaf."""

    def walk(node: HeaderNode, labels: list[str]) -> Iterator[tuple[HeaderNode, list[str]]]:
        labels = labels + [node.label]
        if node.is_leaf:
            yield node, labels
            return
        for child in sorted(node.children, key=lambda n: (n.col_start, n.row_start)):
            yield from walk(child, labels)

    for root in sorted(roots, key=lambda n: (n.col_start, n.row_start)):
        yield from walk(root, [])


def collect_leaf_columns(roots: list[HeaderNode]) -> list[int] | HeaderFailure:
    """Worksheet column of every leaf, in traversal order."""
    columns: list[int] = []
    for leaf, _ in iter_leaves(roots):
        if leaf.col_start != leaf.col_end:
            return HeaderFailure(
                f"Leaf header '{leaf.label}' spans multiple columns "
                f"(c{leaf.col_start}-c{leaf.col_end})."
            )
        columns.append(leaf.col_start)

    if len(set(columns)) != len(columns):
        return HeaderFailure("Header leaf columns are not unique.")
    return columns


def build_columns(roots: list[HeaderNode], separator: str = " / ") -> list[ColumnDefinition]:
    return [
        ColumnDefinition(index=i, name=leaf.label, path=separator.join(labels))
        for i, (leaf, labels) in enumerate(iter_leaves(roots), start=1)
    ]


def read_column_index_row(
    sheet: SheetSnapshot,
    row: int,
    leaf_columns: list[int],
) -> list[str] | None:
    """Return the digit text of a sequential ``1..N`` index row, else None.

    Cells like ``"1."`` or ``"(2)"`` count; the first digit run is used.
    """
    if row <= 0 or not leaf_columns:
        return None

    numbers: list[str] = []
    for expected, col in enumerate(leaf_columns, start=1):
        raw = sheet.text(row, col).strip()
        m = FIRST_NUMBER.search(raw)
        if m is None or int(m.group()) != expected:
            return None
        numbers.append(m.group())
    return numbers
