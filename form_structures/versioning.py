"""
Version decisions for parsed form structures.

The parser always returns version 0. A storage layer that keeps earlier
versions of a form uses these helpers to decide what a new upload means:

- Same structure hash as the latest version: nothing new, keep it.
- No earlier version: version 1, column types must be set up by the user.
- Different hash: next version, with column types carried forward from
  the previous version by matching column paths. Columns without a match
  require the user to confirm the column mapping.

No I/O happens here; callers load and persist structures themselves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from form_structures.models import ColumnDefinition, FormStructure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VersionPlan:
    """Outcome of comparing a parsed structure with the latest stored one.

    Attributes:
        structure: The structure to store (version, form key and carried
            column types filled in). For an unchanged upload this is the
            latest stored structure.
        is_new_version: Whether a new version has to be created.
        previous_version: Latest stored version, if any.
        requires_type_setup: First version of a form; column types are
            still at their defaults.
        requires_column_mapping: Some columns could not be matched to the
            previous version by path.
        unmatched_column_count: Number of such columns.
    """

    structure: FormStructure
    is_new_version: bool
    previous_version: int | None
    requires_type_setup: bool = False
    requires_column_mapping: bool = False
    unmatched_column_count: int = 0


def carry_forward_types(
    columns: Iterable[ColumnDefinition],
    previous_columns: Iterable[ColumnDefinition],
) -> tuple[list[ColumnDefinition], int]:
    """Copy column types from previous columns with the same path.

    Returns:
        The updated columns and the number of columns without a match.
    """
    previous_by_path = {c.path: c for c in previous_columns}
    result: list[ColumnDefinition] = []
    unmatched = 0
    for column in columns:
        previous = previous_by_path.get(column.path)
        if previous is None:
            unmatched += 1
            result.append(column)
        else:
            result.append(column.model_copy(update={"type": previous.type}))
    return result, unmatched


def find_version_by_hash(
    structures: Iterable[FormStructure],
    structure_hash: str,
) -> int | None:
    """Version of the first stored structure with the given hash, if any."""
    if not structure_hash.strip():
        return None
    wanted = structure_hash.lower()
    for structure in structures:
        if structure.structure_hash.lower() == wanted:
            return structure.version
    return None


def plan_version(
    parsed: FormStructure,
    latest: FormStructure | None,
    target_form_number: str | None = None,
) -> VersionPlan:
    """Decide how a freshly parsed structure relates to the latest stored one.

    Args:
        parsed: Output of ``FormParser.parse()`` (version 0).
        latest: Latest stored version of the form, or None.
        target_form_number: Storage key to file the upload under; defaults
            to the parsed form number.
    """
    form_key = (target_form_number or "").strip() or parsed.form_number

    if latest is not None and latest.structure_hash.lower() == parsed.structure_hash.lower():
        logger.info(
            "Structure unchanged for %s; keeping version v%d", form_key, latest.version
        )
        return VersionPlan(
            structure=latest,
            is_new_version=False,
            previous_version=latest.version,
        )

    new_version = 1 if latest is None else latest.version + 1
    columns = list(parsed.columns)
    unmatched = 0
    if latest is not None:
        columns, unmatched = carry_forward_types(parsed.columns, latest.columns)

    template_number = (
        None if form_key.lower() == parsed.form_number.lower() else parsed.form_number
    )
    structure = parsed.model_copy(
        update={
            "form_number": form_key,
            "template_form_number": template_number,
            "version": new_version,
            "uploaded_at_utc": datetime.now(timezone.utc),
            "columns": columns,
        }
    )

    plan = VersionPlan(
        structure=structure,
        is_new_version=True,
        previous_version=None if latest is None else latest.version,
        requires_type_setup=latest is None,
        requires_column_mapping=latest is not None and unmatched > 0,
        unmatched_column_count=unmatched,
    )
    logger.info(
        "Planned %s v%d (type setup: %s, unmatched columns: %d)",
        form_key, new_version, plan.requires_type_setup, unmatched,
    )
    return plan
