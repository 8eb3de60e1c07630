"""Merge stored columns with defaults and build columns from field names."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from bimtables.columns.state import reindex
from bimtables.config import PARAMETERS_GROUP
from bimtables.models.parameters import ColumnDef

logger = logging.getLogger(__name__)


def create_column_def(field: str, **overrides: Any) -> ColumnDef:
    """A ColumnDef for *field* with the standard defaults, then *overrides*."""
    values: dict[str, Any] = {
        "field": field,
        "header": field,
        "type": "string",
        "visible": True,
        "order": 0,
        "source": PARAMETERS_GROUP,
        "category": PARAMETERS_GROUP,
        "fetched_group": PARAMETERS_GROUP,
        "current_group": PARAMETERS_GROUP,
        "is_fetched": True,
        "description": f"Parameter {field}",
        "is_fixed": False,
        "is_custom_parameter": False,
        "removable": True,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ColumnDef(**values)


def merge_columns(columns: Iterable[ColumnDef], defaults: Iterable[ColumnDef]) -> list[ColumnDef]:
    """Defaults first with any stored settings overlaid, then the rest.

    The result is sorted by ``order`` and re-indexed densely.
    """
    columns = list(columns)
    by_field = {}
    for column in columns:
        by_field.setdefault(column.field, column)

    merged: list[ColumnDef] = []
    used: set[str] = set()
    for default in defaults:
        existing = by_field.get(default.field)
        if existing is not None:
            overlay = existing.model_dump(exclude_unset=True)
            merged.append(default.model_copy(update=overlay))
        else:
            merged.append(default.model_copy())
        used.add(default.field)

    for column in columns:
        if column.field not in used:
            merged.append(column.model_copy())
            used.add(column.field)

    result = reindex(sorted(merged, key=lambda c: c.order))
    logger.debug("Merged %d column(s) with defaults: %s", len(result), [c.field for c in result])
    return result


def ensure_required_columns(
    columns: Iterable[ColumnDef],
    required_fields: Iterable[str],
) -> list[ColumnDef]:
    """Append a plain column for every required field that is missing."""
    result = list(columns)
    existing = {c.field for c in result}
    for field in required_fields:
        if field not in existing:
            result.append(create_column_def(field, order=len(result)))
            existing.add(field)
    return result


def columns_from_parameters(
    fields: Iterable[str],
    defaults: Iterable[ColumnDef] = (),
) -> list[ColumnDef]:
    """One column per field name, taking settings from a matching default."""
    by_field = {c.field: c for c in defaults}
    columns = []
    for index, field in enumerate(fields):
        default = by_field.get(field)
        if default is not None:
            columns.append(default.model_copy(update={"order": index}))
        else:
            columns.append(create_column_def(field, order=index))
    return columns
