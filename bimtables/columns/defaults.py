"""Default column sets for the parent and child views."""

from __future__ import annotations

from bimtables.config import (
    DEFAULT_CHILD_COLUMNS,
    DEFAULT_PARENT_COLUMNS,
    ESSENTIAL_COLUMN_FIELDS,
)
from bimtables.models.parameters import ColumnDef, ParameterDefinition, View


def default_columns(view: View) -> list[ColumnDef]:
    """Fresh copies of the default columns for *view*."""
    source = DEFAULT_PARENT_COLUMNS if view == "parent" else DEFAULT_CHILD_COLUMNS
    return [ColumnDef(**col) for col in source]


def essential_columns(view: View) -> list[ColumnDef]:
    """The minimal column set rendered before discovery has run."""
    columns = [c for c in default_columns(view) if c.field in ESSENTIAL_COLUMN_FIELDS]
    return [c.model_copy(update={"order": i}) for i, c in enumerate(columns)]


def fixed_parameters(view: View) -> list[ParameterDefinition]:
    """Default columns expressed as fixed parameter definitions."""
    return [
        ParameterDefinition(
            field=col.field,
            header=col.header,
            type=col.type,
            category=col.category,
            description=col.description,
            source=col.source,
            is_fixed=True,
            order=col.order,
        )
        for col in default_columns(view)
    ]
