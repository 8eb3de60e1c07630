"""Column state, history, grouping and merging."""

from bimtables.columns.defaults import default_columns, essential_columns, fixed_parameters
from bimtables.columns.grouping import group_columns, sort_columns
from bimtables.columns.history import ColumnHistory
from bimtables.columns.manager import ColumnManager
from bimtables.columns.merge import (
    columns_from_parameters,
    create_column_def,
    ensure_required_columns,
    merge_columns,
)
from bimtables.columns.state import ViewColumns

__all__ = [
    "ColumnHistory",
    "ColumnManager",
    "ViewColumns",
    "columns_from_parameters",
    "create_column_def",
    "default_columns",
    "ensure_required_columns",
    "essential_columns",
    "fixed_parameters",
    "group_columns",
    "merge_columns",
    "sort_columns",
]
