"""Pydantic models for elements, parameters, columns and tables."""

from bimtables.models.categories import (
    CategoryDefinition,
    CategoryNode,
    CategoryUpdate,
    UpdateResult,
)
from bimtables.models.element import Element, ElementArena, PrimitiveValue, RawElement
from bimtables.models.parameters import (
    VIEWS,
    ColumnDef,
    ParameterDefinition,
    ParameterType,
    UserParameter,
    View,
    field_of,
    to_column,
    to_parameter,
)
from bimtables.models.table import (
    CategoryFilters,
    ChangeRecord,
    ChangeType,
    HistoryEntry,
    TableConfig,
)

__all__ = [
    "CategoryDefinition",
    "CategoryFilters",
    "CategoryNode",
    "CategoryUpdate",
    "ChangeRecord",
    "ChangeType",
    "ColumnDef",
    "Element",
    "ElementArena",
    "HistoryEntry",
    "ParameterDefinition",
    "ParameterType",
    "PrimitiveValue",
    "RawElement",
    "TableConfig",
    "UpdateResult",
    "UserParameter",
    "VIEWS",
    "View",
    "field_of",
    "to_column",
    "to_parameter",
]
