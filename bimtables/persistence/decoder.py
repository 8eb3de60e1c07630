"""Parse stored/remote table configurations at the boundary.

Remote payloads arrive in camelCase (``parentColumns``, ``isFixed``) or
snake_case.  :func:`decode_table_config` is the only place they are
validated; everything past it works with :class:`TableConfig`.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

import pydantic

from bimtables.columns.defaults import default_columns
from bimtables.columns.state import dedupe, reindex
from bimtables.config import ESSENTIAL_FIELDS
from bimtables.errors import ValidationError
from bimtables.models.parameters import VIEWS, ColumnDef, View
from bimtables.models.table import CategoryFilters, TableConfig

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

_PARAMETER_TYPES = ("string", "number", "boolean", "date")


def to_snake(key: str) -> str:
    """``"parentColumns"`` -> ``"parent_columns"``; snake keys pass through."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def to_camel(key: str) -> str:
    head, *tail = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in tail)


def normalize_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    return {to_snake(k): v for k, v in raw.items()}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def decode_column(raw: Any, position: int) -> ColumnDef | None:
    """Decode one column, or ``None`` when it is malformed."""
    if not isinstance(raw, Mapping):
        return None
    data = normalize_keys(raw)
    field = data.get("field")
    if not isinstance(field, str) or not field:
        return None
    order = data.get("order", position)
    if order is None:
        order = position
    if not _is_number(order):
        return None
    data["order"] = int(order)
    data["kind"] = "column"
    if data.get("type") not in _PARAMETER_TYPES:
        data["type"] = "string"
    for key in ("source", "fetched_group", "current_group"):
        if data.get(key) is None:
            data.pop(key, None)
    try:
        return ColumnDef.model_validate(data)
    except pydantic.ValidationError:
        logger.debug("Dropping malformed column %r", field, exc_info=True)
        return None


def decode_columns(raw: Any, view: View) -> list[ColumnDef]:
    """Decode a column list: drop bad entries, dedupe, re-index, add essentials."""
    items = raw if isinstance(raw, list) else []
    columns: list[ColumnDef] = []
    for i, item in enumerate(items):
        column = decode_column(item, i)
        if column is not None:
            columns.append(column)
    dropped = len(items) - len(columns)
    if dropped:
        logger.warning("Dropped %d malformed column(s) from %s view", dropped, view)

    columns = dedupe(sorted(columns, key=lambda c: c.order))
    present = {c.field for c in columns}
    for default in default_columns(view):
        if default.field in ESSENTIAL_FIELDS and default.field not in present:
            columns.insert(min(default.order, len(columns)), default)
            present.add(default.field)
    return reindex(columns)


def decode_table_config(raw: Mapping[str, Any]) -> TableConfig:
    """Validate a raw table payload into a :class:`TableConfig`.

    Raises
    ------
    ValidationError
        When the payload is not a mapping or lacks ``id`` or ``name``.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError("Table config must be a mapping", value=raw)
    data = normalize_keys(raw)

    table_id = data.get("id")
    name = data.get("name")
    if not table_id:
        raise ValidationError("Table config is missing 'id'", field="id", value=table_id)
    if not name:
        raise ValidationError("Table config is missing 'name'", field="name", value=name)

    filters_raw = data.get("category_filters")
    filters = CategoryFilters()
    if isinstance(filters_raw, Mapping):
        filters_data = normalize_keys(filters_raw)
        filters = CategoryFilters(
            selected_parent_categories=[
                str(c) for c in filters_data.get("selected_parent_categories") or []
            ],
            selected_child_categories=[
                str(c) for c in filters_data.get("selected_child_categories") or []
            ],
        )

    values: dict[str, Any] = {
        "id": str(table_id),
        "name": str(name),
        "display_name": str(data.get("display_name") or name),
        "parent_columns": decode_columns(data.get("parent_columns"), "parent"),
        "child_columns": decode_columns(data.get("child_columns"), "child"),
        "category_filters": filters,
    }
    timestamp = data.get("last_update_timestamp")
    if _is_number(timestamp):
        values["last_update_timestamp"] = int(timestamp)
    return TableConfig(**values)


def encode_column(column: ColumnDef) -> dict[str, Any]:
    return {to_camel(k): v for k, v in column.model_dump(mode="json").items()}


def encode_table_config(config: TableConfig) -> dict[str, Any]:
    """The camelCase wire form of *config*."""
    return {
        "id": config.id,
        "name": config.name,
        "displayName": config.display_name,
        "parentColumns": [encode_column(c) for c in config.parent_columns],
        "childColumns": [encode_column(c) for c in config.child_columns],
        "categoryFilters": {
            "selectedParentCategories": list(config.category_filters.selected_parent_categories),
            "selectedChildCategories": list(config.category_filters.selected_child_categories),
        },
        "lastUpdateTimestamp": config.last_update_timestamp,
    }


def encode_columns(columns: dict[str, list[ColumnDef]]) -> dict[str, Any]:
    """camelCase payload for a ``{parent_columns, child_columns}`` snapshot."""
    return {
        to_camel(key): [encode_column(c) for c in value]
        for key, value in columns.items()
        if key in {f"{view}_columns" for view in VIEWS}
    }
