"""Infer parameter types and originating groups from raw element data."""

from __future__ import annotations

from typing import Any

from bimtables.config import (
    GENERAL_GROUP,
    GROUP_PRIORITY,
    PARAMETER_MAPPING,
    PARAMETERS_BUCKET,
    PARAMETERS_GROUP,
)
from bimtables.models.parameters import ParameterType


def infer_type(value: Any) -> ParameterType:
    """Return ``"boolean"``, ``"number"`` or ``"string"`` for *value*.

    Booleans are checked before numbers since ``bool`` subclasses ``int``.
    Numeric strings stay strings.
    """
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    return "string"


def infer_group(raw: dict[str, Any], field: str) -> str:
    """Return the group a *field* of *raw* belongs to.

    Scans ``Identity Data``, ``Constraints`` and ``Other`` and then the
    free-form ``parameters`` bucket; the first bucket holding the field wins.
    A field found only at the top level of the record is ``"General"``;
    one found nowhere is ``"Parameters"``.
    """
    for group in GROUP_PRIORITY:
        bucket = raw.get(group)
        if isinstance(bucket, dict) and field in bucket:
            return group

    params = raw.get(PARAMETERS_BUCKET)
    if isinstance(params, dict) and field in params:
        return PARAMETERS_GROUP

    if field in raw:
        return GENERAL_GROUP
    return PARAMETERS_GROUP


def infer_value_type(name: str, value: Any) -> ParameterType:
    """Type for *name*, preferring the declared type of known parameters."""
    mapping = PARAMETER_MAPPING.get(name.lower())
    if mapping is not None:
        return mapping["type"]
    return infer_type(value)
