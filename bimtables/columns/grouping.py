"""Group and sort columns for the column-manager panel."""

from __future__ import annotations

from typing import Callable, Iterable, Literal

from bimtables.config import ESSENTIAL_GROUPS
from bimtables.models.parameters import ColumnDef

UNGROUPED = "Ungrouped"

SortKey = Literal["name", "category", "type", "fixed", "group"]


def group_key(column: ColumnDef) -> str:
    return column.source or column.category or UNGROUPED


def group_columns(
    columns: Iterable[ColumnDef],
    essential_groups: Iterable[str] = ESSENTIAL_GROUPS,
) -> list[tuple[str, list[ColumnDef]]]:
    """Bucket *columns* by group, essential groups first then alphabetical.

    Columns keep their ``order`` within a group.
    """
    buckets: dict[str, list[ColumnDef]] = {}
    for column in sorted(columns, key=lambda c: c.order):
        buckets.setdefault(group_key(column), []).append(column)

    essential = [g for g in essential_groups if g in buckets]
    rest = sorted(g for g in buckets if g not in essential)
    return [(group, buckets[group]) for group in (*essential, *rest)]


_SORT_KEYS: dict[str, Callable[[ColumnDef], tuple]] = {
    "name": lambda c: (c.header.lower(), c.field),
    "category": lambda c: ((c.category or "").lower(), c.header.lower()),
    "type": lambda c: (c.type, c.header.lower()),
    "fixed": lambda c: (not c.is_fixed, c.header.lower()),
    "group": lambda c: (group_key(c).lower(), c.order),
}


def sort_columns(columns: Iterable[ColumnDef], by: SortKey = "name") -> list[ColumnDef]:
    """Sorted copy of *columns*; ``fixed`` puts fixed columns first."""
    try:
        key = _SORT_KEYS[by]
    except KeyError:
        raise ValueError(f"Unknown sort key: {by!r}") from None
    return sorted(columns, key=key)
