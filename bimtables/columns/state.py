"""Active and available columns of a single view.

Every mutation either succeeds completely and returns ``True`` or leaves the
state untouched and returns ``False``.  After any successful mutation the
active columns carry ``order == index`` and no field appears twice.
"""

from __future__ import annotations

import logging
from typing import Iterable

from bimtables.config import ESSENTIAL_FIELDS
from bimtables.models.parameters import (
    ColumnDef,
    ParameterDefinition,
    View,
    field_of,
    to_column,
    to_parameter,
)

logger = logging.getLogger(__name__)


def reindex(columns: Iterable[ColumnDef]) -> list[ColumnDef]:
    """Copies of *columns* with ``order`` set to their position."""
    return [c.model_copy(update={"order": i}) for i, c in enumerate(columns)]


def dedupe(columns: Iterable[ColumnDef]) -> list[ColumnDef]:
    """Drop later columns whose field already appeared."""
    seen: set[str] = set()
    unique: list[ColumnDef] = []
    for column in columns:
        if column.field in seen:
            continue
        seen.add(column.field)
        unique.append(column)
    return unique


class ViewColumns:
    """Column state for one view (``parent`` or ``child``)."""

    def __init__(
        self,
        view: View,
        active: Iterable[ColumnDef] | None = None,
        parameters: Iterable[ParameterDefinition] | None = None,
    ) -> None:
        self.view = view
        self._active: list[ColumnDef] = reindex(dedupe(active or []))
        self._pool: dict[str, ParameterDefinition] = {}
        self.set_parameters(parameters or [])

    # -- read access ---------------------------------------------------------

    @property
    def active(self) -> list[ColumnDef]:
        return list(self._active)

    @property
    def available(self) -> list[ParameterDefinition]:
        """Known parameters that are not currently active."""
        active = self.fields()
        return [p for p in self._pool.values() if p.field not in active]

    @property
    def visible(self) -> list[ColumnDef]:
        return [c for c in self._active if c.visible]

    def fields(self) -> list[str]:
        return [c.field for c in self._active]

    def get(self, field: str) -> ColumnDef | None:
        for column in self._active:
            if column.field == field:
                return column
        return None

    def __len__(self) -> int:
        return len(self._active)

    # -- mutation ------------------------------------------------------------

    def set_parameters(self, parameters: Iterable[ParameterDefinition]) -> None:
        """Replace the pool of parameters this view can offer."""
        self._pool = {}
        for parameter in parameters:
            self._pool.setdefault(parameter.field, parameter)

    def replace(self, columns: Iterable[ColumnDef]) -> None:
        """Replace the active columns wholesale."""
        self._active = reindex(dedupe(columns))

    def add(self, item: ParameterDefinition | ColumnDef) -> bool:
        """Append *item* as a visible column; rejected if its field is active."""
        field = field_of(item)
        if self.get(field) is not None:
            logger.debug("Column %s already active in %s view", field, self.view)
            return False
        column = to_column(item, len(self._active)).model_copy(update={"visible": True})
        self._active.append(column)
        self._pool.setdefault(field, to_parameter(item))
        return True

    def remove(self, item: ColumnDef | ParameterDefinition | str) -> bool:
        """Remove a removable column and return it to the available pool.

        Columns in ``ESSENTIAL_FIELDS`` are never removed, whatever their flag.
        """
        field = item if isinstance(item, str) else field_of(item)
        column = self.get(field)
        if column is None:
            logger.warning("Cannot remove %s: not active in %s view", field, self.view)
            return False
        if not column.removable or field in ESSENTIAL_FIELDS:
            logger.warning("Cannot remove %s: column is not removable", field)
            return False
        self._active = reindex(c for c in self._active if c.field != field)
        self._pool.setdefault(field, to_parameter(column))
        return True

    def reorder(self, from_index: int, to_index: int) -> bool:
        """Move the column at *from_index* to *to_index*.

        Valid when ``0 <= from_index < n`` and ``0 <= to_index <= n``.
        """
        n = len(self._active)
        if not (0 <= from_index < n and 0 <= to_index <= n):
            logger.warning(
                "Invalid reorder %d -> %d in %s view of %d column(s)",
                from_index, to_index, self.view, n,
            )
            return False
        columns = list(self._active)
        column = columns.pop(from_index)
        columns.insert(to_index, column)
        self._active = reindex(columns)
        return True

    def set_visibility(self, field: str, visible: bool) -> bool:
        for i, column in enumerate(self._active):
            if column.field == field:
                self._active[i] = column.model_copy(update={"visible": visible})
                return True
        logger.warning("Cannot set visibility of %s: not active in %s view", field, self.view)
        return False
