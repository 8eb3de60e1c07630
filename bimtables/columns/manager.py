"""Column state of one table: both views, pending changes and history."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from bimtables.columns.defaults import default_columns
from bimtables.columns.history import ColumnHistory
from bimtables.columns.state import ViewColumns, reindex
from bimtables.config import HISTORY_MAX_ENTRIES
from bimtables.models.parameters import VIEWS, ColumnDef, ParameterDefinition, View
from bimtables.models.table import CategoryFilters, ChangeRecord, ChangeType, HistoryEntry

logger = logging.getLogger(__name__)


class ColumnManager:
    """Mutable column configuration for the parent and child views.

    Successful operations append a :class:`ChangeRecord` to
    :attr:`pending_changes` and push a snapshot onto the undo history.
    Rejected operations change nothing and return ``False``.
    """

    def __init__(
        self,
        parent_columns: Iterable[ColumnDef] | None = None,
        child_columns: Iterable[ColumnDef] | None = None,
        *,
        category_filters: CategoryFilters | None = None,
        history_size: int = HISTORY_MAX_ENTRIES,
    ) -> None:
        self.views: dict[View, ViewColumns] = {
            "parent": ViewColumns(
                "parent",
                parent_columns if parent_columns is not None else default_columns("parent"),
            ),
            "child": ViewColumns(
                "child",
                child_columns if child_columns is not None else default_columns("child"),
            ),
        }
        self.category_filters = category_filters or CategoryFilters()
        self.pending_changes: list[ChangeRecord] = []
        self.history = ColumnHistory(history_size)
        self.history.reset(self.snapshot())

    # -- accessors -------------------------------------------------------------

    @property
    def parent_columns(self) -> list[ColumnDef]:
        return self.views["parent"].active

    @property
    def child_columns(self) -> list[ColumnDef]:
        return self.views["child"].active

    @property
    def has_pending_changes(self) -> bool:
        return len(self.pending_changes) > 0

    def columns(self, view: View) -> list[ColumnDef]:
        return self.views[view].active

    def available(self, view: View) -> list[ParameterDefinition]:
        return self.views[view].available

    def set_parameters(self, view: View, parameters: Iterable[ParameterDefinition]) -> None:
        self.views[view].set_parameters(parameters)

    # -- column operations -----------------------------------------------------

    def _record(self, type_: ChangeType, view: View, column: ColumnDef | None,
                previous: list[ColumnDef]) -> None:
        self.pending_changes.append(
            ChangeRecord(type=type_, view=view, column=column, previous_state=previous)
        )
        self.history.push(self.snapshot())
        logger.debug("%s change recorded in %s view", type_.value, view)

    def add(self, view: View, parameter: ParameterDefinition | ColumnDef) -> bool:
        state = self.views[view]
        previous = state.active
        if not state.add(parameter):
            return False
        self._record(ChangeType.ADD, view, state.get(parameter.field), previous)
        return True

    def remove(self, view: View, column: ColumnDef | ParameterDefinition | str) -> bool:
        state = self.views[view]
        field = column if isinstance(column, str) else column.field
        removed = state.get(field)
        previous = state.active
        if not state.remove(field):
            return False
        self._record(ChangeType.REMOVE, view, removed, previous)
        return True

    def reorder(self, view: View, from_index: int, to_index: int) -> bool:
        state = self.views[view]
        previous = state.active
        if not state.reorder(from_index, to_index):
            return False
        moved = state.active[to_index if to_index < len(state) else len(state) - 1]
        self._record(ChangeType.REORDER, view, moved, previous)
        return True

    def set_visibility(self, view: View, field: str, visible: bool) -> bool:
        state = self.views[view]
        previous = state.active
        if not state.set_visibility(field, visible):
            return False
        self._record(ChangeType.VISIBILITY, view, state.get(field), previous)
        return True

    def set_category_filters(self, filters: CategoryFilters) -> None:
        self.category_filters = filters.model_copy(deep=True)
        self.history.push(self.snapshot())

    # -- snapshots and history -------------------------------------------------

    def snapshot(self) -> HistoryEntry:
        return HistoryEntry(
            parent_columns=tuple(self.parent_columns),
            child_columns=tuple(self.child_columns),
            category_filters=self.category_filters.model_copy(deep=True),
        )

    def restore(self, entry: HistoryEntry) -> None:
        """Replace both views and the filters with *entry* (no history push)."""
        self.views["parent"].replace(entry.parent_columns)
        self.views["child"].replace(entry.child_columns)
        self.category_filters = entry.category_filters.model_copy(deep=True)

    def _apply_history(self, entry: HistoryEntry | None, label: str) -> bool:
        if entry is None:
            logger.debug("Nothing to %s", label)
            return False
        previous = {view: self.views[view].active for view in VIEWS}
        self.restore(entry)
        for view in VIEWS:
            self.pending_changes.append(
                ChangeRecord(type=ChangeType.HISTORY, view=view, previous_state=previous[view])
            )
        return True

    def can_undo(self) -> bool:
        return self.history.can_undo()

    def can_redo(self) -> bool:
        return self.history.can_redo()

    def undo(self) -> bool:
        return self._apply_history(self.history.undo(), "undo")

    def redo(self) -> bool:
        return self._apply_history(self.history.redo(), "redo")

    # -- persistence hand-off --------------------------------------------------

    def save_changes(self) -> dict[str, list[ColumnDef]]:
        """Normalise ``order`` to position, clear pending changes, return both views.

        Calling this twice in a row returns equal results.
        """
        for view in VIEWS:
            self.views[view].replace(reindex(self.views[view].active))
        self.pending_changes.clear()
        return {
            "parent_columns": self.parent_columns,
            "child_columns": self.child_columns,
        }

    def load(
        self,
        parent_columns: Iterable[ColumnDef],
        child_columns: Iterable[ColumnDef],
        category_filters: CategoryFilters | None = None,
    ) -> None:
        """Replace all state wholesale, e.g. after fetching a stored table."""
        self.views["parent"].replace(parent_columns)
        self.views["child"].replace(child_columns)
        if category_filters is not None:
            self.category_filters = category_filters.model_copy(deep=True)
        self.pending_changes.clear()
        self.history.reset(self.snapshot())

    def to_dict(self) -> dict[str, Any]:
        return {
            "parent_columns": [c.model_dump(mode="json") for c in self.parent_columns],
            "child_columns": [c.model_dump(mode="json") for c in self.child_columns],
            "category_filters": self.category_filters.model_dump(mode="json"),
        }
