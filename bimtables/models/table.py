"""Named table configuration, change records and history snapshots."""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from bimtables.models.parameters import ColumnDef, View


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class CategoryFilters(BaseModel):
    selected_parent_categories: list[str] = Field(default_factory=list)
    selected_child_categories: list[str] = Field(default_factory=list)


class TableConfig(BaseModel):
    """The persisted unit: one named table's columns and filters."""

    id: str
    name: str
    display_name: str = ""
    parent_columns: list[ColumnDef] = Field(default_factory=list)
    child_columns: list[ColumnDef] = Field(default_factory=list)
    category_filters: CategoryFilters = Field(default_factory=CategoryFilters)
    last_update_timestamp: int = Field(default_factory=_now_ms)

    def model_post_init(self, __context: Any) -> None:
        if not self.display_name:
            self.display_name = self.name

    def columns_for(self, view: View) -> list[ColumnDef]:
        return self.parent_columns if view == "parent" else self.child_columns


class ChangeType(str, Enum):
    ADD = "ADD"
    REMOVE = "REMOVE"
    REORDER = "REORDER"
    VISIBILITY = "VISIBILITY"
    HISTORY = "HISTORY"


class ChangeRecord(BaseModel):
    """A pending, not yet persisted, column change."""

    type: ChangeType
    view: View
    column: ColumnDef | None = None
    previous_state: list[ColumnDef] | None = None
    timestamp: float = Field(default_factory=time.time)


class HistoryEntry(BaseModel):
    """Immutable snapshot of both views, used by undo/redo."""

    model_config = {"frozen": True}

    id: str = Field(default_factory=_new_id)
    timestamp: float = Field(default_factory=time.time)
    parent_columns: tuple[ColumnDef, ...] = ()
    child_columns: tuple[ColumnDef, ...] = ()
    category_filters: CategoryFilters = Field(default_factory=CategoryFilters)
