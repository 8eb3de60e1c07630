"""Tests for view column state, the column manager, history, grouping and merging."""

from __future__ import annotations

import pytest

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
from bimtables.models.parameters import ColumnDef, ParameterDefinition
from bimtables.models.table import CategoryFilters, ChangeType, HistoryEntry


def _cols(*fields: str) -> list[ColumnDef]:
    return [ColumnDef(field=f, order=i) for i, f in enumerate(fields)]


def _assert_dense(columns: list[ColumnDef]) -> None:
    assert [c.order for c in columns] == list(range(len(columns)))
    fields = [c.field for c in columns]
    assert len(fields) == len(set(fields))


# ── ViewColumns ──────────────────────────────────────────────────────────────

class TestViewColumns:

    def test_construction_dedupes_and_reindexes(self):
        state = ViewColumns("parent", [ColumnDef(field="a", order=5), ColumnDef(field="a"),
                                       ColumnDef(field="b", order=9)])
        assert state.fields() == ["a", "b"]
        _assert_dense(state.active)

    def test_add_parameter(self):
        state = ViewColumns("parent", _cols("a"))
        assert state.add(ParameterDefinition(field="b", type="number"))
        added = state.get("b")
        assert added.kind == "column"
        assert added.order == 1
        assert added.visible
        _assert_dense(state.active)

    def test_add_duplicate_rejected(self):
        state = ViewColumns("parent", _cols("a", "b"))
        assert not state.add(ParameterDefinition(field="a"))
        assert state.fields() == ["a", "b"]

    def test_remove_returns_to_available(self):
        state = ViewColumns("parent", _cols("a", "b", "c"))
        assert state.remove("b")
        assert state.fields() == ["a", "c"]
        _assert_dense(state.active)
        assert "b" in [p.field for p in state.available]

    def test_remove_guarded(self):
        state = ViewColumns("parent", [ColumnDef(field="category", is_fixed=True), *_cols("x")])
        assert not state.remove("category")
        assert not state.remove("missing")
        assert state.fields() == ["category", "x"]

    def test_essential_fields_never_removed(self):
        state = ViewColumns("parent", [ColumnDef(field="mark", removable=True), *_cols("x")])
        assert not state.remove("mark")
        assert state.fields() == ["mark", "x"]

    def test_default_mark_is_fixed(self):
        for view in ("parent", "child"):
            mark = next(c for c in default_columns(view) if c.field == "mark")
            assert not mark.removable
            assert mark.is_fixed

    def test_available_excludes_active(self):
        state = ViewColumns(
            "child",
            _cols("a"),
            [ParameterDefinition(field="a"), ParameterDefinition(field="z")],
        )
        assert [p.field for p in state.available] == ["z"]

    @pytest.mark.parametrize(
        "from_index,to_index,expected",
        [
            (0, 2, ["B", "C", "A"]),
            (2, 0, ["C", "A", "B"]),
            (0, 3, ["B", "C", "A"]),
            (1, 1, ["A", "B", "C"]),
        ],
    )
    def test_reorder(self, from_index, to_index, expected):
        state = ViewColumns("parent", _cols("A", "B", "C"))
        assert state.reorder(from_index, to_index)
        assert state.fields() == expected
        _assert_dense(state.active)

    @pytest.mark.parametrize("from_index,to_index", [(-1, 0), (3, 0), (0, 4), (0, -1)])
    def test_reorder_out_of_bounds(self, from_index, to_index):
        state = ViewColumns("parent", _cols("A", "B", "C"))
        assert not state.reorder(from_index, to_index)
        assert state.fields() == ["A", "B", "C"]

    def test_visibility(self):
        state = ViewColumns("parent", _cols("a", "b"))
        assert state.set_visibility("b", False)
        assert [c.field for c in state.visible] == ["a"]
        assert not state.set_visibility("nope", False)

    def test_active_is_a_copy(self):
        state = ViewColumns("parent", _cols("a"))
        state.active.append(ColumnDef(field="b"))
        assert state.fields() == ["a"]


# ── ColumnManager ────────────────────────────────────────────────────────────

class TestColumnManager:

    def test_defaults(self):
        mgr = ColumnManager()
        assert [c.field for c in mgr.parent_columns][:4] == ["category", "id", "type", "mark"]
        assert "length" in [c.field for c in mgr.child_columns]
        assert not mgr.has_pending_changes

    def test_operations_record_changes(self):
        mgr = ColumnManager(_cols("a", "b"), _cols("x"))
        assert mgr.add("parent", ParameterDefinition(field="c"))
        assert mgr.reorder("parent", 2, 0)
        assert mgr.set_visibility("child", "x", False)
        assert mgr.remove("parent", "a")
        types = [(c.type, c.view) for c in mgr.pending_changes]
        assert types == [
            (ChangeType.ADD, "parent"),
            (ChangeType.REORDER, "parent"),
            (ChangeType.VISIBILITY, "child"),
            (ChangeType.REMOVE, "parent"),
        ]
        assert [c.field for c in mgr.parent_columns] == ["c", "b"]
        assert mgr.pending_changes[0].previous_state == _cols("a", "b")

    def test_rejected_operations_record_nothing(self):
        mgr = ColumnManager(_cols("a"), _cols("x"))
        assert not mgr.add("parent", ColumnDef(field="a"))
        assert not mgr.remove("child", "missing")
        assert not mgr.reorder("parent", 0, 5)
        assert not mgr.has_pending_changes
        assert not mgr.can_undo()

    def test_views_are_independent(self):
        mgr = ColumnManager(_cols("a"), _cols("a"))
        mgr.remove("parent", "a")
        assert mgr.parent_columns == []
        assert [c.field for c in mgr.child_columns] == ["a"]

    def test_save_changes_idempotent(self):
        mgr = ColumnManager(_cols("a", "b", "c"), _cols("x"))
        mgr.reorder("parent", 0, 2)
        first = mgr.save_changes()
        second = mgr.save_changes()
        assert first == second
        assert not mgr.has_pending_changes
        _assert_dense(first["parent_columns"])

    def test_undo_redo(self):
        mgr = ColumnManager(_cols("a", "b"), _cols("x"))
        mgr.add("parent", ParameterDefinition(field="c"))
        mgr.remove("parent", "a")
        assert mgr.undo()
        assert [c.field for c in mgr.parent_columns] == ["a", "b", "c"]
        assert mgr.undo()
        assert [c.field for c in mgr.parent_columns] == ["a", "b"]
        assert not mgr.undo()
        assert mgr.redo()
        assert [c.field for c in mgr.parent_columns] == ["a", "b", "c"]
        assert mgr.pending_changes[-1].type == ChangeType.HISTORY

    def test_new_change_discards_redo(self):
        mgr = ColumnManager(_cols("a"), _cols("x"))
        mgr.add("parent", ColumnDef(field="b"))
        mgr.undo()
        mgr.add("parent", ColumnDef(field="c"))
        assert not mgr.can_redo()

    def test_category_filters_in_history(self):
        mgr = ColumnManager(_cols("a"), _cols("x"))
        mgr.set_category_filters(CategoryFilters(selected_parent_categories=["Walls"]))
        assert mgr.category_filters.selected_parent_categories == ["Walls"]
        mgr.undo()
        assert mgr.category_filters.selected_parent_categories == []

    def test_load_resets_state(self):
        mgr = ColumnManager(_cols("a"), _cols("x"))
        mgr.add("parent", ColumnDef(field="b"))
        mgr.load(_cols("q", "r"), _cols("s"), CategoryFilters(selected_child_categories=["Doors"]))
        assert [c.field for c in mgr.parent_columns] == ["q", "r"]
        assert mgr.category_filters.selected_child_categories == ["Doors"]
        assert not mgr.has_pending_changes
        assert not mgr.can_undo()

    def test_to_dict(self):
        data = ColumnManager(_cols("a"), _cols("x")).to_dict()
        assert data["parent_columns"][0]["field"] == "a"
        assert data["category_filters"]["selected_parent_categories"] == []


# ── History ──────────────────────────────────────────────────────────────────

class TestColumnHistory:

    def _entry(self, *fields: str) -> HistoryEntry:
        return HistoryEntry(parent_columns=tuple(_cols(*fields)))

    def test_bounded(self):
        history = ColumnHistory(max_entries=3)
        for f in "abcde":
            history.push(self._entry(f))
        assert len(history) == 3
        assert history.current.parent_columns[0].field == "e"
        assert history.undo().parent_columns[0].field == "d"
        assert history.undo().parent_columns[0].field == "c"
        assert history.undo() is None

    def test_empty(self):
        history = ColumnHistory()
        assert history.current is None
        assert not history.can_undo()
        assert history.redo() is None

    def test_entries_are_immutable(self):
        entry = self._entry("a")
        with pytest.raises(Exception):
            entry.parent_columns = ()


# ── Defaults, grouping and merging ───────────────────────────────────────────

class TestDefaults:

    def test_category_not_removable(self):
        cols = default_columns("parent")
        assert cols[0].field == "category"
        assert not cols[0].removable
        _assert_dense(cols)

    def test_fresh_copies(self):
        default_columns("parent")[0].header = "changed"
        assert default_columns("parent")[0].header == "Category"

    def test_essential_and_fixed(self):
        _assert_dense(essential_columns("child"))
        fixed = fixed_parameters("child")
        assert all(p.is_fixed and not p.removable for p in fixed)


class TestGrouping:

    def test_essential_groups_first(self):
        columns = [
            create_column_def("z", source="Zeta", order=0),
            create_column_def("mark", source="Basic", order=1),
            create_column_def("width", source="Dimensions", order=2),
        ]
        groups = group_columns(columns)
        assert [g for g, _ in groups] == ["Basic", "Dimensions", "Zeta"]

    def test_sort_keys(self):
        columns = [
            create_column_def("b", header="Beta", type="number"),
            create_column_def("a", header="alpha", is_fixed=True),
        ]
        assert [c.field for c in sort_columns(columns, "name")] == ["a", "b"]
        assert [c.field for c in sort_columns(columns, "fixed")] == ["a", "b"]
        assert [c.field for c in sort_columns(columns, "type")] == ["b", "a"]
        with pytest.raises(ValueError):
            sort_columns(columns, "colour")


class TestMerge:

    def test_create_column_def(self):
        col = create_column_def("fire", type="boolean", width=None)
        assert col.type == "boolean"
        assert col.width is None
        assert col.description == "Parameter fire"

    def test_merge_overlays_stored_settings(self):
        defaults = default_columns("parent")
        stored = [
            ColumnDef(field="mark", width=333, order=0),
            ColumnDef(field="fire", order=1),
        ]
        merged = merge_columns(stored, defaults)
        by_field = {c.field: c for c in merged}
        assert by_field["mark"].width == 333
        assert "fire" in by_field
        assert len(merged) == len(defaults) + 1
        _assert_dense(merged)

    def test_ensure_required(self):
        result = ensure_required_columns(_cols("name"), ["mark", "category", "name"])
        assert [c.field for c in result] == ["name", "mark", "category"]
        _assert_dense(result)

    def test_columns_from_parameters(self):
        result = columns_from_parameters(["mark", "fire"], default_columns("parent"))
        assert result[0].header == "Mark"
        assert result[1].header == "fire"
        _assert_dense(result)
