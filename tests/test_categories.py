"""Tests for category hierarchies, filtering and type mapping."""

from __future__ import annotations

import asyncio

import pytest

from bimtables.categories.filtering import (
    category_statistics,
    filter_elements_by_categories,
    sort_categories_by_hierarchy,
    unique_categories,
)
from bimtables.categories.hierarchy import (
    apply_category_updates,
    build_category_hierarchy,
    build_validated_hierarchy,
    get_ancestors,
    get_category_path,
    get_descendants,
    is_ancestor_of,
    is_descendant_of,
    validate_hierarchy,
)
from bimtables.categories.mapping import (
    find_matching_categories,
    is_bim_type,
    matches_category,
    most_specific_category,
)
from bimtables.errors import HierarchyError
from bimtables.models.categories import CategoryDefinition, CategoryUpdate
from bimtables.models.element import Element


def _defs() -> list[CategoryDefinition]:
    return [
        CategoryDefinition(id="structure", name="Structure"),
        CategoryDefinition(id="walls", name="Walls", parent="structure"),
        CategoryDefinition(id="curtain", name="Curtain Walls", parent="walls"),
        CategoryDefinition(id="openings", name="Openings"),
        CategoryDefinition(id="doors", name="Doors", parent="openings"),
    ]


# ── Hierarchy ────────────────────────────────────────────────────────────────

class TestHierarchy:

    def test_build_forest(self):
        roots = build_category_hierarchy(_defs())
        assert [r.id for r in roots] == ["structure", "openings"]
        walls = roots[0].children[0]
        assert walls.id == "walls"
        assert walls.level == 1
        assert walls.children[0].level == 2

    def test_unknown_parent_becomes_root(self):
        roots = build_category_hierarchy([CategoryDefinition(id="a", parent="missing")])
        assert [r.id for r in roots] == ["a"]

    def test_descendants_and_ancestors(self):
        roots = build_category_hierarchy(_defs())
        assert get_descendants("structure", roots) == {"walls", "curtain"}
        assert get_ancestors("curtain", roots) == {"walls", "structure"}
        assert is_descendant_of("curtain", "structure", roots)
        assert is_ancestor_of("openings", "doors", roots)
        assert not is_ancestor_of("doors", "openings", roots)

    def test_category_path(self):
        roots = build_category_hierarchy(_defs())
        assert get_category_path("curtain", roots) == ["structure", "walls", "curtain"]
        assert get_category_path("nope", roots) == []

    def test_validate_detects_cycle(self):
        defs = [
            CategoryDefinition(id="a", parent="c"),
            CategoryDefinition(id="b", parent="a"),
            CategoryDefinition(id="c", parent="b"),
        ]
        assert validate_hierarchy(_defs())
        assert not validate_hierarchy(defs)
        with pytest.raises(HierarchyError):
            build_validated_hierarchy(defs)

    def test_self_parent_is_cycle(self):
        assert not validate_hierarchy([CategoryDefinition(id="a", parent="a")])


class TestCategoryUpdates:

    def test_add_and_modify(self):
        updates = [
            CategoryUpdate(type="add", category=CategoryDefinition(id="windows", parent="openings")),
            CategoryUpdate(
                type="modify",
                category=CategoryDefinition(id="doors", name="Doors", parent="walls"),
                previous_parent="openings",
            ),
        ]
        result = asyncio.run(apply_category_updates(_defs(), updates))
        assert result.success
        by_id = {c.id: c for c in result.categories}
        assert by_id["windows"].parent == "openings"
        assert by_id["doors"].parent == "walls"
        assert {"windows", "openings", "doors", "walls"} <= result.affected_categories

    def test_remove_reparents_children(self):
        updates = [CategoryUpdate(type="remove", category=CategoryDefinition(id="walls"))]
        result = asyncio.run(apply_category_updates(_defs(), updates))
        assert result.success
        by_id = {c.id: c for c in result.categories}
        assert "walls" not in by_id
        assert by_id["curtain"].parent == "structure"

    def test_cycle_rejected_without_partial_result(self):
        original = _defs()
        updates = [
            CategoryUpdate(type="add", category=CategoryDefinition(id="extra")),
            CategoryUpdate(
                type="modify",
                category=CategoryDefinition(id="structure", parent="curtain"),
            ),
        ]
        result = asyncio.run(apply_category_updates(original, updates))
        assert not result.success
        assert result.categories == []
        assert "cycle" in result.error or "Invalid" in result.error
        assert [c.id for c in original] == ["structure", "walls", "curtain", "openings", "doors"]
        assert original[0].parent is None

    def test_unknown_category_fails(self):
        updates = [CategoryUpdate(type="remove", category=CategoryDefinition(id="ghost"))]
        result = asyncio.run(apply_category_updates(_defs(), updates))
        assert not result.success
        assert "ghost" in result.error

    def test_progress_reported(self):
        seen: list[dict] = []
        updates = [
            CategoryUpdate(type="add", category=CategoryDefinition(id="x")),
            CategoryUpdate(type="add", category=CategoryDefinition(id="y")),
        ]
        asyncio.run(apply_category_updates(_defs(), updates, on_progress=seen.append))
        assert [p["processed"] for p in seen] == [1, 2]
        assert seen[-1]["total"] == 2


# ── Filtering ────────────────────────────────────────────────────────────────

class TestFiltering:

    def _elements(self) -> list[Element]:
        return [
            Element(id="1", category="walls"),
            Element(id="2", category="curtain"),
            Element(id="3", category="doors"),
            Element(id="4", category="walls", parameters={"relatedCategory": "doors"}),
        ]

    def test_empty_selection_keeps_all(self):
        assert len(filter_elements_by_categories(self._elements(), [])) == 4

    def test_exact_match_without_definitions(self):
        kept = filter_elements_by_categories(self._elements(), ["walls"])
        assert [e.id for e in kept] == ["1", "4"]

    def test_descendants_included(self):
        kept = filter_elements_by_categories(self._elements(), ["walls"], _defs())
        assert [e.id for e in kept] == ["1", "2", "4"]

    def test_descendants_excluded(self):
        kept = filter_elements_by_categories(
            self._elements(), ["walls"], _defs(), include_descendants=False
        )
        assert [e.id for e in kept] == ["1", "4"]

    def test_match_all(self):
        kept = filter_elements_by_categories(
            self._elements(), ["walls", "doors"], match_all=True
        )
        assert [e.id for e in kept] == ["4"]

    def test_statistics(self):
        stats = {s.id: s for s in category_statistics(self._elements())}
        assert stats["walls"].count == 2
        assert stats["walls"].percentage == 50.0
        assert unique_categories(self._elements()) == {"walls", "curtain", "doors"}

    def test_sort_depth_first(self):
        ordered = [d.id for d in sort_categories_by_hierarchy(list(reversed(_defs())))]
        assert ordered.index("structure") < ordered.index("walls") < ordered.index("curtain")
        assert ordered.index("openings") < ordered.index("doors")


# ── Mapping ──────────────────────────────────────────────────────────────────

class TestMapping:

    def test_matches_category(self):
        assert matches_category("IfcWallStandardCase", "Walls")
        assert matches_category("Objects.BuiltElements.Door", "Doors")
        assert not matches_category("IfcDoor", "Walls")

    def test_child_is_most_specific(self):
        assert most_specific_category("IfcDoor") == "Doors"
        assert most_specific_category("IfcSlab") == "Floors"
        assert most_specific_category("IfcFurniture") is None

    def test_find_matching(self):
        matches = find_matching_categories("IfcWindow")
        assert matches.child_categories == ["Windows"]
        assert matches.parent_categories == []

    def test_is_bim_type(self):
        assert is_bim_type("Objects.BuiltElements.Railing")
        assert not is_bim_type("Objects.Other.Text")
