"""Tests for parameter discovery, header discovery and value processing."""

from __future__ import annotations

import asyncio
import random

import pytest

from bimtables.discovery.discovery import (
    analyze_parameters,
    discover_parameters,
    merge_with_fixed,
    raw_parameter_maps,
    sample_elements,
)
from bimtables.discovery.headers import (
    collect_headers,
    discover_headers,
    headers_for_element,
    normalize_field,
)
from bimtables.discovery.processing import (
    ValueCache,
    coerce_value,
    process_element_parameters,
    validate_value,
)
from bimtables.errors import DiscoveryError, ValidationError
from bimtables.models.element import Element
from bimtables.models.parameters import ColumnDef, ParameterDefinition


def _population() -> list[Element]:
    """Ten elements: ``common`` on all, ``rare`` on 2, ``scarce`` on 1."""
    elements = []
    for i in range(10):
        params = {"common": i}
        if i < 2:
            params["rare"] = "x"
        if i == 0:
            params["scarce"] = True
        elements.append(Element(id=f"e{i}", parameters=params))
    return elements


# ── Discovery ────────────────────────────────────────────────────────────────

class TestDiscovery:

    def test_frequency_threshold(self):
        elements = _population()
        high = asyncio.run(discover_parameters(elements, sample_size=100, min_frequency=0.3))
        low = asyncio.run(discover_parameters(elements, sample_size=100, min_frequency=0.1))
        assert [p.field for p in high] == ["common"]
        assert [p.field for p in low] == ["common", "rare", "scarce"]

    def test_boundary_frequency_is_kept(self):
        fields = [
            p.field
            for p in asyncio.run(
                discover_parameters(_population(), sample_size=100, min_frequency=0.2)
            )
        ]
        assert "rare" in fields
        assert "scarce" not in fields

    def test_definitions_shape(self):
        params = asyncio.run(discover_parameters(_population(), sample_size=100))
        by_field = {p.field: p for p in params}
        assert by_field["common"].type == "number"
        assert by_field["scarce"].type == "boolean"
        assert all(p.category == "Custom Parameters" for p in params)
        assert all(p.removable and p.visible and not p.is_fixed for p in params)

    def test_exclude_params(self):
        params = asyncio.run(
            discover_parameters(_population(), sample_size=100, exclude_params={"common"})
        )
        assert "common" not in [p.field for p in params]

    def test_seeded_sampling_is_reproducible(self):
        elements = _population()
        a = sample_elements(elements, 4, random.Random(7))
        b = sample_elements(elements, 4, random.Random(7))
        assert [e.id for e in a] == [e.id for e in b]
        assert len({e.id for e in a}) == 4

    def test_sample_larger_than_population(self):
        assert len(sample_elements(_population(), 50)) == 10

    def test_analyze_counts(self):
        counts = asyncio.run(analyze_parameters(_population(), batch_size=3))
        assert counts["common"].count == 10
        assert counts["rare"].frequency == pytest.approx(0.2)

    def test_empty_population(self):
        assert asyncio.run(discover_parameters([])) == []

    def test_failure_wrapped(self):
        class Broken:
            id = "b"

            @property
            def parameters(self):
                raise RuntimeError("boom")

        with pytest.raises(DiscoveryError, match="boom"):
            asyncio.run(discover_parameters([Broken()], sample_size=10))

    def test_merge_with_fixed(self):
        fixed = [ParameterDefinition(field="mark", is_fixed=True)]
        discovered = [ParameterDefinition(field="mark"), ParameterDefinition(field="fire")]
        merged = merge_with_fixed(discovered, fixed)
        assert [p.field for p in merged] == ["mark", "fire"]
        assert merged[0].is_fixed

    def test_missing_values_do_not_count(self):
        elements = [
            Element(id=f"e{i}", parameters={"width": i, "area": 5 if i == 0 else None})
            for i in range(10)
        ]
        params = asyncio.run(discover_parameters(elements, sample_size=10, min_frequency=0.3))
        assert [p.field for p in params] == ["width"]

    def test_plain_parameter_maps(self):
        maps = [{"fire_rating": "2HR"}, {"fire_rating": "1HR", "acoustic": 50}]
        params = asyncio.run(discover_parameters(maps, sample_size=10, min_frequency=0.6))
        assert [p.field for p in params] == ["fire_rating"]
        assert params[0].type == "string"

    def test_raw_parameter_maps(self):
        raws = [
            {
                "id": "w1",
                "Identity Data": {"Mark": "W1"},
                "parameters": {"Fire Rating": "2HR", "Comments": ""},
                "Pset_WallCommon": {"IsExternal": True, "Fire Rating": "1HR"},
            },
            {"type": "IfcWall", "parameters": {"Fire Rating": "1HR"}},
        ]
        maps = raw_parameter_maps(raws)
        assert len(maps) == 1
        assert maps[0]["fire_rating"] == "2HR"
        assert maps[0]["isexternal"] is True
        assert maps[0]["mark"] == "W1"
        assert "comments" not in maps[0]


# ── Headers ──────────────────────────────────────────────────────────────────

class TestHeaders:

    def _raw(self) -> dict:
        return {
            "id": "1",
            "type": "IfcWall",
            "Other": {"Category": "Walls"},
            "parameters": {"Base Offset": 0.0},
            "Identity Data": {"Mark": "W1"},
            "Pset_WallCommon": {"IsExternal": True},
            "Comments": "north",
        }

    def test_normalize_field(self):
        assert normalize_field("Base  Offset") == "base_offset"

    def test_headers_in_bucket_order(self):
        headers = headers_for_element(self._raw())
        fields = [h.field for h in headers]
        assert fields[:2] == ["base_offset", "mark"]
        assert "isexternal" in fields
        assert "comments" in fields
        assert "id" not in fields
        assert [h.order for h in headers] == list(range(len(headers)))

    def test_header_metadata(self):
        by_field = {h.field: h for h in headers_for_element(self._raw())}
        assert by_field["isexternal"].type == "boolean"
        assert by_field["isexternal"].source == "Pset_WallCommon"
        assert by_field["comments"].source == "Properties"
        assert by_field["mark"].description == "Identity Data > Mark"
        assert by_field["mark"].category == "Walls"

    def test_selected_categories(self):
        door = {"id": "2", "Other": {"Category": "Doors"}, "parameters": {"Swing": "L"}}
        walls_only = collect_headers([self._raw(), door], ["Walls"])
        assert "swing" not in [h.field for h in walls_only]
        everything = collect_headers([self._raw(), door])
        assert "swing" in [h.field for h in everything]

    def test_async_matches_sync(self):
        raws = [self._raw(), {"id": "2", "Other": {"Category": "Doors"}, "Width": 9}]
        sync = collect_headers(raws)
        async_ = asyncio.run(discover_headers(raws, chunk_size=1))
        assert [h.field for h in sync] == [h.field for h in async_]


# ── Processing ───────────────────────────────────────────────────────────────

class TestProcessing:

    def test_validate_value(self):
        assert validate_value("12 mm", "number")
        assert not validate_value("abc", "number")
        assert validate_value("Yes", "boolean")
        assert not validate_value("maybe", "boolean")
        assert validate_value(None, "number")

    def test_coerce_value(self):
        assert coerce_value("25%", "number") == 0.25
        assert coerce_value("$3", "number") == 3.0
        assert coerce_value(True, "number") == 1
        assert coerce_value("on", "boolean") is True
        assert coerce_value(None, "string") == ""
        assert coerce_value(" a ", "string") == "a"

    def test_unknown_type_raises(self):
        with pytest.raises(ValidationError):
            coerce_value(1, "matrix")

    def test_cache_evicts_least_recent(self):
        cache = ValueCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert cache.get("a") == 1
        assert cache.get("c") == 3
        assert len(cache) == 2

    def test_process_elements(self):
        definitions = [
            ColumnDef(field="width", type="number"),
            ParameterDefinition(field="external", type="boolean"),
        ]
        elements = [
            Element(id="1", parameters={"width": "300 mm", "external": "yes"}),
            Element(id="2", parameters={"width": "wide"}),
            Element(id="3", parameters={}),
        ]
        progress: list[tuple[int, int]] = []
        result = asyncio.run(
            process_element_parameters(
                elements,
                definitions,
                batch_size=2,
                default_values={"external": True},
                on_progress=lambda done, total, errors: progress.append((done, total)),
            )
        )
        assert not result.ok
        assert [e.id for e in result.elements] == ["1", "2", "3"]
        assert result.elements[0].parameters == {"width": 300.0, "external": True}
        assert "_error" in result.elements[1].parameters
        assert result.errors[0].element_id == "2"
        assert result.errors[0].field == "width"
        assert result.elements[2].parameters == {"width": 0, "external": True}
        assert progress == [(2, 3), (3, 3)]
        # inputs are not mutated
        assert elements[0].parameters["width"] == "300 mm"
