"""Tests for building raw element trees from IFC models.

Models are created in memory with ifcopenshell's API.
"""

from __future__ import annotations

from pathlib import Path

import ifcopenshell
import ifcopenshell.api
import ifcopenshell.guid
import pytest

from bimtables.errors import ValidationError
from bimtables.extraction.elements import find_all_raw_nodes
from bimtables.extraction.pipeline import process_data_pipeline
from bimtables.sources.ifc import element_mark, host_of, ifc_to_raw_tree, storey_of


def _build_model() -> ifcopenshell.file:
    """Project > Site > Building > Level 1 with a tagged wall and a door in it.

    The door fills an opening voiding the wall; a slab sits outside the
    spatial structure.
    """
    f = ifcopenshell.file(schema="IFC4")

    project = ifcopenshell.api.run(
        "root.create_entity", f, ifc_class="IfcProject", name="SyntheticProject"
    )
    site = ifcopenshell.api.run("root.create_entity", f, ifc_class="IfcSite", name="Site")
    building = ifcopenshell.api.run(
        "root.create_entity", f, ifc_class="IfcBuilding", name="Building"
    )
    storey = ifcopenshell.api.run(
        "root.create_entity", f, ifc_class="IfcBuildingStorey", name="Level 1"
    )
    ifcopenshell.api.run("aggregate.assign_object", f, products=[site], relating_object=project)
    ifcopenshell.api.run(
        "aggregate.assign_object", f, products=[building], relating_object=site
    )
    ifcopenshell.api.run(
        "aggregate.assign_object", f, products=[storey], relating_object=building
    )

    wall = ifcopenshell.api.run("root.create_entity", f, ifc_class="IfcWall", name="Exterior")
    wall.Tag = "W-01"
    wall.ObjectType = "Basic Wall 200"
    pset = ifcopenshell.api.run("pset.add_pset", f, product=wall, name="Pset_WallCommon")
    ifcopenshell.api.run(
        "pset.edit_pset", f, pset=pset, properties={"IsExternal": True, "FireRating": "2HR"}
    )

    door = ifcopenshell.api.run("root.create_entity", f, ifc_class="IfcDoor", name="Entry")
    ifcopenshell.api.run(
        "spatial.assign_container", f, products=[wall, door], relating_structure=storey
    )

    opening = ifcopenshell.api.run(
        "root.create_entity", f, ifc_class="IfcOpeningElement", name="Opening"
    )
    f.create_entity(
        "IfcRelVoidsElement",
        GlobalId=ifcopenshell.guid.new(),
        RelatingBuildingElement=wall,
        RelatedOpeningElement=opening,
    )
    f.create_entity(
        "IfcRelFillsElement",
        GlobalId=ifcopenshell.guid.new(),
        RelatingOpeningElement=opening,
        RelatedBuildingElement=door,
    )

    ifcopenshell.api.run("root.create_entity", f, ifc_class="IfcSlab", name="Loose slab")
    return f


def _by_class(tree, ifc_class: str) -> list[dict]:
    return [raw for raw in find_all_raw_nodes(tree) if raw["type"] == ifc_class]


@pytest.fixture(scope="module")
def model() -> ifcopenshell.file:
    return _build_model()


class TestHelpers:
    def test_element_mark_fallbacks(self, model):
        wall = model.by_type("IfcWall")[0]
        door = model.by_type("IfcDoor")[0]
        assert element_mark(wall) == "W-01"
        assert element_mark(door) == "Entry"

    def test_host_and_storey(self, model):
        wall = model.by_type("IfcWall")[0]
        door = model.by_type("IfcDoor")[0]
        assert host_of(door) == wall
        assert host_of(wall) is None
        assert storey_of(door).Name == "Level 1"
        assert storey_of(model.by_type("IfcSlab")[0]) is None


class TestRawTree:
    def test_spatial_nesting(self, model):
        tree = ifc_to_raw_tree(model)
        project = tree[0]
        assert project["raw"]["ifc_class"] == "IfcProject"
        site = project["children"][0]
        building = site["children"][0]
        storey = building["children"][0]
        assert storey["raw"]["name"] == "Level 1"
        assert sorted(c["raw"]["type"] for c in storey["children"]) == ["IfcDoor", "IfcWall"]

    def test_spatial_nodes_are_not_elements(self, model):
        classes = sorted(raw["type"] for raw in find_all_raw_nodes(ifc_to_raw_tree(model)))
        assert classes == ["IfcDoor", "IfcSlab", "IfcWall"]

    def test_loose_elements_become_roots(self, model):
        tree = ifc_to_raw_tree(model)
        assert len(tree) == 2
        assert tree[1]["raw"]["type"] == "IfcSlab"
        assert tree[1]["raw"]["Other"]["Category"] == "Floors"

    def test_wall_record(self, model):
        wall = _by_class(ifc_to_raw_tree(model), "IfcWall")[0]
        assert wall["id"] == model.by_type("IfcWall")[0].GlobalId
        assert wall["Identity Data"]["Mark"] == "W-01"
        assert wall["Identity Data"]["Type"] == "Basic Wall 200"
        assert wall["Other"]["Category"] == "Walls"
        assert wall["Constraints"] == {"Level": "Level 1"}
        assert wall["Pset_WallCommon"]["FireRating"] == "2HR"
        assert wall["Pset_WallCommon"]["IsExternal"] is True
        assert "id" not in wall["Pset_WallCommon"]

    def test_door_record(self, model):
        door = _by_class(ifc_to_raw_tree(model), "IfcDoor")[0]
        assert door["Other"]["Category"] == "Doors"
        assert door["Constraints"]["Host"] == "W-01"
        assert door["Constraints"]["Level"] == "Level 1"
        assert "Type" not in door["Identity Data"]

    def test_from_path(self, model, tmp_path: Path):
        path = tmp_path / "model.ifc"
        model.write(str(path))
        tree = ifc_to_raw_tree(path)
        assert len(find_all_raw_nodes(tree)) == 3

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ValidationError, match="not found"):
            ifc_to_raw_tree(tmp_path / "missing.ifc")


class TestPipelineOnIfc:
    def test_door_nests_under_wall(self, model):
        result = process_data_pipeline(ifc_to_raw_tree(model))
        rows = {row["mark"]: row for row in result.table_data}
        assert set(rows) == {"W-01", "Loose slab"}
        assert [d["mark"] for d in rows["W-01"]["details"]] == ["Entry"]
        assert rows["W-01"]["details"][0]["host"] == "W-01"

    def test_pset_headers_offered(self, model):
        result = process_data_pipeline(ifc_to_raw_tree(model), ["Walls"])
        fields = [h.field for h in result.available_headers["parent"]]
        assert "firerating" in fields
        assert "isexternal" in fields
