"""Raw element tree from an IFC model.

Entry point: ``ifc_to_raw_tree(path_or_file)``

The spatial structure (project, site, building, storey) becomes nested
``{raw, children}`` nodes.  Each element becomes a raw record shaped like
the viewer's: ``Identity Data`` holds ``Mark`` and ``Name``,
``Other.Category`` the table category, ``Constraints`` the level and host,
and every property set is its own group.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import ifcopenshell
import ifcopenshell.util.element

from bimtables.categories.mapping import most_specific_category
from bimtables.errors import ValidationError

logger = logging.getLogger(__name__)

ELEMENT_BASE_CLASS = "IfcElement"

# Openings and other voids are geometry features, not table rows
_SKIPPED_CLASSES = ("IfcFeatureElement", "IfcVirtualElement")

Node = dict[str, Any]


def _safe(value: Any) -> Any:
    if isinstance(value, ifcopenshell.entity_instance):
        return str(value)
    return value


def element_mark(element: ifcopenshell.entity_instance) -> str:
    """Tag, falling back to Name and then GlobalId."""
    return getattr(element, "Tag", None) or element.Name or element.GlobalId


def element_psets(element: ifcopenshell.entity_instance) -> dict[str, dict[str, Any]]:
    """Property sets of *element* keyed by name, without ifcopenshell's ``id`` key."""
    try:
        raw = ifcopenshell.util.element.get_psets(element)
    except Exception:
        logger.debug("Pset extraction failed for %s", element.GlobalId, exc_info=True)
        return {}

    return {
        pset_name: {k: _safe(v) for k, v in props.items() if k != "id"}
        for pset_name, props in raw.items()
    }


def host_of(element: ifcopenshell.entity_instance) -> ifcopenshell.entity_instance | None:
    """Element whose opening *element* fills (door or window -> wall)."""
    for fills in getattr(element, "FillsVoids", None) or ():
        opening = fills.RelatingOpeningElement
        for voids in getattr(opening, "VoidsElements", None) or ():
            return voids.RelatingBuildingElement
    return None


def storey_of(element: ifcopenshell.entity_instance) -> ifcopenshell.entity_instance | None:
    container = ifcopenshell.util.element.get_container(element)
    while container is not None and not container.is_a("IfcBuildingStorey"):
        decomposes = getattr(container, "Decomposes", None)
        container = decomposes[0].RelatingObject if decomposes else None
    return container


def element_to_raw(element: ifcopenshell.entity_instance) -> dict[str, Any]:
    """One raw record for *element*."""
    ifc_class = element.is_a()
    raw: dict[str, Any] = {
        "id": element.GlobalId,
        "type": ifc_class,
        "name": element.Name,
        "Identity Data": {
            "Mark": element_mark(element),
            "Name": element.Name,
        },
    }

    category = most_specific_category(ifc_class)
    if category:
        raw["Other"] = {"Category": category}

    constraints: dict[str, Any] = {}
    storey = storey_of(element)
    if storey is not None:
        constraints["Level"] = storey.Name
    host = host_of(element)
    if host is not None:
        constraints["Host"] = element_mark(host)
    if constraints:
        raw["Constraints"] = constraints

    object_type = getattr(element, "ObjectType", None)
    if object_type:
        raw["Identity Data"]["Type"] = object_type

    for pset_name, props in element_psets(element).items():
        raw.setdefault(pset_name, props)
    return raw


def _is_row_element(entity: ifcopenshell.entity_instance) -> bool:
    return not any(entity.is_a(cls) for cls in _SKIPPED_CLASSES)


def _spatial_node(entity: ifcopenshell.entity_instance, seen: set[int]) -> Node:
    seen.add(entity.id())
    children: list[Node] = []

    for rel in getattr(entity, "IsDecomposedBy", None) or ():
        for part in rel.RelatedObjects:
            if part.id() in seen:
                continue
            if part.is_a(ELEMENT_BASE_CLASS):
                if _is_row_element(part):
                    children.append(_element_node(part, seen))
            else:
                children.append(_spatial_node(part, seen))

    for rel in getattr(entity, "ContainsElements", None) or ():
        for element in rel.RelatedElements:
            if element.id() not in seen and _is_row_element(element):
                children.append(_element_node(element, seen))

    return {
        "raw": {"id": entity.GlobalId, "name": entity.Name, "ifc_class": entity.is_a()},
        "children": children,
    }


def _element_node(element: ifcopenshell.entity_instance, seen: set[int]) -> Node:
    seen.add(element.id())
    children: list[Node] = []
    for rel in getattr(element, "IsDecomposedBy", None) or ():
        for part in rel.RelatedObjects:
            if part.id() not in seen and _is_row_element(part):
                children.append(_element_node(part, seen))
    return {"raw": element_to_raw(element), "children": children}


def ifc_to_raw_tree(path_or_file: str | Path | ifcopenshell.file) -> list[Node]:
    """Build the raw node tree for an IFC model.

    Parameters
    ----------
    path_or_file:
        Path to an IFC2x3/IFC4 file, or an already opened ``ifcopenshell.file``.

    Returns
    -------
    list[Node]
        One node per project, followed by a node for each element that is
        not placed in the spatial structure.
    """
    if isinstance(path_or_file, ifcopenshell.file):
        ifc_file = path_or_file
    else:
        path = Path(path_or_file)
        if not path.is_file():
            raise ValidationError(f"IFC file not found: {path}", field="path", value=str(path))
        logger.info("Opening %s", path)
        ifc_file = ifcopenshell.open(str(path))

    seen: set[int] = set()
    roots = [_spatial_node(project, seen) for project in ifc_file.by_type("IfcProject")]

    loose = 0
    for element in ifc_file.by_type(ELEMENT_BASE_CLASS):
        if element.id() in seen or not _is_row_element(element):
            continue
        roots.append(_element_node(element, seen))
        loose += 1

    logger.info(
        "Built raw tree with %d element(s) (%d outside the spatial structure)",
        sum(1 for e in ifc_file.by_type(ELEMENT_BASE_CLASS) if _is_row_element(e)),
        loose,
    )
    return roots
