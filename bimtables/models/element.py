"""Element: one materialized row built from a raw model-tree record.

Elements live in an :class:`ElementArena`.  Parent/child links are stored as
id references (``Element.details`` holds child ids), so rows can be copied
and serialised without ever following an object cycle.
"""

from __future__ import annotations

from typing import Any, Iterator, Union

from pydantic import BaseModel, Field, PrivateAttr

from bimtables.config import UNCATEGORIZED

PrimitiveValue = Union[str, int, float, bool, None]

RawElement = dict[str, Any]
"""Untyped record from the model tree.  Shape varies per category and source."""


class Element(BaseModel):
    """A building element row."""

    id: str
    type: str = "Unknown"
    mark: str = ""
    category: str = UNCATEGORIZED
    host: str | None = None
    name: str | None = None
    parameters: dict[str, PrimitiveValue] = Field(default_factory=dict)
    details: list[str] = Field(default_factory=list)
    is_child: bool = False
    visible: bool = True

    _groups: dict[str, str] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        if not self.category:
            self.category = UNCATEGORIZED
        if not self.mark:
            self.mark = self.id

    @property
    def groups(self) -> dict[str, str]:
        """Parameter key -> originating group name (not serialised)."""
        return self._groups

    def set_parameter(self, key: str, value: PrimitiveValue, group: str) -> None:
        self.parameters[key] = value
        self._groups[key] = group

    def with_parameters(self, parameters: dict[str, PrimitiveValue]) -> Element:
        """Copy of this element carrying *parameters* and their known groups."""
        copy = self.model_copy(
            update={"parameters": dict(parameters), "details": list(self.details)}
        )
        copy._groups = {k: v for k, v in self._groups.items() if k in parameters}
        return copy

    def to_row(self) -> dict[str, Any]:
        """Flat row dict without details."""
        return {
            "id": self.id,
            "type": self.type,
            "mark": self.mark,
            "category": self.category,
            "host": self.host,
            "name": self.name,
            "parameters": dict(self.parameters),
            "is_child": self.is_child,
            "visible": self.visible,
        }


class ElementArena:
    """Indexed element storage.  Relationships are id lists, never references."""

    def __init__(self, elements: list[Element] | None = None) -> None:
        self._elements: dict[str, Element] = {}
        for element in elements or []:
            self.add(element)

    def add(self, element: Element) -> None:
        self._elements[element.id] = element

    def remove(self, element_id: str) -> Element | None:
        return self._elements.pop(element_id, None)

    def get(self, element_id: str) -> Element | None:
        return self._elements.get(element_id)

    def __getitem__(self, element_id: str) -> Element:
        return self._elements[element_id]

    def __contains__(self, element_id: object) -> bool:
        return element_id in self._elements

    def __len__(self) -> int:
        return len(self._elements)

    def __iter__(self) -> Iterator[Element]:
        return iter(self._elements.values())

    def parents(self) -> list[Element]:
        return [e for e in self._elements.values() if not e.is_child]

    def children(self) -> list[Element]:
        return [e for e in self._elements.values() if e.is_child]

    def attach(self, parent_id: str, child_id: str) -> None:
        """Record *child_id* under *parent_id*; attaching twice is a no-op."""
        parent = self._elements[parent_id]
        if child_id not in parent.details:
            parent.details.append(child_id)

    def children_of(self, parent_id: str) -> list[Element]:
        parent = self._elements.get(parent_id)
        if parent is None:
            return []
        return [self._elements[cid] for cid in parent.details if cid in self._elements]

    def to_rows(self) -> list[dict[str, Any]]:
        """Materialise parent rows with their detail rows nested one level deep."""
        rows: list[dict[str, Any]] = []
        for parent in self.parents():
            row = parent.to_row()
            row["details"] = [child.to_row() for child in self.children_of(parent.id)]
            rows.append(row)
        return rows
