"""Classify elements as parents or children and attach children to hosts.

A child is matched when its ``host`` equals the ``mark`` of a classified
parent.  Every other child is collected under one synthetic
``Without Host`` parent so no element is ever dropped from the table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Literal

from bimtables.config import CHILD_CATEGORIES, PARENT_CATEGORIES, UNCATEGORIZED, WITHOUT_HOST
from bimtables.models.element import Element, ElementArena

logger = logging.getLogger(__name__)

WITHOUT_HOST_ID = "without-host"

Role = Literal["parent", "child"]


@dataclass
class RelationshipResult:
    """Outcome of parent/child matching over an arena."""

    parents: list[str] = field(default_factory=list)
    matched: list[str] = field(default_factory=list)
    orphaned: list[str] = field(default_factory=list)

    @property
    def has_orphans(self) -> bool:
        return len(self.orphaned) > 0


def classify(
    element: Element,
    known_parent: Iterable[str] = PARENT_CATEGORIES,
    known_child: Iterable[str] = CHILD_CATEGORIES,
    selected_parent: Iterable[str] = (),
    selected_child: Iterable[str] = (),
) -> Role:
    """Decide whether *element* is a parent or a child row.

    Known child categories always win, then known parent categories (and
    ``Uncategorized``).  Unknown categories are children only when the user
    selected them as child categories.
    """
    category = element.category
    if category in tuple(known_child):
        return "child"
    if category == UNCATEGORIZED or category in tuple(known_parent):
        return "parent"
    if category in tuple(selected_child):
        return "child"
    return "parent"


def without_host_parent() -> Element:
    return Element(
        id=WITHOUT_HOST_ID,
        type="Group",
        mark=WITHOUT_HOST,
        category=UNCATEGORIZED,
    )


def match_relationships(
    arena: ElementArena,
    selected_parent: Iterable[str] = (),
    selected_child: Iterable[str] = (),
    known_parent: Iterable[str] = PARENT_CATEGORIES,
    known_child: Iterable[str] = CHILD_CATEGORIES,
) -> RelationshipResult:
    """Classify every element of *arena* and link children to their hosts.

    Parameters
    ----------
    arena:
        Elements to classify.  ``is_child`` and ``details`` are rewritten in
        place; running the match twice gives the same result.
    selected_parent, selected_child:
        The user's category selection.
    known_parent, known_child:
        Category lists that decide classification before the selection.

    Returns
    -------
    RelationshipResult
        Ids of parents, matched children and orphaned children.
    """
    arena.remove(WITHOUT_HOST_ID)
    selected_parent = tuple(selected_parent)
    selected_child = tuple(selected_child)
    known_parent = tuple(known_parent)
    known_child = tuple(known_child)

    result = RelationshipResult()
    mark_to_parent: dict[str, str] = {}
    children: list[Element] = []

    for element in list(arena):
        element.details.clear()
        role = classify(element, known_parent, known_child, selected_parent, selected_child)
        element.is_child = role == "child"
        if element.is_child:
            children.append(element)
            continue
        result.parents.append(element.id)
        if element.mark:
            # Later duplicates overwrite earlier ones
            mark_to_parent[element.mark] = element.id

    orphans: list[str] = []
    for child in children:
        parent_id = mark_to_parent.get(child.host) if child.host else None
        if parent_id is None:
            orphans.append(child.id)
            continue
        arena.attach(parent_id, child.id)
        result.matched.append(child.id)

    if orphans:
        arena.add(without_host_parent())
        for child_id in orphans:
            arena.attach(WITHOUT_HOST_ID, child_id)
        result.parents.append(WITHOUT_HOST_ID)
        result.orphaned = orphans

    logger.debug(
        "Matched %d child(ren), %d orphaned, %d parent(s)",
        len(result.matched), len(result.orphaned), len(result.parents),
    )
    return result
