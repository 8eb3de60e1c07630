"""Filter and summarise elements by category."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from bimtables.categories.hierarchy import (
    build_category_hierarchy,
    get_ancestors,
    get_descendants,
)
from bimtables.models.categories import CategoryDefinition
from bimtables.models.element import Element

# Element parameters that may name a related category
_RELATED_CATEGORY_PARAMS = ("parentCategory", "relatedCategory", "subCategory", "categoryGroup")


@dataclass
class CategoryStats:
    id: str
    count: int
    percentage: float


def expand_categories(
    selected: Iterable[str],
    definitions: Iterable[CategoryDefinition],
    *,
    include_descendants: bool = True,
    include_ancestors: bool = False,
) -> set[str]:
    selected = set(selected)
    hierarchy = build_category_hierarchy(definitions)
    expanded = set(selected)
    for category_id in selected:
        if include_descendants:
            expanded |= get_descendants(category_id, hierarchy)
        if include_ancestors:
            expanded |= get_ancestors(category_id, hierarchy)
    return expanded


def _has_related_category(element: Element, category: str) -> bool:
    return any(element.parameters.get(p) == category for p in _RELATED_CATEGORY_PARAMS)


def filter_elements_by_categories(
    elements: list[Element],
    selected: Iterable[str],
    definitions: Iterable[CategoryDefinition] = (),
    *,
    include_descendants: bool = True,
    include_ancestors: bool = False,
    match_all: bool = False,
) -> list[Element]:
    """Keep elements whose category is selected (or related through the tree).

    An empty selection keeps everything.  With *match_all* an element must
    also reference every other selected category through one of its
    related-category parameters.
    """
    selected = set(selected)
    if not selected:
        return list(elements)

    expanded = expand_categories(
        selected,
        definitions,
        include_descendants=include_descendants,
        include_ancestors=include_ancestors,
    )

    if not match_all:
        return [e for e in elements if e.category in expanded]

    return [
        e for e in elements
        if e.category in expanded
        and all(c == e.category or _has_related_category(e, c) for c in expanded)
    ]


def unique_categories(elements: Iterable[Element]) -> set[str]:
    return {e.category for e in elements}


def category_statistics(
    elements: list[Element],
    definitions: Iterable[CategoryDefinition] = (),
) -> list[CategoryStats]:
    """Element count and share per category, defined categories first."""
    counts: dict[str, int] = {d.id: 0 for d in definitions}
    for element in elements:
        counts[element.category] = counts.get(element.category, 0) + 1

    total = len(elements)
    return [
        CategoryStats(id=cid, count=count, percentage=(count / total * 100) if total else 0.0)
        for cid, count in counts.items()
    ]


def sort_categories_by_hierarchy(definitions: list[CategoryDefinition]) -> list[CategoryDefinition]:
    """Depth-first order: each category directly followed by its subtree."""
    by_id = {d.id: d for d in definitions}
    ordered: list[CategoryDefinition] = []

    def _visit(nodes) -> None:
        for node in nodes:
            if node.id in by_id:
                ordered.append(by_id[node.id])
            _visit(node.children)

    _visit(build_category_hierarchy(definitions))
    return ordered
