"""Category trees: build, query, validate and batch-update.

Definitions form a forest through their ``parent`` ids.  A definition whose
parent is unknown becomes a root.  Parent chains must be acyclic;
:func:`build_validated_hierarchy` and :func:`apply_category_updates` refuse
any input that is not.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable

from bimtables.errors import HierarchyError
from bimtables.models.categories import (
    CategoryDefinition,
    CategoryNode,
    CategoryUpdate,
    UpdateResult,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[dict], None]


def build_category_hierarchy(definitions: Iterable[CategoryDefinition]) -> list[CategoryNode]:
    """Return the root nodes of the forest described by *definitions*.

    Nodes on a parent cycle are unreachable from any root and do not appear
    in the result; use :func:`build_validated_hierarchy` to reject them.
    """
    nodes: dict[str, CategoryNode] = {}
    for definition in definitions:
        nodes[definition.id] = CategoryNode(
            id=definition.id,
            name=definition.name,
            parent=definition.parent,
        )

    roots: list[CategoryNode] = []
    for node in nodes.values():
        if node.parent and node.parent in nodes:
            nodes[node.parent].children.append(node)
        else:
            roots.append(node)

    _assign_levels(roots, 0)
    return roots


def _assign_levels(nodes: list[CategoryNode], level: int) -> None:
    for node in nodes:
        node.level = level
        _assign_levels(node.children, level + 1)


def find_node(category_id: str, hierarchy: list[CategoryNode]) -> CategoryNode | None:
    for node in hierarchy:
        if node.id == category_id:
            return node
        found = find_node(category_id, node.children)
        if found is not None:
            return found
    return None


def get_descendants(category_id: str, hierarchy: list[CategoryNode]) -> set[str]:
    descendants: set[str] = set()
    node = find_node(category_id, hierarchy)
    stack = list(node.children) if node is not None else []
    while stack:
        child = stack.pop()
        descendants.add(child.id)
        stack.extend(child.children)
    return descendants


def get_ancestors(category_id: str, hierarchy: list[CategoryNode]) -> set[str]:
    """Ids on the parent chain of *category_id*."""
    ancestors: set[str] = set()
    current = find_node(category_id, hierarchy)
    while current is not None and current.parent and current.parent not in ancestors:
        ancestors.add(current.parent)
        current = find_node(current.parent, hierarchy)
    return ancestors


def is_descendant_of(category_id: str, ancestor_id: str, hierarchy: list[CategoryNode]) -> bool:
    return ancestor_id in get_ancestors(category_id, hierarchy)


def is_ancestor_of(category_id: str, descendant_id: str, hierarchy: list[CategoryNode]) -> bool:
    return descendant_id in get_descendants(category_id, hierarchy)


def get_category_path(category_id: str, hierarchy: list[CategoryNode]) -> list[str]:
    """Ids from the root down to *category_id*; empty when it is unknown."""
    path: list[str] = []
    current = find_node(category_id, hierarchy)
    while current is not None and current.id not in path:
        path.insert(0, current.id)
        if not current.parent:
            break
        current = find_node(current.parent, hierarchy)
    return path


def validate_hierarchy(definitions: Iterable[CategoryDefinition]) -> bool:
    """False when any parent chain loops back onto itself."""
    by_id = {d.id: d for d in definitions}
    visited: set[str] = set()
    on_stack: set[str] = set()

    def _has_cycle(category_id: str) -> bool:
        if category_id in on_stack:
            return True
        if category_id in visited:
            return False
        definition = by_id.get(category_id)
        if definition is None:
            return False
        visited.add(category_id)
        on_stack.add(category_id)
        if definition.parent and _has_cycle(definition.parent):
            return True
        on_stack.discard(category_id)
        return False

    return not any(_has_cycle(category_id) for category_id in by_id)


def build_validated_hierarchy(definitions: Iterable[CategoryDefinition]) -> list[CategoryNode]:
    """Like :func:`build_category_hierarchy` but raise on a cycle."""
    definitions = list(definitions)
    if not validate_hierarchy(definitions):
        raise HierarchyError("Invalid category hierarchy: parent cycle detected")
    return build_category_hierarchy(definitions)


# ---------------------------------------------------------------------------
# Batch updates
# ---------------------------------------------------------------------------

def _index_of(categories: list[CategoryDefinition], category_id: str) -> int:
    for i, category in enumerate(categories):
        if category.id == category_id:
            return i
    raise HierarchyError(f"Category {category_id} not found")


def _apply_one(
    update: CategoryUpdate,
    categories: list[CategoryDefinition],
    affected: set[str],
    cascade: bool,
) -> None:
    category = update.category.model_copy()

    if update.type == "add":
        if any(c.id == category.id for c in categories):
            raise HierarchyError(f"Category {category.id} already exists")
        categories.append(category)
        affected.add(category.id)
        if cascade and category.parent:
            affected.add(category.parent)
            affected |= get_ancestors(category.id, build_category_hierarchy(categories))

    elif update.type == "remove":
        index = _index_of(categories, category.id)
        removed = categories[index]
        if cascade:
            hierarchy = build_category_hierarchy(categories)
            affected |= get_descendants(category.id, hierarchy)
            affected |= get_ancestors(category.id, hierarchy)
        del categories[index]
        affected.add(category.id)
        if cascade:
            for i, child in enumerate(categories):
                if child.parent == category.id:
                    categories[i] = child.model_copy(update={"parent": removed.parent})
                    affected.add(child.id)

    elif update.type == "modify":
        index = _index_of(categories, category.id)
        affected.add(category.id)
        if update.previous_parent:
            affected.add(update.previous_parent)
        if category.parent:
            affected.add(category.parent)
        categories[index] = category
        if cascade:
            hierarchy = build_category_hierarchy(categories)
            affected |= get_descendants(category.id, hierarchy)
            affected |= get_ancestors(category.id, hierarchy)

    elif update.type == "reorder":
        index = _index_of(categories, category.id)
        affected.add(category.id)
        if category.parent:
            affected.add(category.parent)
        del categories[index]
        categories.append(category)
        if cascade:
            affected |= {c.id for c in categories if c.parent == category.parent}
            affected |= get_descendants(category.id, build_category_hierarchy(categories))

    else:
        raise HierarchyError(f"Unsupported update type: {update.type}")


async def apply_category_updates(
    categories: list[CategoryDefinition],
    updates: list[CategoryUpdate],
    *,
    cascade: bool = True,
    on_progress: ProgressCallback | None = None,
) -> UpdateResult:
    """Apply *updates* to a copy of *categories* as one all-or-nothing batch.

    The hierarchy is validated before and after the batch.  Any failure,
    including a cycle introduced by the updates, yields ``success=False``
    and leaves the caller's list untouched.  Yields to the event loop
    after each update.
    """
    working = [c.model_copy() for c in categories]
    affected: set[str] = set()

    try:
        if not validate_hierarchy(working):
            raise HierarchyError("Invalid category hierarchy detected")

        for i, update in enumerate(updates):
            _apply_one(update, working, affected, cascade)
            if on_progress is not None:
                on_progress({
                    "processed": i + 1,
                    "total": len(updates),
                    "current_category": update.category.id,
                    "affected_categories": set(affected),
                })
            await asyncio.sleep(0)

        if not validate_hierarchy(working):
            raise HierarchyError("Invalid category hierarchy after updates")
    except HierarchyError as exc:
        logger.warning("Category update batch rejected: %s", exc)
        return UpdateResult(success=False, affected_categories=affected, error=str(exc))

    logger.debug("Applied %d category update(s), %d affected", len(updates), len(affected))
    return UpdateResult(success=True, categories=working, affected_categories=affected)
