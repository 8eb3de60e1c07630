"""Match raw type strings (``IfcWallStandardCase``, ``Objects.BuiltElements.Door``)
against UI categories."""

from __future__ import annotations

from dataclasses import dataclass, field

from bimtables.config import (
    BIM_ELEMENT_TYPES,
    CATEGORY_TYPE_PATTERNS,
    CHILD_CATEGORIES,
    PARENT_CATEGORIES,
)


@dataclass
class CategoryMatches:
    parent_categories: list[str] = field(default_factory=list)
    child_categories: list[str] = field(default_factory=list)


def get_type_patterns(category: str) -> tuple[str, ...]:
    return CATEGORY_TYPE_PATTERNS.get(category, ())


def matches_category(type_string: str, category: str) -> bool:
    """True when *type_string* contains any pattern of *category* (case-insensitive)."""
    lowered = type_string.lower()
    return any(pattern in lowered for pattern in get_type_patterns(category))


def find_matching_categories(type_string: str) -> CategoryMatches:
    return CategoryMatches(
        parent_categories=[c for c in PARENT_CATEGORIES if matches_category(type_string, c)],
        child_categories=[c for c in CHILD_CATEGORIES if matches_category(type_string, c)],
    )


def most_specific_category(type_string: str) -> str | None:
    """Best category for *type_string*; child categories are more specific."""
    matches = find_matching_categories(type_string)
    if matches.child_categories:
        return matches.child_categories[0]
    if matches.parent_categories:
        return matches.parent_categories[0]
    return None


def is_bim_type(type_string: str) -> bool:
    lowered = type_string.lower()
    return any(keyword in lowered for keyword in BIM_ELEMENT_TYPES)
