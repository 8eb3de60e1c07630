"""Category hierarchy, filtering and type mapping."""

from bimtables.categories.filtering import (
    CategoryStats,
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

__all__ = [
    "CategoryStats",
    "apply_category_updates",
    "build_category_hierarchy",
    "build_validated_hierarchy",
    "category_statistics",
    "filter_elements_by_categories",
    "find_matching_categories",
    "get_ancestors",
    "get_category_path",
    "get_descendants",
    "is_ancestor_of",
    "is_bim_type",
    "is_descendant_of",
    "matches_category",
    "most_specific_category",
    "sort_categories_by_hierarchy",
    "unique_categories",
    "validate_hierarchy",
]
