"""Element extraction, type inference and relationship matching."""

from bimtables.extraction.elements import (
    extract_element,
    extract_elements,
    extract_parameter_map,
    find_all_raw_nodes,
    find_property_in_groups,
    is_bim_element,
)
from bimtables.extraction.inference import infer_group, infer_type, infer_value_type
from bimtables.extraction.relationships import RelationshipResult, classify, match_relationships

__all__ = [
    "RelationshipResult",
    "classify",
    "extract_element",
    "extract_elements",
    "extract_parameter_map",
    "find_all_raw_nodes",
    "find_property_in_groups",
    "infer_group",
    "infer_type",
    "infer_value_type",
    "is_bim_element",
    "match_relationships",
]
