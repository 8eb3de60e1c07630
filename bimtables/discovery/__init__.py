"""Parameter discovery, header discovery and value processing."""

from bimtables.discovery.discovery import (
    discover_parameters,
    merge_with_fixed,
    raw_parameter_maps,
    sample_elements,
)
from bimtables.discovery.headers import discover_headers, headers_for_element, normalize_field
from bimtables.discovery.processing import (
    ProcessingError,
    ProcessingResult,
    process_element_parameters,
)

__all__ = [
    "ProcessingError",
    "ProcessingResult",
    "discover_headers",
    "discover_parameters",
    "headers_for_element",
    "merge_with_fixed",
    "normalize_field",
    "process_element_parameters",
    "raw_parameter_maps",
    "sample_elements",
]
