"""Global configuration: category lists, default columns, engine constants."""

from __future__ import annotations

from typing import Any

# Default named table
DEFAULT_TABLE_ID = "4b2b04b4-4b19-4bd5-b1d2-6d82266ee1d2"
DEFAULT_TABLE_NAME = "Default Schedule"

# Category labels
UNCATEGORIZED = "Uncategorized"
WITHOUT_HOST = "Without Host"

# Parent categories (host elements shown in the main table)
PARENT_CATEGORIES: tuple[str, ...] = (
    UNCATEGORIZED,
    "Walls",
    "Floors",
    "Roofs",
    "Building",
    "Site",
    "Base",
)

# Child categories (hosted elements shown in the detail table)
CHILD_CATEGORIES: tuple[str, ...] = (
    "Structural Framing",
    "Structural Connections",
    "Windows",
    "Doors",
    "Ducts",
    "Pipes",
    "Cable Trays",
    "Conduits",
    "Lighting Fixtures",
)

# UI category -> lowercase substrings matched against raw type strings
CATEGORY_TYPE_PATTERNS: dict[str, tuple[str, ...]] = {
    "Walls": ("ifcwall", "ifcwallstandardcase", "wall"),
    "Floors": ("ifcfloor", "ifcslab", "floor", "slab"),
    "Roofs": ("ifcroof", "roof"),
    "Building": ("ifcbuilding", "building"),
    "Site": ("ifcsite", "site"),
    "Base": ("ifcfooting", "foundation"),
    "Structural Framing": (
        "ifcbeam", "beam", "frame", "truss", "framing", "joist", "rafter", "stud", "plate",
    ),
    "Structural Connections": ("ifcconnection", "connection"),
    "Windows": ("ifcwindow", "window"),
    "Doors": ("ifcdoor", "door"),
    "Columns": ("ifccolumn", "column"),
    "Ducts": ("ifcduct", "duct"),
    "Pipes": ("ifcpipe", "pipe"),
    "Cable Trays": ("ifccabletray", "cabletray"),
    "Conduits": ("ifcconduit", "conduit"),
    "Lighting Fixtures": ("ifclightfixture", "lighting"),
}

# Keywords identifying a raw node as a BIM element
BIM_ELEMENT_TYPES: tuple[str, ...] = (
    "wall", "beam", "floor", "window", "door", "pipe", "duct",
    "column", "roof", "slab", "stair", "railing", "ceiling",
)

# Structural buckets scanned by group inference, highest priority first
GROUP_PRIORITY: tuple[str, ...] = ("Identity Data", "Constraints", "Other")
PARAMETERS_BUCKET = "parameters"
GENERAL_GROUP = "General"
PARAMETERS_GROUP = "Parameters"
PROPERTIES_GROUP = "Properties"

# Named groups scanned during header discovery
KNOWN_GROUPS: tuple[str, ...] = (
    "BaseQuantities",
    "Constraints",
    "Dimensions",
    "Identity Data",
    "Other",
    "Phasing",
    "Structural",
)

# Raw keys that are structure, not parameters
STRUCTURAL_KEYS: frozenset[str] = frozenset({
    "id", "speckle_type", "speckleType", "type", "_type", "elements",
    "children", "__closure", "expressID", "GlobalId", "parameters", "_groups",
})

# Aliases and declared types for well-known element parameters
PARAMETER_MAPPING: dict[str, dict[str, Any]] = {
    "width": {"names": ("width", "Width", "b", "B", "Width Parameter"), "type": "number"},
    "height": {"names": ("height", "Height", "h", "H", "Height Parameter"), "type": "number"},
    "length": {"names": ("length", "Length", "l", "L", "Length Parameter"), "type": "number"},
    "thickness": {"names": ("thickness", "Thickness", "Width"), "type": "number"},
    "area": {"names": ("area", "Area"), "type": "number"},
    "family": {
        "names": ("family", "Family", "familyName", "FamilyName", "Family Type"),
        "type": "string",
    },
    "name": {"names": ("name", "Name"), "type": "string"},
    "mark": {"names": ("mark", "Mark", "markId", "MarkId"), "type": "string"},
    "category": {
        "names": ("category", "Category", "elementCategory", "ElementCategory"),
        "type": "string",
    },
    "host": {
        "names": ("host", "Host", "hostId", "HostId", "hostElement", "HostElement"),
        "type": "string",
    },
}

# Parameter discovery defaults
DISCOVERY_SAMPLE_SIZE = 100
DISCOVERY_MIN_FREQUENCY = 0.1
DISCOVERY_BATCH_SIZE = 20
DISCOVERED_CATEGORY = "Custom Parameters"
HEADER_CHUNK_SIZE = 50

# Value processing defaults
PROCESSING_BATCH_SIZE = 50
PROCESSING_CACHE_SIZE = 1000

# Maximum depth when walking the raw model tree
MAX_TREE_DEPTH = 10

# Remote updates arriving this soon after a local save are our own echo
ANTI_ECHO_WINDOW_SECONDS = 0.5

# Bounded poll for upstream readiness
INIT_POLL_INTERVAL_SECONDS = 0.1
INIT_MAX_RETRIES = 50
INIT_TIMEOUT_SECONDS = 10.0

# Undo history bound
HISTORY_MAX_ENTRIES = 100

# Groups listed ahead of all others in grouped column views
ESSENTIAL_GROUPS: tuple[str, ...] = ("Basic", "Essential")

# Fields every persisted view must carry
ESSENTIAL_FIELDS: tuple[str, ...] = ("mark", "category")


def _column(
    field: str,
    header: str,
    type_: str,
    order: int,
    width: int,
    description: str,
    category: str,
    *,
    removable: bool = True,
) -> dict[str, Any]:
    return {
        "field": field,
        "header": header,
        "type": type_,
        "visible": True,
        "removable": removable,
        "is_fixed": not removable,
        "order": order,
        "width": width,
        "description": description,
        "category": category,
        "source": category,
        "fetched_group": category,
        "current_group": category,
    }


DEFAULT_PARENT_COLUMNS: tuple[dict[str, Any], ...] = (
    _column("category", "Category", "string", 0, 120, "Element category", "Basic", removable=False),
    _column("id", "ID", "string", 1, 100, "Element ID", "Basic"),
    _column("type", "Type", "string", 2, 120, "Element type", "Basic"),
    _column("mark", "Mark", "string", 3, 100, "Element mark", "Basic", removable=False),
    _column("name", "Name", "string", 4, 150, "Element name", "Basic"),
    _column("host", "Host", "string", 5, 100, "Host element", "Basic"),
    _column("width", "Width", "number", 6, 100, "Element width", "Dimensions"),
    _column("height", "Height", "number", 7, 100, "Element height", "Dimensions"),
    _column("thickness", "Thickness", "number", 8, 100, "Element thickness", "Dimensions"),
    _column("area", "Area", "number", 9, 100, "Element area", "Dimensions"),
)

DEFAULT_CHILD_COLUMNS: tuple[dict[str, Any], ...] = (
    _column("category", "Category", "string", 0, 120, "Element category", "Basic", removable=False),
    _column("id", "ID", "string", 1, 100, "Element ID", "Basic"),
    _column("type", "Type", "string", 2, 120, "Element type", "Basic"),
    _column("mark", "Mark", "string", 3, 100, "Element mark", "Basic", removable=False),
    _column("name", "Name", "string", 4, 150, "Element name", "Basic"),
    _column("host", "Host", "string", 5, 100, "Host element", "Basic"),
    _column("width", "Width", "number", 6, 100, "Element width", "Dimensions"),
    _column("height", "Height", "number", 7, 100, "Element height", "Dimensions"),
    _column("length", "Length", "number", 8, 100, "Element length", "Dimensions"),
)

# Minimal columns rendered on the first, essential-fields-only pass
ESSENTIAL_COLUMN_FIELDS: tuple[str, ...] = ("category", "id", "type", "mark", "host")
