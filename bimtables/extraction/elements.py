"""Walk the raw model tree and build :class:`Element` rows.

Raw records come from the viewer (or :mod:`bimtables.sources.ifc`) and have
no fixed shape; every lookup here tolerates missing or oddly-typed groups.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable

from bimtables.config import (
    DEFAULT_CHILD_COLUMNS,
    DEFAULT_PARENT_COLUMNS,
    MAX_TREE_DEPTH,
    PARAMETER_MAPPING,
    PARAMETERS_BUCKET,
    PARAMETERS_GROUP,
    STRUCTURAL_KEYS,
    UNCATEGORIZED,
)
from bimtables.extraction.inference import infer_group, infer_value_type
from bimtables.models.element import Element, PrimitiveValue, RawElement
from bimtables.models.parameters import ParameterType

logger = logging.getLogger(__name__)

_LEADING_FLOAT = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_WHITESPACE = re.compile(r"\s+")

# Element attributes mirrored into ``parameters`` when the raw record has no value
_ATTRIBUTE_FIELDS = ("id", "type", "mark", "category", "host", "name")


def default_active_parameters() -> list[str]:
    """Fields of the default parent and child columns, without duplicates."""
    fields: list[str] = []
    for col in (*DEFAULT_PARENT_COLUMNS, *DEFAULT_CHILD_COLUMNS):
        if col["field"] not in fields:
            fields.append(col["field"])
    return fields


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------

def parse_leading_float(text: str) -> float | None:
    match = _LEADING_FLOAT.match(text.strip())
    if match is None:
        return None
    return float(match.group(0))


def unwrap_value(value: Any) -> Any:
    """Strip speckle ``{"_": v}`` and ``{"currentValue": v}`` wrappers."""
    if isinstance(value, dict):
        if "_" in value:
            return value["_"]
        if "currentValue" in value:
            return value["currentValue"]
    return value


def transform_value(value: Any, type_: ParameterType) -> PrimitiveValue:
    """Coerce a raw value to *type_*; unconvertible values become ``None``."""
    value = unwrap_value(value)
    if value is None:
        return None

    if type_ == "boolean":
        return value if isinstance(value, bool) else None

    if type_ == "number":
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return None if value != value else value
        if isinstance(value, str):
            trimmed = value.strip()
            if trimmed.endswith("%"):
                num = parse_leading_float(trimmed)
                return None if num is None else num / 100
            if trimmed.startswith("$"):
                return parse_leading_float(trimmed[1:])
            return parse_leading_float(trimmed)
        return None

    if type_ in ("string", "date"):
        if isinstance(value, (dict, list)):
            try:
                text = json.dumps(value, default=str)
            except (TypeError, ValueError):
                return None
            return None if text == "{}" else text
        return str(value)

    return None


def normalize_field(key: str) -> str:
    """``"Base Offset"`` -> ``"base_offset"``."""
    return _WHITESPACE.sub("_", key).lower()


# ---------------------------------------------------------------------------
# Raw record lookups
# ---------------------------------------------------------------------------

def is_bim_element(raw: Any) -> bool:
    """True when *raw* carries a speckle type, a type or an ``Other.Category``."""
    if not isinstance(raw, dict):
        return False
    for key in ("speckle_type", "speckleType", "type"):
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return True
    other = raw.get("Other")
    if isinstance(other, dict):
        category = other.get("Category")
        if isinstance(category, str) and category.strip():
            return True
    return False


def _from_group(group: Any, name: str) -> str | None:
    if isinstance(group, dict) and name in group:
        value = unwrap_value(group[name])
        return str(value) if value not in (None, "", False, 0) else None
    return None


def find_property_in_groups(raw: RawElement, name: str) -> str | None:
    """Find *name* in ``Identity Data``, then ``parameters``, then any other group."""
    value = _from_group(raw.get("Identity Data"), name)
    if value:
        return value

    value = _from_group(raw.get(PARAMETERS_BUCKET), name)
    if value:
        return value

    for key, group in raw.items():
        if key == PARAMETERS_BUCKET or not isinstance(group, dict):
            continue
        value = _from_group(group, name)
        if value:
            return value
    return None


def _locate(raw: RawElement, field: str) -> tuple[str, Any]:
    """Return ``(matched_name, value)`` for *field* using the alias table."""
    mapping = PARAMETER_MAPPING.get(field)
    names = mapping["names"] if mapping else (field,)
    params = raw.get(PARAMETERS_BUCKET)
    params = params if isinstance(params, dict) else {}

    for name in names:
        if params.get(name) is not None:
            return name, params[name]
        if name == "mark" and raw.get("Mark") is not None:
            return "Mark", raw["Mark"]
        if name == "category":
            other = raw.get("Other")
            if isinstance(other, dict) and other.get("Category") is not None:
                return "Category", other["Category"]
        if name == "host":
            constraints = raw.get("Constraints")
            if isinstance(constraints, dict) and constraints.get("Host") is not None:
                return "Host", constraints["Host"]
        if name in raw and name not in STRUCTURAL_KEYS:
            return name, raw[name]

    if mapping is not None:
        return field, None

    # Discovered headers use normalised field names
    wanted = normalize_field(field)
    for group_name, group in raw.items():
        if group_name in STRUCTURAL_KEYS and group_name != PARAMETERS_BUCKET:
            continue
        if isinstance(group, dict):
            for key, value in group.items():
                if normalize_field(key) == wanted and value is not None:
                    return key, value
        elif normalize_field(group_name) == wanted and group is not None:
            return group_name, group
    return field, None


def find_parameter_value(raw: RawElement, field: str) -> Any:
    """Raw (untransformed) value of *field*, trying every known alias."""
    return _locate(raw, field)[1]


# ---------------------------------------------------------------------------
# Element construction
# ---------------------------------------------------------------------------

def _element_type(raw: RawElement) -> str:
    for key in ("speckle_type", "speckleType", "type"):
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return "Unknown"


def _category(raw: RawElement) -> str:
    other = raw.get("Other")
    if isinstance(other, dict):
        category = unwrap_value(other.get("Category"))
        if category:
            return str(category)
    return find_property_in_groups(raw, "Category") or UNCATEGORIZED


def _host(raw: RawElement) -> str | None:
    constraints = raw.get("Constraints")
    if isinstance(constraints, dict):
        host = unwrap_value(constraints.get("Host"))
        if host:
            return str(host)
    return find_property_in_groups(raw, "Host")


def extract_element(
    raw: RawElement,
    active_parameters: Iterable[str] | None = None,
) -> Element | None:
    """Build an :class:`Element` from *raw*.

    Returns ``None`` for records without an id.  When parameter extraction
    fails the element is still returned with empty parameters.
    """
    raw_id = raw.get("id")
    if raw_id is None or raw_id == "":
        logger.debug("Skipping raw record without id: %s", sorted(raw)[:5])
        return None

    element_id = str(raw_id)
    element = Element(
        id=element_id,
        type=_element_type(raw),
        mark=(
            find_property_in_groups(raw, "Mark")
            or _from_group(raw, "Mark")
            or _from_group(raw, "Tag")
            or element_id
        ),
        category=_category(raw),
        host=_host(raw),
        name=find_property_in_groups(raw, "Name") or _from_group(raw, "name"),
    )

    fields = list(active_parameters) if active_parameters is not None else default_active_parameters()
    try:
        for field in fields:
            matched, value = _locate(raw, field)
            value = transform_value(value, infer_value_type(field, unwrap_value(value)))
            if value is None and field in _ATTRIBUTE_FIELDS:
                value = getattr(element, field)
            element.set_parameter(field, value, infer_group(raw, matched))
    except Exception:
        logger.debug("Parameter extraction failed for %s", element_id, exc_info=True)
        element.parameters.clear()
        element.groups.clear()

    return element


def extract_parameter_map(raw: RawElement) -> tuple[dict[str, PrimitiveValue], dict[str, str]]:
    """Flatten every bucket of *raw* into ``(values, groups)``.

    Nested groups contribute their scalar entries under the group's name;
    top-level scalars land in ``General``.  Structural keys are skipped and
    the first occurrence of a key wins.
    """
    values: dict[str, PrimitiveValue] = {}
    groups: dict[str, str] = {}

    def _put(key: str, value: Any, group: str) -> None:
        if key in STRUCTURAL_KEYS or key in values:
            return
        value = unwrap_value(value)
        if isinstance(value, (dict, list)):
            return
        values[key] = value
        groups[key] = group

    params = raw.get(PARAMETERS_BUCKET)
    if isinstance(params, dict):
        for key, value in params.items():
            _put(key, value, PARAMETERS_GROUP)

    for group_name, group in raw.items():
        if group_name in STRUCTURAL_KEYS:
            continue
        if isinstance(group, dict) and "_" not in group:
            for key, value in group.items():
                _put(key, value, group_name)

    for key, value in raw.items():
        if not isinstance(value, dict):
            _put(key, value, infer_group(raw, key))

    return values, groups


# ---------------------------------------------------------------------------
# Tree walking
# ---------------------------------------------------------------------------

def _node_children(node: dict[str, Any]) -> list[Any]:
    children: list[Any] = []
    seen: set[int] = set()
    model = node.get("model") if isinstance(node.get("model"), dict) else {}
    for source in (node.get("children"), model.get("children"), node.get("elements")):
        for child in source or []:
            if child is not None and id(child) not in seen:
                seen.add(id(child))
                children.append(child)
    return children


def find_all_raw_nodes(tree: Any, max_depth: int = MAX_TREE_DEPTH) -> list[RawElement]:
    """Collect BIM element records from a ``{raw, children}`` tree.

    *tree* may be a single node or a list of nodes.  A node without a
    ``raw`` key is treated as its own record.  Records are deduplicated by
    id and the walk stops at *max_depth*.
    """
    found: list[RawElement] = []
    seen_ids: set[str] = set()

    def _take(raw: Any) -> None:
        if not isinstance(raw, dict) or not is_bim_element(raw):
            return
        raw_id = raw.get("id")
        if raw_id is not None:
            if str(raw_id) in seen_ids:
                return
            seen_ids.add(str(raw_id))
        found.append(raw)

    def _walk(node: Any, depth: int) -> None:
        if depth >= max_depth or not isinstance(node, dict):
            return
        raw = node.get("raw", node)
        _take(raw)
        model = node.get("model")
        if isinstance(model, dict) and isinstance(model.get("raw"), dict):
            if not isinstance(raw, dict) or model["raw"].get("id") != raw.get("id"):
                _take(model["raw"])
        for child in _node_children(node):
            _walk(child, depth + 1)

    roots = tree if isinstance(tree, list) else [tree]
    for root in roots:
        _walk(root, 0)

    logger.debug("Collected %d raw element(s) from tree", len(found))
    return found


def extract_elements(
    tree: Any,
    active_parameters: Iterable[str] | None = None,
    max_depth: int = MAX_TREE_DEPTH,
) -> list[Element]:
    """Walk *tree* and build one :class:`Element` per BIM record."""
    fields = list(active_parameters) if active_parameters is not None else None
    elements: list[Element] = []
    for raw in find_all_raw_nodes(tree, max_depth=max_depth):
        element = extract_element(raw, fields)
        if element is not None:
            elements.append(element)
    return elements
