"""Discover available column headers directly from raw records."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable

from bimtables.config import (
    HEADER_CHUNK_SIZE,
    KNOWN_GROUPS,
    PARAMETERS_BUCKET,
    PARAMETERS_GROUP,
    PROPERTIES_GROUP,
    STRUCTURAL_KEYS,
    UNCATEGORIZED,
)
from bimtables.extraction.elements import normalize_field
from bimtables.extraction.inference import infer_type
from bimtables.models.element import RawElement
from bimtables.models.parameters import ColumnDef

logger = logging.getLogger(__name__)


def element_category(raw: RawElement) -> str:
    other = raw.get("Other")
    if isinstance(other, dict) and other.get("Category"):
        return str(other["Category"])
    if raw.get("type"):
        return str(raw["type"])
    return UNCATEGORIZED


def headers_for_element(raw: RawElement, category: str | None = None) -> list[ColumnDef]:
    """Every header one raw record offers, first occurrence of a field wins.

    Buckets are read in order: ``parameters``, the known named groups,
    ``Pset_*`` groups, then scalar top-level properties.
    """
    category = category or element_category(raw)
    headers: list[ColumnDef] = []
    seen: set[str] = set()

    def _add(key: str, value: Any, group: str) -> None:
        field = normalize_field(key)
        if field in seen:
            return
        seen.add(field)
        headers.append(
            ColumnDef(
                field=field,
                header=key,
                type=infer_type(value),
                category=category,
                description=f"{group} > {key}",
                source=group,
                fetched_group=group,
                current_group=group,
                is_fetched=True,
                order=len(headers),
            )
        )

    params = raw.get(PARAMETERS_BUCKET)
    if isinstance(params, dict):
        for key, value in params.items():
            _add(key, value, PARAMETERS_GROUP)

    for group in KNOWN_GROUPS:
        data = raw.get(group)
        if isinstance(data, dict):
            for key, value in data.items():
                _add(key, value, group)

    for group, data in raw.items():
        if group.startswith("Pset_") and isinstance(data, dict):
            for key, value in data.items():
                _add(key, value, group)

    for key, value in raw.items():
        if key in KNOWN_GROUPS or key.startswith("Pset_") or key in STRUCTURAL_KEYS:
            continue
        if value is None or not isinstance(value, (dict, list)):
            _add(key, value, PROPERTIES_GROUP)

    return headers


def _select(raw_nodes: Iterable[RawElement], selected: set[str]) -> list[RawElement]:
    return [raw for raw in raw_nodes if not selected or element_category(raw) in selected]


def _finish(found: dict[str, ColumnDef]) -> list[ColumnDef]:
    return [h.model_copy(update={"order": i}) for i, h in enumerate(found.values())]


def collect_headers(
    raw_nodes: Iterable[RawElement],
    selected_categories: Iterable[str] = (),
) -> list[ColumnDef]:
    """Synchronous :func:`discover_headers` for small inputs."""
    found: dict[str, ColumnDef] = {}
    for raw in _select(raw_nodes, set(selected_categories)):
        for header in headers_for_element(raw):
            found.setdefault(header.field, header)
    return _finish(found)


async def discover_headers(
    raw_nodes: Iterable[RawElement],
    selected_categories: Iterable[str] = (),
    *,
    chunk_size: int = HEADER_CHUNK_SIZE,
) -> list[ColumnDef]:
    """Union of the headers offered by raw records in *selected_categories*.

    With no selection every record is inspected.  Records are processed in
    chunks of *chunk_size* with a cooperative yield between chunks.
    """
    selected = set(selected_categories)
    nodes = _select(raw_nodes, selected)

    found: dict[str, ColumnDef] = {}
    for start in range(0, len(nodes), max(1, chunk_size)):
        for raw in nodes[start:start + chunk_size]:
            for header in headers_for_element(raw):
                found.setdefault(header.field, header)
        await asyncio.sleep(0)

    headers = _finish(found)
    logger.debug(
        "Discovered %d header(s) from %d record(s) in %s",
        len(headers), len(nodes), sorted(selected) or "all categories",
    )
    return headers
