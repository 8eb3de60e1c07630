"""Data pipeline: raw model tree -> classified, filtered table rows.

Entry points: ``process_data_pipeline(raw_elements, ...)`` for the
synchronous pass and ``process_data_pipeline_full(...)`` which also runs
parameter discovery.

Stages run strictly in order: extraction, relationship matching, category
filtering, parameter/column extraction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from bimtables.categories.filtering import filter_elements_by_categories
from bimtables.columns.defaults import default_columns, essential_columns, fixed_parameters
from bimtables.columns.merge import create_column_def
from bimtables.config import PARAMETERS_GROUP
from bimtables.discovery.discovery import discover_parameters, merge_with_fixed, raw_parameter_maps
from bimtables.discovery.headers import collect_headers
from bimtables.extraction.elements import extract_element, find_all_raw_nodes
from bimtables.extraction.inference import infer_type
from bimtables.extraction.relationships import WITHOUT_HOST_ID, match_relationships
from bimtables.models.element import Element, ElementArena, RawElement
from bimtables.models.parameters import ColumnDef, ParameterDefinition, View

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Rows, columns and headers produced by one pipeline run."""

    table_data: list[dict[str, Any]] = field(default_factory=list)
    parameter_columns: list[ColumnDef] = field(default_factory=list)
    child_parameter_columns: list[ColumnDef] = field(default_factory=list)
    available_headers: dict[View, list[ColumnDef]] = field(
        default_factory=lambda: {"parent": [], "child": []}
    )
    arena: ElementArena = field(default_factory=ElementArena)
    parameters: list[ParameterDefinition] = field(default_factory=list)
    raw_nodes: list[RawElement] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.table_data)


def _visible_parents(
    arena: ElementArena,
    selected_parent: list[str],
    selected_child: list[str],
) -> list[Element]:
    parents = [p for p in arena.parents() if p.id != WITHOUT_HOST_ID]
    kept = filter_elements_by_categories(parents, selected_parent)
    synthetic = arena.get(WITHOUT_HOST_ID)
    if synthetic is not None and _visible_children(arena, synthetic.id, selected_child):
        kept.append(synthetic)
    return kept


def _visible_children(arena: ElementArena, parent_id: str, selected_child: list[str]) -> list[Element]:
    return filter_elements_by_categories(arena.children_of(parent_id), selected_child)


def _build_rows(
    arena: ElementArena,
    selected_parent: list[str],
    selected_child: list[str],
) -> tuple[list[dict[str, Any]], list[Element]]:
    rows: list[dict[str, Any]] = []
    included: list[Element] = []
    for parent in _visible_parents(arena, selected_parent, selected_child):
        children = _visible_children(arena, parent.id, selected_child)
        row = parent.to_row()
        row["details"] = [child.to_row() for child in children]
        rows.append(row)
        included.append(parent)
        included.extend(children)
    return rows, included


def _parameter_columns(elements: Iterable[Element], view: View) -> list[ColumnDef]:
    """Default columns of *view* followed by every other parameter with a value."""
    columns = default_columns(view)
    known = {c.field for c in columns}
    for element in elements:
        for key, value in element.parameters.items():
            if key in known or value is None:
                continue
            known.add(key)
            group = element.groups.get(key, PARAMETERS_GROUP)
            columns.append(
                create_column_def(
                    key,
                    order=len(columns),
                    type=infer_type(value),
                    source=group,
                    category=group,
                    fetched_group=group,
                    current_group=group,
                )
            )
    return columns


def process_data_pipeline(
    raw_elements: Any,
    selected_parent_categories: Iterable[str] = (),
    selected_child_categories: Iterable[str] = (),
    essential_fields_only: bool = False,
    active_parameters: Iterable[str] | None = None,
) -> PipelineResult:
    """Turn a raw model tree into table rows.

    Parameters
    ----------
    raw_elements:
        A ``{raw, children}`` tree, a list of such nodes, or a list of raw
        records.
    selected_parent_categories, selected_child_categories:
        Category filters.  An empty selection keeps every category.
    essential_fields_only:
        Skip header discovery and return only the minimal column set, for a
        fast first render.
    active_parameters:
        Fields extracted onto each element; defaults to the default columns.

    Returns
    -------
    PipelineResult
    """
    selected_parent = list(selected_parent_categories)
    selected_child = list(selected_child_categories)

    raw_nodes: list[RawElement] = find_all_raw_nodes(raw_elements)
    arena = ElementArena()
    for raw in raw_nodes:
        element = extract_element(raw, active_parameters)
        if element is not None:
            arena.add(element)

    relationships = match_relationships(arena, selected_parent, selected_child)
    rows, included = _build_rows(arena, selected_parent, selected_child)

    if essential_fields_only:
        result = PipelineResult(
            table_data=rows,
            parameter_columns=essential_columns("parent"),
            child_parameter_columns=essential_columns("child"),
            arena=arena,
            raw_nodes=raw_nodes,
        )
    else:
        result = PipelineResult(
            table_data=rows,
            parameter_columns=_parameter_columns([e for e in included if not e.is_child], "parent"),
            child_parameter_columns=_parameter_columns(
                [e for e in included if e.is_child], "child"
            ),
            available_headers={
                "parent": collect_headers(raw_nodes, selected_parent),
                "child": collect_headers(raw_nodes, selected_child),
            },
            arena=arena,
            raw_nodes=raw_nodes,
        )

    logger.info(
        "Pipeline produced %d row(s) from %d element(s) (%d orphaned)",
        len(rows), len(raw_nodes), len(relationships.orphaned),
    )
    return result


async def process_data_pipeline_full(
    raw_elements: Any,
    selected_parent_categories: Iterable[str] = (),
    selected_child_categories: Iterable[str] = (),
    **discovery_options: Any,
) -> PipelineResult:
    """Run :func:`process_data_pipeline` and then parameter discovery.

    Discovery reads every parameter bucket of the raw records, not only
    the extracted columns.  Discovered parameters are merged after the
    fixed default parameters and stored on ``result.parameters``.  Keyword arguments go to
    :func:`~bimtables.discovery.discover_parameters`.
    """
    result = process_data_pipeline(
        raw_elements, selected_parent_categories, selected_child_categories
    )
    discovered = await discover_parameters(
        raw_parameter_maps(result.raw_nodes), **discovery_options
    )
    result.parameters = merge_with_fixed(discovered, fixed_parameters("parent"))
    return result
