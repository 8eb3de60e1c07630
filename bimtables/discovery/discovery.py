"""Frequency-based parameter discovery over extracted elements or raw records."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence, Union

from bimtables.config import (
    DISCOVERED_CATEGORY,
    DISCOVERY_BATCH_SIZE,
    DISCOVERY_MIN_FREQUENCY,
    DISCOVERY_SAMPLE_SIZE,
)
from bimtables.errors import DiscoveryError
from bimtables.extraction.elements import extract_parameter_map, normalize_field
from bimtables.extraction.inference import infer_type
from bimtables.models.element import Element, PrimitiveValue, RawElement
from bimtables.models.parameters import ParameterDefinition, ParameterType

logger = logging.getLogger(__name__)

# An extracted element or a plain ``field -> value`` map
ParameterSource = Union[Element, Mapping[str, PrimitiveValue]]


@dataclass
class DiscoveredParameter:
    field: str
    type: ParameterType
    count: int = 0
    frequency: float = 0.0


def raw_parameter_maps(raw_nodes: Iterable[RawElement]) -> list[dict[str, PrimitiveValue]]:
    """Every non-empty scalar a raw record carries, keyed by normalised field.

    Field names match the ones header discovery offers, so a discovered
    parameter added as a column is found again on extraction.  Records
    without an id never become rows and are skipped.
    """
    maps: list[dict[str, PrimitiveValue]] = []
    for raw in raw_nodes:
        if raw.get("id") in (None, ""):
            continue
        values, _ = extract_parameter_map(raw)
        normalised: dict[str, PrimitiveValue] = {}
        for key, value in values.items():
            if value is not None and value != "":
                normalised.setdefault(normalize_field(key), value)
        maps.append(normalised)
    return maps


def _parameters_of(source: Any) -> Mapping[str, PrimitiveValue]:
    if isinstance(source, Mapping):
        return source
    return source.parameters


def sample_elements(
    elements: Sequence[ParameterSource],
    sample_size: int,
    rng: random.Random | None = None,
) -> list[ParameterSource]:
    """Uniform sample of *sample_size* distinct elements, or all of them."""
    if len(elements) <= sample_size:
        return list(elements)
    rng = rng or random.Random()
    indices = rng.sample(range(len(elements)), sample_size)
    return [elements[i] for i in indices]


def _chunks(items: list[ParameterSource], size: int) -> Iterable[list[ParameterSource]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


async def analyze_parameters(
    sample: list[ParameterSource],
    batch_size: int = DISCOVERY_BATCH_SIZE,
) -> dict[str, DiscoveredParameter]:
    """Count parameter occurrences over *sample*, yielding between batches.

    A field only counts where it has a value; ``None`` means absent.  The
    type of each field is inferred from the first value seen.
    """
    discovered: dict[str, DiscoveredParameter] = {}
    for batch in _chunks(sample, max(1, batch_size)):
        await asyncio.sleep(0)
        for source in batch:
            for field, value in _parameters_of(source).items():
                if value is None:
                    continue
                entry = discovered.get(field)
                if entry is None:
                    entry = discovered[field] = DiscoveredParameter(field=field, type=infer_type(value))
                entry.count += 1

    if sample:
        for entry in discovered.values():
            entry.frequency = entry.count / len(sample)
    return discovered


async def discover_parameters(
    elements: Sequence[ParameterSource],
    *,
    sample_size: int = DISCOVERY_SAMPLE_SIZE,
    min_frequency: float = DISCOVERY_MIN_FREQUENCY,
    exclude_params: Iterable[str] = frozenset(),
    batch_size: int = DISCOVERY_BATCH_SIZE,
    rng: random.Random | None = None,
) -> list[ParameterDefinition]:
    """Discover the parameters common to a sample of *elements*.

    Parameters
    ----------
    elements:
        Extracted elements (their ``parameters`` are inspected) or plain
        parameter maps such as those from :func:`raw_parameter_maps`.
    sample_size:
        Upper bound on the number of elements inspected.
    min_frequency:
        Fields present on fewer than this fraction of the sample are dropped.
    exclude_params:
        Fields never reported.
    batch_size:
        Elements processed between cooperative yields.
    rng:
        Random source for sampling; pass a seeded ``random.Random`` for
        reproducible results.

    Returns
    -------
    list[ParameterDefinition]
        One removable, visible definition per surviving field, in first-seen
        order, all in the ``Custom Parameters`` category.

    Raises
    ------
    DiscoveryError
        On any failure; no partial result is returned.
    """
    logger.debug("Starting parameter discovery over %d element(s)", len(elements))
    excluded = frozenset(exclude_params)
    try:
        await asyncio.sleep(0)
        sample = sample_elements(elements, sample_size, rng)
        discovered = await analyze_parameters(sample, batch_size)
        await asyncio.sleep(0)
        definitions = [
            ParameterDefinition(
                field=entry.field,
                header=entry.field,
                type=entry.type,
                category=DISCOVERED_CATEGORY,
                removable=True,
                visible=True,
                is_fixed=False,
            )
            for entry in discovered.values()
            if entry.frequency >= min_frequency and entry.field not in excluded
        ]
    except Exception as exc:
        logger.error("Parameter discovery failed: %s", exc)
        raise DiscoveryError(f"Parameter discovery failed: {exc}") from exc

    logger.info("Parameter discovery complete: %d parameter(s)", len(definitions))
    return definitions


def merge_with_fixed(
    discovered: Iterable[ParameterDefinition],
    fixed: Iterable[ParameterDefinition],
) -> list[ParameterDefinition]:
    """Fixed definitions first, then discovered ones with unseen fields."""
    merged: list[ParameterDefinition] = []
    seen: set[str] = set()
    for definition in (*fixed, *discovered):
        if definition.field in seen:
            continue
        seen.add(definition.field)
        merged.append(definition)
    return merged
