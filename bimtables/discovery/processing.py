"""Validate and coerce element parameter values against their definitions."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from bimtables.config import PROCESSING_BATCH_SIZE, PROCESSING_CACHE_SIZE
from bimtables.errors import ValidationError
from bimtables.extraction.elements import parse_leading_float
from bimtables.models.element import Element, PrimitiveValue
from bimtables.models.parameters import ColumnDef, ParameterDefinition

logger = logging.getLogger(__name__)

_TRUE_WORDS = ("true", "yes", "1", "on")
_FALSE_WORDS = ("false", "no", "0", "off")

_MISSING = object()


@dataclass
class ProcessingError:
    element_id: str
    field: str
    value: Any
    message: str


@dataclass
class ProcessingResult:
    elements: list[Element] = field(default_factory=list)
    errors: list[ProcessingError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class ValueCache:
    """Small LRU cache of transformed values keyed by ``field:json(value)``."""

    def __init__(self, max_size: int = PROCESSING_CACHE_SIZE) -> None:
        self.max_size = max_size
        self._data: OrderedDict[str, PrimitiveValue] = OrderedDict()

    def get(self, key: str) -> Any:
        if key not in self._data:
            return _MISSING
        self._data.move_to_end(key)
        return self._data[key]

    def set(self, key: str, value: PrimitiveValue) -> None:
        if key in self._data:
            self._data.move_to_end(key)
        elif len(self._data) >= self.max_size:
            self._data.popitem(last=False)
        self._data[key] = value

    def __len__(self) -> int:
        return len(self._data)


def validate_value(value: Any, type_: str) -> bool:
    """True when *value* can be coerced to *type_*."""
    if value is None:
        return True
    if type_ in ("string", "date"):
        return True
    if type_ == "number":
        if isinstance(value, bool):
            return True
        if isinstance(value, str):
            return parse_leading_float(value.strip().replace("%", "").replace("$", "")) is not None
        return isinstance(value, (int, float)) and value == value
    if type_ == "boolean":
        if isinstance(value, str):
            return value.strip().lower() in (*_TRUE_WORDS, *_FALSE_WORDS)
        return isinstance(value, (bool, int, float))
    return False


def coerce_value(value: Any, type_: str) -> PrimitiveValue:
    """Coerce *value* to *type_*; ``None`` becomes the type's empty value."""
    if type_ in ("string", "date"):
        if value is None:
            return ""
        if isinstance(value, (dict, list)):
            return json.dumps(value, default=str)
        return str(value).strip()

    if type_ == "number":
        if value is None:
            return 0
        if isinstance(value, bool):
            return 1 if value else 0
        if isinstance(value, str):
            trimmed = value.strip()
            if trimmed.endswith("%"):
                num = parse_leading_float(trimmed)
                return 0 if num is None else num / 100
            if trimmed.startswith("$"):
                num = parse_leading_float(trimmed[1:])
                return 0 if num is None else num
            num = parse_leading_float(trimmed)
            return 0 if num is None else num
        return value

    if type_ == "boolean":
        if value is None:
            return False
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_WORDS
        return bool(value)

    raise ValidationError(f"Unsupported parameter type: {type_}", value=value)


def _empty_value(type_: str) -> PrimitiveValue:
    if type_ == "number":
        return 0
    if type_ == "boolean":
        return False
    return ""


def process_element(
    element: Element,
    definitions: Sequence[ParameterDefinition | ColumnDef],
    default_values: dict[str, PrimitiveValue],
    cache: ValueCache,
) -> Element:
    """Return a copy of *element* with one coerced value per definition.

    Raises :class:`ValidationError` naming the first field that fails.
    """
    processed: dict[str, PrimitiveValue] = {}
    for definition in definitions:
        value = element.parameters.get(definition.field)

        if value is None:
            processed[definition.field] = default_values.get(
                definition.field, _empty_value(definition.type)
            )
            continue

        cache_key = f"{definition.field}:{json.dumps(value, default=str)}"
        cached = cache.get(cache_key)
        if cached is not _MISSING:
            processed[definition.field] = cached
            continue

        if not validate_value(value, definition.type):
            raise ValidationError(
                "Parameter validation failed", field=definition.field, value=value
            )
        transformed = coerce_value(value, definition.type)
        cache.set(cache_key, transformed)
        processed[definition.field] = transformed

    return element.with_parameters(processed)


async def process_element_parameters(
    elements: Iterable[Element],
    definitions: Sequence[ParameterDefinition | ColumnDef],
    *,
    batch_size: int = PROCESSING_BATCH_SIZE,
    default_values: dict[str, PrimitiveValue] | None = None,
    cache_size: int = PROCESSING_CACHE_SIZE,
    on_progress: Callable[[int, int, list[ProcessingError]], None] | None = None,
) -> ProcessingResult:
    """Coerce every element's values to the declared definition types.

    A failing element is kept with a single ``_error`` parameter holding
    the message; processing continues with the next element.
    """
    elements = list(elements)
    defaults = default_values or {}
    cache = ValueCache(cache_size)
    result = ProcessingResult()

    for start in range(0, len(elements), max(1, batch_size)):
        await asyncio.sleep(0)
        for element in elements[start:start + batch_size]:
            try:
                result.elements.append(process_element(element, definitions, defaults, cache))
            except ValidationError as exc:
                logger.debug("Processing failed for %s", element.id, exc_info=True)
                result.errors.append(
                    ProcessingError(
                        element_id=element.id,
                        field=exc.field or "unknown",
                        value=exc.value,
                        message=str(exc),
                    )
                )
                result.elements.append(
                    element.with_parameters({"_error": str(exc)})
                )
        if on_progress is not None:
            on_progress(len(result.elements), len(elements), list(result.errors))

    logger.debug(
        "Processed %d element(s), %d error(s)", len(result.elements), len(result.errors)
    )
    return result
