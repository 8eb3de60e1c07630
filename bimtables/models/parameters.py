"""Parameter and column definitions.

``ParameterDefinition`` (``kind="parameter"``) describes something that *can*
become a column; ``ColumnDef`` (``kind="column"``) is a column that is active
in a view.  Call sites dispatch on ``kind`` rather than probing for attributes.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from bimtables.config import PARAMETERS_GROUP
from bimtables.errors import ValidationError

ParameterType = Literal["string", "number", "boolean", "date"]
View = Literal["parent", "child"]

VIEWS: tuple[View, ...] = ("parent", "child")


class ParameterDefinition(BaseModel):
    """A parameter that may be added to a view as a column."""

    kind: Literal["parameter"] = "parameter"
    field: str
    header: str = ""
    type: ParameterType = "string"
    category: str | None = None
    description: str | None = None
    source: str | None = None
    is_fixed: bool = False
    removable: bool = True
    visible: bool = True
    order: int | None = None

    def model_post_init(self, __context: Any) -> None:
        if not self.header:
            self.header = self.field
        if self.is_fixed:
            self.removable = False


class ColumnDef(BaseModel):
    """An active column in a parent or child view."""

    kind: Literal["column"] = "column"
    field: str
    header: str = ""
    type: ParameterType = "string"
    category: str | None = None
    description: str | None = None
    is_fixed: bool = False
    removable: bool = True
    visible: bool = True
    order: int = 0
    width: int | None = None

    source: str = PARAMETERS_GROUP
    """Where the column currently displays (grouping key)."""

    fetched_group: str = PARAMETERS_GROUP
    """Group the parameter was discovered in."""

    current_group: str = PARAMETERS_GROUP
    """Group the user has placed the column in."""

    is_fetched: bool = True
    is_custom_parameter: bool = False

    def model_post_init(self, __context: Any) -> None:
        if not self.header:
            self.header = self.field
        if self.is_fixed:
            self.removable = False


ColumnOrParameter = Annotated[
    Union[ColumnDef, ParameterDefinition], Field(discriminator="kind")
]


class UserParameter(BaseModel):
    """A user-defined parameter: a constant or an arithmetic equation."""

    id: str
    name: str
    group: str = "Custom"
    type: Literal["fixed", "equation"] = "fixed"
    value: Any = None
    equation: str | None = None


def field_of(item: ColumnDef | ParameterDefinition) -> str:
    if item.kind == "column":
        return item.field
    if item.kind == "parameter":
        return item.field
    raise ValidationError(f"Unknown definition kind: {item.kind!r}", value=item)


def to_column(item: ColumnDef | ParameterDefinition, order: int) -> ColumnDef:
    """Return a ColumnDef for *item* positioned at *order*."""
    if item.kind == "column":
        return item.model_copy(update={"order": order})
    if item.kind == "parameter":
        group = item.source or item.category or PARAMETERS_GROUP
        return ColumnDef(
            field=item.field,
            header=item.header,
            type=item.type,
            category=item.category,
            description=item.description,
            is_fixed=item.is_fixed,
            removable=not item.is_fixed,
            visible=True,
            order=order,
            source=group,
            fetched_group=group,
            current_group=group,
        )
    raise ValidationError(f"Unknown definition kind: {item.kind!r}", value=item)


def to_parameter(item: ColumnDef | ParameterDefinition) -> ParameterDefinition:
    """Return the ParameterDefinition a column was created from."""
    if item.kind == "parameter":
        return item
    if item.kind == "column":
        return ParameterDefinition(
            field=item.field,
            header=item.header,
            type=item.type,
            category=item.category,
            description=item.description,
            source=item.source,
            is_fixed=item.is_fixed,
            removable=item.removable,
            visible=item.visible,
        )
    raise ValidationError(f"Unknown definition kind: {item.kind!r}", value=item)
