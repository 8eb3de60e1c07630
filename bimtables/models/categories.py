"""Category definitions and hierarchy nodes."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class CategoryDefinition(BaseModel):
    id: str
    name: str = ""
    parent: str | None = None
    description: str | None = None


class CategoryNode(BaseModel):
    """A node of a built category tree."""

    id: str
    name: str = ""
    parent: str | None = None
    children: list[CategoryNode] = Field(default_factory=list)
    level: int = 0


CategoryUpdateType = Literal["add", "remove", "modify", "reorder"]


class CategoryUpdate(BaseModel):
    type: CategoryUpdateType
    category: CategoryDefinition
    previous_parent: str | None = None


class UpdateResult(BaseModel):
    """Outcome of a batch of hierarchy updates."""

    success: bool
    categories: list[CategoryDefinition] = Field(default_factory=list)
    affected_categories: set[str] = Field(default_factory=set)
    error: str | None = None
