"""Exception taxonomy for the table engine."""

from __future__ import annotations

from typing import Any


class BimTablesError(Exception):
    """Base class for all engine errors."""


class ValidationError(BimTablesError):
    """Raised when a column, table config, or index argument is invalid."""

    def __init__(self, message: str, *, field: str = "", value: Any = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


class HierarchyError(BimTablesError):
    """Raised when a category hierarchy contains a cycle or an invalid update."""


class DiscoveryError(BimTablesError):
    """Raised when parameter discovery fails as a whole."""


class PersistenceError(BimTablesError):
    """Raised when saving or loading a table configuration fails."""


class QueueClearedError(PersistenceError):
    """Raised for queued updates that were dropped before they started."""


class InitializationTimeoutError(BimTablesError):
    """Raised when a dependency does not become ready within the poll bounds."""


class EquationError(BimTablesError):
    """Raised when a user equation cannot be parsed or evaluated."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}
