"""Linear undo/redo over immutable column snapshots."""

from __future__ import annotations

import logging

from bimtables.config import HISTORY_MAX_ENTRIES
from bimtables.models.table import HistoryEntry

logger = logging.getLogger(__name__)


class ColumnHistory:
    """Snapshot list with a cursor.

    ``entries[cursor]`` is the current state.  Pushing while the cursor is
    behind the tip discards the redo branch.  At most *max_entries*
    snapshots are kept; the oldest is dropped first.
    """

    def __init__(self, max_entries: int = HISTORY_MAX_ENTRIES) -> None:
        self.max_entries = max(1, max_entries)
        self._entries: list[HistoryEntry] = []
        self._cursor = -1

    @property
    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    @property
    def current(self) -> HistoryEntry | None:
        if self._cursor < 0:
            return None
        return self._entries[self._cursor]

    def can_undo(self) -> bool:
        return self._cursor > 0

    def can_redo(self) -> bool:
        return 0 <= self._cursor < len(self._entries) - 1

    def push(self, entry: HistoryEntry) -> None:
        del self._entries[self._cursor + 1:]
        self._entries.append(entry)
        if len(self._entries) > self.max_entries:
            del self._entries[: len(self._entries) - self.max_entries]
        self._cursor = len(self._entries) - 1

    def undo(self) -> HistoryEntry | None:
        if not self.can_undo():
            return None
        self._cursor -= 1
        return self._entries[self._cursor]

    def redo(self) -> HistoryEntry | None:
        if not self.can_redo():
            return None
        self._cursor += 1
        return self._entries[self._cursor]

    def reset(self, entry: HistoryEntry | None = None) -> None:
        """Forget everything; optionally start again from *entry*."""
        self._entries = []
        self._cursor = -1
        if entry is not None:
            self.push(entry)

    def __len__(self) -> int:
        return len(self._entries)
