"""Load, save and reconcile one named table against a :class:`TableStore`.

Local edits are authoritative until they are saved.  Remote updates are
applied last-writer-wins, except that updates arriving while a save is in
flight, or within the echo window after one completed, are treated as the
echo of our own write and ignored.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Mapping, Union

from bimtables.columns.manager import ColumnManager
from bimtables.config import (
    ANTI_ECHO_WINDOW_SECONDS,
    DEFAULT_TABLE_ID,
    DEFAULT_TABLE_NAME,
    INIT_MAX_RETRIES,
    INIT_POLL_INTERVAL_SECONDS,
    INIT_TIMEOUT_SECONDS,
)
from bimtables.errors import InitializationTimeoutError, PersistenceError, ValidationError
from bimtables.models.table import TableConfig
from bimtables.persistence.decoder import decode_table_config, encode_columns
from bimtables.persistence.queue import UpdateQueue
from bimtables.persistence.store import TableStore

logger = logging.getLogger(__name__)

Probe = Callable[[], Union[bool, Awaitable[bool]]]


async def wait_until_ready(
    probe: Probe,
    *,
    interval: float = INIT_POLL_INTERVAL_SECONDS,
    max_retries: int = INIT_MAX_RETRIES,
    timeout: float = INIT_TIMEOUT_SECONDS,
) -> int:
    """Poll *probe* until it returns true.

    Gives up after *max_retries* failed polls or *timeout* seconds,
    whichever comes first.  Returns the number of failed polls.

    Raises
    ------
    InitializationTimeoutError
        When the probe never succeeds within the bounds.
    """
    started = time.monotonic()
    attempts = 0
    while True:
        ready = probe()
        if inspect.isawaitable(ready):
            ready = await ready
        if ready:
            return attempts
        attempts += 1
        elapsed = time.monotonic() - started
        if attempts >= max_retries or elapsed >= timeout:
            raise InitializationTimeoutError(
                f"Not ready after {attempts} attempt(s) in {elapsed:.2f}s"
            )
        await asyncio.sleep(interval)


class TableSync:
    """Persistence front for a :class:`ColumnManager`.

    Parameters
    ----------
    store:
        Where table configurations live.
    manager:
        The column state being persisted.
    queue:
        Serialises writes; a fresh :class:`UpdateQueue` by default.
    echo_window:
        Seconds after a completed save during which remote updates are ignored.
    clock:
        Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        store: TableStore,
        manager: ColumnManager,
        *,
        queue: UpdateQueue | None = None,
        echo_window: float = ANTI_ECHO_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.manager = manager
        self.queue = queue or UpdateQueue()
        self.echo_window = echo_window
        self._clock = clock
        self.table_id: str | None = None
        self.table_name: str = DEFAULT_TABLE_NAME
        self.display_name: str = DEFAULT_TABLE_NAME
        self.last_local_save: float | None = None
        self.last_update_timestamp: int | None = None
        self._saves_in_flight = 0

    @property
    def is_saving(self) -> bool:
        return self._saves_in_flight > 0

    def _hydrate(self, config: TableConfig) -> None:
        self.table_id = config.id
        self.table_name = config.name
        self.display_name = config.display_name
        self.last_update_timestamp = config.last_update_timestamp
        self.manager.load(config.parent_columns, config.child_columns, config.category_filters)

    async def load(self, table_id: str) -> TableConfig | None:
        """Fetch *table_id* and replace the manager's state with it.

        Returns ``None`` (state untouched) when the table does not exist.
        """
        try:
            fetched = await self.store.fetch(table_id)
        except Exception as exc:
            raise PersistenceError(f"Failed to fetch table {table_id}: {exc}") from exc
        if fetched is None:
            logger.info("Table %s not found", table_id)
            return None
        if isinstance(fetched, list):
            raise PersistenceError(f"Store returned a list for table {table_id}")
        self._hydrate(fetched)
        logger.info("Loaded table %s (%s)", fetched.id, fetched.name)
        return fetched

    async def save(self, name: str | None = None) -> TableConfig:
        """Persist the current columns and filters through the queue.

        On failure the local columns and pending changes are kept and
        :class:`PersistenceError` is raised.
        """
        if self.table_id is None:
            self.table_id = DEFAULT_TABLE_ID
        table_id = self.table_id
        if name:
            self.table_name = name
            self.display_name = name

        pending = list(self.manager.pending_changes)
        columns = self.manager.save_changes()
        partial: dict[str, Any] = {
            "name": self.table_name,
            "displayName": self.display_name,
            "categoryFilters": {
                "selectedParentCategories": list(
                    self.manager.category_filters.selected_parent_categories
                ),
                "selectedChildCategories": list(
                    self.manager.category_filters.selected_child_categories
                ),
            },
            "lastUpdateTimestamp": int(time.time() * 1000),
            **encode_columns(columns),
        }

        self._saves_in_flight += 1
        started = False

        async def _write() -> TableConfig:
            # Runs in the queue worker, so it finishes even if our caller stops waiting
            nonlocal started
            started = True
            try:
                saved = await self.store.save(table_id, partial)
                self.last_local_save = self._clock()
                self.last_update_timestamp = saved.last_update_timestamp
                return saved
            finally:
                self._saves_in_flight -= 1

        try:
            saved = await self.queue.submit(_write)
        except Exception as exc:
            if not started:
                self._saves_in_flight -= 1
            self.manager.pending_changes[:0] = pending
            logger.warning("Saving table %s failed: %s", table_id, exc)
            if isinstance(exc, PersistenceError):
                raise
            raise PersistenceError(f"Failed to save table {table_id}: {exc}") from exc

        logger.info("Saved table %s (%s)", saved.id, saved.name)
        return saved

    async def save_as_new(self, name: str) -> TableConfig:
        """Save the current state under a fresh id and *name*."""
        previous = (self.table_id, self.table_name, self.display_name)
        self.table_id = str(uuid.uuid4())
        try:
            return await self.save(name)
        except PersistenceError:
            self.table_id, self.table_name, self.display_name = previous
            raise

    def is_echo(self) -> bool:
        """True while a remote update should be treated as our own echo."""
        if self.is_saving:
            return True
        if self.last_local_save is None:
            return False
        return self._clock() - self.last_local_save < self.echo_window

    def on_remote_update(self, raw: Mapping[str, Any]) -> bool:
        """Apply a remote table payload; returns whether it was applied."""
        if self.is_echo():
            logger.debug("Ignoring remote update inside the echo window")
            return False
        try:
            config = decode_table_config(raw)
        except ValidationError as exc:
            logger.warning("Ignoring invalid remote update: %s", exc)
            return False
        if self.table_id is not None and config.id != self.table_id:
            logger.debug("Ignoring remote update for table %s", config.id)
            return False
        self._hydrate(config)
        logger.info("Applied remote update for table %s", config.id)
        return True

    async def wait_until_ready(
        self,
        probe: Probe,
        *,
        interval: float = INIT_POLL_INTERVAL_SECONDS,
        max_retries: int = INIT_MAX_RETRIES,
        timeout: float = INIT_TIMEOUT_SECONDS,
    ) -> int:
        return await wait_until_ready(
            probe, interval=interval, max_retries=max_retries, timeout=timeout
        )
