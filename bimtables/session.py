"""TableSession: one table's columns, filters, pipeline output and persistence.

Typical use::

    session = TableSession(InMemoryTableStore())
    await session.load_table("walls")
    session.process(raw_tree)
    session.add_column("parent", "Width")
    await session.save()
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from bimtables.columns.defaults import fixed_parameters
from bimtables.columns.manager import ColumnManager
from bimtables.columns.merge import create_column_def
from bimtables.config_manager import ConfigManager, EngineSettings
from bimtables.discovery.discovery import discover_parameters, merge_with_fixed, raw_parameter_maps
from bimtables.errors import ValidationError
from bimtables.extraction.pipeline import PipelineResult, process_data_pipeline
from bimtables.models.parameters import VIEWS, ColumnDef, ParameterDefinition, View
from bimtables.models.table import CategoryFilters, TableConfig
from bimtables.persistence.queue import UpdateQueue
from bimtables.persistence.store import InMemoryTableStore, SqliteTableStore, TableStore
from bimtables.persistence.sync import TableSync

logger = logging.getLogger(__name__)


def store_from_settings(settings: EngineSettings) -> TableStore:
    """Build the table store named by ``settings.store``."""
    if settings.store == "memory":
        return InMemoryTableStore()
    if settings.store == "sqlite":
        return SqliteTableStore(settings.db_path)
    raise ValidationError(f"Unknown table store: {settings.store!r}", field="store",
                          value=settings.store)


class TableSession:
    """State of one open table.

    Parameters
    ----------
    store:
        Table store; built from *settings* when omitted.
    settings:
        Engine settings; loaded through :class:`ConfigManager` from
        *project_path* and the ``BIMTABLES_*`` environment when omitted.
    project_path:
        Directory holding ``.env`` and ``.bimtables/config.json``.
    """

    def __init__(
        self,
        store: TableStore | None = None,
        *,
        settings: EngineSettings | None = None,
        project_path: str | Path = ".",
        **sync_options: Any,
    ) -> None:
        self.settings = settings or ConfigManager().settings(project_path)
        self.store = store if store is not None else store_from_settings(self.settings)
        self.manager = ColumnManager(history_size=self.settings.history_size)
        self.sync = TableSync(
            self.store,
            self.manager,
            queue=UpdateQueue(delay=self.settings.queue_delay),
            echo_window=self.settings.echo_window,
            **sync_options,
        )
        self.result: PipelineResult | None = None
        self._raw_tree: Any = None

    # -- accessors -------------------------------------------------------------

    @property
    def table_id(self) -> str | None:
        return self.sync.table_id

    @property
    def table_name(self) -> str:
        return self.sync.table_name

    @property
    def category_filters(self) -> CategoryFilters:
        return self.manager.category_filters

    @property
    def parent_columns(self) -> list[ColumnDef]:
        return self.manager.parent_columns

    @property
    def child_columns(self) -> list[ColumnDef]:
        return self.manager.child_columns

    @property
    def rows(self) -> list[dict[str, Any]]:
        return self.result.table_data if self.result is not None else []

    # -- pipeline --------------------------------------------------------------

    def process(
        self,
        raw_tree: Any = None,
        *,
        essential_fields_only: bool = False,
    ) -> PipelineResult:
        """Run the data pipeline with the current category filters.

        Without *raw_tree* the last processed tree is reprocessed.
        """
        if raw_tree is not None:
            self._raw_tree = raw_tree
        if self._raw_tree is None:
            raise ValidationError("No model data to process")

        active = list(
            dict.fromkeys(c.field for view in VIEWS for c in self.manager.columns(view))
        )
        filters = self.manager.category_filters
        self.result = process_data_pipeline(
            self._raw_tree,
            filters.selected_parent_categories,
            filters.selected_child_categories,
            essential_fields_only=essential_fields_only,
            active_parameters=active,
        )
        if not essential_fields_only:
            for view in VIEWS:
                self._offer(view, [_as_parameter(c) for c in self.result.available_headers[view]])
        return self.result

    async def discover(self, **options: Any) -> list[ParameterDefinition]:
        """Discover parameters on the processed elements and offer them to both views."""
        result = self.result if self.result is not None else self.process()
        options.setdefault("sample_size", self.settings.sample_size)
        options.setdefault("min_frequency", self.settings.min_frequency)
        options.setdefault("batch_size", self.settings.batch_size)

        discovered = await discover_parameters(raw_parameter_maps(result.raw_nodes), **options)
        for view in VIEWS:
            self._offer(view, merge_with_fixed(discovered, fixed_parameters(view)))
        result.parameters = merge_with_fixed(discovered, fixed_parameters("parent"))
        return result.parameters

    def _offer(self, view: View, parameters: Iterable[ParameterDefinition]) -> None:
        """Add *parameters* to the pool of *view*, keeping what it already offers."""
        known = {p.field: p for p in self.manager.available(view)}
        for parameter in parameters:
            known.setdefault(parameter.field, parameter)
        self.manager.set_parameters(view, known.values())

    # -- column operations -----------------------------------------------------

    def _resolve(self, view: View, item: ParameterDefinition | ColumnDef | str):
        if not isinstance(item, str):
            return item
        for parameter in self.manager.available(view):
            if parameter.field == item:
                return parameter
        return create_column_def(item)

    def add_column(self, view: View, item: ParameterDefinition | ColumnDef | str) -> bool:
        return self.manager.add(view, self._resolve(view, item))

    def remove_column(self, view: View, item: ParameterDefinition | ColumnDef | str) -> bool:
        return self.manager.remove(view, item)

    def reorder_columns(self, view: View, from_index: int, to_index: int) -> bool:
        return self.manager.reorder(view, from_index, to_index)

    def set_column_visibility(self, view: View, field: str, visible: bool) -> bool:
        return self.manager.set_visibility(view, field, visible)

    def set_category_filters(
        self,
        parent: Iterable[str] | None = None,
        child: Iterable[str] | None = None,
    ) -> CategoryFilters:
        """Replace the category selection and reprocess the last tree, if any.

        ``None`` keeps the current selection of that view.
        """
        current = self.manager.category_filters
        filters = CategoryFilters(
            selected_parent_categories=list(
                parent if parent is not None else current.selected_parent_categories
            ),
            selected_child_categories=list(
                child if child is not None else current.selected_child_categories
            ),
        )
        self.manager.set_category_filters(filters)
        if self._raw_tree is not None:
            self.process()
        return self.manager.category_filters

    def undo(self) -> bool:
        return self._after_history(self.manager.undo())

    def redo(self) -> bool:
        return self._after_history(self.manager.redo())

    def _after_history(self, applied: bool) -> bool:
        # filters may have changed with the restored snapshot
        if applied and self._raw_tree is not None:
            self.process()
        return applied

    # -- persistence -----------------------------------------------------------

    async def load_table(self, table_id: str) -> TableConfig | None:
        config = await self.sync.load(table_id)
        if config is not None and self._raw_tree is not None:
            self.process()
        return config

    async def save(self, name: str | None = None) -> TableConfig:
        return await self.sync.save(name)

    async def save_as_new(self, name: str) -> TableConfig:
        return await self.sync.save_as_new(name)

    def on_remote_update(self, raw: Mapping[str, Any]) -> bool:
        applied = self.sync.on_remote_update(raw)
        if applied and self._raw_tree is not None:
            self.process()
        return applied


def _as_parameter(column: ColumnDef) -> ParameterDefinition:
    return ParameterDefinition(
        field=column.field,
        header=column.header,
        type=column.type,
        category=column.category,
        source=column.source,
    )
