"""bimtables: parameter discovery, host/child matching and column reconciliation for BIM tables."""

__version__ = "1.0.0"

from bimtables.categories.hierarchy import apply_category_updates, build_category_hierarchy
from bimtables.columns.manager import ColumnManager
from bimtables.config_manager import ConfigManager, EngineSettings, configure_logging
from bimtables.discovery.discovery import discover_parameters
from bimtables.errors import (
    BimTablesError,
    DiscoveryError,
    EquationError,
    HierarchyError,
    InitializationTimeoutError,
    PersistenceError,
    QueueClearedError,
    ValidationError,
)
from bimtables.extraction.pipeline import (
    PipelineResult,
    process_data_pipeline,
    process_data_pipeline_full,
)
from bimtables.models import (
    CategoryDefinition,
    CategoryFilters,
    ColumnDef,
    Element,
    ParameterDefinition,
    TableConfig,
    UserParameter,
)
from bimtables.parameters.equations import evaluate_expression, evaluate_parameter
from bimtables.persistence.queue import UpdateQueue
from bimtables.persistence.store import InMemoryTableStore, SqliteTableStore, TableStore
from bimtables.persistence.sync import TableSync
from bimtables.session import TableSession
from bimtables.sources.ifc import ifc_to_raw_tree

__all__ = [
    "BimTablesError",
    "CategoryDefinition",
    "CategoryFilters",
    "ColumnDef",
    "ColumnManager",
    "ConfigManager",
    "DiscoveryError",
    "Element",
    "EngineSettings",
    "EquationError",
    "HierarchyError",
    "InMemoryTableStore",
    "InitializationTimeoutError",
    "ParameterDefinition",
    "PersistenceError",
    "PipelineResult",
    "QueueClearedError",
    "SqliteTableStore",
    "TableConfig",
    "TableSession",
    "TableStore",
    "TableSync",
    "UpdateQueue",
    "UserParameter",
    "ValidationError",
    "apply_category_updates",
    "build_category_hierarchy",
    "configure_logging",
    "discover_parameters",
    "evaluate_expression",
    "evaluate_parameter",
    "ifc_to_raw_tree",
    "process_data_pipeline",
    "process_data_pipeline_full",
]
