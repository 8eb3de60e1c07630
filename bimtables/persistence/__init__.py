"""Table stores, write queue, boundary decoding and remote reconciliation."""

from bimtables.persistence.decoder import decode_table_config, encode_table_config
from bimtables.persistence.queue import UpdateQueue
from bimtables.persistence.store import InMemoryTableStore, SqliteTableStore, TableStore
from bimtables.persistence.sync import TableSync, wait_until_ready

__all__ = [
    "InMemoryTableStore",
    "SqliteTableStore",
    "TableStore",
    "TableSync",
    "UpdateQueue",
    "decode_table_config",
    "encode_table_config",
    "wait_until_ready",
]
