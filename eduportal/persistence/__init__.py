"""Persistence layer: scalar store, record store and the legacy migration."""

from .database import (
    SCHEMA_VERSION,
    get_connection,
    get_record_db_path,
    get_scalar_db_path,
    init_db,
)
from .migration import MigrationManager, MigrationState
from .record_store import RecordStore, open_record_store, sort_newest_first
from .scalar_store import ScalarStore
