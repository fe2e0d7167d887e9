"""
Store adapters.

- SQLServerSourceStore: replication source (pyodbc)
- MySQLTargetStore: default replication target (pymysql)
- PostgresTargetStore: alternative replication target (psycopg2)
"""

from utils.database_types import DatabaseType

from ..config import BackendConfig
from .base import (
    DbApiStore,
    DbApiTargetStore,
    ResultCursor,
    SourceStore,
    StoreAdapter,
    TargetStore,
)
from .mysql import MySQLTargetStore
from .postgres import PostgresTargetStore
from .sqlserver import SQLServerSourceStore, row_id_constraint

TARGET_STORES = {
    DatabaseType.MYSQL: MySQLTargetStore,
    DatabaseType.POSTGRESQL: PostgresTargetStore,
}


def create_target_store(
    config: BackendConfig, dialect: DatabaseType | str, role: str = "target"
) -> DbApiTargetStore:
    """Instantiate the target adapter for a dialect."""
    return TARGET_STORES[DatabaseType(dialect)](config, role=role)


__all__ = [
    "StoreAdapter",
    "SourceStore",
    "TargetStore",
    "ResultCursor",
    "DbApiStore",
    "DbApiTargetStore",
    "SQLServerSourceStore",
    "MySQLTargetStore",
    "PostgresTargetStore",
    "TARGET_STORES",
    "create_target_store",
    "row_id_constraint",
]
