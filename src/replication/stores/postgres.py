"""PostgreSQL target store (psycopg2)."""

import psycopg2
import psycopg2.extensions

from utils.database_types import DatabaseType

from .base import DbApiTargetStore


class PostgresTargetStore(DbApiTargetStore):
    """Replication target backed by PostgreSQL."""

    db_type = DatabaseType.POSTGRESQL
    driver_errors = (psycopg2.Error,)

    def __init__(self, config, role: str = "target"):
        super().__init__(config, role)

    def _open_connection(self) -> psycopg2.extensions.connection:
        conn = psycopg2.connect(
            host=self.config.host,
            port=self.config.port or 5432,
            database=self.config.effective_database,
            user=self.config.effective_user,
            password=self.config.password,
            connect_timeout=10,
        )
        # Each DML statement is its own unit of work
        conn.set_session(autocommit=True)
        return conn

    def _list_tables_sql(self) -> str:
        return (
            "select table_name from information_schema.tables "
            "where table_schema = current_schema() and table_type = 'BASE TABLE' "
            "order by table_name"
        )
