"""MySQL target store (pymysql)."""

from typing import Any

import pymysql
import pymysql.cursors

from utils.database_types import DatabaseType

from .base import DbApiTargetStore


class MySQLTargetStore(DbApiTargetStore):
    """
    Replication target backed by MySQL.

    Result sets are read through an unbuffered cursor so the (id, hash)
    stream of a large table is never held in memory; the connection stays
    busy until the stream is consumed, which is why the engine reads on one
    connection and writes on another.
    """

    db_type = DatabaseType.MYSQL
    driver_errors = (pymysql.MySQLError,)

    def __init__(self, config, role: str = "target"):
        super().__init__(config, role)

    def _open_connection(self) -> pymysql.connections.Connection:
        return pymysql.connect(
            host=self.config.host,
            port=self.config.port or 3306,
            user=self.config.effective_user,
            password=self.config.password,
            database=self.config.effective_database,
            charset="utf8mb4",
            autocommit=True,
            connect_timeout=10,
        )

    def _new_cursor(self, expects_rows: bool) -> Any:
        if expects_rows:
            return self._conn.cursor(pymysql.cursors.SSCursor)
        return self._conn.cursor()

    def _list_tables_sql(self) -> str:
        return (
            "select table_name as table_name from information_schema.tables "
            "where table_schema = database() and table_type = 'BASE TABLE' "
            "order by table_name"
        )
