"""SQL Server source store (pyodbc)."""

import logging
from collections.abc import Sequence

import pyodbc

from utils.database_types import DatabaseType
from utils.sql_safety import quote_identifiers, validate_integer_param

from ..models import ROW_ID_COLUMN, ColumnDescriptor, IndexDescriptor, TableDescriptor
from ..schema import SqlServerType
from .base import DbApiStore, ResultCursor

logger = logging.getLogger(__name__)

_DESCRIBE_SQL = """
select
    c.name as column_name,
    c.system_type_id,
    c.max_length,
    c.precision,
    c.scale,
    c.is_nullable
from sys.columns as c
inner join sys.tables as t on t.object_id = c.object_id
where t.name = ?
order by c.column_id
"""

_INDEXES_SQL = """
select
    i.name as index_name,
    c.name as column_name
from sys.indexes as i
inner join sys.tables as t on t.object_id = i.object_id
inner join sys.index_columns as ic
    on ic.object_id = i.object_id and ic.index_id = i.index_id
inner join sys.columns as c
    on c.object_id = ic.object_id and c.column_id = ic.column_id
where t.name = ?
    and i.is_primary_key = 0
    and i.type > 0
    and ic.is_included_column = 0
order by i.name, ic.key_ordinal
"""

_DECIMAL_TYPES = (SqlServerType.DECIMAL, SqlServerType.NUMERIC)


def row_id_constraint(table: str) -> str:
    """Name of the default constraint attached to the surrogate id column."""
    return f"df_{table}{ROW_ID_COLUMN}"


class SQLServerSourceStore(DbApiStore):
    """Replication source backed by SQL Server."""

    db_type = DatabaseType.SQLSERVER
    driver_errors = (pyodbc.Error,)

    def __init__(self, config, role: str = "source"):
        super().__init__(config, role)

    def _open_connection(self) -> pyodbc.Connection:
        port = self.config.port or 1433
        conn_str = (
            f"DRIVER={{{self.config.driver}}};"
            f"SERVER={self.config.host},{port};"
            f"DATABASE={self.config.effective_database};"
            f"UID={self.config.effective_user};"
            f"PWD={self.config.password};"
            f"TrustServerCertificate=yes;"
            f"Encrypt=yes;"
        )
        conn = pyodbc.connect(conn_str, timeout=10)
        conn.autocommit = True
        return conn

    def _list_tables_sql(self) -> str:
        return (
            "select t.table_name from information_schema.tables as t "
            "where t.table_schema = 'dbo' and t.table_type = 'BASE TABLE' "
            "order by t.table_name"
        )

    def describe_table(self, name: str) -> TableDescriptor:
        """
        Read column metadata from sys.columns.

        For decimal and numeric columns the precision is reported as the
        length, since max_length holds the storage size in bytes.
        """
        columns = []
        for row in self.fetch_all(_DESCRIBE_SQL, [name]):
            type_id = int(row["system_type_id"])
            length = row["precision"] if type_id in _DECIMAL_TYPES else row["max_length"]
            columns.append(
                ColumnDescriptor(
                    name=row["column_name"],
                    type_id=type_id,
                    length=int(length),
                    scale=int(row["scale"]),
                    is_nullable=bool(row["is_nullable"]),
                )
            )
        logger.debug(f"Described {name}: {len(columns)} columns")
        return TableDescriptor(name=name, columns=tuple(columns))

    def list_indexes(self, name: str) -> list[IndexDescriptor]:
        grouped: dict[str, list[str]] = {}
        for row in self.fetch_all(_INDEXES_SQL, [name]):
            grouped.setdefault(row["index_name"], []).append(row["column_name"])
        return [IndexDescriptor(name=idx, columns=tuple(cols)) for idx, cols in grouped.items()]

    def count_rows(self, name: str) -> int:
        rows = self.fetch_all(f"select count(*) as row_count from {self.quote(name)}")
        return int(rows[0]["row_count"]) if rows else 0

    def add_row_id_column(self, name: str) -> None:
        self.run(
            f"alter table {self.quote(name)} add {self.quote(ROW_ID_COLUMN)} int not null "
            f"constraint {self.quote(row_id_constraint(name))} default 0"
        )
        logger.info(f"Added {ROW_ID_COLUMN} to source table {name}")

    def backfill_row_ids(self, name: str) -> int:
        """
        Assign ascending ids to rows whose surrogate id is still 0.

        Numbering continues from the current maximum id, in natural row order.

        Returns:
            Number of rows that received an id
        """
        table = self.quote(name)
        row_id = self.quote(ROW_ID_COLUMN)
        sql = (
            "set nocount on; "
            "declare @base int; "
            f"select @base = isnull(max({row_id}), 0) from {table}; "
            "with pending as ("
            f"select {row_id}, row_number() over (order by (select null)) as rn "
            f"from {table} where {row_id} = 0"
            ") "
            f"update pending set {row_id} = @base + rn; "
            "select @@rowcount as assigned;"
        )
        rows = self.fetch_all(sql)
        assigned = int(rows[0]["assigned"]) if rows else 0
        if assigned:
            logger.info(f"Assigned {assigned} new row ids in {name}")
        return assigned

    def drop_row_id_column(self, name: str) -> None:
        table = self.quote(name)
        self.run(f"alter table {table} drop constraint {self.quote(row_id_constraint(name))}")
        self.run(f"alter table {table} drop column {self.quote(ROW_ID_COLUMN)}")
        logger.info(f"Dropped {ROW_ID_COLUMN} from source table {name}")

    def open_row_cursor(
        self, name: str, fields: Sequence[str], after_id: int, limit: int
    ) -> ResultCursor:
        """
        Open one page of source rows ordered by surrogate id.

        Args:
            name: Source table
            fields: Replicated columns (surrogate id is always selected first)
            after_id: Only rows with a greater surrogate id are returned
            limit: Page size
        """
        validate_integer_param(limit, "limit", min_value=1)
        row_id = self.quote(ROW_ID_COLUMN)
        columns = quote_identifiers([ROW_ID_COLUMN, *fields], self.db_type)
        sql = (
            f"select top ({limit}) {columns} from {self.quote(name)} "
            f"where {row_id} > ? order by {row_id}"
        )
        return self.execute_query(sql, [after_id])
