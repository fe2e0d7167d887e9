"""
Store adapter contract and the shared DB-API plumbing.

The source and target roles are typing.Protocol classes so the engine can be
driven by any object with the right methods (the test suite uses in-memory
doubles). Concrete adapters derive from DbApiStore, which owns the driver
connection, enforces the one-pending-result-set rule and turns driver
exceptions into the replication error taxonomy.
"""

import logging
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from opentelemetry import trace

from utils.database_types import DatabaseType
from utils.sql_safety import quote_identifier, quote_identifiers
from utils.tracing import trace_operation

from ..config import BackendConfig
from ..errors import ConnectionError, PendingResultsError, QueryExecutionError
from ..models import HASH_COLUMN, ROW_ID_COLUMN, IndexDescriptor, Row, TableDescriptor

logger = logging.getLogger(__name__)


class ResultCursor:
    """
    An open result set on one store connection.

    Rows are handed out by the owning store through fetch_next(); the cursor
    is released as soon as an empty chunk has been returned.
    """

    def __init__(self, store: "DbApiStore", cursor: Any, columns: Sequence[str], sql: str = ""):
        self.store = store
        self.cursor = cursor
        self.columns = tuple(columns)
        self.sql = sql
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.cursor.close()
        finally:
            self.store._release(self)

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<ResultCursor {state} columns={len(self.columns)}>"


@runtime_checkable
class StoreAdapter(Protocol):
    """Operations common to every store."""

    def connect(self) -> None: ...

    def execute_query(
        self, sql: str, params: Sequence[Any] = (), expects_rows: bool = True
    ) -> ResultCursor | None: ...

    def fetch_next(self, cursor: ResultCursor, max_rows: int) -> list[Row]: ...

    def list_tables(self) -> list[str]: ...

    def table_exists(self, name: str) -> bool: ...

    @property
    def has_pending_results(self) -> bool: ...

    def close(self) -> None: ...


@runtime_checkable
class SourceStore(StoreAdapter, Protocol):
    """Operations needed on the replication source."""

    def describe_table(self, name: str) -> TableDescriptor: ...

    def list_indexes(self, name: str) -> list[IndexDescriptor]: ...

    def count_rows(self, name: str) -> int: ...

    def add_row_id_column(self, name: str) -> None: ...

    def backfill_row_ids(self, name: str) -> int: ...

    def drop_row_id_column(self, name: str) -> None: ...

    def open_row_cursor(
        self, name: str, fields: Sequence[str], after_id: int, limit: int
    ) -> ResultCursor: ...


@runtime_checkable
class TargetStore(StoreAdapter, Protocol):
    """Operations needed on the replication target."""

    @property
    def dialect(self) -> DatabaseType: ...

    def drop_table(self, name: str) -> None: ...

    def create_table(self, ddl: str) -> None: ...

    def create_index(self, ddl: str) -> None: ...

    def delete_all(self, name: str) -> None: ...

    def open_hash_cursor(self, name: str) -> ResultCursor: ...

    def insert_row(
        self, name: str, row_id: int, row_hash: str, fields: Sequence[str], values: Sequence[Any]
    ) -> None: ...

    def update_row(
        self, name: str, row_id: int, row_hash: str, fields: Sequence[str], values: Sequence[Any]
    ) -> None: ...

    def delete_row(self, name: str, row_id: int) -> None: ...


class DbApiStore:
    """
    Shared plumbing for DB-API 2.0 drivers.

    Subclasses set ``db_type`` and ``driver_errors`` and implement
    ``_open_connection`` and ``_list_tables_sql``.
    """

    db_type: DatabaseType = DatabaseType.UNKNOWN
    driver_errors: tuple[type[BaseException], ...] = ()

    def __init__(self, config: BackendConfig, role: str = "store"):
        self.config = config
        self.role = role
        self._conn: Any = None
        self._pending: ResultCursor | None = None

    # ---- connection lifetime -------------------------------------------------

    def _open_connection(self) -> Any:
        raise NotImplementedError

    def _new_cursor(self, expects_rows: bool) -> Any:
        return self._conn.cursor()

    def connect(self) -> None:
        """
        Open the driver connection.

        Raises:
            ConnectionError: If the driver cannot connect
        """
        if self._conn is not None:
            return

        with trace_operation(
            f"{self.db_type.value}_connect",
            kind=trace.SpanKind.CLIENT,
            db_role=self.role,
            db_host=self.config.host,
            db_name=self.config.effective_database,
        ):
            try:
                self._conn = self._open_connection()
            except self.driver_errors as e:
                logger.error(
                    f"Connection to {self.role} ({self.config.describe()}) failed: {e}",
                    exc_info=True,
                )
                raise ConnectionError(
                    f"Cannot connect to the {self.role} database", driver_message=str(e)
                ) from e

        logger.info(f"Connected to {self.role} {self.config.describe()}")

    @property
    def connected(self) -> bool:
        return self._conn is not None

    @property
    def has_pending_results(self) -> bool:
        return self._pending is not None

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._conn is None:
            return
        try:
            if self._pending is not None:
                self._pending.close()
            self._conn.close()
        except self.driver_errors as e:
            logger.warning(f"Error closing {self.role} connection: {e}")
        finally:
            self._pending = None
            self._conn = None
        logger.debug(f"Closed {self.role} connection")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ---- statements ----------------------------------------------------------

    def _require_connection(self) -> None:
        if self._conn is None:
            raise ConnectionError(f"The {self.role} connection is not open")

    def execute_query(
        self, sql: str, params: Sequence[Any] = (), expects_rows: bool = True
    ) -> ResultCursor | None:
        """
        Execute one statement.

        Args:
            sql: Statement text, values as driver placeholders
            params: Bound parameter values
            expects_rows: True to keep the result set open for fetch_next()

        Returns:
            ResultCursor when ``expects_rows`` is set, otherwise None

        Raises:
            PendingResultsError: If a previous result set is still unread
            QueryExecutionError: If the driver rejects the statement
        """
        self._require_connection()
        if self._pending is not None:
            raise PendingResultsError(
                f"The {self.role} connection has an unread result set; "
                "consume it before issuing another statement"
            )

        with trace_operation(
            f"{self.db_type.value}_query",
            kind=trace.SpanKind.CLIENT,
            db_role=self.role,
            db_statement=sql[:200],
        ):
            cursor = None
            try:
                cursor = self._new_cursor(expects_rows)
                if params:
                    cursor.execute(sql, tuple(params))
                else:
                    cursor.execute(sql)
            except self.driver_errors as e:
                logger.error(f"Query failed on {self.role}: {e}\nSQL: {sql}", exc_info=True)
                if cursor is not None:
                    cursor.close()
                raise QueryExecutionError(
                    f"Query failed on the {self.role} database", driver_message=str(e)
                ) from e

        if not expects_rows:
            cursor.close()
            return None

        columns = [col[0] for col in cursor.description or ()]
        result = ResultCursor(self, cursor, columns, sql)
        self._pending = result
        return result

    def fetch_next(self, cursor: ResultCursor, max_rows: int) -> list[Row]:
        """
        Fetch the next chunk of rows as dicts keyed by column name.

        Args:
            cursor: Result set returned by execute_query()
            max_rows: Chunk size; 0 fetches every remaining row

        Returns:
            Up to ``max_rows`` rows; an empty list once the result set is
            exhausted, at which point the connection is idle again
        """
        if cursor.closed:
            return []

        try:
            raw = cursor.cursor.fetchall() if max_rows == 0 else cursor.cursor.fetchmany(max_rows)
        except self.driver_errors as e:
            logger.error(f"Fetch failed on {self.role}: {e}\nSQL: {cursor.sql}", exc_info=True)
            cursor.close()
            raise QueryExecutionError(
                f"Fetch failed on the {self.role} database", driver_message=str(e)
            ) from e

        rows = [dict(zip(cursor.columns, values)) for values in raw]
        if not rows or max_rows == 0:
            cursor.close()
        return rows

    def _release(self, cursor: ResultCursor) -> None:
        if self._pending is cursor:
            self._pending = None

    def run(self, sql: str, params: Sequence[Any] = ()) -> None:
        """Execute a statement that returns no rows."""
        self.execute_query(sql, params, expects_rows=False)

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        """Execute a query and return all of its rows."""
        cursor = self.execute_query(sql, params)
        return self.fetch_next(cursor, 0)

    # ---- introspection -------------------------------------------------------

    def _list_tables_sql(self) -> str:
        raise NotImplementedError

    def list_tables(self) -> list[str]:
        """User table names, lower-cased and sorted."""
        rows = self.fetch_all(self._list_tables_sql())
        return sorted(str(next(iter(row.values()))).lower() for row in rows)

    def table_exists(self, name: str) -> bool:
        return name.lower() in self.list_tables()

    def quote(self, identifier: str) -> str:
        return quote_identifier(identifier, self.db_type)


class DbApiTargetStore(DbApiStore):
    """DDL and row-level DML shared by the SQL targets."""

    @property
    def dialect(self) -> DatabaseType:
        return self.db_type

    def drop_table(self, name: str) -> None:
        self.run(f"drop table if exists {self.quote(name)}")

    def create_table(self, ddl: str) -> None:
        self.run(ddl)

    def create_index(self, ddl: str) -> None:
        self.run(ddl)

    def delete_all(self, name: str) -> None:
        self.run(f"delete from {self.quote(name)}")

    def open_hash_cursor(self, name: str) -> ResultCursor:
        row_id = self.quote(ROW_ID_COLUMN)
        sql = (
            f"select {row_id}, {self.quote(HASH_COLUMN)} "
            f"from {self.quote(name)} order by {row_id}"
        )
        return self.execute_query(sql)

    def insert_row(
        self, name: str, row_id: int, row_hash: str, fields: Sequence[str], values: Sequence[Any]
    ) -> None:
        columns = quote_identifiers([ROW_ID_COLUMN, HASH_COLUMN, *fields], self.db_type)
        placeholders = ", ".join([self.db_type.get_placeholder()] * (len(fields) + 2))
        sql = f"insert into {self.quote(name)} ({columns}) values ({placeholders})"
        self.run(sql, [row_id, row_hash, *values])

    def update_row(
        self, name: str, row_id: int, row_hash: str, fields: Sequence[str], values: Sequence[Any]
    ) -> None:
        placeholder = self.db_type.get_placeholder()
        assignments = ", ".join(
            f"{self.quote(col)} = {placeholder}" for col in (HASH_COLUMN, *fields)
        )
        sql = (
            f"update {self.quote(name)} set {assignments} "
            f"where {self.quote(ROW_ID_COLUMN)} = {placeholder}"
        )
        self.run(sql, [row_hash, *values, row_id])

    def delete_row(self, name: str, row_id: int) -> None:
        placeholder = self.db_type.get_placeholder()
        sql = f"delete from {self.quote(name)} where {self.quote(ROW_ID_COLUMN)} = {placeholder}"
        self.run(sql, [row_id])
