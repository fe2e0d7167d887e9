"""
Resume checkpoint kept in the target database.

A single row (id = 1) records the table being processed. It is set before
each table sync and cleared after the last one, so a non-empty value at
startup means the previous run stopped part way through that table.
"""

import logging
from collections.abc import Sequence
from datetime import datetime

from utils.database_types import DatabaseType
from utils.sql_safety import validate_identifier

from ..errors import TableNotFoundError
from ..models import CHECKPOINT_TABLE, CheckpointRecord
from ..stores.base import TargetStore

logger = logging.getLogger(__name__)

CHECKPOINT_ID = 1
TABLE_NAME_LENGTH = 128

_TIMESTAMP_TYPES = {
    DatabaseType.MYSQL: "datetime",
    DatabaseType.POSTGRESQL: "timestamp",
}


class CheckpointController:
    """
    Reads and writes the resume checkpoint.

    Reads go through the reader connection and writes through the writer
    connection, matching how the sync engine uses them.
    """

    def __init__(self, reader: TargetStore, writer: TargetStore, table_name: str = CHECKPOINT_TABLE):
        self.reader = reader
        self.writer = writer
        self.table_name = table_name

    @property
    def _dialect(self) -> DatabaseType:
        return DatabaseType(self.writer.dialect)

    def _quoted(self, identifier: str) -> str:
        validate_identifier(identifier)
        return self._dialect.quote_identifier(identifier)

    def _create_sql(self) -> str:
        q = self._quoted
        return (
            f"create table {q(self.table_name)} ("
            f"{q('id')} int not null, "
            f"{q('on_process')} varchar({TABLE_NAME_LENGTH}) not null default '', "
            f"{q('last_update')} {_TIMESTAMP_TYPES[self._dialect]} null, "
            f"primary key ({q('id')}))"
        )

    def ensure(self, recreate: bool = False) -> None:
        """
        Make sure the checkpoint table and its single row exist.

        Args:
            recreate: Drop and recreate the table first (used with --create)
        """
        exists = self.writer.table_exists(self.table_name)
        if exists and recreate:
            logger.info(f"Dropping checkpoint table {self.table_name}")
            self.writer.drop_table(self.table_name)
            exists = False

        if not exists:
            logger.info(f"Creating checkpoint table {self.table_name}")
            self.writer.create_table(self._create_sql())

        if self._fetch_row() is None:
            q = self._quoted
            placeholder = self._dialect.get_placeholder()
            self.writer.execute_query(
                f"insert into {q(self.table_name)} ({q('id')}, {q('on_process')}) "
                f"values ({placeholder}, {placeholder})",
                [CHECKPOINT_ID, ""],
                expects_rows=False,
            )

    def _fetch_row(self) -> dict | None:
        q = self._quoted
        cursor = self.reader.execute_query(
            f"select {q('on_process')}, {q('last_update')} from {q(self.table_name)} "
            f"where {q('id')} = {self._dialect.get_placeholder()}",
            [CHECKPOINT_ID],
        )
        rows = self.reader.fetch_next(cursor, 0)
        return rows[0] if rows else None

    def load(self) -> CheckpointRecord:
        row = self._fetch_row()
        if row is None:
            return CheckpointRecord()
        return CheckpointRecord(
            on_process=(row.get("on_process") or "").strip(),
            last_update=row.get("last_update"),
        )

    def plan(
        self,
        source_tables: Sequence[str],
        table: str | None = None,
        process_all: bool = False,
    ) -> list[str]:
        """
        Decide which tables this run processes, in order.

        Args:
            source_tables: Source table names in processing order
            table: Single table requested on the command line
            process_all: Ignore the checkpoint and start from the first table

        Returns:
            Table names to sync

        Raises:
            TableNotFoundError: If the requested or checkpointed table is not
                among the source tables
        """
        tables = list(source_tables)
        lookup = [name.lower() for name in tables]

        if table is not None:
            if table.lower() not in lookup:
                raise TableNotFoundError(table)
            return [tables[lookup.index(table.lower())]]

        if process_all:
            return tables

        record = self.load()
        if record.interrupted:
            resume = record.on_process.lower()
            if resume not in lookup:
                raise TableNotFoundError(record.on_process)
            start = lookup.index(resume)
            logger.info(f"Resuming interrupted run at table {tables[start]}")
            return tables[start:]

        return tables

    def mark_in_progress(self, table: str) -> None:
        q = self._quoted
        placeholder = self._dialect.get_placeholder()
        self.writer.execute_query(
            f"update {q(self.table_name)} set {q('on_process')} = {placeholder} "
            f"where {q('id')} = {placeholder}",
            [table, CHECKPOINT_ID],
            expects_rows=False,
        )

    def clear(self, now: datetime | None = None) -> None:
        """Mark the run complete: empty on_process and stamp last_update."""
        q = self._quoted
        placeholder = self._dialect.get_placeholder()
        stamp = (now or datetime.now()).replace(microsecond=0)
        self.writer.execute_query(
            f"update {q(self.table_name)} set {q('on_process')} = {placeholder}, "
            f"{q('last_update')} = {placeholder} where {q('id')} = {placeholder}",
            ["", stamp, CHECKPOINT_ID],
            expects_rows=False,
        )
        logger.info("Checkpoint cleared")
