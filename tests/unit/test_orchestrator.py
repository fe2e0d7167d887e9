"""
Unit tests for replication/orchestrator.py

Runs whole passes over the in-memory stores: planning, checkpointing,
resume after a failure and the remove-id mode.
"""

from unittest.mock import patch

import pytest

from fakes import VARCHAR, customer_columns, expected_mirror, make_stores
from replication.config import SyncOptions
from replication.errors import ConnectionError, QueryExecutionError, TableNotFoundError
from replication.models import CHECKPOINT_TABLE, ROW_ID_COLUMN, ColumnDescriptor
from replication.orchestrator import Orchestrator
from replication.report import RunReporter


class RecordingReporter(RunReporter):
    def __init__(self):
        self.events = []
        self.notices = []

    def banner(self):
        self.events.append(("banner",))

    def notice(self, message):
        self.notices.append(message)

    def table_started(self, table, position, total_tables):
        self.events.append(("started", table, position, total_tables))

    def progress(self, table, counters, percent):
        self.events.append(("progress", table, percent))

    def table_finished(self, result):
        self.events.append(("finished", result.table))

    def run_finished(self, summary):
        self.events.append(("run_finished", len(summary.tables)))


@pytest.fixture
def env():
    source, reader, writer, db = make_stores()
    source.add_table(
        "accounts",
        [ColumnDescriptor("code", VARCHAR, 10)],
        [{"code": f"A{i}"} for i in range(3)],
    )
    source.add_table(
        "customers",
        customer_columns(),
        [{"id": i, "name": f"c{i}", "balance": i} for i in range(4)],
    )
    reporter = RecordingReporter()
    orchestrator = Orchestrator(
        source, reader, writer, SyncOptions(buffer_size=2, page_size=3), reporter=reporter
    )
    return orchestrator, source, db, reporter


def checkpoint_row(db):
    return db.tables[CHECKPOINT_TABLE][1]


class TestRun:
    """Test full replication passes"""

    def test_syncs_every_table_in_name_order(self, env):
        orchestrator, source, db, reporter = env

        summary = orchestrator.run()

        assert [r.table for r in summary.tables] == ["accounts", "customers"]
        assert summary.inserted == 7
        assert summary.finished_at is not None
        for name in ("accounts", "customers"):
            assert db.rows(name) == expected_mirror(source, name)

    def test_clears_checkpoint_and_closes_stores(self, env):
        orchestrator, _, db, _ = env

        orchestrator.run()

        assert checkpoint_row(db)["on_process"] == ""
        assert checkpoint_row(db)["last_update"] is not None
        assert not orchestrator.source.connected
        assert not orchestrator.reader.connected
        assert not orchestrator.writer.connected

    def test_reporter_events(self, env):
        orchestrator, _, _, reporter = env

        orchestrator.run()

        assert reporter.events[0] == ("banner",)
        assert ("started", "accounts", 1, 2) in reporter.events
        assert ("started", "customers", 2, 2) in reporter.events
        assert ("progress", "customers", 100) in reporter.events
        assert reporter.events[-1] == ("run_finished", 2)
        assert "Work buffer: 2 rows/cycle" in reporter.notices

    def test_second_run_changes_nothing(self, env):
        orchestrator, _, db, _ = env
        orchestrator.run()
        db.operations.clear()

        summary = orchestrator.run()

        assert db.operations == []
        assert summary.processed == 7

    def test_single_table(self, env):
        orchestrator, _, db, _ = env

        summary = orchestrator.run(table="CUSTOMERS")

        assert [r.table for r in summary.tables] == ["customers"]
        assert "accounts" not in db.tables
        assert checkpoint_row(db)["on_process"] == ""

    def test_single_table_ignores_all_flag(self, env):
        orchestrator, _, _, reporter = env

        summary = orchestrator.run(table="accounts", process_all=True)

        assert [r.table for r in summary.tables] == ["accounts"]
        assert "A single table was requested, ignoring --all" in reporter.notices

    def test_unknown_table_fails_before_any_sync(self, env):
        orchestrator, _, db, _ = env

        with pytest.raises(TableNotFoundError):
            orchestrator.run(table="missing")

        assert "accounts" not in db.tables
        assert not orchestrator.writer.connected


class TestResume:
    """Test recovery from a failed run"""

    def test_failure_leaves_checkpoint_on_failed_table(self, env):
        orchestrator, _, db, _ = env
        # accounts needs 3 writes, customers fails on its second insert
        db.fail_after_writes = 4

        with pytest.raises(QueryExecutionError):
            orchestrator.run()

        assert checkpoint_row(db)["on_process"] == "customers"
        assert not orchestrator.source.connected
        assert not orchestrator.reader.connected
        assert not orchestrator.writer.connected

    def test_next_run_resumes_at_failed_table(self, env):
        orchestrator, source, db, _ = env
        db.fail_after_writes = 4
        with pytest.raises(QueryExecutionError):
            orchestrator.run()

        db.fail_after_writes = None
        summary = orchestrator.run()

        assert [r.table for r in summary.tables] == ["customers"]
        assert summary.tables[0].counters.inserted == 3
        assert db.rows("customers") == expected_mirror(source, "customers")
        assert checkpoint_row(db)["on_process"] == ""

    def test_all_flag_restarts_from_first_table(self, env):
        orchestrator, _, db, _ = env
        db.fail_after_writes = 4
        with pytest.raises(QueryExecutionError):
            orchestrator.run()

        db.fail_after_writes = None
        summary = orchestrator.run(process_all=True)

        assert [r.table for r in summary.tables] == ["accounts", "customers"]

    def test_create_recreates_checkpoint(self, env):
        orchestrator, _, db, _ = env
        db.fail_after_writes = 4
        with pytest.raises(QueryExecutionError):
            orchestrator.run()

        db.fail_after_writes = None
        summary = orchestrator.run(create=True)

        assert [r.table for r in summary.tables] == ["accounts", "customers"]


class TestRemoveRowIds:
    """Test the remove-id mode"""

    def test_removes_column_without_touching_target(self, env):
        orchestrator, source, db, _ = env
        orchestrator.run()
        db.operations.clear()

        assert orchestrator.remove_row_ids("customers") is True

        assert all(col.name != ROW_ID_COLUMN for col in source.columns["customers"])
        assert all(ROW_ID_COLUMN not in row for row in source.rows["customers"])
        assert db.operations == []
        assert not orchestrator.reader.connected

    def test_mixed_case_name_matches_sync_naming(self, env):
        """Test the column and constraint are dropped under the name the sync used"""
        orchestrator, source, _, reporter = env
        orchestrator.run()

        with patch.object(source, "drop_row_id_column", wraps=source.drop_row_id_column) as mock_drop:
            assert orchestrator.remove_row_ids("Customers") is True

        mock_drop.assert_called_once_with("customers")
        assert f"{ROW_ID_COLUMN} removed from table customers" in reporter.notices

    def test_absent_column_is_a_no_op(self, env):
        orchestrator, _, _, reporter = env

        assert orchestrator.remove_row_ids("accounts") is False
        assert f"Table accounts has no {ROW_ID_COLUMN} column" in reporter.notices

    def test_does_not_need_checkpoint(self, env):
        orchestrator, _, db, _ = env
        orchestrator.remove_row_ids("accounts")
        assert CHECKPOINT_TABLE not in db.tables

    def test_unknown_table(self, env):
        orchestrator, _, _, _ = env
        with pytest.raises(TableNotFoundError):
            orchestrator.remove_row_ids("missing")
        assert not orchestrator.source.connected

    def test_resync_after_removal_rebuilds_ids(self, env):
        orchestrator, source, db, _ = env
        orchestrator.run()
        orchestrator.remove_row_ids("customers")

        summary = orchestrator.run(table="customers")

        assert summary.tables[0].reset is True
        assert source.ids("customers") == [1, 2, 3, 4]
        assert db.rows("customers") == expected_mirror(source, "customers")


def test_connect_failure_closes_everything(env):
    orchestrator, _, _, _ = env
    orchestrator.reader.connect_error = ConnectionError("Cannot connect to the target reader database")

    with pytest.raises(ConnectionError):
        orchestrator.run()

    assert not orchestrator.source.connected

