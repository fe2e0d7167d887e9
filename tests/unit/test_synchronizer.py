"""
Unit tests for replication/engine/synchronizer.py

The synchronizer runs against the in-memory doubles from tests/fakes.py, so
every scenario exercises the real merge loop, windows and pending-result
rules end to end.
"""

import logging
from decimal import Decimal

import pytest
from prometheus_client import CollectorRegistry

from fakes import INT, VARCHAR, customer_columns, expected_mirror, make_stores
from replication.config import SyncOptions
from replication.engine import TableSynchronizer
from replication.errors import QueryExecutionError, UnknownColumnTypeError
from replication.models import HASH_COLUMN, ROW_ID_COLUMN, ColumnDescriptor, IndexDescriptor
from utils.metrics import ReplicationMetrics


def customer(i: int) -> dict:
    return {"id": i, "name": f"customer-{i}", "balance": Decimal(f"{i}.50"), "notes": "<n/>"}


@pytest.fixture
def stores():
    source, reader, writer, db = make_stores()
    source.add_table(
        "customers",
        customer_columns(),
        [customer(i) for i in range(1, 6)],
        indexes=[IndexDescriptor("ix_name", ("name",)), IndexDescriptor("ix_notes", ("notes",))],
    )
    for store in (source, reader, writer):
        store.connect()
    yield source, reader, writer, db
    for store in (source, reader, writer):
        store.close()


def make_sync(stores, **kwargs) -> TableSynchronizer:
    source, reader, writer, _ = stores
    options = kwargs.pop("options", SyncOptions(buffer_size=2, page_size=3))
    return TableSynchronizer(source, reader, writer, options, **kwargs)


class TestFirstSync:
    """Test the first run against a table without a surrogate id"""

    def test_provisions_ids_and_creates_target(self, stores):
        source, _, _, db = stores

        result = make_sync(stores).sync("customers")

        assert source.ids("customers") == [1, 2, 3, 4, 5]
        assert "customers" in db.tables
        assert db.rows("customers") == expected_mirror(source, "customers")
        assert result.created is True
        assert result.reset is False
        assert (result.counters.inserted, result.counters.updated, result.counters.deleted) == (5, 0, 0)
        assert result.counters.processed == 5
        assert result.source_rows == 5

    def test_target_ddl_and_indexes(self, stores):
        _, _, _, db = stores

        make_sync(stores).sync("customers")

        ddl = db.ddl["customers"]
        assert "`balance` decimal(10,2) not null" in ddl
        assert "notes" not in ddl
        assert db.indexes == ["create index `ix_name` on `customers` (`name`)"]

    def test_xml_values_are_not_replicated(self, stores):
        _, _, _, db = stores
        make_sync(stores).sync("customers")
        assert all("notes" not in row for row in db.rows("customers"))

    def test_leaves_no_pending_results(self, stores):
        source, reader, writer, _ = stores
        make_sync(stores).sync("customers")
        assert not source.has_pending_results
        assert not reader.has_pending_results
        assert not writer.has_pending_results


class TestIncrementalSync:
    """Test change detection on later runs"""

    @pytest.fixture
    def synced(self, stores):
        make_sync(stores).sync("customers")
        stores[3].operations.clear()
        return stores

    def test_second_run_is_a_no_op(self, synced):
        result = make_sync(synced).sync("customers")

        assert result.counters.changes == 0
        assert result.counters.processed == 5
        assert synced[3].operations == []

    def test_changed_row_is_updated(self, synced):
        source, _, _, db = synced
        source.update("customers", 3, name="renamed")

        result = make_sync(synced).sync("customers")

        assert result.counters.updated == 1
        assert db.operations == [("update", "customers", 3)]
        assert db.tables["customers"][3]["name"] == "renamed"
        assert db.rows("customers") == expected_mirror(source, "customers")

    def test_deleted_row_is_removed(self, synced):
        source, _, _, db = synced
        source.delete("customers", 3)

        result = make_sync(synced).sync("customers")

        assert result.counters.deleted == 1
        assert db.operations == [("delete", "customers", 3)]
        assert db.rows("customers") == expected_mirror(source, "customers")

    def test_new_row_gets_next_id_and_is_inserted(self, synced):
        source, _, _, db = synced
        source.insert("customers", **customer(6))

        result = make_sync(synced).sync("customers")

        assert source.ids("customers") == [1, 2, 3, 4, 5, 6]
        assert result.counters.inserted == 1
        assert db.operations == [("insert", "customers", 6)]

    def test_trailing_target_rows_are_deleted(self, synced):
        source, _, _, db = synced
        source.delete("customers", 4)
        source.delete("customers", 5)

        result = make_sync(synced).sync("customers")

        assert result.counters.deleted == 2
        assert sorted(db.tables["customers"]) == [1, 2, 3]

    def test_target_missing_low_id_converges_with_churn(self, synced):
        source, _, _, db = synced
        # A row missing from the target below its last id: every later target
        # row is deleted and reinserted
        del db.tables["customers"][2]

        result = make_sync(synced).sync("customers")

        assert result.counters.deleted == 3
        assert result.counters.inserted == 4
        assert db.rows("customers") == expected_mirror(source, "customers")

    def test_tampered_hash_triggers_update(self, synced):
        source, _, _, db = synced
        db.tables["customers"][1][HASH_COLUMN] = "0" * 64

        result = make_sync(synced).sync("customers")

        assert result.counters.updated == 1
        assert db.rows("customers") == expected_mirror(source, "customers")

    def test_emptied_source_clears_target(self, synced):
        source, _, _, db = synced
        for row_id in range(1, 6):
            source.delete("customers", row_id)

        result = make_sync(synced).sync("customers")

        assert result.counters.deleted == 5
        assert result.source_rows == 0
        assert db.tables["customers"] == {}


class TestTargetPreparation:
    """Test create, force-create and reset behavior"""

    def test_new_row_id_column_resets_existing_target(self, stores):
        source, _, _, db = stores
        db.tables["customers"] = {99: {ROW_ID_COLUMN: 99, HASH_COLUMN: "x" * 64}}
        db.ddl["customers"] = "create table `customers` (...)"

        result = make_sync(stores).sync("customers")

        assert result.reset is True
        assert result.created is False
        assert result.counters.deleted == 0
        assert db.rows("customers") == expected_mirror(source, "customers")

    def test_force_create_recreates_target(self, stores):
        source, _, _, db = stores
        make_sync(stores).sync("customers")
        db.tables["customers"][1]["name"] = "stale"

        options = SyncOptions(buffer_size=2, page_size=3, force_create=True)
        result = make_sync(stores, options=options).sync("customers")

        assert result.created is True
        assert result.counters.inserted == 5
        assert db.rows("customers") == expected_mirror(source, "customers")

    def test_unknown_type_leaves_target_untouched(self, stores):
        source, _, _, db = stores
        source.add_table(
            "shapes",
            [ColumnDescriptor("id", INT, 4), ColumnDescriptor("geo", 240, -1)],
            [{"id": 1, "geo": "POINT(0 0)"}],
        )

        with pytest.raises(UnknownColumnTypeError):
            make_sync(stores).sync("shapes")

        assert "shapes" not in db.tables
        assert not source.has_pending_results

    def test_force_create_with_unknown_type_keeps_existing_table(self, stores):
        source, _, _, db = stores
        source.add_table(
            "shapes",
            [ColumnDescriptor("id", INT, 4), ColumnDescriptor("geo", 240, -1)],
        )
        db.tables["shapes"] = {}
        db.ddl["shapes"] = "create table `shapes` (...)"

        options = SyncOptions(force_create=True)
        with pytest.raises(UnknownColumnTypeError):
            make_sync(stores, options=options).sync("shapes")

        assert "shapes" in db.tables


class TestReporting:
    """Test progress callbacks and metrics"""

    def test_progress_after_each_operation(self, stores):
        calls = []
        make_sync(stores, progress=lambda t, c, p: calls.append((t, c.inserted, p))).sync("customers")

        assert calls == [
            ("customers", 1, 20),
            ("customers", 2, 40),
            ("customers", 3, 60),
            ("customers", 4, 80),
            ("customers", 5, 100),
        ]

    def test_metrics_recorded(self, stores):
        registry = CollectorRegistry()
        metrics = ReplicationMetrics(registry=registry)

        make_sync(stores, metrics=metrics).sync("customers")

        assert registry.get_sample_value(
            "replication_rows_applied_total",
            {"table_name": "customers", "operation": "insert"},
        ) == 5
        assert registry.get_sample_value(
            "replication_table_syncs_total",
            {"table_name": "customers", "status": "success"},
        ) == 1
        assert registry.get_sample_value(
            "replication_source_rows", {"table_name": "customers"}
        ) == 5

    def test_log_records_carry_table_and_counters(self, stores, caplog):
        caplog.set_level(logging.INFO, logger="replication.engine.synchronizer")

        make_sync(stores).sync("customers")

        record = [r for r in caplog.records if r.name == "replication.engine.synchronizer"][-1]
        assert record.getMessage().startswith("Table customers synced: 5 inserted")
        assert record.table_name == "customers"
        assert (record.rows_inserted, record.rows_updated, record.rows_deleted) == (5, 0, 0)

    def test_failure_is_logged_with_table(self, stores, caplog):
        _, _, _, db = stores
        db.fail_after_writes = 0
        caplog.set_level(logging.INFO, logger="replication.engine.synchronizer")

        with pytest.raises(QueryExecutionError):
            make_sync(stores).sync("customers")

        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert errors[0].table_name == "customers"
        assert "sync failed" in errors[0].getMessage()

    def test_failure_is_recorded_and_propagates(self, stores):
        source, reader, writer, db = stores
        registry = CollectorRegistry()
        db.fail_after_writes = 2

        with pytest.raises(QueryExecutionError):
            make_sync(stores, metrics=ReplicationMetrics(registry=registry)).sync("customers")

        assert len(db.tables["customers"]) == 2
        assert registry.get_sample_value(
            "replication_table_syncs_total",
            {"table_name": "customers", "status": "failed"},
        ) == 1
        assert not source.has_pending_results
        assert not reader.has_pending_results


def test_single_column_table_with_existing_ids(stores):
    source, _, _, db = stores
    source.add_table(
        "tags",
        [ColumnDescriptor("label", VARCHAR, 20), ColumnDescriptor(ROW_ID_COLUMN, INT, 4)],
        [{"label": "a", ROW_ID_COLUMN: 10}, {"label": "b", ROW_ID_COLUMN: 0}, {"label": "c", ROW_ID_COLUMN: 0}],
    )

    result = make_sync(stores).sync("tags")

    assert source.ids("tags") == [10, 11, 12]
    assert result.created is True
    assert db.rows("tags") == expected_mirror(source, "tags")


def test_non_ascii_column_names(stores):
    source, _, _, db = stores
    source.add_table(
        "clientes",
        [ColumnDescriptor("año", INT, 4), ColumnDescriptor("name", VARCHAR, 20)],
        [{"año": 2023, "name": "Ana"}, {"año": 2024, "name": "Íñigo"}],
    )

    result = make_sync(stores).sync("clientes")

    assert result.counters.inserted == 2
    assert "`año` int(4) not null" in db.ddl["clientes"]
    assert db.rows("clientes") == expected_mirror(source, "clientes")
    assert make_sync(stores).sync("clientes").counters.changes == 0
