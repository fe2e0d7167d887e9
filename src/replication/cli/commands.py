"""
Command implementations for the CLI.

Each command builds the stores from the resolved configuration, runs the
orchestrator and returns the process exit status.
"""

import argparse
import logging

from utils.database_types import DatabaseType
from utils.metrics import initialize_metrics
from utils.tracing import initialize_tracing, shutdown_tracing

from .. import __version__
from ..config import SyncOptions
from ..orchestrator import Orchestrator
from ..report import ConsoleReporter, export_report_json
from ..stores import SQLServerSourceStore, create_target_store
from .credentials import get_backend_configs

logger = logging.getLogger(__name__)


def build_orchestrator(
    args: argparse.Namespace, reporter: ConsoleReporter, require_target: bool = True
) -> Orchestrator:
    """Wire configuration, stores and monitoring into an Orchestrator."""
    source_config, target_config = get_backend_configs(args, require_target=require_target)
    dialect = DatabaseType(args.target_dialect)

    options = SyncOptions(
        buffer_size=args.buffer_size,
        page_size=args.page_size,
        force_create=args.create,
        dialect=dialect,
    )

    metrics = None
    if args.metrics_port:
        metrics = initialize_metrics(port=args.metrics_port, version=__version__)["replication"]

    return Orchestrator(
        source=SQLServerSourceStore(source_config),
        reader=create_target_store(target_config, dialect, role="target reader"),
        writer=create_target_store(target_config, dialect, role="target writer"),
        options=options,
        reporter=reporter,
        metrics=metrics,
    )


def cmd_sync(args: argparse.Namespace) -> int:
    """
    Replicate the planned tables.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit status (0 on success)
    """
    reporter = ConsoleReporter()
    if args.otlp_endpoint:
        initialize_tracing(otlp_endpoint=args.otlp_endpoint)

    try:
        orchestrator = build_orchestrator(args, reporter)
        summary = orchestrator.run(
            table=args.table,
            process_all=args.process_all,
            create=args.create,
        )
    finally:
        shutdown_tracing()

    if args.report_json:
        export_report_json(summary, args.report_json)
        reporter.notice(f"Report written to {args.report_json}")

    logger.info(
        f"Run complete: {len(summary.tables)} tables, {summary.inserted} inserted, "
        f"{summary.updated} updated, {summary.deleted} deleted"
    )
    return 0


def cmd_remove_id(args: argparse.Namespace) -> int:
    """
    Remove the surrogate id column from the table given with -t.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit status (0 on success, including when the column was absent)
    """
    reporter = ConsoleReporter()
    orchestrator = build_orchestrator(args, reporter, require_target=False)
    removed = orchestrator.remove_row_ids(args.table)
    logger.info(f"Remove id on {args.table}: {'removed' if removed else 'nothing to do'}")
    return 0
