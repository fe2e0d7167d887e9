"""
Command-line argument parser configuration.

Flag conflicts are reported as ArgumentError instead of argparse's own
exit(2), so every failure of the tool maps to exit status 1.
"""

import argparse
import os
from collections.abc import Sequence

from utils.database_types import DatabaseType
from utils.sql_safety import validate_identifier

from ..config import DEFAULT_BUFFER_SIZE, DEFAULT_PAGE_SIZE
from ..errors import ArgumentError

EPILOG = """
Examples:
  # Sync every table, resuming an interrupted run if there is one
  table-mirror

  # Sync every table from the first one
  table-mirror -a

  # Sync one table, recreating its target table
  table-mirror -t customers -c

  # Remove the surrogate id column from a source table
  table-mirror -t customers -r

  # Mirror into PostgreSQL with credentials from Vault
  table-mirror -a --target-dialect postgresql --use-vault
"""


class MirrorArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting on bad input."""

    def error(self, message: str):
        raise ArgumentError(message)


def create_parser() -> MirrorArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured parser; -h is a plain flag so it can be checked for
        being used alone
    """
    parser = MirrorArgumentParser(
        prog="table-mirror",
        description="One-way table replication from SQL Server to MySQL or PostgreSQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
        add_help=False,
    )

    parser.add_argument("-h", "--help", action="store_true", help="Show this help (must be used alone)")
    parser.add_argument("-t", "--table", help="Sync only this table")
    parser.add_argument(
        "-a", "--all",
        dest="process_all",
        action="store_true",
        help="Sync every table from the first one, ignoring the checkpoint",
    )
    parser.add_argument(
        "-c", "--create",
        action="store_true",
        help="Drop and recreate target tables and the checkpoint table",
    )
    parser.add_argument(
        "-r", "--remove-id-field",
        action="store_true",
        help="Remove the surrogate id column from the source table given with -t",
    )

    tuning = parser.add_argument_group("sync options")
    tuning.add_argument(
        "--target-dialect",
        choices=[DatabaseType.MYSQL.value, DatabaseType.POSTGRESQL.value],
        default=os.getenv("TARGET_DIALECT", DatabaseType.MYSQL.value),
        help="Target database type (default: mysql)",
    )
    tuning.add_argument(
        "--buffer-size",
        type=int,
        default=DEFAULT_BUFFER_SIZE,
        help=f"Rows fetched per cycle (default: {DEFAULT_BUFFER_SIZE})",
    )
    tuning.add_argument(
        "--page-size",
        type=int,
        default=DEFAULT_PAGE_SIZE,
        help=f"Rows per source query (default: {DEFAULT_PAGE_SIZE})",
    )
    tuning.add_argument("--report-json", help="Write the run summary to this JSON file")

    observability = parser.add_argument_group("logging and monitoring")
    observability.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    observability.add_argument(
        "--log-file",
        default=os.getenv("LOG_FILE", "table-mirror.log"),
        help="Log file path (default: table-mirror.log)",
    )
    observability.add_argument("--log-json", action="store_true", help="Write JSON log records")
    observability.add_argument("--verbose", action="store_true", help="Also log to the console")
    observability.add_argument("--metrics-port", type=int, help="Expose Prometheus metrics on this port")
    observability.add_argument("--otlp-endpoint", help="Export traces to this OTLP collector")

    credentials = parser.add_argument_group("connection options")
    credentials.add_argument(
        "--use-vault",
        action="store_true",
        help="Fetch credentials from HashiCorp Vault",
    )
    credentials.add_argument("--source-host", help="SQL Server host")
    credentials.add_argument("--source-port", type=int, help="SQL Server port")
    credentials.add_argument("--source-prefix", help="Account prefix for database and user")
    credentials.add_argument("--source-database", help="SQL Server database name")
    credentials.add_argument("--source-user", help="SQL Server username")
    credentials.add_argument("--source-password", help="SQL Server password")
    credentials.add_argument("--source-driver", help="ODBC driver name")
    credentials.add_argument("--target-host", help="Target host")
    credentials.add_argument("--target-port", type=int, help="Target port")
    credentials.add_argument("--target-prefix", help="Account prefix for database and user")
    credentials.add_argument("--target-database", help="Target database name")
    credentials.add_argument("--target-user", help="Target username")
    credentials.add_argument("--target-password", help="Target password")

    return parser


def validate_args(args: argparse.Namespace, argv: Sequence[str]) -> None:
    """
    Check flag combinations argparse cannot express.

    Raises:
        ArgumentError: -h combined with other arguments, a blank or invalid
            -t name, -r without -t, or -r combined with -a or -c
    """
    if args.help and len(argv) > 1:
        raise ArgumentError("-h must be used alone")

    if args.table is not None:
        if not args.table.strip():
            raise ArgumentError("-t requires a table name")
        try:
            validate_identifier(args.table)
        except ValueError as e:
            raise ArgumentError(f"Invalid table name for -t: {e}") from e

    if args.remove_id_field:
        if not args.table:
            raise ArgumentError("-r requires a table name given with -t")
        if args.process_all or args.create:
            raise ArgumentError("-r cannot be combined with -a or -c")

    if args.buffer_size <= 0:
        raise ArgumentError("--buffer-size must be positive")
    if args.page_size <= 0:
        raise ArgumentError("--page-size must be positive")
