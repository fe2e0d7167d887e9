"""
Command-line interface for table replication.

Exit status is 0 on success and 1 on any failure. Failures print a short
message on stdout; the details (driver payloads, tracebacks) go to the log.
"""

import logging
import sys
from collections.abc import Sequence

from utils.logging import shutdown_logging

from ..errors import ArgumentError, ReplicationError
from .commands import cmd_remove_id, cmd_sync
from .credentials import configure_logging, get_backend_configs
from .parser import create_parser, validate_args

logger = logging.getLogger(__name__)


def main(argv: Sequence[str] | None = None) -> int:
    """
    Run the CLI.

    Args:
        argv: Arguments without the program name (default: sys.argv[1:])

    Returns:
        Process exit status
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = create_parser()

    try:
        args = parser.parse_args(argv)
        validate_args(args, argv)
    except ArgumentError as e:
        print(f"ERROR: {e.message}")
        print("Use -h for help")
        return 1

    if args.help:
        parser.print_help()
        return 0

    configure_logging(args)

    try:
        if args.remove_id_field:
            return cmd_remove_id(args)
        return cmd_sync(args)
    except ReplicationError as e:
        logger.error(
            f"Run failed: {e.message}",
            exc_info=True,
            extra={"driver_message": e.driver_message} if e.driver_message else None,
        )
        print(f"ERROR: {e.message}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected failure: {e}")
        print(f"ERROR: unexpected {type(e).__name__}, see the log for details")
        return 1


def run() -> None:
    """Console script entry point."""
    try:
        status = main()
    finally:
        shutdown_logging()
    sys.exit(status)


__all__ = [
    "main",
    "run",
    "configure_logging",
    "get_backend_configs",
    "cmd_sync",
    "cmd_remove_id",
    "create_parser",
    "validate_args",
]


if __name__ == "__main__":
    run()
