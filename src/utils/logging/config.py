"""
Logging configuration.

The replication CLI writes its short status lines to stdout itself; the
logging tree carries the detail (driver payloads, tracebacks) to a rotating
log file and, only when asked for, to stderr.
"""

import logging
import logging.handlers
import os
import sys

from .formatters import ConsoleFormatter, JSONFormatter

DEFAULT_APP_NAME = "table-mirror"


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    console_output: bool = False,
    json_format: bool = False,
    app_name: str = DEFAULT_APP_NAME,
    max_bytes: int = 100 * 1024 * 1024,  # 100MB
    backup_count: int = 5,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (if None, file logging is disabled)
        console_output: Whether to also log to stderr
        json_format: Use JSON format for both console and file logs
        app_name: Application name for log context
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated log files to keep
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        if json_format:
            console_handler.setFormatter(JSONFormatter(app_name=app_name))
        else:
            console_handler.setFormatter(ConsoleFormatter(use_colors=True))
        root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        if json_format:
            file_handler.setFormatter(JSONFormatter(app_name=app_name))
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
        root_logger.addHandler(file_handler)

    if not root_logger.handlers:
        # Keep records from falling through to logging.lastResort on stderr
        root_logger.addHandler(logging.NullHandler())

    # Noisy third-party libraries
    for name in ("urllib3", "requests", "opentelemetry"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging initialized: level={level}, file={log_file or 'none'}, "
        f"console={console_output}, json={json_format}"
    )


def shutdown_logging() -> None:
    """Close and detach every root handler, releasing log file handles."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

