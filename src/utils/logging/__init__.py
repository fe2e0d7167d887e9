"""
Structured logging configuration.

Usage:
    from utils.logging import setup_logging, ContextLogger

    # Once at startup
    setup_logging(level="INFO", log_file="/var/log/table-mirror/run.log")

    # Per table
    log = ContextLogger(__name__, table_name="orders")
    log.info("Sync started")
"""

from .config import setup_logging, shutdown_logging
from .formatters import ConsoleFormatter, JSONFormatter
from .handlers import ContextLogger

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "JSONFormatter",
    "ConsoleFormatter",
    "ContextLogger",
]
