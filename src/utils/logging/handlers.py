"""
Logger wrappers.

ContextLogger stamps fixed context (for example the table being synced)
onto every record it emits.
"""

import logging


class ContextLogger:
    """
    Logger wrapper that adds contextual information to all log messages

    Usage:
        log = ContextLogger(__name__, table_name="orders")
        log.info("Target table created", index_count=2)
        # Output includes both table_name and index_count
    """

    def __init__(self, name: str, **context):
        self.logger = logging.getLogger(name)
        self.context = context

    def _log(self, level: int, msg: str, *args, exc_info=None, **kwargs) -> None:
        self.logger.log(
            level,
            msg,
            *args,
            exc_info=exc_info,
            extra={**self.context, **kwargs},
        )

    def info(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def error(self, msg: str, *args, exc_info=None, **kwargs) -> None:
        self._log(logging.ERROR, msg, *args, exc_info=exc_info, **kwargs)
