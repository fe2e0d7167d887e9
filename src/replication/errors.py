"""
Exception taxonomy for the replication run.

Every failure raised by a store adapter is fatal to the whole run: the
orchestrator closes the open connections and the CLI exits with status 1.
Raw driver payloads travel on ``driver_message`` so they can be written to
the log without reaching the primary output.
"""


class ReplicationError(Exception):
    """Base class for all replication errors."""

    def __init__(self, message: str, driver_message: str | None = None):
        super().__init__(message)
        self.message = message
        self.driver_message = driver_message


class ConfigValidationError(ReplicationError):
    """Backend configuration is missing or malformed."""


class ArgumentError(ReplicationError):
    """Conflicting or missing command-line flags."""


class ConnectionError(ReplicationError):  # noqa: A001
    """A store could not be reached or refused the credentials."""


class PendingResultsError(ReplicationError):
    """A statement was issued while a previous result set was still unread."""


class QueryExecutionError(ReplicationError):
    """The store rejected or failed a statement."""


class UnknownColumnTypeError(ReplicationError):
    """A source column uses a type the schema translator cannot map."""

    def __init__(self, table: str, column: str, type_id: int):
        super().__init__(
            f"Unknown column type {type_id} for column '{column}' of table '{table}'"
        )
        self.table = table
        self.column = column
        self.type_id = type_id


class TableNotFoundError(ReplicationError):
    """The requested or checkpointed table is not in the source."""

    def __init__(self, table: str):
        super().__init__(f"Table '{table}' does not exist in the source")
        self.table = table


__all__ = [
    "ReplicationError",
    "ConfigValidationError",
    "ArgumentError",
    "ConnectionError",
    "PendingResultsError",
    "QueryExecutionError",
    "UnknownColumnTypeError",
    "TableNotFoundError",
]
