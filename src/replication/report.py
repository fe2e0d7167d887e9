"""
Run reporting: console status lines, the end-of-run summary and JSON export.

The orchestrator drives a RunReporter through the run. ConsoleReporter is
what the CLI uses; the base class ignores every event so library callers and
tests can run without output.
"""

import json
import sys
from typing import Any, TextIO

from . import __version__
from .models import RunSummary, SyncCounters, TableSyncResult

BANNER = f"table-mirror {__version__} - one-way table replication from SQL Server"


class RunReporter:
    """Receives run events. Every hook is a no-op."""

    def banner(self) -> None:
        pass

    def notice(self, message: str) -> None:
        pass

    def table_started(self, table: str, position: int, total_tables: int) -> None:
        pass

    def progress(self, table: str, counters: SyncCounters, percent: int) -> None:
        pass

    def table_finished(self, result: TableSyncResult) -> None:
        pass

    def run_finished(self, summary: RunSummary) -> None:
        pass


class ConsoleReporter(RunReporter):
    """Writes short human-readable status lines to a stream (stdout)."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stdout
        self._last_percent: int | None = None

    def _write(self, text: str, end: str = "\n") -> None:
        self.stream.write(text + end)
        self.stream.flush()

    def banner(self) -> None:
        self._write(BANNER)

    def notice(self, message: str) -> None:
        self._write(message)

    def table_started(self, table: str, position: int, total_tables: int) -> None:
        self._last_percent = None
        self._write(f"\nSyncing table {table}... ({position} of {total_tables})")

    def progress(self, table: str, counters: SyncCounters, percent: int) -> None:
        # One line per percent step; the line is rewritten in place
        if percent == self._last_percent:
            return
        self._last_percent = percent
        self._write(format_progress(counters, percent), end="\r")

    def table_finished(self, result: TableSyncResult) -> None:
        if result.source_rows == 0 and result.counters.processed == 0:
            self._write("   Table is empty")
        percent = result.counters.percent_of(result.source_rows)
        self._write(format_progress(result.counters, percent))

    def run_finished(self, summary: RunSummary) -> None:
        self._write("")
        self._write(format_summary_console(summary))


def format_progress(counters: SyncCounters, percent: int) -> str:
    return (
        f"   Progress => {counters.processed} rows | ({percent}%) | "
        f"Ins: {counters.inserted} / Upd: {counters.updated} / Del: {counters.deleted}"
    )


def format_summary_console(summary: RunSummary) -> str:
    """
    Format the end-of-run totals for console output

    Args:
        summary: Completed run summary

    Returns:
        Multi-line string
    """
    lines = [
        "=" * 60,
        "REPLICATION SUMMARY",
        "=" * 60,
        f"Tables synced: {len(summary.tables)}",
        f"Total rows inserted: {summary.inserted:,}",
        f"Total rows updated: {summary.updated:,}",
        f"Total rows deleted: {summary.deleted:,}",
        f"Total rows processed: {summary.processed:,}",
        "",
        f"Started: {summary.started_at:%Y-%m-%d %H:%M:%S}",
    ]
    if summary.finished_at:
        lines.append(f"Finished: {summary.finished_at:%Y-%m-%d %H:%M:%S}")
    lines.append(f"Elapsed: {summary.elapsed_seconds:.1f}s")
    lines.append("=" * 60)
    return "\n".join(lines)


def summary_to_report(summary: RunSummary) -> dict[str, Any]:
    report = summary.to_dict()
    report["version"] = __version__
    report["elapsed_seconds"] = round(summary.elapsed_seconds, 3)
    return report


def export_report_json(summary: RunSummary, output_path: str) -> None:
    """
    Write the run summary to a JSON file

    Args:
        summary: Run summary
        output_path: Path to output file
    """
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(summary_to_report(summary), f, indent=2)
