"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_cycle_result`` -- post-cycle summary.
- ``format_status`` -- pending-work summary.
- ``format_dead_entries`` -- listing of expired queue entries.
- ``result_to_json`` / ``status_to_json`` -- structured dicts for MCP
  tool output.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import CycleResult, DeadEntry, StatusReport

_STATUS_LABELS = {
    "offline": "Offline",
    "sync_pending": "Sync pending",
    "up_to_date": "Up to date",
}


def _fmt_time(value: datetime | None) -> str:
    return value.isoformat() if value else "never"


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_cycle_result(result: CycleResult) -> str:
    """Format a cycle result as human-readable text.

    The error section is only included when at least one item failed.

    Args:
        result: The completed cycle result.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    header = "Sync completed" if result.success else "Sync completed with errors"
    if not result.success and result.synced_items == result.failed_items == 0:
        header = "Sync failed"
    lines.append(header)
    lines.append(
        f"Synced {result.synced_items} items, {result.failed_items} failed"
    )
    lines.append("")

    if result.errors:
        lines.append("Errors:")
        for err in result.errors:
            lines.append(f"  [{err.operation}] {err.task_id}: {err.error}")
        lines.append("")

    return "\n".join(lines).rstrip()


def format_status(report: StatusReport) -> str:
    """Format a status report as human-readable text."""
    lines = [
        f"Status: {_STATUS_LABELS.get(report.status, report.status)}",
        f"Online: {'yes' if report.online else 'no'}",
        f"Pending tasks: {report.pending}",
        f"Last synced: {_fmt_time(report.last_synced_at)}",
    ]
    return "\n".join(lines)


def format_dead_entries(entries: list[DeadEntry]) -> str:
    """Format dead entries, oldest failure first."""
    if not entries:
        return "No dead entries."

    lines = [f"{len(entries)} dead entries:", ""]
    for entry in entries:
        lines.append(
            f"  {entry.id}  [{entry.operation.value}] task {entry.task_id}"
        )
        lines.append(
            f"    retries: {entry.retry_count}, failed: "
            f"{_fmt_time(entry.failed_at)}"
        )
        if entry.error_message:
            lines.append(f"    error: {entry.error_message}")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def result_to_json(result: CycleResult) -> dict:
    """Convert a cycle result to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.
    """
    return {
        "success": result.success,
        "synced_items": result.synced_items,
        "failed_items": result.failed_items,
        "errors": [err.model_dump(mode="json") for err in result.errors],
    }


def status_to_json(report: StatusReport) -> dict:
    return report.model_dump(mode="json")
