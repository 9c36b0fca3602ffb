"""Sync result formatting functions.

Provides human-readable and machine-readable output for sync results:

- ``format_sync_report``: full post-sync summary.
- ``format_dry_run_preview``: dry-run preview grouped by action.
- ``result_to_json``: structured dict for a single ``SyncResult``.
- ``bulk_result_to_json``: structured dict for a ``BulkResult``.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import BulkResult, SyncResult

from .models import ChangeAction

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(result: SyncResult) -> str:
    """Format a complete sync result as human-readable text.

    Sections are only included when they contain at least one change.
    Skipped paths are summarised by count only to avoid excessive output.

    Args:
        result: The completed sync result.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Sync report for '{result.operation}'"
    if result.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    if result.message:
        lines.append(result.message)
    lines.append("")

    stats = result.statistics
    lines.append(
        f"Processed {result.items_processed} items: "
        f"{stats.created} created, {stats.updated} updated, "
        f"{stats.skipped} skipped, {result.conflicts} conflicts, "
        f"{len(result.errors)} errors"
    )
    lines.append(
        f"Source preferred: {stats.source_preferred}, "
        f"target preferred: {stats.target_preferred}"
    )
    lines.append("")

    if result.created:
        lines.append("Created:")
        for change in result.created:
            lines.append(f"  {change.path}")
        lines.append("")

    if result.updated:
        lines.append("Updated:")
        for change in result.updated:
            suffix = f" ({change.reason})" if change.reason else ""
            lines.append(f"  {change.path}{suffix}")
        lines.append("")

    if result.errors:
        lines.append("Errors:")
        for error in result.errors:
            lines.append(f"  {error}")
        lines.append("")

    if result.warnings:
        lines.append("Warnings:")
        for warning in result.warnings:
            lines.append(f"  {warning}")
        lines.append("")

    if result.skipped:
        lines.append(f"Skipped: {len(result.skipped)} items")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(result: SyncResult) -> str:
    """Format a dry-run preview grouped by action type.

    Each proposed change is shown as ``[ACTION] path``.

    Args:
        result: A dry-run result (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append(f"Operation: {result.operation}")
    lines.append("")

    groups: dict[ChangeAction, list[str]] = defaultdict(list)
    for change in result.changes:
        groups[change.action].append(change.path)

    # Display order (skip SKIPPED for brevity)
    display_order = [
        ChangeAction.CREATED,
        ChangeAction.UPDATED,
        ChangeAction.ERROR,
    ]

    for action in display_order:
        if action not in groups:
            continue
        lines.append(f"[{action.value.upper()}]")
        for path in groups[action]:
            lines.append(f"  {path}")
        lines.append("")

    skip_count = len(groups.get(ChangeAction.SKIPPED, []))
    if skip_count > 0:
        lines.append(f"Skipped: {skip_count} items (unchanged)")
        lines.append("")

    if not any(a != ChangeAction.SKIPPED for a in groups):
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def result_to_json(result: SyncResult) -> dict:
    """Convert a sync result to a structured dict for JSON serialisation.

    Args:
        result: The sync result.

    Returns:
        Dict with operation info, counts, and per-change details.
    """
    changes = []
    for change in result.changes:
        entry: dict = {"path": change.path, "action": change.action.value}
        if change.reason:
            entry["reason"] = change.reason
        if change.preferred:
            entry["preferred"] = change.preferred
        changes.append(entry)

    data: dict = {
        "operation": result.operation,
        "success": result.success,
        "dry_run": result.dry_run,
        "items_processed": result.items_processed,
        "conflicts": result.conflicts,
        "statistics": result.statistics.model_dump(),
        "changes": changes,
        "errors": list(result.errors),
        "warnings": list(result.warnings),
    }
    if result.comparison is not None:
        data["comparison"] = {
            "verdict": result.comparison.verdict.value,
            "delta_millis": result.comparison.delta_millis,
        }
    if result.message:
        data["message"] = result.message
    return data


def bulk_result_to_json(bulk: BulkResult) -> dict:
    """Convert a bulk result to a structured dict for JSON serialisation."""
    entries = []
    for entry in bulk.results:
        item: dict = {"index": entry.index, "success": entry.success}
        if entry.source_index is not None:
            item["source_index"] = entry.source_index
        if entry.target_index is not None:
            item["target_index"] = entry.target_index
        if entry.error:
            item["error"] = entry.error
        if entry.result is not None:
            item["result"] = result_to_json(entry.result)
        entries.append(item)

    return {
        "operation": bulk.operation,
        "success": bulk.success,
        "counts": {
            "total": len(bulk.results),
            "failed": len(bulk.errors),
            "items_processed": bulk.total_items_processed,
            "conflicts": bulk.total_conflicts,
        },
        "results": entries,
    }
