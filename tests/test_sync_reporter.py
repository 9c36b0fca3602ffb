"""Tests for sync reporter formatting functions.

Covers:
- format_sync_report with various result combinations
- format_dry_run_preview formatting
- result_to_json and bulk_result_to_json structure
- Empty result (all skipped) produces concise output
"""

from __future__ import annotations

import json

from contextsync.sync.models import (
    BulkEntryResult,
    BulkResult,
    ChangeAction,
    ComparisonResult,
    ComparisonVerdict,
    SyncRecorder,
    SyncResult,
)
from contextsync.sync.reporter import (
    bulk_result_to_json,
    format_dry_run_preview,
    format_sync_report,
    result_to_json,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_result(dry_run: bool = False, **build_kwargs) -> SyncResult:
    """Build a result with one change of each kind."""
    recorder = SyncRecorder("merge-newer-wins", dry_run=dry_run)
    recorder.record("data.new", ChangeAction.CREATED, "copied from source", preferred="source")
    recorder.record("data.score", ChangeAction.UPDATED, "source wins", preferred="source")
    recorder.conflicts += 1
    recorder.record("data.old", ChangeAction.SKIPPED, "target wins", preferred="target")
    recorder.record("data.locked", ChangeAction.ERROR, "Cannot modify a frozen item")
    recorder.warn("Component 'extra' absent from target; skipped")
    return recorder.build(**build_kwargs)


def _all_skipped(dry_run: bool = False) -> SyncResult:
    recorder = SyncRecorder("no-action", dry_run=dry_run)
    recorder.record("data.a", ChangeAction.SKIPPED, "no-action")
    recorder.record("data.b", ChangeAction.SKIPPED, "no-action")
    return recorder.build()


# ---------------------------------------------------------------------------
# format_sync_report
# ---------------------------------------------------------------------------


class TestFormatSyncReport:
    """Tests for format_sync_report()."""

    def test_header_and_counts(self):
        output = format_sync_report(_make_result())
        lines = output.splitlines()
        assert lines[0] == "Sync report for 'merge-newer-wins'"
        assert (
            "Processed 4 items: 1 created, 1 updated, 1 skipped, "
            "1 conflicts, 1 errors"
        ) in output
        assert "Source preferred: 2, target preferred: 1" in output

    def test_sections(self):
        output = format_sync_report(_make_result())
        assert "Created:\n  data.new" in output
        assert "Updated:\n  data.score (source wins)" in output
        assert "Errors:\n  data.locked: Cannot modify a frozen item" in output
        assert "Warnings:\n  Component 'extra' absent from target; skipped" in output
        assert output.endswith("Skipped: 1 items")

    def test_dry_run_header_and_message(self):
        output = format_sync_report(
            _make_result(dry_run=True, message="Dry run: no changes written")
        )
        lines = output.splitlines()
        assert lines[0] == "Sync report for 'merge-newer-wins' (DRY RUN)"
        assert lines[1] == "Dry run: no changes written"

    def test_all_skipped_is_concise(self):
        output = format_sync_report(_all_skipped())
        assert "Created:" not in output
        assert "Updated:" not in output
        assert "Errors:" not in output
        assert "Skipped: 2 items" in output


# ---------------------------------------------------------------------------
# format_dry_run_preview
# ---------------------------------------------------------------------------


class TestFormatDryRunPreview:
    """Tests for format_dry_run_preview()."""

    def test_grouped_by_action(self):
        output = format_dry_run_preview(_make_result(dry_run=True))
        assert output.startswith("DRY RUN -- No changes will be made")
        assert "Operation: merge-newer-wins" in output
        assert "[CREATED]\n  data.new" in output
        assert "[UPDATED]\n  data.score" in output
        assert "[ERROR]\n  data.locked" in output
        assert "Skipped: 1 items (unchanged)" in output
        assert output.index("[CREATED]") < output.index("[UPDATED]")
        assert "No changes needed." not in output

    def test_nothing_to_do(self):
        output = format_dry_run_preview(_all_skipped(dry_run=True))
        assert "Skipped: 2 items (unchanged)" in output
        assert output.endswith("No changes needed.")


# ---------------------------------------------------------------------------
# JSON output
# ---------------------------------------------------------------------------


class TestResultToJson:
    """Tests for result_to_json()."""

    def test_structure(self):
        data = result_to_json(_make_result(message="done"))
        assert data["operation"] == "merge-newer-wins"
        assert data["success"] is False
        assert data["items_processed"] == 4
        assert data["conflicts"] == 1
        assert data["statistics"]["created"] == 1
        assert data["message"] == "done"
        assert data["changes"][0] == {
            "path": "data.new",
            "action": "created",
            "reason": "copied from source",
            "preferred": "source",
        }
        assert data["changes"][3] == {
            "path": "data.locked",
            "action": "error",
            "reason": "Cannot modify a frozen item",
        }
        assert "comparison" not in data

    def test_comparison_included(self):
        comparison = ComparisonResult(
            verdict=ComparisonVerdict.A_NEWER, delta_millis=3600000.0
        )
        data = result_to_json(
            SyncResult(success=True, operation="merge-newer-wins", comparison=comparison)
        )
        assert data["comparison"] == {"verdict": "a_newer", "delta_millis": 3600000.0}

    def test_json_serialisable(self):
        json.dumps(result_to_json(_make_result()))


class TestBulkResultToJson:
    """Tests for bulk_result_to_json()."""

    def test_structure(self):
        ok = _all_skipped()
        bulk = BulkResult(
            operation="push-to-multiple-targets",
            results=[
                BulkEntryResult(index=0, success=True, target_index=0, result=ok),
                BulkEntryResult(
                    index=1, success=False, target_index=1, error="Cannot merge"
                ),
            ],
        )
        data = bulk_result_to_json(bulk)
        assert data["operation"] == "push-to-multiple-targets"
        assert data["success"] is False
        assert data["counts"] == {
            "total": 2,
            "failed": 1,
            "items_processed": 2,
            "conflicts": 0,
        }
        assert data["results"][0]["result"]["operation"] == "no-action"
        assert data["results"][1] == {
            "index": 1,
            "success": False,
            "target_index": 1,
            "error": "Cannot merge",
        }
        json.dumps(data)
