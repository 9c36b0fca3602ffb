"""Tests for sync enums, result models and the recorder."""

import pytest
from pydantic import ValidationError

from contextsync.sync.models import (
    BulkEntryResult,
    BulkResult,
    ChangeAction,
    MergeStrategy,
    SyncDirection,
    SyncOperation,
    SyncRecorder,
    SyncResult,
)

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TestLenientEnums:
    """Strategy and direction names accept several spellings."""

    @pytest.mark.parametrize(
        "spelling",
        ["merge-newer-wins", "mergeNewerWins", "merge_newer_wins"],
    )
    def test_merge_strategy_spellings(self, spelling):
        assert MergeStrategy(spelling) is MergeStrategy.MERGE_NEWER_WINS

    def test_sync_operation_spellings(self):
        assert SyncOperation("updateSourceToTarget") is (
            SyncOperation.UPDATE_SOURCE_TO_TARGET
        )
        assert SyncOperation("auto") is SyncOperation.AUTO

    def test_sync_direction_spellings(self):
        assert SyncDirection("sourceToTarget") is SyncDirection.SOURCE_TO_TARGET
        assert SyncDirection("target-to-source") is SyncDirection.TARGET_TO_SOURCE

    def test_unknown_name_raises(self):
        with pytest.raises(ValueError):
            MergeStrategy("oldest-wins")
        with pytest.raises(ValueError):
            SyncOperation(42)


# ---------------------------------------------------------------------------
# SyncRecorder / SyncResult
# ---------------------------------------------------------------------------


class TestSyncRecorder:
    """Tests for SyncRecorder bookkeeping."""

    def test_counts_one_bucket_per_decision(self):
        recorder = SyncRecorder("merge-newer-wins")
        recorder.record("a", ChangeAction.CREATED, preferred="source")
        recorder.record("b", ChangeAction.UPDATED, preferred="source")
        recorder.record("c", ChangeAction.SKIPPED, preferred="target")
        recorder.record("d", ChangeAction.SKIPPED)
        result = recorder.build()

        stats = result.statistics
        assert (stats.created, stats.updated, stats.skipped) == (1, 1, 2)
        assert stats.source_preferred == 2
        assert stats.target_preferred == 1
        assert result.items_processed == 4
        assert result.success is True

    def test_error_changes_fail_the_result(self):
        recorder = SyncRecorder("replace")
        recorder.record("data.x", ChangeAction.ERROR, "boom")
        result = recorder.build()
        assert result.success is False
        assert result.errors == ["data.x: boom"]
        assert [c.path for c in result.failed] == ["data.x"]

    def test_warnings_do_not_fail(self):
        recorder = SyncRecorder("replace")
        recorder.warn("renamed")
        result = recorder.build()
        assert result.success is True
        assert result.warnings == ["renamed"]

    def test_change_filters(self):
        recorder = SyncRecorder("replace", dry_run=True)
        recorder.record("a", ChangeAction.CREATED)
        recorder.record("b", ChangeAction.UPDATED)
        recorder.record("c", ChangeAction.SKIPPED)
        result = recorder.build(message="preview")
        assert [c.path for c in result.created] == ["a"]
        assert [c.path for c in result.updated] == ["b"]
        assert [c.path for c in result.skipped] == ["c"]
        assert result.dry_run is True
        assert result.message == "preview"


class TestSyncResult:
    """Tests for SyncResult helpers."""

    def test_failure_factory(self):
        result = SyncResult.failure("auto", "bad input", warnings=["w"])
        assert result.success is False
        assert result.errors == ["bad input"]
        assert result.warnings == ["w"]
        assert result.message == "bad input"

    def test_result_is_frozen(self):
        result = SyncResult(success=True, operation="replace")
        with pytest.raises(ValidationError):
            result.success = False

    def test_summary(self):
        recorder = SyncRecorder("merge-newer-wins", dry_run=True)
        recorder.record("a", ChangeAction.CREATED, preferred="source")
        summary = recorder.build().summary()
        assert "Sync result for 'merge-newer-wins' (dry run)" in summary
        assert "Created:          1" in summary
        assert "Source preferred: 1" in summary


class TestBulkResult:
    """Tests for BulkResult aggregation."""

    def test_aggregates(self):
        ok = SyncResult(
            success=True, operation="replace", items_processed=3, conflicts=1
        )
        bulk = BulkResult(
            operation="push-to-multiple-targets",
            results=[
                BulkEntryResult(index=0, success=True, result=ok),
                BulkEntryResult(index=1, success=False, error="boom"),
            ],
        )
        assert bulk.success is False
        assert [e.index for e in bulk.errors] == [1]
        assert bulk.total_items_processed == 3
        assert bulk.total_conflicts == 1

    def test_empty_bulk_succeeds(self):
        assert BulkResult(operation="x").success is True
