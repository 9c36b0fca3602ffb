"""Pydantic models and enums for the sync layer.

Defines the data contracts shared by every sync module:

- ``ComparisonVerdict`` / ``ComparisonResult``: comparator output.
- ``SyncDirection``: pairwise engine direction.
- ``MergeStrategy``: orchestrator strategy names.
- ``SyncOperation``: strategy-layer and facade operation names.
- ``ChangeAction`` / ``SyncChange``: one per-path decision.
- ``SyncStatistics``: decision counters.
- ``SyncResult``: outcome of one sync or merge call.
- ``BulkEntryResult`` / ``BulkResult``: outcome of a fan-out operation.
- ``SyncRecorder``: accumulator that builds a ``SyncResult``.

Result models are frozen; ``SyncStatistics`` is mutable so a run can
accumulate counts before the final result is built.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _normalize_name(value: object, separator: str) -> str | None:
    """Turn ``mergeNewerWins`` / ``merge_newer_wins`` into one spelling."""
    if not isinstance(value, str):
        return None
    text = _CAMEL_BOUNDARY.sub(separator, value.strip())
    return text.replace("-", separator).replace("_", separator).lower()


class _LenientEnum(str, Enum):
    """``str`` enum that also accepts camelCase and snake/kebab spellings."""

    @classmethod
    def _missing_(cls, value: object) -> Any:
        normalized = _normalize_name(value, cls._separator_char())
        for member in cls:
            if member.value == normalized:
                return member
        return None

    @classmethod
    def _separator_char(cls) -> str:
        return "-"


class ComparisonVerdict(str, Enum):
    """Outcome of comparing two timestamp-bearing objects."""

    A_NEWER = "a_newer"
    B_NEWER = "b_newer"
    EQUAL = "equal"
    A_MISSING = "a_missing"
    B_MISSING = "b_missing"
    BOTH_MISSING = "both_missing"


class SyncDirection(_LenientEnum):
    """Direction of a pairwise container sync."""

    SOURCE_TO_TARGET = "source_to_target"
    TARGET_TO_SOURCE = "target_to_source"

    @classmethod
    def _separator_char(cls) -> str:
        return "_"


class MergeStrategy(_LenientEnum):
    """Strategies understood by the multi-component merge orchestrator."""

    MERGE_NEWER_WINS = "merge-newer-wins"
    MERGE_SOURCE_PRIORITY = "merge-source-priority"
    MERGE_TARGET_PRIORITY = "merge-target-priority"
    UPDATE_SOURCE_TO_TARGET = "update-source-to-target"
    UPDATE_TARGET_TO_SOURCE = "update-target-to-source"
    REPLACE = "replace"
    NO_ACTION = "no-action"


class SyncOperation(_LenientEnum):
    """Operations understood by the strategy layer and the facade."""

    UPDATE_SOURCE_TO_TARGET = "update-source-to-target"
    UPDATE_TARGET_TO_SOURCE = "update-target-to-source"
    MERGE_NEWER_WINS = "merge-newer-wins"
    MERGE_SOURCE_PRIORITY = "merge-source-priority"
    MERGE_TARGET_PRIORITY = "merge-target-priority"
    NO_ACTION = "no-action"
    AUTO = "auto"


class ChangeAction(str, Enum):
    """Decision recorded for one path."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERROR = "error"


class ComparisonResult(BaseModel):
    """Verdict of ``compare(a, b)``.

    Attributes:
        verdict: Which side is newer, or which side is missing.
        a_timestamp: Timestamp read from ``a`` (``None`` if missing).
        b_timestamp: Timestamp read from ``b`` (``None`` if missing).
        delta_millis: ``a - b`` in milliseconds; ``None`` when exactly one
            side is missing.
    """

    verdict: ComparisonVerdict
    a_timestamp: Any = None
    b_timestamp: Any = None
    delta_millis: float | None = None

    model_config = {"frozen": True}


class SyncChange(BaseModel):
    """A single per-path decision.

    Attributes:
        path: Dotted path of the node.
        action: What was (or, in a dry run, would be) done.
        reason: Short explanation.
        preferred: ``"source"`` or ``"target"`` when one side won.
    """

    path: str
    action: ChangeAction
    reason: str | None = None
    preferred: str | None = None

    model_config = {"frozen": True}


class SyncStatistics(BaseModel):
    """Counters accumulated during a run (mutable)."""

    source_preferred: int = 0
    target_preferred: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0


class SyncResult(BaseModel):
    """Outcome of a sync or merge call.

    Attributes:
        success: ``True`` when no errors were recorded.
        operation: The operation name the caller requested.
        items_processed: Count of processed leaves, or processed keys.
        conflicts: Number of paths where both sides held different values.
        changes: Per-path decisions.
        errors: Failures that made the call unsuccessful.
        warnings: Non-fatal anomalies (renames, cycles, skipped metadata).
        statistics: Decision counters.
        dry_run: Whether writes were suppressed.
        comparison: Top-level comparison, when one was made.
        message: Optional human-readable summary.
    """

    success: bool
    operation: str
    items_processed: int | list[str] = 0
    conflicts: int = 0
    changes: list[SyncChange] = []
    errors: list[str] = []
    warnings: list[str] = []
    statistics: SyncStatistics = Field(default_factory=SyncStatistics)
    dry_run: bool = False
    comparison: ComparisonResult | None = None
    message: str | None = None

    model_config = {"frozen": True}

    @classmethod
    def failure(
        cls,
        operation: str,
        error: str,
        warnings: list[str] | None = None,
    ) -> SyncResult:
        """Build an unsuccessful result carrying a single error."""
        return cls(
            success=False,
            operation=operation,
            errors=[error],
            warnings=list(warnings or []),
            message=error,
        )

    def _by_action(self, action: ChangeAction) -> list[SyncChange]:
        return [c for c in self.changes if c.action == action]

    @property
    def created(self) -> list[SyncChange]:
        """Changes where action is CREATED."""
        return self._by_action(ChangeAction.CREATED)

    @property
    def updated(self) -> list[SyncChange]:
        """Changes where action is UPDATED."""
        return self._by_action(ChangeAction.UPDATED)

    @property
    def skipped(self) -> list[SyncChange]:
        """Changes where action is SKIPPED."""
        return self._by_action(ChangeAction.SKIPPED)

    @property
    def failed(self) -> list[SyncChange]:
        """Changes where action is ERROR."""
        return self._by_action(ChangeAction.ERROR)

    def summary(self) -> str:
        """Format a human-readable summary of the run.

        Returns:
            Multi-line summary string with counts by decision.
        """
        stats = self.statistics
        lines = [
            f"Sync result for '{self.operation}'"
            + (" (dry run)" if self.dry_run else ""),
            f"  Success:          {self.success}",
            f"  Created:          {stats.created}",
            f"  Updated:          {stats.updated}",
            f"  Skipped:          {stats.skipped}",
            f"  Source preferred: {stats.source_preferred}",
            f"  Target preferred: {stats.target_preferred}",
            f"  Conflicts:        {self.conflicts}",
            f"  Errors:           {len(self.errors)}",
            f"  Warnings:         {len(self.warnings)}",
        ]
        return "\n".join(lines)


class BulkEntryResult(BaseModel):
    """Outcome of one element of a bulk operation.

    Attributes:
        index: Position of the element in the batch.
        source_index: Source position, for fan-outs over several sources.
        target_index: Target position, for fan-outs over several targets.
        success: Whether the element's call succeeded.
        error: Error message if the call raised.
        result: The element's ``SyncResult`` when one was produced.
    """

    index: int
    success: bool
    source_index: int | None = None
    target_index: int | None = None
    error: str | None = None
    result: SyncResult | None = None

    model_config = {"frozen": True}


class BulkResult(BaseModel):
    """Aggregate outcome of a bulk operation."""

    operation: str
    results: list[BulkEntryResult] = []

    model_config = {"frozen": True}

    @property
    def success(self) -> bool:
        """``True`` when every element succeeded."""
        return all(r.success for r in self.results)

    @property
    def errors(self) -> list[BulkEntryResult]:
        """Elements that failed."""
        return [r for r in self.results if not r.success]

    @property
    def total_items_processed(self) -> int:
        return sum(
            r.result.items_processed
            for r in self.results
            if r.result is not None and isinstance(r.result.items_processed, int)
        )

    @property
    def total_conflicts(self) -> int:
        return sum(r.result.conflicts for r in self.results if r.result is not None)


class SyncRecorder:
    """Mutable accumulator that builds a ``SyncResult`` at the end of a run.

    Each ``record()`` call is one leaf decision: it appends a change,
    bumps exactly one of ``created``/``updated``/``skipped`` (errors are
    collected instead), and optionally the side that won.
    """

    def __init__(self, operation: str, dry_run: bool = False) -> None:
        self.operation = operation
        self.dry_run = dry_run
        self.statistics = SyncStatistics()
        self.changes: list[SyncChange] = []
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.conflicts = 0
        self.items_processed = 0

    def record(
        self,
        path: str,
        action: ChangeAction,
        reason: str | None = None,
        *,
        preferred: str | None = None,
    ) -> None:
        """Record one leaf decision."""
        self.items_processed += 1
        self.changes.append(
            SyncChange(path=path, action=action, reason=reason, preferred=preferred)
        )
        match action:
            case ChangeAction.CREATED:
                self.statistics.created += 1
            case ChangeAction.UPDATED:
                self.statistics.updated += 1
            case ChangeAction.SKIPPED:
                self.statistics.skipped += 1
            case ChangeAction.ERROR:
                self.errors.append(f"{path}: {reason}" if path else str(reason))
        if preferred == "source":
            self.statistics.source_preferred += 1
        elif preferred == "target":
            self.statistics.target_preferred += 1

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def build(
        self,
        comparison: ComparisonResult | None = None,
        message: str | None = None,
    ) -> SyncResult:
        return SyncResult(
            success=not self.errors,
            operation=self.operation,
            items_processed=self.items_processed,
            conflicts=self.conflicts,
            changes=list(self.changes),
            errors=list(self.errors),
            warnings=list(self.warnings),
            statistics=self.statistics.model_copy(),
            dry_run=self.dry_run,
            comparison=comparison,
            message=message,
        )
