"""Item-level synchronisation operations.

``ItemSync`` copies values and metadata between two ``ContextItem``
instances.  Values are deep-copied so the two items never share mutable
state.  The pairwise container engine delegates every item-to-item update
here.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from ..core.item import ContextItem
from .comparator import DEFAULT_COMPARE_BY, compare
from .models import (
    ChangeAction,
    ComparisonResult,
    ComparisonVerdict,
    SyncOperation,
    SyncRecorder,
    SyncResult,
)

logger = logging.getLogger(__name__)


class ItemSync:
    """Operations reconciling two ``ContextItem`` instances."""

    @staticmethod
    def update_target_to_match_source(
        source: ContextItem,
        target: ContextItem,
        *,
        sync_metadata: bool = True,
        preserve_metadata: bool = False,
        preserve_timestamps: bool = False,
    ) -> ContextItem:
        """Make *target* hold a copy of *source*'s value (and metadata).

        Args:
            source: Item to copy from.
            target: Item to overwrite.
            sync_metadata: Also copy metadata.
            preserve_metadata: Keep target metadata keys that the source
                lacks (source keys still win).
            preserve_timestamps: Stamp the target with the source's
                ``modified_at`` instead of now.

        Returns:
            *target*.

        Raises:
            FrozenError: If *target* is frozen.
        """
        timestamp = source.modified_at if preserve_timestamps else None
        target.set_value(copy.deepcopy(source.value), timestamp=timestamp)
        if sync_metadata:
            metadata = source.metadata
            if preserve_metadata:
                metadata = {**target.metadata, **metadata}
            target.set_metadata(
                copy.deepcopy(metadata), merge=False, timestamp=timestamp
            )
        return target

    @staticmethod
    def update_source_to_match_target(
        source: ContextItem,
        target: ContextItem,
        **options: Any,
    ) -> ContextItem:
        """Mirror of ``update_target_to_match_source``; returns *source*."""
        return ItemSync.update_target_to_match_source(target, source, **options)

    @staticmethod
    def compare(
        source: ContextItem,
        target: ContextItem,
        compare_by: str = DEFAULT_COMPARE_BY,
    ) -> ComparisonResult:
        return compare(source, target, compare_by)

    @staticmethod
    def merge_newer_wins(
        source: ContextItem,
        target: ContextItem,
        *,
        compare_by: str = DEFAULT_COMPARE_BY,
        sync_metadata: bool = True,
        operation: str = SyncOperation.MERGE_NEWER_WINS.value,
    ) -> SyncResult:
        """Copy *source* into *target* only when the source is newer."""
        recorder = SyncRecorder(operation)
        comparison = compare(source, target, compare_by)
        match comparison.verdict:
            case ComparisonVerdict.A_NEWER:
                ItemSync.update_target_to_match_source(
                    source, target, sync_metadata=sync_metadata
                )
                recorder.record(
                    "", ChangeAction.UPDATED, "source is newer", preferred="source"
                )
            case ComparisonVerdict.B_NEWER:
                recorder.record(
                    "", ChangeAction.SKIPPED, "target is newer", preferred="target"
                )
            case _:
                recorder.record("", ChangeAction.SKIPPED, "timestamps are equal")
        return recorder.build(comparison=comparison)

    @staticmethod
    def merge_with_priority(
        source: ContextItem,
        target: ContextItem,
        priority: str = "source",
        *,
        sync_metadata: bool = True,
        operation: str | None = None,
    ) -> SyncResult:
        """Favour the side named by *priority* regardless of timestamps.

        Raises:
            ValueError: If *priority* is not ``"source"`` or ``"target"``.
        """
        if priority == "source":
            ItemSync.update_target_to_match_source(
                source, target, sync_metadata=sync_metadata
            )
            label = operation or SyncOperation.MERGE_SOURCE_PRIORITY.value
        elif priority == "target":
            ItemSync.update_source_to_match_target(
                source, target, sync_metadata=sync_metadata
            )
            label = operation or SyncOperation.MERGE_TARGET_PRIORITY.value
        else:
            raise ValueError(
                f"Unknown priority: '{priority}'. Valid priorities: ['source', 'target']"
            )
        recorder = SyncRecorder(label)
        recorder.record(
            "", ChangeAction.UPDATED, f"{priority} has priority", preferred=priority
        )
        return recorder.build()

    @staticmethod
    def update_source_to_target(
        source: ContextItem,
        target: ContextItem,
        *,
        sync_metadata: bool = True,
        operation: str = SyncOperation.UPDATE_SOURCE_TO_TARGET.value,
    ) -> SyncResult:
        """Push *source*'s value into *target*."""
        ItemSync.update_target_to_match_source(
            source, target, sync_metadata=sync_metadata
        )
        recorder = SyncRecorder(operation)
        recorder.record(
            "", ChangeAction.UPDATED, "target updated to match source",
            preferred="source",
        )
        return recorder.build()

    @staticmethod
    def update_target_to_source(
        source: ContextItem,
        target: ContextItem,
        *,
        sync_metadata: bool = True,
        operation: str = SyncOperation.UPDATE_TARGET_TO_SOURCE.value,
    ) -> SyncResult:
        """Pull *target*'s value into *source*."""
        ItemSync.update_source_to_match_target(
            source, target, sync_metadata=sync_metadata
        )
        recorder = SyncRecorder(operation)
        recorder.record(
            "", ChangeAction.UPDATED, "source updated to match target",
            preferred="target",
        )
        return recorder.build()

    @staticmethod
    def perform_sync(
        source: ContextItem,
        target: ContextItem,
        operation: SyncOperation | str,
        **options: Any,
    ) -> SyncResult:
        """Run the named *operation* on two items."""
        from .strategies import dispatch

        return dispatch(ItemSync, source, target, operation, **options)
