"""Timestamp-driven synchronisation of context trees.

Public API for comparing, syncing and merging items, containers and
whole contexts.

Architecture
------------
Every node carries ``created_at``, ``modified_at`` and
``last_accessed_at``.  Two nodes are compared on one of those attributes
(``compare_by``, default ``modified_at``) and the comparison, together
with a strategy, decides which side wins.  Values are deep-copied, so
two synced trees never share mutable state.

Modules:

- ``models``     -- ``ComparisonVerdict``, ``SyncDirection``,
  ``MergeStrategy``, ``SyncOperation``, ``SyncResult``, ``BulkResult``:
  core data contracts.
- ``comparator`` -- ``compare()``: timestamp comparison of two nodes.
- ``item_sync``  -- ``ItemSync``: strategies for a pair of items.
- ``engine``     -- ``ContainerSyncEngine``: structural recursive sync
  of two containers.
- ``strategies`` -- ``ContainerSync`` and ``perform_sync()``: strategy
  dispatch for items and containers.
- ``resolver``   -- Winner resolution per merge strategy.
- ``filters``    -- ``ItemFilter`` combinators and ``PathFilter``.
- ``merger``     -- ``ContextMerger``: filtered, per-path context merge.
- ``operations`` -- ``ContextOperations``: push, pull, bulk,
  bidirectional and consolidation helpers.
- ``facade``     -- ``ContextSync``: single entry point (async).
- ``reporter``   -- Human-readable and JSON result formatting.

Public exports
--------------
``ContextSync``, ``ContextMerger``, ``ContextOperations``,
``ContainerSyncEngine``, ``ContainerSync``, ``ItemSync``, ``ItemFilter``,
``PathFilter``, ``MergeOptions``, ``compare``, ``perform_sync``,
the enums and result models, ``format_sync_report``,
``format_dry_run_preview``, ``result_to_json``, ``bulk_result_to_json``.

Usage example
-------------
::

    from contextsync import Context
    from contextsync.sync import ContextSync, format_sync_report

    local = Context()
    remote = Context()
    local.get_component("settings").set_item("theme", "dark")

    syncer = ContextSync()

    # Dry-run first to preview changes
    preview = await syncer.sync(local, remote, "merge-newer-wins", dry_run=True)
    print(format_sync_report(preview))

    # Execute the sync
    result = await syncer.sync(local, remote, "merge-newer-wins")
    print(format_sync_report(result))
"""

from .comparator import compare
from .engine import ContainerSyncEngine
from .facade import ContextSync
from .filters import ItemFilter, PathFilter
from .item_sync import ItemSync
from .merger import ContextMerger, MergeOptions
from .models import (
    BulkEntryResult,
    BulkResult,
    ChangeAction,
    ComparisonResult,
    ComparisonVerdict,
    MergeStrategy,
    SyncChange,
    SyncDirection,
    SyncOperation,
    SyncResult,
    SyncStatistics,
)
from .operations import ContextOperations
from .reporter import (
    bulk_result_to_json,
    format_dry_run_preview,
    format_sync_report,
    result_to_json,
)
from .strategies import ContainerSync, perform_sync

__all__ = [
    "BulkEntryResult",
    "BulkResult",
    "ChangeAction",
    "ComparisonResult",
    "ComparisonVerdict",
    "ContainerSync",
    "ContainerSyncEngine",
    "ContextMerger",
    "ContextOperations",
    "ContextSync",
    "ItemFilter",
    "ItemSync",
    "MergeOptions",
    "MergeStrategy",
    "PathFilter",
    "SyncChange",
    "SyncDirection",
    "SyncOperation",
    "SyncResult",
    "SyncStatistics",
    "bulk_result_to_json",
    "compare",
    "format_dry_run_preview",
    "format_sync_report",
    "perform_sync",
    "result_to_json",
]
