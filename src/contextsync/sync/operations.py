"""Bulk and multi-target operations over the merge orchestrator.

Every helper here is a thin fan-out over ``ContextMerger.merge()``.
Failures are caught per element: one bad source or target is recorded in
its ``BulkEntryResult`` and never aborts the rest of the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from ..validators import path_matches
from .filters import ItemFilter
from .merger import ContextMerger
from .models import (
    BulkEntryResult,
    BulkResult,
    ChangeAction,
    MergeStrategy,
    SyncResult,
)

logger = logging.getLogger(__name__)

PRIORITY_ORDER: dict[str, int] = {"high": 3, "medium": 2, "normal": 1, "low": 0}
DEFAULT_PRIORITY = "normal"


def _require_paths(paths: Sequence[str]) -> list[str]:
    paths = list(paths)
    if not paths:
        raise ValueError("Item paths must be a non-empty list")
    return paths


def _require_many(values: Sequence[Any], name: str) -> list[Any]:
    values = list(values)
    if not values:
        raise ValueError(f"{name} must be a non-empty list")
    return values


def _normalize_source(entry: Any) -> tuple[Any, str]:
    """Accept ``ctx``, ``(ctx, priority)`` or ``{"context": ctx, "priority": p}``."""
    if isinstance(entry, Mapping):
        context = entry["context"]
        priority = entry.get("priority", DEFAULT_PRIORITY)
    elif isinstance(entry, tuple):
        context, priority = entry
    else:
        context, priority = entry, DEFAULT_PRIORITY
    if priority not in PRIORITY_ORDER:
        raise ValueError(
            f"Unknown priority: '{priority}'. Valid priorities: "
            f"{sorted(PRIORITY_ORDER, key=PRIORITY_ORDER.get, reverse=True)}"
        )
    return context, priority


class ContextOperations:
    """Push, pull and consolidate contexts.

    Args:
        merger: Orchestrator to delegate to; a default one is created if
            omitted.
    """

    def __init__(self, merger: ContextMerger | None = None) -> None:
        self.merger = merger or ContextMerger()

    # ------------------------------------------------------------------
    # Single pair
    # ------------------------------------------------------------------

    def push_context(
        self,
        source: Any,
        target: Any,
        strategy: MergeStrategy | str | None = None,
        **options: Any,
    ) -> SyncResult:
        """Merge the whole of *source* into *target*."""
        return self.merger.merge(source, target, strategy, **options)

    def pull_context(
        self,
        source: Any,
        target: Any,
        strategy: MergeStrategy | str | None = None,
        **options: Any,
    ) -> SyncResult:
        """Merge the whole of *target* into *source*."""
        return self.merger.merge(target, source, strategy, **options)

    def push_items(
        self,
        source: Any,
        target: Any,
        paths: Sequence[str],
        strategy: MergeStrategy | str | None = None,
        **options: Any,
    ) -> SyncResult:
        """Merge only *paths* (and what lies below them) into *target*.

        Raises:
            ValueError: If *paths* is empty.
        """
        allowed = _require_paths(paths)
        options["allow_only"] = [*options.get("allow_only", []), *allowed]
        return self.merger.merge(source, target, strategy, **options)

    def pull_items(
        self,
        source: Any,
        target: Any,
        paths: Sequence[str],
        strategy: MergeStrategy | str | None = None,
        **options: Any,
    ) -> SyncResult:
        """Merge only *paths* from *target* back into *source*."""
        return self.push_items(target, source, paths, strategy, **options)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def _run_entry(
        self,
        index: int,
        call: Any,
        *,
        source_index: int | None = None,
        target_index: int | None = None,
    ) -> BulkEntryResult:
        try:
            result = call()
        except Exception as exc:
            logger.error("Bulk element %d failed: %s", index, exc)
            return BulkEntryResult(
                index=index,
                success=False,
                source_index=source_index,
                target_index=target_index,
                error=str(exc),
            )
        return BulkEntryResult(
            index=index,
            success=result.success,
            source_index=source_index,
            target_index=target_index,
            error=None if result.success else "; ".join(result.errors),
            result=result,
        )

    def push_from_multiple_sources(
        self,
        sources: Sequence[Any],
        target: Any,
        strategy: MergeStrategy | str | None = None,
        **options: Any,
    ) -> BulkResult:
        """Merge each source into *target*, in order."""
        sources = _require_many(sources, "Sources")
        results = [
            self._run_entry(
                index,
                lambda source=source: self.merger.merge(
                    source, target, strategy, **options
                ),
                source_index=index,
            )
            for index, source in enumerate(sources)
        ]
        return BulkResult(operation="push-from-multiple-sources", results=results)

    def push_to_multiple_targets(
        self,
        source: Any,
        targets: Sequence[Any],
        strategy: MergeStrategy | str | None = None,
        **options: Any,
    ) -> BulkResult:
        """Merge *source* into each target."""
        targets = _require_many(targets, "Targets")
        results = [
            self._run_entry(
                index,
                lambda target=target: self.merger.merge(
                    source, target, strategy, **options
                ),
                target_index=index,
            )
            for index, target in enumerate(targets)
        ]
        return BulkResult(operation="push-to-multiple-targets", results=results)

    def push_items_bulk(
        self,
        sources: Sequence[Any],
        targets: Sequence[Any],
        paths: Sequence[str],
        strategy: MergeStrategy | str | None = None,
        **options: Any,
    ) -> BulkResult:
        """Push *paths* from every source into every target.

        Entries are ordered source-major; ``index`` counts across the
        whole product.
        """
        sources = _require_many(sources, "Sources")
        targets = _require_many(targets, "Targets")
        paths = _require_paths(paths)

        results: list[BulkEntryResult] = []
        for source_index, source in enumerate(sources):
            for target_index, target in enumerate(targets):
                results.append(
                    self._run_entry(
                        len(results),
                        lambda source=source, target=target: self.push_items(
                            source, target, paths, strategy, **options
                        ),
                        source_index=source_index,
                        target_index=target_index,
                    )
                )
        return BulkResult(operation="push-items-bulk", results=results)

    # ------------------------------------------------------------------
    # Bidirectional / consolidation
    # ------------------------------------------------------------------

    def synchronize_bidirectional(
        self,
        first: Any,
        second: Any,
        strategy: MergeStrategy | str | None = None,
        *,
        first_priority: Iterable[str] = (),
        second_priority: Iterable[str] = (),
        exclude_paths: Iterable[str] = (),
        **options: Any,
    ) -> BulkResult:
        """Merge *first* into *second*, then *second* into *first*.

        Args:
            first: First context.
            second: Second context.
            strategy: Strategy for both directions.
            first_priority: Paths only *first* may write.
            second_priority: Paths only *second* may write.
            exclude_paths: Paths neither side may write.
            **options: Further ``MergeOptions`` fields.

        Returns:
            A two-entry ``BulkResult`` (first to second, then second to
            first); ``success`` is true only if both directions succeeded.
        """
        first_priority = list(first_priority)
        second_priority = list(second_priority)
        excluded = list(exclude_paths)

        def direction_filter(mine: list[str], theirs: list[str]) -> Any:
            return ItemFilter.and_(
                ItemFilter.block_only(excluded),
                ItemFilter.or_(
                    ItemFilter.allow_only(mine),
                    ItemFilter.block_only(theirs),
                ),
            )

        first_to_second = self._run_entry(
            0,
            lambda: self.merger.merge(
                first,
                second,
                strategy,
                custom_filter=direction_filter(first_priority, second_priority),
                **options,
            ),
            source_index=0,
            target_index=1,
        )
        second_to_first = self._run_entry(
            1,
            lambda: self.merger.merge(
                second,
                first,
                strategy,
                custom_filter=direction_filter(second_priority, first_priority),
                **options,
            ),
            source_index=1,
            target_index=0,
        )
        return BulkResult(
            operation="synchronize-bidirectional",
            results=[first_to_second, second_to_first],
        )

    def consolidate_contexts(
        self,
        sources: Sequence[Any],
        target: Any,
        strategy: MergeStrategy | str | None = None,
        *,
        exclude_paths: Iterable[str] = (),
        **options: Any,
    ) -> BulkResult:
        """Merge several prioritised sources into *target*.

        Sources are applied from the highest priority down (``high``,
        ``medium``, ``normal``, ``low``; ties keep their input order).
        A path written by an earlier source is blocked for every later
        one, so a lower priority never overwrites a higher one.

        Args:
            sources: Contexts, ``(context, priority)`` pairs, or
                ``{"context": ..., "priority": ...}`` dicts.
            target: Context receiving the merged state.
            strategy: Strategy for each merge.
            exclude_paths: Paths no source may write.
            **options: Further ``MergeOptions`` fields.

        Returns:
            A ``BulkResult`` with one entry per source; ``index`` is the
            source's position in *sources*.

        Raises:
            ValueError: If *sources* is empty or a priority is unknown.
        """
        sources = _require_many(sources, "Sources")
        normalized = [_normalize_source(entry) for entry in sources]
        ordered = sorted(
            enumerate(normalized),
            key=lambda pair: PRIORITY_ORDER[pair[1][1]],
            reverse=True,
        )

        claimed: list[str] = []
        excluded = list(exclude_paths)
        extra_block = list(options.pop("block_only", []))
        results: list[BulkEntryResult] = []

        for index, (context, priority) in ordered:
            logger.debug(
                "Consolidating source %d (priority %s)", index, priority
            )
            entry = self._run_entry(
                index,
                lambda context=context: self.merger.merge(
                    context,
                    target,
                    strategy,
                    block_only=[*excluded, *extra_block, *claimed],
                    **options,
                ),
                source_index=index,
            )
            results.append(entry)
            if entry.result is not None:
                claimed.extend(
                    change.path
                    for change in entry.result.changes
                    if change.preferred == "source"
                    and change.action is not ChangeAction.ERROR
                    and not any(path_matches(change.path, c) for c in claimed)
                )

        return BulkResult(operation="consolidate-contexts", results=results)
