"""Path-based item filters for the merge orchestrator.

A filter is a callable ``(source_item, target_item, path) -> chosen`` that
returns either the source item (let the source value through) or the
target item (keep the target).  ``ItemFilter`` builds filters and
composes them with short-circuiting ``and_`` / ``or_``.

``PathFilter`` bundles the filtering options of one merge call
(``allow_only``, ``block_only``, ``match_pattern``, ``custom_filter``)
into a single gate.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from typing import Any

from ..validators import PATH_SEPARATOR, path_matches

logger = logging.getLogger(__name__)

FilterFn = Callable[[Any, Any, str], Any]

# Stand-ins passed to filters when the caller has no items at hand.
_SOURCE = object()
_TARGET = object()


def _within(path: str, candidate: str) -> bool:
    """Return ``True`` if *path* is *candidate* or sits below it."""
    return path == candidate or path.startswith(candidate + PATH_SEPARATOR)


class ItemFilter:
    """Factory for item filters."""

    @staticmethod
    def allow_only(paths: Iterable[str]) -> FilterFn:
        """Let the source through only for listed paths.

        Ancestors of a listed path pass too, so a merge can descend
        towards it.
        """
        allowed = list(paths)

        def _filter(source_item: Any, target_item: Any, path: str) -> Any:
            if any(path_matches(path, candidate) for candidate in allowed):
                return source_item
            return target_item

        return _filter

    @staticmethod
    def block_only(paths: Iterable[str]) -> FilterFn:
        """Keep the target for listed paths and everything below them."""
        blocked = list(paths)

        def _filter(source_item: Any, target_item: Any, path: str) -> Any:
            if any(_within(path, candidate) for candidate in blocked):
                return target_item
            return source_item

        return _filter

    @staticmethod
    def match_pattern(pattern: str | re.Pattern[str]) -> FilterFn:
        """Let the source through when *pattern* matches the path."""
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern

        def _filter(source_item: Any, target_item: Any, path: str) -> Any:
            return source_item if compiled.search(path) else target_item

        return _filter

    @staticmethod
    def custom(predicate: Callable[[Any, Any, str], bool]) -> FilterFn:
        """Let the source through when *predicate* returns a truthy value."""

        def _filter(source_item: Any, target_item: Any, path: str) -> Any:
            if predicate(source_item, target_item, path):
                return source_item
            return target_item

        return _filter

    @staticmethod
    def and_(*filters: FilterFn) -> FilterFn:
        """Source only if every filter picks it; stops at the first veto."""

        def _filter(source_item: Any, target_item: Any, path: str) -> Any:
            for item_filter in filters:
                if item_filter(source_item, target_item, path) is target_item:
                    return target_item
            return source_item

        return _filter

    @staticmethod
    def or_(*filters: FilterFn) -> FilterFn:
        """Source if any filter picks it; stops at the first acceptance."""

        def _filter(source_item: Any, target_item: Any, path: str) -> Any:
            for item_filter in filters:
                if item_filter(source_item, target_item, path) is source_item:
                    return source_item
            return target_item

        return _filter


class PathFilter:
    """Combined gate for one merge call.

    Args:
        allow_only: Paths the source may write (plus their ancestors and
            descendants).  Empty means everything.
        block_only: Paths (and their descendants) the source may not
            write.
        match_pattern: Regular expression a path must match.
        custom_filter: Any ``FilterFn``, e.g. one built with ``ItemFilter``.
    """

    def __init__(
        self,
        allow_only: Iterable[str] | None = None,
        block_only: Iterable[str] | None = None,
        match_pattern: str | re.Pattern[str] | None = None,
        custom_filter: FilterFn | None = None,
    ) -> None:
        self.allow_only = list(allow_only or [])
        self.block_only = list(block_only or [])
        self.match_pattern = match_pattern
        self.custom_filter = custom_filter

        filters: list[FilterFn] = []
        if self.allow_only:
            filters.append(ItemFilter.allow_only(self.allow_only))
        if self.block_only:
            filters.append(ItemFilter.block_only(self.block_only))
        if match_pattern is not None:
            filters.append(ItemFilter.match_pattern(match_pattern))
        if custom_filter is not None:
            filters.append(custom_filter)
        self._filter: FilterFn | None = ItemFilter.and_(*filters) if filters else None

    @classmethod
    def from_options(cls, options: Any) -> PathFilter:
        """Build a gate from any object carrying the filter fields."""
        return cls(
            allow_only=getattr(options, "allow_only", None),
            block_only=getattr(options, "block_only", None),
            match_pattern=getattr(options, "match_pattern", None),
            custom_filter=getattr(options, "custom_filter", None),
        )

    @property
    def active(self) -> bool:
        return self._filter is not None

    def choose(self, source_item: Any, target_item: Any, path: str) -> Any:
        """Return whichever of the two items the gate keeps for *path*."""
        if self._filter is None:
            return source_item
        return self._filter(source_item, target_item, path)

    def allows(
        self,
        path: str,
        source_item: Any = _SOURCE,
        target_item: Any = _TARGET,
    ) -> bool:
        """Return ``True`` if the source may write at *path*."""
        if source_item is target_item:
            # e.g. None on both sides; the items cannot be told apart.
            return self.choose(_SOURCE, _TARGET, path) is _SOURCE
        return self.choose(source_item, target_item, path) is source_item

    def may_descend(self, path: str) -> bool:
        """Return ``True`` if anything at or below *path* could be written."""
        if self.allow_only and not any(
            path_matches(path, candidate) for candidate in self.allow_only
        ):
            return False
        return not any(_within(path, candidate) for candidate in self.block_only)
