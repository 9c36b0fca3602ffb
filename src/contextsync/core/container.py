"""Keyed, dotted-path-addressable collection of items.

A ``ContextContainer`` is a ``ContextItem`` whose value is an ordered map
of child items and containers.  Its own timestamps, metadata and frozen
flag describe the container as a whole.

Addressing rules:

* ``"a.b.c"`` routes through nested containers by consuming the first
  segment and recursing the remainder into the child.
* Reserved names (``value``, ``metadata``, ...) are never stored as keys.
  ``set_item`` renames a reserved segment with a ``_`` prefix at every
  nesting level and logs a warning; dotted reads through a reserved
  segment raise ``ReservedKeyError``.
* With ``enhanced_nested_path_checking`` on, ``has_item`` also descends
  into dict values held by items.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from enum import Enum
from typing import Any

from ..errors import FrozenError, TypeMismatchError
from ..validators import (
    extract_first_segment_and_remainder,
    is_reserved_key,
    reject_reserved_key,
    split_path,
    validate_path,
)
from .item import ContextItem

logger = logging.getLogger(__name__)

CIRCULAR_MARKER = "[Circular]"
DEFAULT_KEY = "default"

_PRIMITIVE_TYPES = (str, int, float, bool, bytes, type(None))


class WrapAs(str, Enum):
    """Node type used when wrapping a raw value."""

    ITEM = "item"
    CONTAINER = "container"


def _dig(value: Any, segments: list[str]) -> tuple[bool, Any]:
    """Walk *segments* through nested mappings; return (found, value)."""
    current = value
    for segment in segments:
        if not isinstance(current, Mapping) or segment not in current:
            return False, None
        current = current[segment]
    return True, current


class ContextContainer(ContextItem):
    """Ordered mapping of keys to ``ContextItem``/``ContextContainer`` nodes.

    Args:
        initial: A dict (one entry per key), any other value (stored under
            ``"default"``), or ``None`` for an empty container.
        metadata: Container-level metadata.
        default_item_type: How raw values are wrapped by ``set_item``.
        wrap_primitives: When ``False``, scalar values are stored raw.
        item_record_access: Default ``record_access`` for new children.
        item_record_access_for_metadata: Default metadata-access flag
            for new children.
        enhanced_nested_path_checking: Let ``has_item`` descend into dict
            values held by items.
    """

    def __init__(
        self,
        initial: Any = None,
        metadata: dict | None = None,
        *,
        frozen: bool = False,
        record_access: bool = True,
        record_access_for_metadata: bool = False,
        default_item_type: WrapAs | str = WrapAs.ITEM,
        wrap_primitives: bool = True,
        item_record_access: bool = True,
        item_record_access_for_metadata: bool = False,
        enhanced_nested_path_checking: bool = False,
        timestamp: Any = None,
    ) -> None:
        self._default_item_type = WrapAs(default_item_type)
        self._wrap_primitives = wrap_primitives
        self._item_record_access = item_record_access
        self._item_record_access_for_metadata = (
            item_record_access_for_metadata
        )
        self._enhanced_nested_path_checking = enhanced_nested_path_checking
        super().__init__(
            initial,
            metadata,
            frozen=frozen,
            record_access=record_access,
            record_access_for_metadata=record_access_for_metadata,
            timestamp=timestamp,
        )

    def _store_initial_value(self, value: Any, timestamp: Any) -> None:
        self._value = None
        self._entries: dict[str, ContextItem | Any] = {}
        if value is None:
            return
        if isinstance(value, Mapping):
            for key, child in value.items():
                self.set_item(key, child, timestamp=timestamp)
        else:
            self.set_item(DEFAULT_KEY, value, timestamp=timestamp)

    def _kind_name(self) -> str:
        return "container"

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    @property
    def enhanced_nested_path_checking(self) -> bool:
        return self._enhanced_nested_path_checking

    @enhanced_nested_path_checking.setter
    def enhanced_nested_path_checking(self, enabled: bool) -> None:
        self._enhanced_nested_path_checking = enabled

    def container_options(self) -> dict[str, Any]:
        """Return the wrapping options, for building a like-configured copy."""
        return {
            "record_access": self._record_access,
            "record_access_for_metadata": self._record_access_for_metadata,
            "default_item_type": self._default_item_type,
            "wrap_primitives": self._wrap_primitives,
            "item_record_access": self._item_record_access,
            "item_record_access_for_metadata": (
                self._item_record_access_for_metadata
            ),
            "enhanced_nested_path_checking": (
                self._enhanced_nested_path_checking
            ),
        }

    # ------------------------------------------------------------------
    # Value projection
    # ------------------------------------------------------------------

    @property
    def value(self) -> dict[str, Any]:
        """Plain-dict projection of all children (recursive)."""
        if self._record_access:
            self._update_access_timestamp()
        return self._project(set())

    @value.setter
    def value(self, new_value: Any) -> None:
        self.set_value(new_value)

    def _project(self, active: set[int]) -> dict[str, Any]:
        active.add(id(self))
        result: dict[str, Any] = {}
        for key, node in self._entries.items():
            if isinstance(node, ContextContainer):
                if id(node) in active:
                    result[key] = CIRCULAR_MARKER
                else:
                    result[key] = node._project(active)
            elif isinstance(node, ContextItem):
                result[key] = node.value
            else:
                result[key] = node
        active.discard(id(self))
        return result

    def set_value(self, new_value: Any, timestamp: Any = None) -> None:
        """Replace every entry with the keys of *new_value*.

        Raises:
            FrozenError: If the container is frozen.
            TypeMismatchError: If *new_value* is not a mapping.
        """
        self._ensure_writable()
        if not isinstance(new_value, Mapping):
            raise TypeMismatchError(
                "Container value must be a mapping, got "
                f"{type(new_value).__name__}"
            )
        self._entries.clear()
        for key, child in new_value.items():
            self.set_item(key, child, timestamp=timestamp)
        self._update_modification_timestamps(timestamp)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _record_read(self) -> None:
        if self._record_access:
            self._update_access_timestamp()

    @staticmethod
    def _check_read_path(path: str) -> bool:
        """Validate a read path; reserved segments in dotted paths raise."""
        is_valid, _ = validate_path(path)
        if not is_valid:
            return False
        segments = split_path(path)
        if len(segments) > 1:
            for segment in segments:
                reject_reserved_key(segment)
        return True

    def has_item(self, path: str) -> bool:
        """Return ``True`` if *path* resolves to an entry.

        Raises:
            ReservedKeyError: If a dotted path has a reserved segment.
        """
        if not self._check_read_path(path):
            return False
        key, remaining = extract_first_segment_and_remainder(path)
        if not remaining:
            return key in self._entries
        node = self._entries.get(key)
        if isinstance(node, ContextContainer):
            return node.has_item(remaining)
        if self._enhanced_nested_path_checking and isinstance(
            node, ContextItem
        ):
            found, _ = _dig(node._value, split_path(remaining))
            return found
        return False

    def get_item(self, path: str) -> Any:
        """Return the unwrapped value at *path*, or ``None`` if missing.

        Records an access on every container traversed.

        Raises:
            ReservedKeyError: If a dotted path has a reserved segment.
        """
        if not self._check_read_path(path):
            return None
        self._record_read()
        key, remaining = extract_first_segment_and_remainder(path)
        node = self._entries.get(key)
        if node is None:
            return None
        if not remaining:
            if isinstance(node, ContextItem):
                return node.value
            return node
        if isinstance(node, ContextContainer):
            return node.get_item(remaining)
        raw = node.value if isinstance(node, ContextItem) else node
        _, found = _dig(raw, split_path(remaining))
        return found

    def get_wrapped_item(self, path: str) -> ContextItem | Any | None:
        """Return the node stored at *path* without unwrapping it."""
        if not self._check_read_path(path):
            return None
        self._record_read()
        key, remaining = extract_first_segment_and_remainder(path)
        node = self._entries.get(key)
        if not remaining:
            return node
        if isinstance(node, ContextContainer):
            return node.get_wrapped_item(remaining)
        return None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _normalize_key(self, key: str) -> str:
        if is_reserved_key(key):
            renamed = f"_{key}"
            logger.warning(
                "Key '%s' is reserved; storing it as '%s'", key, renamed
            )
            return renamed
        return key

    def _new_child_container(self, timestamp: Any) -> ContextContainer:
        return ContextContainer(
            timestamp=timestamp,
            default_item_type=self._default_item_type,
            wrap_primitives=self._wrap_primitives,
            item_record_access=self._item_record_access,
            item_record_access_for_metadata=(
                self._item_record_access_for_metadata
            ),
            enhanced_nested_path_checking=(
                self._enhanced_nested_path_checking
            ),
        )

    def _wrap(
        self,
        value: Any,
        *,
        wrap_as: WrapAs | str | None,
        metadata: dict | None,
        frozen: bool,
        record_access: bool | None,
        record_access_for_metadata: bool | None,
        wrap_primitives: bool | None,
        timestamp: Any,
    ) -> ContextItem | Any:
        if isinstance(value, ContextItem):
            return value

        wrap_primitives = (
            self._wrap_primitives if wrap_primitives is None else wrap_primitives
        )
        if not wrap_primitives and isinstance(value, _PRIMITIVE_TYPES):
            return value

        access = (
            self._item_record_access if record_access is None else record_access
        )
        meta_access = (
            self._item_record_access_for_metadata
            if record_access_for_metadata is None
            else record_access_for_metadata
        )
        kind = WrapAs(wrap_as) if wrap_as is not None else self._default_item_type
        if (
            wrap_as is None
            and kind is WrapAs.CONTAINER
            and not isinstance(value, Mapping)
        ):
            # Default container wrapping only applies to mappings; leaves
            # stay items.
            kind = WrapAs.ITEM
        if kind is WrapAs.CONTAINER:
            return ContextContainer(
                value,
                metadata,
                frozen=frozen,
                record_access=access,
                record_access_for_metadata=meta_access,
                default_item_type=self._default_item_type,
                wrap_primitives=self._wrap_primitives,
                item_record_access=self._item_record_access,
                item_record_access_for_metadata=(
                    self._item_record_access_for_metadata
                ),
                enhanced_nested_path_checking=(
                    self._enhanced_nested_path_checking
                ),
                timestamp=timestamp,
            )
        return ContextItem(
            value,
            metadata,
            frozen=frozen,
            record_access=access,
            record_access_for_metadata=meta_access,
            timestamp=timestamp,
        )

    def set_item(
        self,
        path: str,
        value: Any,
        *,
        wrap_as: WrapAs | str | None = None,
        metadata: dict | None = None,
        frozen: bool = False,
        record_access: bool | None = None,
        record_access_for_metadata: bool | None = None,
        wrap_primitives: bool | None = None,
        ignore_frozen: bool = False,
        timestamp: Any = None,
    ) -> ContextContainer:
        """Set (or replace) the entry at *path*, creating containers as needed.

        Args:
            path: Dotted path to the entry.
            value: Raw value, or an already wrapped item/container.
            wrap_as: Override the container's default wrapping.
            metadata: Metadata for a newly wrapped value.
            frozen: Freeze a newly wrapped value.
            record_access: Access recording for a newly wrapped value.
            record_access_for_metadata: Metadata access recording for a
                newly wrapped value.
            wrap_primitives: Override the container's primitive wrapping.
            ignore_frozen: Write even if the container or slot is frozen.
            timestamp: Explicit modification time.

        Returns:
            ``self``, for chaining.

        Raises:
            ValueError: If *path* is empty or malformed.
            FrozenError: If the container or the target slot is frozen.
            TypeMismatchError: If an intermediate segment holds a
                non-container.
        """
        is_valid, error = validate_path(path)
        if not is_valid:
            raise ValueError(error)
        if self._frozen and not ignore_frozen:
            raise FrozenError(self._kind_name())

        key, remaining = extract_first_segment_and_remainder(path)
        key = self._normalize_key(key)

        if remaining:
            child = self._entries.get(key)
            if child is None:
                child = self._new_child_container(timestamp)
                self._entries[key] = child
            elif not isinstance(child, ContextContainer):
                raise TypeMismatchError(
                    f"Cannot set '{remaining}' under '{key}': entry is a "
                    f"{type(child).__name__}, not a container"
                )
            child.set_item(
                remaining,
                value,
                wrap_as=wrap_as,
                metadata=metadata,
                frozen=frozen,
                record_access=record_access,
                record_access_for_metadata=record_access_for_metadata,
                wrap_primitives=wrap_primitives,
                ignore_frozen=ignore_frozen,
                timestamp=timestamp,
            )
        else:
            existing = self._entries.get(key)
            if (
                isinstance(existing, ContextItem)
                and existing.is_frozen()
                and not ignore_frozen
            ):
                raise FrozenError(existing._kind_name())
            self._entries[key] = self._wrap(
                value,
                wrap_as=wrap_as,
                metadata=metadata,
                frozen=frozen,
                record_access=record_access,
                record_access_for_metadata=record_access_for_metadata,
                wrap_primitives=wrap_primitives,
                timestamp=timestamp,
            )

        self._update_modification_timestamps(timestamp)
        return self

    def remove_item(self, path: str) -> bool:
        """Remove the entry at *path*; return ``True`` if one was removed.

        Raises:
            FrozenError: If the container is frozen.
        """
        if not self._check_read_path(path):
            return False
        self._ensure_writable()
        key, remaining = extract_first_segment_and_remainder(path)
        if remaining:
            child = self._entries.get(key)
            if not isinstance(child, ContextContainer):
                return False
            removed = child.remove_item(remaining)
        else:
            removed = self._entries.pop(key, None) is not None

        if removed:
            self._update_modification_timestamps()
        return removed

    def clear_items(self) -> None:
        """Remove every entry.

        Raises:
            FrozenError: If the container is frozen.
        """
        self._ensure_writable()
        if self._entries:
            self._entries.clear()
            self._update_modification_timestamps()

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def keys(self) -> list[str]:
        """Snapshot of direct child keys."""
        self._record_read()
        return list(self._entries)

    def items(self) -> list[ContextItem | Any]:
        """Snapshot of direct child nodes."""
        self._record_read()
        return list(self._entries.values())

    def entries(self) -> list[tuple[str, ContextItem | Any]]:
        """Snapshot of ``(key, node)`` pairs of direct children."""
        self._record_read()
        return list(self._entries.items())

    @property
    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.has_item(path)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(keys={list(self._entries)!r}, "
            f"modified_at={self._modified_at.isoformat()}, "
            f"frozen={self._frozen})"
        )
