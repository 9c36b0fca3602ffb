"""Single timestamped value cell.

A ``ContextItem`` holds one value plus metadata and three timestamps
(created, modified, last accessed).  Every mutating call stamps the
current time unless the caller supplies an explicit timestamp, which the
sync layer uses to propagate a source's modification time.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from ..errors import FrozenError
from .timestamps import to_datetime, utcnow

logger = logging.getLogger(__name__)


class ContextItem:
    """A mutable value cell with timestamps, metadata and a freeze flag.

    Args:
        value: Initial value.
        metadata: Initial metadata (copied shallowly).
        frozen: Freeze the item after initialisation.
        record_access: Update ``last_accessed_at`` when ``value`` is read.
        record_access_for_metadata: Update ``last_accessed_at`` when
            ``metadata`` is read.
        timestamp: Explicit creation time for all three timestamps.
    """

    def __init__(
        self,
        value: Any = None,
        metadata: dict | None = None,
        *,
        frozen: bool = False,
        record_access: bool = True,
        record_access_for_metadata: bool = False,
        timestamp: Any = None,
    ) -> None:
        self._initialize(
            value,
            metadata,
            frozen=frozen,
            record_access=record_access,
            record_access_for_metadata=record_access_for_metadata,
            timestamp=timestamp,
        )

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def _initialize(
        self,
        value: Any,
        metadata: dict | None,
        *,
        frozen: bool,
        record_access: bool,
        record_access_for_metadata: bool,
        timestamp: Any,
    ) -> None:
        now = to_datetime(timestamp) if timestamp is not None else utcnow()
        self._created_at = now
        self._modified_at = now
        self._last_accessed_at = now
        self._metadata: dict = dict(metadata or {})
        self._record_access = record_access
        self._record_access_for_metadata = record_access_for_metadata
        self._frozen = False
        self._store_initial_value(value, timestamp)
        self._frozen = frozen

    def _store_initial_value(self, value: Any, timestamp: Any) -> None:
        self._value = value

    def reinitialize(
        self,
        value: Any = None,
        metadata: dict | None = None,
        *,
        frozen: bool = False,
        record_access: bool = True,
        record_access_for_metadata: bool = False,
        timestamp: Any = None,
    ) -> None:
        """Reset value, metadata, options and all three timestamps.

        Raises:
            FrozenError: If the item is frozen.
        """
        self._ensure_writable()
        self._initialize(
            value,
            metadata,
            frozen=frozen,
            record_access=record_access,
            record_access_for_metadata=record_access_for_metadata,
            timestamp=timestamp,
        )

    def clear(self) -> None:
        """Reinitialise to an empty value, keeping the access options."""
        self.reinitialize(
            None,
            {},
            record_access=self._record_access,
            record_access_for_metadata=self._record_access_for_metadata,
        )

    # ------------------------------------------------------------------
    # Value
    # ------------------------------------------------------------------

    @property
    def value(self) -> Any:
        if self._record_access:
            self._update_access_timestamp()
        return self._value

    @value.setter
    def value(self, new_value: Any) -> None:
        self.set_value(new_value)

    def set_value(self, new_value: Any, timestamp: Any = None) -> None:
        """Replace the value.

        Args:
            new_value: The new value.
            timestamp: Explicit modification time; defaults to now.

        Raises:
            FrozenError: If the item is frozen.
        """
        self._ensure_writable()
        self._value = new_value
        self._update_modification_timestamps(timestamp)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @property
    def metadata(self) -> dict:
        if self._record_access_for_metadata:
            self._update_access_timestamp()
        return dict(self._metadata)

    def set_metadata(
        self,
        metadata: dict | None,
        merge: bool = True,
        timestamp: Any = None,
    ) -> None:
        """Shallow-merge onto, or replace, the existing metadata.

        Raises:
            FrozenError: If the item is frozen.
        """
        self._ensure_writable()
        if merge:
            self._metadata = {**self._metadata, **(metadata or {})}
        else:
            self._metadata = dict(metadata or {})
        self._update_modification_timestamps(timestamp)

    # ------------------------------------------------------------------
    # Timestamps
    # ------------------------------------------------------------------

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def modified_at(self) -> datetime:
        return self._modified_at

    @property
    def last_accessed_at(self) -> datetime:
        return self._last_accessed_at

    def _update_access_timestamp(self) -> None:
        self._last_accessed_at = utcnow()

    def _update_modification_timestamps(self, timestamp: Any = None) -> None:
        stamp = to_datetime(timestamp) if timestamp is not None else utcnow()
        if stamp < self._created_at:
            self._created_at = stamp
        self._modified_at = stamp
        self._last_accessed_at = stamp

    def restore_timestamps(
        self,
        created_at: Any,
        modified_at: Any,
        last_accessed_at: Any,
    ) -> None:
        """Set all three timestamps verbatim, e.g. when loading a snapshot.

        Raises:
            FrozenError: If the item is frozen.
        """
        self._ensure_writable()
        self._created_at = to_datetime(created_at)
        self._modified_at = to_datetime(modified_at)
        self._last_accessed_at = to_datetime(last_accessed_at)

    # ------------------------------------------------------------------
    # Freeze / access recording
    # ------------------------------------------------------------------

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def unfreeze(self) -> None:
        self._frozen = False

    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def record_access(self) -> bool:
        return self._record_access

    @property
    def record_access_for_metadata(self) -> bool:
        return self._record_access_for_metadata

    def change_access_record(
        self,
        record_access: bool | None = None,
        record_access_for_metadata: bool | None = None,
    ) -> None:
        """Toggle access recording; ``None`` leaves a flag unchanged."""
        if record_access is not None:
            self._record_access = record_access
        if record_access_for_metadata is not None:
            self._record_access_for_metadata = record_access_for_metadata

    def _ensure_writable(self) -> None:
        if self._frozen:
            raise FrozenError(self._kind_name())

    def _kind_name(self) -> str:
        return "item"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(value={self._value!r}, "
            f"modified_at={self._modified_at.isoformat()}, "
            f"frozen={self._frozen})"
        )
