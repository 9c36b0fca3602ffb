"""Exception hierarchy for contextsync.

Structural violations (frozen writes, type mismatches on explicit path
navigation, invalid comparator input) are raised synchronously and are
expected to propagate to the immediate caller.  Bulk and orchestrator
operations catch them per item and record them on the result instead.
"""

from __future__ import annotations


class ContextSyncError(Exception):
    """Base class for all contextsync errors."""


class FrozenError(ContextSyncError):
    """Write attempted on a frozen item or container."""

    def __init__(self, target: str = "item") -> None:
        super().__init__(f"Cannot modify a frozen {target}")
        self.target = target


class ReservedKeyError(ContextSyncError, KeyError):
    """A path segment collides with a reserved structural name."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Key '{key}' is reserved and cannot be used")
        self.key = key

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0])


class TypeMismatchError(ContextSyncError, TypeError):
    """A node of the wrong kind was found where another was expected."""


class StrictTypeError(TypeMismatchError):
    """Strict mode rejected a pair of nodes without item/container markers."""


class InvalidTimestampError(ContextSyncError):
    """Base class for comparator input validation failures."""


class InvalidTimestampTypeError(InvalidTimestampError, TypeError):
    """Timestamp has a type that cannot represent a point in time."""


class InvalidTimestampValueError(InvalidTimestampError, ValueError):
    """Timestamp has an accepted type but an unusable value."""


class UnsupportedObjectTypeError(ContextSyncError, TypeError):
    """The facade received objects it does not know how to synchronise."""


class IncompatibleTypesError(ContextSyncError, TypeError):
    """The facade received two recognised objects of different kinds."""
