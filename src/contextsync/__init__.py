"""Timestamped context trees with pairwise sync and context merging."""

__version__ = "0.1.0"

from .context import Context
from .core import ContextContainer, ContextItem, WrapAs
from .errors import (
    ContextSyncError,
    FrozenError,
    IncompatibleTypesError,
    InvalidTimestampError,
    ReservedKeyError,
    StrictTypeError,
    TypeMismatchError,
    UnsupportedObjectTypeError,
)
from .sync import ContextSync

__all__ = [
    "Context",
    "ContextContainer",
    "ContextItem",
    "ContextSync",
    "ContextSyncError",
    "FrozenError",
    "IncompatibleTypesError",
    "InvalidTimestampError",
    "ReservedKeyError",
    "StrictTypeError",
    "TypeMismatchError",
    "UnsupportedObjectTypeError",
    "WrapAs",
    "__version__",
]
