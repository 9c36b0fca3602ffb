"""Core tree data model: timestamped items and keyed containers."""

from .container import ContextContainer, WrapAs
from .item import ContextItem

__all__ = ["ContextContainer", "ContextItem", "WrapAs"]
