"""Closed classification of the node kinds the sync layer handles.

Every value met while walking two trees is one of:

- ``CONTAINER``: a ``ContextContainer``,
- ``ITEM``: a ``ContextItem`` that is not a container,
- ``CONTEXT``: a multi-component ``Context``,
- ``PLAIN``: a mapping (plain dict),
- ``PRIMITIVE``: ``str``, ``int``, ``float``, ``bool``, ``bytes`` or ``None``,
- ``OTHER``: anything else (lists, arbitrary objects).

The engine and orchestrator dispatch on pairs of kinds with ``match``.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum

from ..context import Context
from .container import ContextContainer
from .item import ContextItem

PRIMITIVE_TYPES = (str, int, float, bool, bytes, type(None))


class NodeKind(str, Enum):
    """Kind of a node in a synchronisable tree."""

    CONTAINER = "container"
    ITEM = "item"
    CONTEXT = "context"
    PLAIN = "plain"
    PRIMITIVE = "primitive"
    OTHER = "other"


def classify(node: object) -> NodeKind:
    """Return the ``NodeKind`` of *node*; containers are checked before items."""
    if isinstance(node, ContextContainer):
        return NodeKind.CONTAINER
    if isinstance(node, ContextItem):
        return NodeKind.ITEM
    if isinstance(node, Context):
        return NodeKind.CONTEXT
    if isinstance(node, Mapping):
        return NodeKind.PLAIN
    if isinstance(node, PRIMITIVE_TYPES):
        return NodeKind.PRIMITIVE
    return NodeKind.OTHER


def supports_metadata(kind: NodeKind) -> bool:
    """Return ``True`` for kinds that carry metadata and timestamps."""
    return kind in (NodeKind.ITEM, NodeKind.CONTAINER)
