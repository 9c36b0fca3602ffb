"""Snapshot serialisation and storage adapters.

``snapshot()`` turns an item, container or context into plain JSON-safe
data (ISO-8601 timestamps, metadata, freeze flags and container options);
``restore()`` rebuilds an equivalent tree.  Stored trees never alias the
caller's objects.

Adapters implement the ``StorageAdapter`` protocol:

* ``InMemoryStorage``: keeps the latest snapshot in memory.
* ``JsonFileStorage``: writes the snapshot to a JSON file atomically
  (temp file in the same directory, then ``os.replace()``) so readers
  never see partial data.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

from .context import Context
from .core.container import ContextContainer, WrapAs
from .core.item import ContextItem
from .core.nodes import NodeKind, classify

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


# ---------------------------------------------------------------------------
# Snapshot (de)serialisation
# ---------------------------------------------------------------------------


def _node_header(node: ContextItem, kind: str) -> dict:
    # Timestamps are read before the value so the snapshot reflects the
    # state prior to this read.
    return {
        "kind": kind,
        "created_at": node.created_at.isoformat(),
        "modified_at": node.modified_at.isoformat(),
        "last_accessed_at": node.last_accessed_at.isoformat(),
        "frozen": node.is_frozen(),
        "record_access": node.record_access,
        "record_access_for_metadata": node.record_access_for_metadata,
    }


def _snapshot_container(container: ContextContainer, active: set[int]) -> dict:
    if id(container) in active:
        raise ValueError("Cannot snapshot a container that contains itself")
    active.add(id(container))
    data = _node_header(container, NodeKind.CONTAINER.value)
    options = container.container_options()
    options["default_item_type"] = WrapAs(options["default_item_type"]).value
    data["options"] = options
    data["metadata"] = copy.deepcopy(container.metadata)
    data["entries"] = {
        key: _snapshot_node(child, active) for key, child in container.entries()
    }
    active.discard(id(container))
    return data


def _snapshot_node(node: Any, active: set[int]) -> dict:
    match classify(node):
        case NodeKind.CONTAINER:
            return _snapshot_container(node, active)
        case NodeKind.ITEM:
            data = _node_header(node, NodeKind.ITEM.value)
            data["metadata"] = copy.deepcopy(node.metadata)
            data["value"] = copy.deepcopy(node.value)
            return data
        case _:
            return {"kind": "raw", "value": copy.deepcopy(node)}


def snapshot(node: ContextItem | Context) -> dict:
    """Serialise *node* to JSON-safe data.

    Raises:
        TypeError: If *node* is not an item, container or context.
        ValueError: If a container contains itself.
    """
    kind = classify(node)
    if kind is NodeKind.CONTEXT:
        return {
            "version": SNAPSHOT_VERSION,
            "kind": NodeKind.CONTEXT.value,
            "metadata": copy.deepcopy(node.metadata),
            "components": {
                name: _snapshot_container(node.get_component(name), set())
                for name in node.components
            },
        }
    if kind not in (NodeKind.ITEM, NodeKind.CONTAINER):
        raise TypeError(f"Cannot snapshot object of type {type(node).__name__}")
    data = _snapshot_node(node, set())
    data["version"] = SNAPSHOT_VERSION
    return data


def _restore_node(data: dict) -> Any:
    kind = data.get("kind")
    match kind:
        case "raw":
            return copy.deepcopy(data["value"])
        case "item":
            node = ContextItem(
                copy.deepcopy(data.get("value")),
                copy.deepcopy(data.get("metadata")),
                record_access=data.get("record_access", True),
                record_access_for_metadata=data.get(
                    "record_access_for_metadata", False
                ),
            )
        case "container":
            node = ContextContainer(
                metadata=copy.deepcopy(data.get("metadata")),
                **data.get("options", {}),
            )
            for key, child in data.get("entries", {}).items():
                node.set_item(
                    key,
                    _restore_node(child),
                    wrap_primitives=child.get("kind") != "raw",
                )
        case _:
            raise ValueError(f"Unknown snapshot node kind: {kind!r}")

    node.restore_timestamps(
        data["created_at"], data["modified_at"], data["last_accessed_at"]
    )
    if data.get("frozen"):
        node.freeze()
    return node


def restore(data: dict) -> ContextItem | Context:
    """Rebuild an item, container or context from ``snapshot()`` output.

    Raises:
        ValueError: If the data is not a recognised snapshot.
    """
    if data.get("kind") == NodeKind.CONTEXT.value:
        components = {
            name: _restore_node(component)
            for name, component in data.get("components", {}).items()
        }
        return Context.from_components(components, data.get("metadata"))
    return _restore_node(data)


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


class StorageAdapter(Protocol):
    """Protocol that all storage adapters must satisfy."""

    def store(self, tree: ContextItem | Context) -> None:
        ...  # pragma: no cover

    def retrieve(self) -> ContextItem | Context | None:
        ...  # pragma: no cover

    def remove(self) -> bool:
        ...  # pragma: no cover

    def exists(self) -> bool:
        ...  # pragma: no cover


class InMemoryStorage:
    """Keep the latest stored tree as a snapshot in memory."""

    def __init__(self) -> None:
        self._data: dict | None = None

    def store(self, tree: ContextItem | Context) -> None:
        self._data = snapshot(tree)

    def retrieve(self) -> ContextItem | Context | None:
        """Return a fresh copy of the stored tree, or ``None``."""
        if self._data is None:
            return None
        return restore(self._data)

    def remove(self) -> bool:
        existed = self._data is not None
        self._data = None
        return existed

    def exists(self) -> bool:
        return self._data is not None


class JsonFileStorage:
    """Persist a tree as a JSON file.

    Args:
        path: File to write.  Parent directories are created on first
            store.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def store(self, tree: ContextItem | Context) -> None:
        """Persist *tree* atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target.

        Raises:
            TypeError: If a value is not JSON-serialisable.
        """
        data = snapshot(tree)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._path.parent), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
            os.replace(tmp_path, self._path)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug("Stored snapshot at %s", self._path)

    def retrieve(self) -> ContextItem | Context | None:
        """Load the stored tree, or ``None`` if the file does not exist."""
        if not self._path.exists():
            return None
        with open(self._path, encoding="utf-8") as fh:
            return restore(json.load(fh))

    def remove(self) -> bool:
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        return True

    def exists(self) -> bool:
        return self._path.exists()
