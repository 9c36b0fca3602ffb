"""Pairwise, cycle-safe synchronisation of two trees.

``ContainerSyncEngine.sync(a, b, direction)`` reconciles a source tree
into a target tree in place.  The walk:

1. Skips (with a warning) a source container already being walked.
2. Marks the source container visited and iterates its keys; a key whose
   node is the container itself is skipped with a warning.
3. For keys present in the target, dispatches on the pair of node kinds;
   for missing keys, copies the node across.  New nested containers are
   cloned and then synced from the source, so the two trees never share
   nodes.
4. Unmarks the container once its own keys are done, so the same
   subtree may legitimately appear at several places.

Every node is reconciled together with an *assign* callback bound to its
slot in the parent.  Pairs that cannot be updated in place (primitives,
mismatched kinds) are written by reassigning the slot through the parent.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping, MutableMapping
from typing import TYPE_CHECKING, Any

from ..core.container import ContextContainer
from ..core.nodes import NodeKind, classify, supports_metadata
from ..errors import FrozenError, StrictTypeError, TypeMismatchError
from .item_sync import ItemSync
from .models import SyncDirection

if TYPE_CHECKING:
    from ..config_schema import UnifiedConfig

logger = logging.getLogger(__name__)

Assign = Callable[[Any], None]

# Key used when a scalar item is flattened into a container.
COLLAPSED_VALUE_KEY = "_value"


def deep_merge_into(target: MutableMapping, source: Mapping) -> None:
    """Merge *source* into *target* in place.

    Source scalars win, nested mappings merge, and target-only keys
    survive.  Values taken from *source* are deep-copied.
    """
    for key, value in source.items():
        current = target.get(key)
        if isinstance(value, Mapping) and isinstance(current, MutableMapping):
            deep_merge_into(current, value)
        else:
            target[key] = copy.deepcopy(value)


def _root_slot(value: Any) -> None:
    raise TypeMismatchError(
        "Cannot replace the root node of a sync; pass nodes of "
        "compatible kinds"
    )


class ContainerSyncEngine:
    """Reconcile two trees node by node.

    Args:
        sync_metadata: Copy metadata alongside every value change.
        strict_type_checking: Reject node pairs where neither side is an
            item or container instead of overwriting best-effort.
    """

    def __init__(
        self,
        sync_metadata: bool = False,
        strict_type_checking: bool = False,
    ) -> None:
        self.sync_metadata = sync_metadata
        self.strict_type_checking = strict_type_checking

    @classmethod
    def from_config(cls, config: UnifiedConfig) -> ContainerSyncEngine:
        return cls(
            sync_metadata=config.engine.sync_metadata,
            strict_type_checking=config.engine.strict_type_checking,
        )

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def sync(
        self,
        container_a: Any,
        container_b: Any,
        direction: SyncDirection | str | None = None,
    ) -> list[str]:
        """Synchronise two trees in place.

        Args:
            container_a: First tree.
            container_b: Second tree.
            direction: ``source_to_target`` syncs *container_a* into
                *container_b*; anything else (including ``None``) syncs
                *container_b* into *container_a*.

        Returns:
            Warnings produced during the walk (cycles, self-references).
        """
        source, target = self.resolve_direction(
            container_a, container_b, direction
        )
        warnings: list[str] = []
        self._reconcile(source, target, _root_slot, set(), warnings)
        return warnings

    @staticmethod
    def resolve_direction(
        container_a: Any,
        container_b: Any,
        direction: SyncDirection | str | None,
    ) -> tuple[Any, Any]:
        """Return ``(source, target)`` for *direction*."""
        resolved = None
        if direction is not None:
            try:
                resolved = SyncDirection(direction)
            except ValueError:
                logger.warning(
                    "Unrecognised sync direction %r; syncing target to source",
                    direction,
                )
        if resolved is SyncDirection.SOURCE_TO_TARGET:
            return container_a, container_b
        return container_b, container_a

    def clone_container(
        self,
        source: ContextContainer,
        visited: set[int] | None = None,
        warnings: list[str] | None = None,
    ) -> ContextContainer:
        """Return a new container holding a deep copy of *source*."""
        clone = ContextContainer(
            metadata=copy.deepcopy(source.metadata),
            **source.container_options(),
        )
        self._sync_containers(
            source,
            clone,
            visited if visited is not None else set(),
            warnings if warnings is not None else [],
        )
        return clone

    # ------------------------------------------------------------------
    # Recursion
    # ------------------------------------------------------------------

    @staticmethod
    def _warn(warnings: list[str], message: str) -> None:
        logger.warning(message)
        warnings.append(message)

    @staticmethod
    def _slot(container: ContextContainer, key: str) -> Assign:
        def assign(value: Any) -> None:
            container.set_item(key, value)

        return assign

    def _sync_containers(
        self,
        source: ContextContainer,
        target: ContextContainer,
        visited: set[int],
        warnings: list[str],
    ) -> None:
        if id(source) in visited:
            self._warn(
                warnings,
                "Circular reference detected; skipping a container that is "
                "already being synchronised",
            )
            return

        visited.add(id(source))
        try:
            for key, node in source.entries():
                if node is source:
                    self._warn(
                        warnings,
                        f"Self-reference detected for key '{key}'; skipping",
                    )
                    continue
                if target.is_frozen():
                    raise FrozenError("container")
                if target.has_item(key):
                    self._reconcile(
                        node,
                        target.get_wrapped_item(key),
                        self._slot(target, key),
                        visited,
                        warnings,
                    )
                else:
                    self._add_node(key, node, target, visited, warnings)
        finally:
            visited.discard(id(source))

        self._copy_metadata(source, NodeKind.CONTAINER, target, NodeKind.CONTAINER)

    def _add_node(
        self,
        key: str,
        node: Any,
        target: ContextContainer,
        visited: set[int],
        warnings: list[str],
    ) -> None:
        match classify(node):
            case NodeKind.CONTAINER:
                target.set_item(
                    key, self.clone_container(node, visited, warnings)
                )
            case NodeKind.ITEM:
                target.set_item(
                    key,
                    copy.deepcopy(node.value),
                    metadata=copy.deepcopy(node.metadata),
                )
            case _:
                target.set_item(key, copy.deepcopy(node))

    def _reconcile(
        self,
        source: Any,
        target: Any,
        assign: Assign,
        visited: set[int],
        warnings: list[str],
    ) -> None:
        source_kind = classify(source)
        target_kind = classify(target)

        match (source_kind, target_kind):
            case (NodeKind.ITEM, NodeKind.ITEM):
                self._merge_items(source, target)
            case (NodeKind.CONTAINER, NodeKind.CONTAINER):
                self._sync_containers(source, target, visited, warnings)
            case (NodeKind.CONTEXT, NodeKind.CONTEXT):
                for name in source.components:
                    component = target.get_component(name)
                    if component is not None:
                        self._sync_containers(
                            source.get_component(name),
                            component,
                            visited,
                            warnings,
                        )
            case (NodeKind.ITEM, NodeKind.CONTAINER):
                self._item_into_container(source, target, visited, warnings)
            case (NodeKind.CONTAINER, NodeKind.ITEM):
                self._container_into_item(source, target)
            case (NodeKind.ITEM | NodeKind.CONTAINER, NodeKind.PLAIN):
                self._node_into_plain(source, target, assign)
            case (NodeKind.PLAIN, NodeKind.ITEM | NodeKind.CONTAINER):
                self._plain_into_node(source, target, target_kind, visited, warnings)
            case (NodeKind.PLAIN, NodeKind.PLAIN):
                self._merge_plain(source, target, assign)
            case (NodeKind.PRIMITIVE, NodeKind.PRIMITIVE):
                assign(source)
            case _ if self.strict_type_checking and not (
                supports_metadata(source_kind) or supports_metadata(target_kind)
            ):
                raise StrictTypeError(
                    f"Cannot sync {source_kind.value} into {target_kind.value} "
                    "in strict mode"
                )
            case _:
                self._assign_resolved(
                    source, source_kind, target, target_kind, assign
                )

    # ------------------------------------------------------------------
    # Pair handlers
    # ------------------------------------------------------------------

    def _merge_items(self, source: Any, target: Any) -> None:
        source_value = source.value
        target_value = target.value
        if isinstance(source_value, Mapping) and isinstance(
            target_value, Mapping
        ):
            merged = copy.deepcopy(dict(target_value))
            deep_merge_into(merged, source_value)
            target.set_value(merged)
            self._copy_metadata(source, NodeKind.ITEM, target, NodeKind.ITEM)
        else:
            ItemSync.update_target_to_match_source(
                source, target, sync_metadata=self.sync_metadata
            )

    def _item_into_container(
        self,
        item: Any,
        container: ContextContainer,
        visited: set[int],
        warnings: list[str],
    ) -> None:
        value = item.value
        if isinstance(value, Mapping):
            self._mapping_into_container(value, container, visited, warnings)
        else:
            container.clear_items()
            container.set_item(COLLAPSED_VALUE_KEY, copy.deepcopy(value))
        self._copy_metadata(item, NodeKind.ITEM, container, NodeKind.CONTAINER)

    def _container_into_item(self, container: ContextContainer, item: Any) -> None:
        aggregate = container.value
        current = item.value
        if isinstance(current, Mapping):
            merged = copy.deepcopy(dict(current))
            deep_merge_into(merged, aggregate)
            item.set_value(merged)
        else:
            item.set_value(copy.deepcopy(aggregate))
        self._copy_metadata(container, NodeKind.CONTAINER, item, NodeKind.ITEM)

    def _node_into_plain(
        self,
        node: Any,
        plain: Mapping,
        assign: Assign,
    ) -> None:
        value = node.value
        if not isinstance(value, Mapping):
            assign(copy.deepcopy(value))
        elif isinstance(plain, MutableMapping):
            deep_merge_into(plain, value)
        else:
            merged = copy.deepcopy(dict(plain))
            deep_merge_into(merged, value)
            assign(merged)

    def _plain_into_node(
        self,
        plain: Mapping,
        node: Any,
        node_kind: NodeKind,
        visited: set[int],
        warnings: list[str],
    ) -> None:
        if node_kind is NodeKind.CONTAINER:
            self._mapping_into_container(plain, node, visited, warnings)
            return
        current = node.value
        if isinstance(current, Mapping):
            merged = copy.deepcopy(dict(current))
            deep_merge_into(merged, plain)
            node.set_value(merged)
        else:
            node.set_value(copy.deepcopy(dict(plain)))

    def _merge_plain(
        self, source: Mapping, target: Mapping, assign: Assign
    ) -> None:
        if isinstance(target, MutableMapping):
            deep_merge_into(target, source)
        else:
            merged = copy.deepcopy(dict(target))
            deep_merge_into(merged, source)
            assign(merged)

    def _mapping_into_container(
        self,
        mapping: Mapping,
        container: ContextContainer,
        visited: set[int],
        warnings: list[str],
    ) -> None:
        for key, field in mapping.items():
            if container.has_item(key):
                self._reconcile(
                    field,
                    container.get_wrapped_item(key),
                    self._slot(container, key),
                    visited,
                    warnings,
                )
            else:
                container.set_item(key, copy.deepcopy(field))

    def _assign_resolved(
        self,
        source: Any,
        source_kind: NodeKind,
        target: Any,
        target_kind: NodeKind,
        assign: Assign,
    ) -> None:
        resolved = copy.deepcopy(
            source.value if supports_metadata(source_kind) else source
        )
        if target_kind is NodeKind.ITEM:
            target.set_value(resolved)
            self._copy_metadata(source, source_kind, target, target_kind)
        else:
            assign(resolved)

    def _copy_metadata(
        self,
        source: Any,
        source_kind: NodeKind,
        target: Any,
        target_kind: NodeKind,
    ) -> None:
        if not self.sync_metadata:
            return
        if not (supports_metadata(source_kind) and supports_metadata(target_kind)):
            return
        try:
            target.set_metadata(copy.deepcopy(source.metadata), merge=False)
        except FrozenError as exc:
            logger.warning("Metadata not synchronised: %s", exc)
