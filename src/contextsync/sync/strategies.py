"""Named synchronisation strategies for item and container pairs.

Operations (identical names on ``ItemSync`` and ``ContainerSync``):

- ``update_source_to_target``: make the target look like the source.
- ``update_target_to_source``: make the source look like the target.
- ``merge_newer_wins``: copy the source into the target only when the
  source is newer; a newer target or a tie is a no-op.
- ``merge_with_priority``: favour the named side regardless of
  timestamps.

Every operation returns a ``SyncResult`` whose ``operation`` is the name
the caller asked for, even when it delegates to another operation.
``perform_sync()`` dispatches an operation name to the right class for
the kinds of the two nodes.
"""

from __future__ import annotations

import logging
from typing import Any

from ..core.container import ContextContainer
from ..core.nodes import NodeKind, classify
from ..errors import TypeMismatchError
from .comparator import DEFAULT_COMPARE_BY, compare
from .engine import ContainerSyncEngine
from .item_sync import ItemSync
from .models import (
    ChangeAction,
    ComparisonVerdict,
    SyncDirection,
    SyncOperation,
    SyncRecorder,
    SyncResult,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ContainerSync",
    "ItemSync",
    "dispatch",
    "parse_operation",
    "perform_sync",
]


class ContainerSync:
    """Strategy operations reconciling two ``ContextContainer`` trees."""

    @staticmethod
    def _push(
        source: ContextContainer,
        target: ContextContainer,
        recorder: SyncRecorder,
        *,
        preferred: str,
        sync_metadata: bool,
        strict_type_checking: bool,
    ) -> None:
        """Sync *source* into *target*, recording one change per key."""
        existing = set(target.keys())
        engine = ContainerSyncEngine(
            sync_metadata=sync_metadata,
            strict_type_checking=strict_type_checking,
        )
        for warning in engine.sync(
            source, target, SyncDirection.SOURCE_TO_TARGET
        ):
            recorder.warn(warning)
        for key, node in source.entries():
            if node is source:
                continue
            if key in existing:
                recorder.record(
                    key, ChangeAction.UPDATED, f"{preferred} wins",
                    preferred=preferred,
                )
            else:
                recorder.record(
                    key, ChangeAction.CREATED, f"copied from {preferred}",
                    preferred=preferred,
                )

    @staticmethod
    def update_source_to_target(
        source: ContextContainer,
        target: ContextContainer,
        *,
        sync_metadata: bool = True,
        strict_type_checking: bool = False,
        operation: str = SyncOperation.UPDATE_SOURCE_TO_TARGET.value,
    ) -> SyncResult:
        """Push every source entry into *target*."""
        recorder = SyncRecorder(operation)
        ContainerSync._push(
            source,
            target,
            recorder,
            preferred="source",
            sync_metadata=sync_metadata,
            strict_type_checking=strict_type_checking,
        )
        return recorder.build(message="Target container updated to match source")

    @staticmethod
    def update_target_to_source(
        source: ContextContainer,
        target: ContextContainer,
        *,
        sync_metadata: bool = True,
        strict_type_checking: bool = False,
        operation: str = SyncOperation.UPDATE_TARGET_TO_SOURCE.value,
    ) -> SyncResult:
        """Pull every target entry into *source*."""
        recorder = SyncRecorder(operation)
        ContainerSync._push(
            target,
            source,
            recorder,
            preferred="target",
            sync_metadata=sync_metadata,
            strict_type_checking=strict_type_checking,
        )
        return recorder.build(message="Source container updated to match target")

    @staticmethod
    def merge_newer_wins(
        source: ContextContainer,
        target: ContextContainer,
        *,
        compare_by: str = DEFAULT_COMPARE_BY,
        sync_metadata: bool = True,
        strict_type_checking: bool = False,
        operation: str = SyncOperation.MERGE_NEWER_WINS.value,
    ) -> SyncResult:
        """Push *source* into *target* only when the source is newer."""
        comparison = compare(source, target, compare_by)
        recorder = SyncRecorder(operation)
        match comparison.verdict:
            case ComparisonVerdict.A_NEWER:
                ContainerSync._push(
                    source,
                    target,
                    recorder,
                    preferred="source",
                    sync_metadata=sync_metadata,
                    strict_type_checking=strict_type_checking,
                )
                message = "Source is newer; target updated"
            case ComparisonVerdict.B_NEWER:
                recorder.record(
                    "", ChangeAction.SKIPPED, "target is newer",
                    preferred="target",
                )
                message = "Target is newer; nothing to do"
            case _:
                recorder.record("", ChangeAction.SKIPPED, "timestamps are equal")
                message = "Containers are equal, no merge needed"
        return recorder.build(comparison=comparison, message=message)

    @staticmethod
    def merge_with_priority(
        source: ContextContainer,
        target: ContextContainer,
        priority: str = "source",
        *,
        sync_metadata: bool = True,
        strict_type_checking: bool = False,
        operation: str | None = None,
    ) -> SyncResult:
        """Favour the side named by *priority* regardless of timestamps.

        Raises:
            ValueError: If *priority* is not ``"source"`` or ``"target"``.
        """
        if priority == "source":
            return ContainerSync.update_source_to_target(
                source,
                target,
                sync_metadata=sync_metadata,
                strict_type_checking=strict_type_checking,
                operation=operation or SyncOperation.MERGE_SOURCE_PRIORITY.value,
            )
        if priority == "target":
            return ContainerSync.update_target_to_source(
                source,
                target,
                sync_metadata=sync_metadata,
                strict_type_checking=strict_type_checking,
                operation=operation or SyncOperation.MERGE_TARGET_PRIORITY.value,
            )
        raise ValueError(
            f"Unknown priority: '{priority}'. Valid priorities: ['source', 'target']"
        )

    @staticmethod
    def perform_sync(
        source: ContextContainer,
        target: ContextContainer,
        operation: SyncOperation | str,
        **options: Any,
    ) -> SyncResult:
        """Run the named *operation* on two containers."""
        return dispatch(ContainerSync, source, target, operation, **options)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def parse_operation(operation: SyncOperation | str) -> SyncOperation:
    """Return the ``SyncOperation`` named by *operation*.

    Raises:
        ValueError: If the name is not recognised.
    """
    try:
        return SyncOperation(operation)
    except ValueError:
        raise ValueError(
            f"Unknown sync operation: '{operation}'. Valid operations: "
            f"{sorted(o.value for o in SyncOperation)}"
        ) from None


def dispatch(
    handler: Any,
    source: Any,
    target: Any,
    operation: SyncOperation | str,
    *,
    compare_by: str = DEFAULT_COMPARE_BY,
    sync_metadata: bool = True,
    **extra: Any,
) -> SyncResult:
    """Run *operation* through *handler* (``ItemSync`` or ``ContainerSync``).

    Raises:
        ValueError: Unknown operation, or ``auto`` (resolved by the facade).
    """
    op = parse_operation(operation)
    logger.debug("Performing %s with %s", op.value, handler.__name__)
    match op:
        case SyncOperation.UPDATE_SOURCE_TO_TARGET:
            return handler.update_source_to_target(
                source, target, sync_metadata=sync_metadata, **extra
            )
        case SyncOperation.UPDATE_TARGET_TO_SOURCE:
            return handler.update_target_to_source(
                source, target, sync_metadata=sync_metadata, **extra
            )
        case SyncOperation.MERGE_NEWER_WINS:
            return handler.merge_newer_wins(
                source,
                target,
                compare_by=compare_by,
                sync_metadata=sync_metadata,
                **extra,
            )
        case SyncOperation.MERGE_SOURCE_PRIORITY:
            return handler.merge_with_priority(
                source, target, "source", sync_metadata=sync_metadata, **extra
            )
        case SyncOperation.MERGE_TARGET_PRIORITY:
            return handler.merge_with_priority(
                source, target, "target", sync_metadata=sync_metadata, **extra
            )
        case SyncOperation.NO_ACTION:
            recorder = SyncRecorder(op.value)
            recorder.record("", ChangeAction.SKIPPED, "no-action requested")
            return recorder.build(message="No action requested")
        case _:
            raise ValueError(
                "The 'auto' operation must be resolved to a concrete "
                "operation before dispatch"
            )


def perform_sync(
    source: Any,
    target: Any,
    operation: SyncOperation | str,
    *,
    compare_by: str = DEFAULT_COMPARE_BY,
    sync_metadata: bool = True,
    strict_type_checking: bool = False,
) -> SyncResult:
    """Run *operation* on two items or two containers.

    Args:
        source: Source item or container.
        target: Target of the same kind.
        operation: Any ``SyncOperation`` except ``auto``.
        compare_by: Timestamp attribute for ``merge-newer-wins``.
        sync_metadata: Copy metadata alongside values.
        strict_type_checking: Passed to the container engine.

    Raises:
        ValueError: Unknown operation, or ``auto``.
        TypeMismatchError: If the nodes are not two items or two
            containers.
    """
    kinds = (classify(source), classify(target))
    match kinds:
        case (NodeKind.ITEM, NodeKind.ITEM):
            return ItemSync.perform_sync(
                source,
                target,
                operation,
                compare_by=compare_by,
                sync_metadata=sync_metadata,
            )
        case (NodeKind.CONTAINER, NodeKind.CONTAINER):
            return ContainerSync.perform_sync(
                source,
                target,
                operation,
                compare_by=compare_by,
                sync_metadata=sync_metadata,
                strict_type_checking=strict_type_checking,
            )
        case _:
            raise TypeMismatchError(
                f"Cannot sync {kinds[0].value} with {kinds[1].value}"
            )
