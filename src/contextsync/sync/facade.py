"""Top-level sync facade.

``ContextSync`` is the single entry point for callers that do not care
which layer handles a pair:

- two ``Context`` objects go to the merge orchestrator;
- two items or two containers go to the strategy layer.

``sync()`` is a coroutine so that the ``auto`` operation can consult a
pluggable selector, which may itself be async.  The built-in work is
synchronous and never suspends.  ``sync_safe()`` never raises.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..config_schema import UnifiedConfig
from ..core.nodes import NodeKind, classify
from ..errors import IncompatibleTypesError, UnsupportedObjectTypeError
from .comparator import compare
from .merger import ContextMerger
from .models import (
    ComparisonResult,
    ComparisonVerdict,
    MergeStrategy,
    SyncOperation,
    SyncResult,
)
from .strategies import parse_operation, perform_sync

logger = logging.getLogger(__name__)

AutoSelector = Callable[
    [Any, Any], "SyncOperation | str | Awaitable[SyncOperation | str]"
]

_SYNCABLE_KINDS = (NodeKind.ITEM, NodeKind.CONTAINER, NodeKind.CONTEXT)


class ContextSync:
    """Dispatch sync requests to the right layer.

    Args:
        config: Supplies compare-by, engine flags, merge defaults and
            error-message templates.
        auto_selector: Callable ``(source, target) -> SyncOperation``
            (optionally async) used for ``operation="auto"``.  Defaults to
            ``select_by_timestamp``.
    """

    def __init__(
        self,
        config: UnifiedConfig | None = None,
        auto_selector: AutoSelector | None = None,
    ) -> None:
        self.config = config or UnifiedConfig()
        self.merger = ContextMerger(self.config)
        self.auto_selector = auto_selector or self.select_by_timestamp

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def compare(
        self,
        a: Any,
        b: Any,
        compare_by: str | None = None,
    ) -> ComparisonResult:
        return compare(a, b, compare_by or self.config.merge.compare_by)

    def validate_compatibility(self, source: Any, target: Any) -> bool:
        """Return ``True`` if *source* and *target* can be synced together."""
        source_kind = classify(source)
        return source_kind in _SYNCABLE_KINDS and source_kind is classify(target)

    def _check_pair(self, source: Any, target: Any) -> NodeKind:
        messages = self.config.messages
        source_kind = classify(source)
        target_kind = classify(target)
        for node, kind in ((source, source_kind), (target, target_kind)):
            if kind not in _SYNCABLE_KINDS:
                raise UnsupportedObjectTypeError(
                    messages.unsupported_object.format(
                        type_name=type(node).__name__
                    )
                )
        if source_kind is not target_kind:
            raise IncompatibleTypesError(
                messages.incompatible_types.format(
                    source_type=source_kind.value, target_type=target_kind.value
                )
            )
        return source_kind

    def select_by_timestamp(self, source: Any, target: Any) -> SyncOperation:
        """Default ``auto`` selector: push from whichever side is newer."""
        match self.compare(source, target).verdict:
            case ComparisonVerdict.A_NEWER:
                return SyncOperation.UPDATE_SOURCE_TO_TARGET
            case ComparisonVerdict.B_NEWER:
                return SyncOperation.UPDATE_TARGET_TO_SOURCE
            case _:
                return SyncOperation.NO_ACTION

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync(
        self,
        source: Any,
        target: Any,
        operation: SyncOperation | str = SyncOperation.MERGE_NEWER_WINS,
        **options: Any,
    ) -> SyncResult:
        """Synchronise *source* and *target*.

        Args:
            source: Item, container or context.
            target: Object of the same kind.
            operation: A ``SyncOperation`` name, or ``auto``.
            **options: ``MergeOptions`` fields for contexts; ``compare_by``,
                ``sync_metadata`` or ``strict_type_checking`` for items and
                containers.

        Returns:
            The ``SyncResult`` of the layer that handled the pair.

        Raises:
            UnsupportedObjectTypeError: If either side is not an item,
                container or context.
            IncompatibleTypesError: If the two sides differ in kind.
            ValueError: Unknown operation.
        """
        kind = self._check_pair(source, target)
        op = parse_operation(operation)
        if op is SyncOperation.AUTO:
            selected = self.auto_selector(source, target)
            if inspect.isawaitable(selected):
                selected = await selected
            op = parse_operation(selected)
            if op is SyncOperation.AUTO:
                raise ValueError("Auto selector must return a concrete operation")
            logger.info("Auto-selected operation '%s'", op.value)

        if kind is NodeKind.CONTEXT:
            if op is SyncOperation.UPDATE_TARGET_TO_SOURCE:
                # The merger only writes into its target side.
                result = self.merger.merge(
                    target,
                    source,
                    MergeStrategy.UPDATE_SOURCE_TO_TARGET,
                    **options,
                )
                return result.model_copy(update={"operation": op.value})
            return self.merger.merge(
                source, target, MergeStrategy(op.value), **options
            )

        settings: dict[str, Any] = {
            "compare_by": self.config.merge.compare_by,
            "sync_metadata": self.config.engine.sync_metadata,
            "strict_type_checking": self.config.engine.strict_type_checking,
        }
        settings.update(options)
        return perform_sync(source, target, op, **settings)

    async def sync_safe(
        self,
        source: Any,
        target: Any,
        operation: SyncOperation | str = SyncOperation.MERGE_NEWER_WINS,
        **options: Any,
    ) -> SyncResult:
        """Like ``sync()``, but any exception becomes a failure result."""
        try:
            return await self.sync(source, target, operation, **options)
        except Exception as exc:
            label = getattr(operation, "value", str(operation))
            message = self.config.messages.sync_failed.format(
                operation=label, error=exc
            )
            logger.error(message)
            return SyncResult.failure(label, message, warnings=[message])
