"""Multi-component merge orchestrator.

``ContextMerger.merge()`` applies a ``MergeStrategy`` across two
``Context`` objects (component by component) or two ``ContextContainer``
trees.  For every source entry it:

1. Recurses into nested container pairs.
2. Creates entries missing from the target (``create_missing``), subject
   to the path filters.
3. For entries present on both sides, compares timestamps, asks the
   strategy's resolver for a winner, consults ``on_conflict`` when the
   values differ, lets the path filters veto the source, and writes the
   winning value.  Dict values on both sides are merged field by field,
   with every field passed through the filters.

Error handling is two-level: a failed write is recorded as an ``error``
change for that path, and anything else that goes wrong inside a
component is recorded against the component.  Neither aborts the run.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Callable, Mapping, MutableMapping
from typing import Any

from pydantic import BaseModel, Field

from ..config_schema import MergeConfig, UnifiedConfig
from ..context import Context
from ..core.container import ContextContainer
from ..core.nodes import NodeKind, classify, supports_metadata
from ..errors import FrozenError, TypeMismatchError
from ..validators import join_path
from .comparator import compare
from .filters import PathFilter
from .item_sync import ItemSync
from .models import (
    ChangeAction,
    ComparisonResult,
    MergeStrategy,
    SyncRecorder,
    SyncResult,
)
from .resolver import WinnerResolver, create_resolver, parse_strategy

logger = logging.getLogger(__name__)

_UNSET = object()


class MergeOptions(BaseModel):
    """Options for one ``ContextMerger.merge()`` call."""

    include_components: list[str] | None = Field(
        default=None,
        description="Components to merge (default: all source components)",
    )
    exclude_components: list[str] = Field(
        default_factory=list, description="Components to leave untouched"
    )
    allow_only: list[str] = Field(
        default_factory=list, description="Only these paths may be written"
    )
    block_only: list[str] = Field(
        default_factory=list, description="These paths may not be written"
    )
    match_pattern: str | re.Pattern | None = Field(
        default=None, description="Regex a path must match to be written"
    )
    custom_filter: Callable[[Any, Any, str], Any] | None = Field(
        default=None,
        description="Filter returning the source or the target item",
    )
    on_conflict: Callable[[Any, Any, str], Any] | None = Field(
        default=None,
        description="Called with (source, target, path) when values differ",
    )
    create_missing: bool = Field(
        default=True, description="Create entries the target lacks"
    )
    dry_run: bool = Field(
        default=False, description="Compute changes without writing"
    )
    preserve_metadata: bool = Field(
        default=False,
        description="Keep target metadata keys the source does not set",
    )
    compare_by: str = Field(
        default="modified_at", description="Timestamp attribute to compare"
    )

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @classmethod
    def from_config(cls, config: MergeConfig) -> MergeOptions:
        return cls(
            create_missing=config.create_missing,
            dry_run=config.dry_run,
            preserve_metadata=config.preserve_metadata,
            compare_by=config.compare_by,
        )


class _MergeRun:
    """State of a single merge call."""

    def __init__(
        self,
        strategy: MergeStrategy,
        options: MergeOptions,
        sync_metadata: bool,
    ) -> None:
        self.strategy = strategy
        self.options = options
        self.sync_metadata = sync_metadata
        self.resolver: WinnerResolver = create_resolver(strategy)
        self.gate = PathFilter.from_options(options)
        self.recorder = SyncRecorder(strategy.value, dry_run=options.dry_run)
        self.active: set[int] = set()
        self.frozen_depth = 0

    def ensure_writable(self) -> None:
        """Reject writes anywhere below a frozen target container."""
        if self.frozen_depth:
            raise FrozenError("container")


def _plain(node: Any) -> Any:
    """Value of a node: ``.value`` for items and containers, else itself."""
    if supports_metadata(classify(node)):
        return node.value
    return node


def _filtered_merge(
    target: MutableMapping,
    source: Mapping,
    path: str,
    gate: PathFilter,
) -> bool:
    """Merge *source* into *target* field by field; return ``True`` on change."""
    changed = False
    for key, value in source.items():
        field_path = join_path(path, str(key))
        current = target.get(key)
        if isinstance(value, Mapping) and isinstance(current, MutableMapping):
            changed |= _filtered_merge(current, value, field_path, gate)
        elif key in target and current == value:
            continue
        elif gate.allows(field_path, value, current):
            target[key] = copy.deepcopy(value)
            changed = True
    return changed


class ContextMerger:
    """Apply merge strategies across contexts and container trees.

    Args:
        config: Supplies the default strategy, merge options and the
            engine's ``sync_metadata`` flag.
    """

    def __init__(self, config: UnifiedConfig | None = None) -> None:
        self.config = config or UnifiedConfig()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def merge(
        self,
        source: Context | ContextContainer,
        target: Context | ContextContainer,
        strategy: MergeStrategy | str | None = None,
        options: MergeOptions | None = None,
        **overrides: Any,
    ) -> SyncResult:
        """Merge *source* into *target* in place.

        Args:
            source: Context or container to read from.
            target: Context or container of the same kind to write to.
            strategy: Strategy name; defaults to ``config.merge.strategy``.
            options: Merge options; defaults come from ``config.merge``.
            **overrides: Individual ``MergeOptions`` fields, applied on
                top of *options*.

        Returns:
            A ``SyncResult`` whose ``operation`` is the strategy name.

        Raises:
            ValueError: Unknown strategy or option name.
            TypeMismatchError: If the inputs are not two contexts or two
                containers.
        """
        resolved_strategy = parse_strategy(strategy or self.config.merge.strategy)
        merge_options = self._build_options(options, overrides)
        run = _MergeRun(
            resolved_strategy,
            merge_options,
            sync_metadata=self.config.engine.sync_metadata,
        )

        match (classify(source), classify(target)):
            case (NodeKind.CONTEXT, NodeKind.CONTEXT):
                self._merge_contexts(source, target, run)
            case (NodeKind.CONTAINER, NodeKind.CONTAINER):
                self._merge_root(source, target, run)
            case (source_kind, target_kind):
                raise TypeMismatchError(
                    f"Cannot merge {source_kind.value} into {target_kind.value}; "
                    "pass two contexts or two containers"
                )

        recorder = run.recorder
        logger.info(
            "Merge '%s' finished: %d processed, %d conflicts, %d errors%s",
            resolved_strategy.value,
            recorder.items_processed,
            recorder.conflicts,
            len(recorder.errors),
            " (dry run)" if merge_options.dry_run else "",
        )
        message = "Dry run: no changes written" if merge_options.dry_run else None
        return recorder.build(message=message)

    def analyze(
        self,
        source: Context | ContextContainer,
        target: Context | ContextContainer,
        strategy: MergeStrategy | str | None = None,
        options: MergeOptions | None = None,
        **overrides: Any,
    ) -> SyncResult:
        """Same as ``merge()`` with ``dry_run`` forced on."""
        overrides["dry_run"] = True
        return self.merge(source, target, strategy, options, **overrides)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _build_options(
        self,
        options: MergeOptions | None,
        overrides: dict[str, Any],
    ) -> MergeOptions:
        base = options or MergeOptions.from_config(self.config.merge)
        if not overrides:
            return base
        unknown = sorted(set(overrides) - set(MergeOptions.model_fields))
        if unknown:
            raise ValueError(
                f"Unknown merge options: {unknown}. Valid options: "
                f"{sorted(MergeOptions.model_fields)}"
            )
        return MergeOptions(**{**dict(base), **overrides})

    # ------------------------------------------------------------------
    # Walk
    # ------------------------------------------------------------------

    def _merge_contexts(
        self, source: Context, target: Context, run: _MergeRun
    ) -> None:
        names = run.options.include_components or list(source.components)
        excluded = set(run.options.exclude_components)

        for name in names:
            if name in excluded:
                continue
            source_component = source.get_component(name)
            target_component = target.get_component(name)
            if source_component is None:
                logger.debug("Component '%s' absent from source; skipped", name)
                continue
            if target_component is None:
                message = f"Component '{name}' absent from target; skipped"
                logger.warning(message)
                run.recorder.warn(message)
                continue
            try:
                self._merge_container(source_component, target_component, name, run)
            except Exception as exc:
                logger.error("Error merging component %s: %s", name, exc)
                run.recorder.errors.append(f"Component {name}: {exc}")

    def _merge_root(
        self,
        source: ContextContainer,
        target: ContextContainer,
        run: _MergeRun,
    ) -> None:
        try:
            self._merge_container(source, target, "", run)
        except Exception as exc:
            logger.error("Error merging containers: %s", exc)
            run.recorder.errors.append(str(exc))

    def _merge_container(
        self,
        source: ContextContainer,
        target: ContextContainer,
        prefix: str,
        run: _MergeRun,
    ) -> None:
        if id(source) in run.active:
            message = f"Circular reference detected at '{prefix}'; skipping"
            logger.warning(message)
            run.recorder.warn(message)
            return

        run.active.add(id(source))
        frozen = target.is_frozen()
        if frozen:
            run.frozen_depth += 1
        try:
            for key, node in source.entries():
                path = join_path(prefix, key)
                if node is source:
                    message = f"Self-reference detected for key '{path}'; skipping"
                    logger.warning(message)
                    run.recorder.warn(message)
                    continue
                if target.has_item(key):
                    self._merge_present(
                        key, node, target.get_wrapped_item(key), source, target, path, run
                    )
                else:
                    self._merge_missing(key, node, target, path, run)
        finally:
            run.active.discard(id(source))
            if frozen:
                run.frozen_depth -= 1

    def _merge_missing(
        self,
        key: str,
        node: Any,
        target: ContextContainer,
        path: str,
        run: _MergeRun,
    ) -> None:
        recorder = run.recorder
        if not run.options.create_missing or run.strategy is MergeStrategy.NO_ACTION:
            recorder.record(path, ChangeAction.SKIPPED, "missing in target")
            return

        if isinstance(node, ContextContainer):
            if not run.gate.may_descend(path):
                recorder.record(path, ChangeAction.SKIPPED, "filtered")
                return
            shell = ContextContainer(
                metadata=copy.deepcopy(node.metadata), **node.container_options()
            )
            if node.size == 0:
                self._write_guarded(
                    path, run, lambda: target.set_item(key, shell),
                    ChangeAction.CREATED, "copied from source",
                )
                return
            if not run.options.dry_run:
                try:
                    run.ensure_writable()
                    target.set_item(key, shell)
                except Exception as exc:
                    logger.error("Error creating %s: %s", path, exc)
                    recorder.record(path, ChangeAction.ERROR, str(exc))
                    return
            self._merge_container(node, shell, path, run)
            return

        if not run.gate.allows(path, node, None):
            recorder.record(path, ChangeAction.SKIPPED, "filtered")
            return

        def _create() -> None:
            if classify(node) is NodeKind.ITEM:
                target.set_item(
                    key,
                    copy.deepcopy(node.value),
                    metadata=copy.deepcopy(node.metadata),
                )
            else:
                target.set_item(key, copy.deepcopy(node))

        self._write_guarded(path, run, _create, ChangeAction.CREATED, "copied from source")

    def _merge_present(
        self,
        key: str,
        node: Any,
        target_node: Any,
        source: ContextContainer,
        target: ContextContainer,
        path: str,
        run: _MergeRun,
    ) -> None:
        if isinstance(node, ContextContainer) and isinstance(
            target_node, ContextContainer
        ):
            if run.gate.may_descend(path):
                self._merge_container(node, target_node, path, run)
            else:
                run.recorder.record(path, ChangeAction.SKIPPED, "filtered")
            return

        recorder = run.recorder
        comparison = self._compare(node, target_node, source, target, run)
        winner = run.resolver.choose(comparison)
        source_value = _plain(node)
        target_value = _plain(target_node)
        resolved: Any = _UNSET
        reason: str | None = None

        if source_value != target_value:
            recorder.conflicts += 1
            if run.options.on_conflict is not None:
                choice = run.options.on_conflict(node, target_node, path)
                if choice is node:
                    winner = "source"
                elif choice is target_node:
                    winner = "target"
                elif choice is not None:
                    resolved = choice
                    winner = "source"
                    reason = "resolved by on_conflict"

        if (
            winner == "source"
            and resolved is _UNSET
            and not run.gate.allows(path, node, target_node)
        ):
            winner = "target"
            reason = "filtered"

        logger.debug("Merge decision for %s: %s", path, winner)
        if winner is None:
            recorder.record(
                path,
                ChangeAction.SKIPPED,
                "no-action" if run.strategy is MergeStrategy.NO_ACTION else "undecided",
            )
            return
        if winner == "target":
            recorder.record(
                path, ChangeAction.SKIPPED, reason or "target wins", preferred="target"
            )
            return

        if resolved is not _UNSET:
            new_value = resolved
        elif source_value == target_value:
            recorder.record(
                path, ChangeAction.SKIPPED, "values already equal", preferred="source"
            )
            return
        elif isinstance(source_value, Mapping) and isinstance(target_value, Mapping):
            new_value = copy.deepcopy(dict(target_value))
            if not _filtered_merge(new_value, source_value, path, run.gate):
                recorder.record(
                    path,
                    ChangeAction.SKIPPED,
                    "no changes after filtering",
                    preferred="source",
                )
                return
            resolved = new_value
        else:
            new_value = source_value

        self._write_guarded(
            path,
            run,
            lambda: self._write(key, node, target_node, target, new_value, resolved, run),
            ChangeAction.UPDATED,
            reason or "source wins",
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _compare(
        node: Any,
        target_node: Any,
        source: ContextContainer,
        target: ContextContainer,
        run: _MergeRun,
    ) -> ComparisonResult:
        # Raw values carry no timestamps; fall back to their containers.
        a = node if supports_metadata(classify(node)) else source
        b = target_node if supports_metadata(classify(target_node)) else target
        return compare(a, b, run.options.compare_by)

    @staticmethod
    def _write_guarded(
        path: str,
        run: _MergeRun,
        write: Callable[[], Any],
        action: ChangeAction,
        reason: str,
    ) -> None:
        if not run.options.dry_run:
            try:
                run.ensure_writable()
                write()
            except Exception as exc:
                logger.error("Error writing %s: %s", path, exc)
                run.recorder.record(path, ChangeAction.ERROR, str(exc))
                return
        run.recorder.record(path, action, reason, preferred="source")

    @staticmethod
    def _write(
        key: str,
        node: Any,
        target_node: Any,
        target: ContextContainer,
        new_value: Any,
        resolved: Any,
        run: _MergeRun,
    ) -> None:
        source_kind = classify(node)
        target_kind = classify(target_node)
        sync_metadata = run.sync_metadata and supports_metadata(source_kind)

        if target_kind is NodeKind.ITEM:
            if source_kind is NodeKind.ITEM and resolved is _UNSET:
                ItemSync.update_target_to_match_source(
                    node,
                    target_node,
                    sync_metadata=sync_metadata,
                    preserve_metadata=run.options.preserve_metadata,
                )
                return
            target_node.set_value(copy.deepcopy(new_value))
            if sync_metadata:
                metadata = node.metadata
                if run.options.preserve_metadata:
                    metadata = {**target_node.metadata, **metadata}
                target_node.set_metadata(copy.deepcopy(metadata), merge=False)
        elif target_kind is NodeKind.CONTAINER and isinstance(new_value, Mapping):
            target_node.set_value(copy.deepcopy(new_value))
        else:
            target.set_item(key, copy.deepcopy(new_value))
