"""Tests for sync/merger.py: the multi-component merge orchestrator.

Covers:
- Strategy decisions on context pairs (newer wins, priority, no-action)
- Path filters, including field-level filtering of dict values
- on_conflict callbacks, dry runs and per-path write errors
- Container trees, nested creation and raw (unwrapped) values
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from contextsync.config_schema import UnifiedConfig
from contextsync.context import Context
from contextsync.core.container import ContextContainer
from contextsync.errors import TypeMismatchError
from contextsync.sync.merger import ContextMerger, MergeOptions
from contextsync.sync.models import ChangeAction

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
T1 = T0 + timedelta(hours=1)


def _actions(result):
    return {change.path: (change.action, change.reason) for change in result.changes}


# ---------------------------------------------------------------------------
# Strategies on context pairs
# ---------------------------------------------------------------------------


class TestNewerWins:
    """Tests for the default merge-newer-wins strategy."""

    def test_newer_source_updates_target(self, context_pair):
        source, target = context_pair({"score": (10, T1)}, {"score": (5, T0)})
        result = ContextMerger().merge(source, target, "merge-newer-wins")

        assert target.get_item("data.score") == 10
        assert _actions(result)["data.score"] == (ChangeAction.UPDATED, "source wins")
        assert result.conflicts == 1
        assert result.success
        assert result.operation == "merge-newer-wins"

    def test_newer_target_is_kept(self, context_pair):
        source, target = context_pair({"score": (10, T0)}, {"score": (5, T1)})
        result = ContextMerger().merge(source, target)

        assert target.get_item("data.score") == 5
        change = result.changes[0]
        assert change.action is ChangeAction.SKIPPED
        assert change.reason == "target wins"
        assert change.preferred == "target"
        assert result.statistics.target_preferred == 1

    def test_equal_values_are_skipped(self, context_pair):
        source, target = context_pair({"score": (5, T1)}, {"score": (5, T0)})
        result = ContextMerger().merge(source, target)
        assert _actions(result)["data.score"] == (
            ChangeAction.SKIPPED,
            "values already equal",
        )
        assert result.conflicts == 0

    def test_missing_entries_are_created(self, context_pair):
        source, target = context_pair({"new": (1, T0)}, {})
        result = ContextMerger().merge(source, target)
        assert target.get_item("data.new") == 1
        assert [c.path for c in result.created] == ["data.new"]

    def test_create_missing_disabled(self, context_pair):
        source, target = context_pair({"new": (1, T0)}, {})
        result = ContextMerger().merge(source, target, create_missing=False)
        assert not target.has_item("data.new")
        assert _actions(result)["data.new"] == (
            ChangeAction.SKIPPED,
            "missing in target",
        )


class TestOtherStrategies:
    """Tests for priority, replace and no-action strategies."""

    def test_source_priority_ignores_timestamps(self, context_pair):
        source, target = context_pair({"score": (10, T0)}, {"score": (5, T1)})
        ContextMerger().merge(source, target, "mergeSourcePriority")
        assert target.get_item("data.score") == 10

    def test_target_priority_keeps_target(self, context_pair):
        source, target = context_pair({"score": (10, T1)}, {"score": (5, T0)})
        result = ContextMerger().merge(source, target, "merge-target-priority")
        assert target.get_item("data.score") == 5
        assert result.skipped[0].preferred == "target"

    def test_replace_writes_source(self, context_pair):
        source, target = context_pair({"score": (10, T0)}, {"score": (5, T1)})
        ContextMerger().merge(source, target, "replace")
        assert target.get_item("data.score") == 10

    def test_no_action(self, context_pair):
        source, target = context_pair(
            {"score": (10, T1), "new": (1, T1)}, {"score": (5, T0)}
        )
        result = ContextMerger().merge(source, target, "no-action")
        assert target.get_item("data.score") == 5
        assert not target.has_item("data.new")
        actions = _actions(result)
        assert actions["data.score"] == (ChangeAction.SKIPPED, "no-action")
        assert actions["data.new"] == (ChangeAction.SKIPPED, "missing in target")

    def test_default_strategy_comes_from_config(self, context_pair):
        config = UnifiedConfig(merge={"strategy": "merge_target_priority"})
        source, target = context_pair({"score": (10, T1)}, {"score": (5, T0)})
        result = ContextMerger(config).merge(source, target)
        assert result.operation == "merge-target-priority"
        assert target.get_item("data.score") == 5


# ---------------------------------------------------------------------------
# Filters and callbacks
# ---------------------------------------------------------------------------


class TestFiltering:
    """Tests for path filters inside a merge."""

    def test_allow_only_on_container(self):
        source = ContextContainer({"x": 1, "y": 2})
        target = ContextContainer()
        result = ContextMerger().merge(
            source, target, "mergeSourcePriority", allow_only=["x"]
        )
        assert target.value == {"x": 1}
        assert _actions(result) == {
            "x": (ChangeAction.CREATED, "copied from source"),
            "y": (ChangeAction.SKIPPED, "filtered"),
        }

    def test_block_only_keeps_target_value(self, context_pair):
        source, target = context_pair(
            {"a": (1, T1), "b": (2, T1)}, {"a": (0, T0), "b": (0, T0)}
        )
        result = ContextMerger().merge(source, target, block_only=["data.b"])
        assert target.get_item("data.a") == 1
        assert target.get_item("data.b") == 0
        assert _actions(result)["data.b"] == (ChangeAction.SKIPPED, "filtered")

    def test_dict_fields_are_filtered(self, context_pair):
        source, target = context_pair(
            {"cfg": ({"a": 1, "secret": "s"}, T1)},
            {"cfg": ({"a": 0, "secret": "keep"}, T0)},
        )
        ContextMerger().merge(
            source,
            target,
            "merge-source-priority",
            block_only=["data.cfg.secret"],
        )
        assert target.get_item("data.cfg") == {"a": 1, "secret": "keep"}

    def test_match_pattern(self, context_pair):
        source, target = context_pair(
            {"keep_me": (1, T0), "other": (2, T0)}, {}
        )
        ContextMerger().merge(source, target, match_pattern=r"\.keep_")
        assert target.get_item("data.keep_me") == 1
        assert not target.has_item("data.other")

    def test_options_object(self, context_pair):
        source, target = context_pair({"a": (1, T0), "b": (2, T0)}, {})
        options = MergeOptions(allow_only=["data.a"])
        ContextMerger().merge(source, target, options=options)
        assert target.has_item("data.a")
        assert not target.has_item("data.b")

    def test_excluded_components(self):
        source = Context({"data": {"x": 1}, "settings": {"y": 2}})
        target = Context()
        ContextMerger().merge(source, target, exclude_components=["settings"])
        assert target.get_item("data.x") == 1
        assert not target.has_item("settings.y")

    def test_include_components(self):
        source = Context({"data": {"x": 1}, "settings": {"y": 2}})
        target = Context()
        ContextMerger().merge(source, target, include_components=["settings"])
        assert not target.has_item("data.x")
        assert target.get_item("settings.y") == 2


class TestOnConflict:
    """Tests for the on_conflict callback."""

    def test_custom_value(self, context_pair):
        source, target = context_pair({"score": (10, T1)}, {"score": (5, T0)})
        seen = []

        def on_conflict(source_item, target_item, path):
            seen.append(path)
            return source_item.value + target_item.value

        result = ContextMerger().merge(source, target, on_conflict=on_conflict)
        assert target.get_item("data.score") == 15
        assert seen == ["data.score"]
        assert _actions(result)["data.score"] == (
            ChangeAction.UPDATED,
            "resolved by on_conflict",
        )

    def test_choose_target(self, context_pair):
        source, target = context_pair({"score": (10, T1)}, {"score": (5, T0)})
        ContextMerger().merge(
            source, target, on_conflict=lambda s, t, path: t
        )
        assert target.get_item("data.score") == 5

    def test_choose_source_over_newer_target(self, context_pair):
        source, target = context_pair({"score": (10, T0)}, {"score": (5, T1)})
        ContextMerger().merge(
            source, target, on_conflict=lambda s, t, path: s
        )
        assert target.get_item("data.score") == 10

    def test_not_called_for_equal_values(self, context_pair):
        source, target = context_pair({"score": (5, T1)}, {"score": (5, T0)})
        calls = []
        ContextMerger().merge(
            source, target, on_conflict=lambda s, t, path: calls.append(path)
        )
        assert calls == []


# ---------------------------------------------------------------------------
# Dry run and errors
# ---------------------------------------------------------------------------


class TestDryRunAndErrors:
    """Tests for dry runs and two-level error handling."""

    def test_dry_run_writes_nothing(self, context_pair):
        source, target = context_pair(
            {"score": (10, T1), "new": (1, T1)}, {"score": (5, T0)}
        )
        result = ContextMerger().merge(source, target, dry_run=True)
        assert target.get_item("data.score") == 5
        assert not target.has_item("data.new")
        assert result.dry_run is True
        assert result.message == "Dry run: no changes written"
        assert len(result.updated) == 1
        assert len(result.created) == 1

    def test_analyze_is_a_dry_run(self, context_pair):
        source, target = context_pair({"score": (10, T1)}, {"score": (5, T0)})
        result = ContextMerger().analyze(source, target)
        assert result.dry_run is True
        assert target.get_item("data.score") == 5

    def test_frozen_item_is_recorded_not_raised(self, context_pair):
        source, target = context_pair(
            {"locked": ("new", T1), "free": ("x", T1)}, {"free": ("y", T0)}
        )
        target.set_item("data.locked", "old", frozen=True, timestamp=T0)
        result = ContextMerger().merge(source, target)

        assert result.success is False
        assert result.errors == ["data.locked: Cannot modify a frozen item"]
        assert target.get_item("data.locked") == "old"
        assert target.get_item("data.free") == "x"
        assert _actions(result)["data.locked"][0] is ChangeAction.ERROR

    def test_failing_component_does_not_stop_later_components(self):
        class _Unreadable(ContextContainer):
            def entries(self):
                raise RuntimeError("storage offline")

        source = Context.from_components(
            {"flags": _Unreadable(), "data": ContextContainer({"x": 1})}
        )
        target = Context(components=["flags", "data"])
        result = ContextMerger().merge(source, target, "merge-source-priority")

        assert result.errors == ["Component flags: storage offline"]
        assert result.success is False
        assert target.get_item("data.x") == 1
        assert [c.path for c in result.created] == ["data.x"]

    def test_component_missing_from_target(self, caplog):
        source = Context({"extra": {"x": 1}}, components=["data", "extra"])
        target = Context(components=["data"])
        with caplog.at_level(logging.WARNING):
            result = ContextMerger().merge(source, target)
        assert result.warnings == ["Component 'extra' absent from target; skipped"]
        assert "absent from target" in caplog.text

    def test_unknown_option_raises(self, context_pair):
        source, target = context_pair({}, {})
        with pytest.raises(ValueError, match="Unknown merge options"):
            ContextMerger().merge(source, target, overwrite=True)

    def test_unknown_strategy_raises(self, context_pair):
        source, target = context_pair({}, {})
        with pytest.raises(ValueError, match="Unknown merge strategy"):
            ContextMerger().merge(source, target, "oldest-wins")

    def test_context_and_container_raise(self):
        with pytest.raises(TypeMismatchError):
            ContextMerger().merge(Context(), ContextContainer())


# ---------------------------------------------------------------------------
# Container trees
# ---------------------------------------------------------------------------


class TestContainerTrees:
    """Tests for merging container trees directly."""

    def test_nested_missing_containers_are_created(self):
        source = ContextContainer()
        source.set_item("a.b.c", 1)
        target = ContextContainer()
        result = ContextMerger().merge(source, target, "merge-source-priority")
        assert target.get_item("a.b.c") == 1
        assert [c.path for c in result.created] == ["a.b.c"]
        source.set_item("a.b.c", 2)
        assert target.get_item("a.b.c") == 1

    def test_nested_containers_merge_recursively(self):
        source = ContextContainer()
        source.set_item("p.x", 1)
        target = ContextContainer()
        target.set_item("p.y", 2)
        ContextMerger().merge(source, target, "merge-source-priority")
        assert target.get_item("p") == {"y": 2, "x": 1}

    def test_raw_values_compare_by_container(self):
        source = ContextContainer({"n": 1}, wrap_primitives=False, timestamp=T1)
        target = ContextContainer({"n": 2}, wrap_primitives=False, timestamp=T0)
        ContextMerger().merge(source, target)
        assert target.get_wrapped_item("n") == 1

    def test_raw_values_older_source_skipped(self):
        source = ContextContainer({"n": 1}, wrap_primitives=False, timestamp=T0)
        target = ContextContainer({"n": 2}, wrap_primitives=False, timestamp=T1)
        result = ContextMerger().merge(source, target)
        assert target.get_wrapped_item("n") == 2
        assert result.skipped[0].reason == "target wins"

    def test_self_reference_is_skipped(self):
        source = ContextContainer({"x": 1})
        source.set_item("me", source)
        target = ContextContainer()
        result = ContextMerger().merge(source, target, "merge-source-priority")
        assert target.value == {"x": 1}
        assert result.warnings == ["Self-reference detected for key 'me'; skipping"]

    def test_metadata_preserved_on_request(self):
        source = ContextContainer()
        source.set_item("x", "new", metadata={"v": 2}, timestamp=T1)
        target = ContextContainer()
        target.set_item("x", "old", metadata={"keep": True}, timestamp=T0)
        ContextMerger().merge(source, target, preserve_metadata=True)
        assert target.get_wrapped_item("x").metadata == {"keep": True, "v": 2}


# ---------------------------------------------------------------------------
# Frozen targets
# ---------------------------------------------------------------------------


class TestFrozenTargets:
    """Tests for merging into frozen containers and read-only components."""

    def test_read_only_component_keeps_existing_value(self):
        source = Context({"schema": {"version": 2}})
        target = Context({"schema": {"version": 1}})
        result = ContextMerger().merge(source, target, "merge-source-priority")

        assert target.get_item("schema.version") == 1
        assert result.success is False
        assert result.errors == ["schema.version: Cannot modify a frozen container"]
        assert _actions(result)["schema.version"][0] is ChangeAction.ERROR

    def test_read_only_component_reports_new_and_existing_keys_alike(self):
        source = Context({"schema": {"version": 2, "extra": True}})
        target = Context({"schema": {"version": 1}})
        result = ContextMerger().merge(source, target, "merge-source-priority")

        assert target.get_component("schema").value == {"version": 1}
        assert {c.path for c in result.changes if c.action is ChangeAction.ERROR} == {
            "schema.version",
            "schema.extra",
        }

    def test_nested_container_under_frozen_parent_is_kept(self):
        source = ContextContainer()
        source.set_item("n", {"v": 2}, wrap_as="container")
        target = ContextContainer()
        target.set_item("n", {"v": 1}, wrap_as="container")
        target.freeze()
        result = ContextMerger().merge(source, target, "merge-source-priority")

        assert target.get_item("n.v") == 1
        assert result.errors == ["n.v: Cannot modify a frozen container"]

    def test_equal_values_under_frozen_parent_are_not_errors(self):
        source = ContextContainer({"a": 1})
        target = ContextContainer({"a": 1}, frozen=True)
        result = ContextMerger().merge(source, target, "merge-source-priority")

        assert result.success is True
        assert result.skipped[0].reason == "values already equal"
