"""Tests for merge winner resolvers."""

from __future__ import annotations

import pytest

from contextsync.sync.models import (
    ComparisonResult,
    ComparisonVerdict,
    MergeStrategy,
)
from contextsync.sync.resolver import (
    NewerWinsResolver,
    NoActionResolver,
    SourcePriorityResolver,
    TargetPriorityResolver,
    create_resolver,
    parse_strategy,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _comparison(verdict: ComparisonVerdict) -> ComparisonResult:
    """Build a minimal ComparisonResult for testing."""
    return ComparisonResult(verdict=verdict)


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


class TestNewerWinsResolver:
    """Tests for NewerWinsResolver."""

    @pytest.mark.parametrize(
        "verdict,expected",
        [
            (ComparisonVerdict.A_NEWER, "source"),
            (ComparisonVerdict.B_MISSING, "source"),
            (ComparisonVerdict.B_NEWER, "target"),
            (ComparisonVerdict.A_MISSING, "target"),
            (ComparisonVerdict.EQUAL, None),
            (ComparisonVerdict.BOTH_MISSING, None),
        ],
    )
    def test_choose(self, verdict, expected) -> None:
        assert NewerWinsResolver().choose(_comparison(verdict)) == expected


class TestFixedResolvers:
    """Tests for the priority and no-action resolvers."""

    def test_source_priority_ignores_timestamps(self) -> None:
        resolver = SourcePriorityResolver()
        assert resolver.choose(_comparison(ComparisonVerdict.B_NEWER)) == "source"

    def test_target_priority_ignores_timestamps(self) -> None:
        resolver = TargetPriorityResolver()
        assert resolver.choose(_comparison(ComparisonVerdict.A_NEWER)) == "target"

    def test_no_action_never_chooses(self) -> None:
        resolver = NoActionResolver()
        assert resolver.choose(_comparison(ComparisonVerdict.A_NEWER)) is None


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestCreateResolver:
    """Tests for the create_resolver factory."""

    @pytest.mark.parametrize(
        "strategy,cls",
        [
            ("merge-newer-wins", NewerWinsResolver),
            ("merge-source-priority", SourcePriorityResolver),
            ("update-source-to-target", SourcePriorityResolver),
            ("replace", SourcePriorityResolver),
            ("merge-target-priority", TargetPriorityResolver),
            ("update-target-to-source", TargetPriorityResolver),
            ("no-action", NoActionResolver),
        ],
    )
    def test_mapping(self, strategy, cls) -> None:
        assert isinstance(create_resolver(strategy), cls)

    def test_camel_case_name(self) -> None:
        assert isinstance(create_resolver("mergeNewerWins"), NewerWinsResolver)

    def test_enum_member(self) -> None:
        assert isinstance(
            create_resolver(MergeStrategy.REPLACE), SourcePriorityResolver
        )

    def test_unknown_strategy_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown merge strategy"):
            create_resolver("oldest-wins")

    def test_parse_strategy(self) -> None:
        assert parse_strategy("no_action") is MergeStrategy.NO_ACTION
