"""Winner selection for the merge orchestrator.

Each ``MergeStrategy`` maps to a resolver that turns a comparison into
the side whose value should be kept:

- ``NewerWinsResolver``: the side with the newer timestamp; ``None`` on
  a tie.
- ``SourcePriorityResolver``: always the source.
- ``TargetPriorityResolver``: always the target.
- ``NoActionResolver``: never picks a side.

The ``create_resolver()`` factory maps strategy names to resolver
instances.
"""

from __future__ import annotations

import logging
from typing import Literal, Protocol

from .models import ComparisonResult, ComparisonVerdict, MergeStrategy

logger = logging.getLogger(__name__)

Winner = Literal["source", "target"]


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class WinnerResolver(Protocol):
    """Protocol that all winner resolvers must satisfy."""

    def choose(self, comparison: ComparisonResult) -> Winner | None:
        """Pick the side to keep.

        Args:
            comparison: Result of comparing source (``a``) with target
                (``b``).

        Returns:
            ``"source"``, ``"target"``, or ``None`` when the strategy
            leaves the pair undecided.
        """
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


class NewerWinsResolver:
    """Keep whichever side was modified most recently."""

    def choose(self, comparison: ComparisonResult) -> Winner | None:
        match comparison.verdict:
            case ComparisonVerdict.A_NEWER | ComparisonVerdict.B_MISSING:
                return "source"
            case ComparisonVerdict.B_NEWER | ComparisonVerdict.A_MISSING:
                return "target"
            case _:
                return None


class SourcePriorityResolver:
    """Always keep the source."""

    def choose(self, comparison: ComparisonResult) -> Winner | None:
        """Always return ``"source"``."""
        return "source"


class TargetPriorityResolver:
    """Always keep the target."""

    def choose(self, comparison: ComparisonResult) -> Winner | None:
        """Always return ``"target"``."""
        return "target"


class NoActionResolver:
    """Leave every pair untouched."""

    def choose(self, comparison: ComparisonResult) -> Winner | None:
        return None


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGY_MAP: dict[MergeStrategy, type] = {
    MergeStrategy.MERGE_NEWER_WINS: NewerWinsResolver,
    MergeStrategy.MERGE_SOURCE_PRIORITY: SourcePriorityResolver,
    MergeStrategy.UPDATE_SOURCE_TO_TARGET: SourcePriorityResolver,
    MergeStrategy.REPLACE: SourcePriorityResolver,
    MergeStrategy.MERGE_TARGET_PRIORITY: TargetPriorityResolver,
    MergeStrategy.UPDATE_TARGET_TO_SOURCE: TargetPriorityResolver,
    MergeStrategy.NO_ACTION: NoActionResolver,
}


def parse_strategy(strategy: MergeStrategy | str) -> MergeStrategy:
    """Return the ``MergeStrategy`` named by *strategy*.

    Raises:
        ValueError: If the name is not recognised.
    """
    try:
        return MergeStrategy(strategy)
    except ValueError:
        raise ValueError(
            f"Unknown merge strategy: '{strategy}'. Valid strategies: "
            f"{sorted(s.value for s in MergeStrategy)}"
        ) from None


def create_resolver(strategy: MergeStrategy | str) -> WinnerResolver:
    """Create a winner resolver for the given strategy.

    Args:
        strategy: A ``MergeStrategy`` or any accepted spelling of one
            (``"merge-newer-wins"``, ``"mergeNewerWins"``, ...).

    Returns:
        A ``WinnerResolver`` implementation instance.

    Raises:
        ValueError: If the strategy is not recognised.
    """
    cls = _STRATEGY_MAP[parse_strategy(strategy)]
    return cls()  # type: ignore[return-value]
