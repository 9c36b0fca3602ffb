"""Timestamp arbitration between two timestamp-bearing objects.

``compare(a, b)`` reads the ``compare_by`` attribute (default
``modified_at``) from both sides and reports which one is newer.  The
function is pure: it never reads the clock and never mutates its inputs
(attribute reads bypass access recording).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..core.timestamps import to_millis
from ..errors import InvalidTimestampTypeError
from .models import ComparisonResult, ComparisonVerdict

logger = logging.getLogger(__name__)

DEFAULT_COMPARE_BY = "modified_at"


def _read_timestamp(obj: Any, compare_by: str) -> Any:
    if isinstance(obj, Mapping):
        if compare_by not in obj:
            raise InvalidTimestampTypeError(
                f"Object has no '{compare_by}' timestamp"
            )
        return obj[compare_by]
    try:
        return getattr(obj, compare_by)
    except AttributeError as exc:
        raise InvalidTimestampTypeError(
            f"{type(obj).__name__} has no '{compare_by}' timestamp"
        ) from exc


def compare(
    a: Any,
    b: Any,
    compare_by: str = DEFAULT_COMPARE_BY,
) -> ComparisonResult:
    """Compare *a* and *b* by their *compare_by* timestamps.

    Args:
        a: First object (item, container, context, or mapping).
        b: Second object.
        compare_by: Attribute (or mapping key) holding the timestamp.

    Returns:
        A ``ComparisonResult``.  ``delta_millis`` is ``a - b``: positive
        means ``a`` is newer.

    Raises:
        InvalidTimestampTypeError: Timestamp missing or of an unsupported
            type.
        InvalidTimestampValueError: Unparsable string or non-finite number.
    """
    if a is None and b is None:
        return ComparisonResult(
            verdict=ComparisonVerdict.BOTH_MISSING, delta_millis=0
        )
    if a is None:
        return ComparisonResult(
            verdict=ComparisonVerdict.A_MISSING,
            b_timestamp=_read_timestamp(b, compare_by),
        )
    if b is None:
        return ComparisonResult(
            verdict=ComparisonVerdict.B_MISSING,
            a_timestamp=_read_timestamp(a, compare_by),
        )

    a_timestamp = _read_timestamp(a, compare_by)
    b_timestamp = _read_timestamp(b, compare_by)
    delta = to_millis(a_timestamp) - to_millis(b_timestamp)

    if delta > 0:
        verdict = ComparisonVerdict.A_NEWER
    elif delta < 0:
        verdict = ComparisonVerdict.B_NEWER
    else:
        verdict = ComparisonVerdict.EQUAL

    logger.debug("Compared %s: %s (delta %sms)", compare_by, verdict.value, delta)
    return ComparisonResult(
        verdict=verdict,
        a_timestamp=a_timestamp,
        b_timestamp=b_timestamp,
        delta_millis=delta,
    )
