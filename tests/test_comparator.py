"""Tests for timestamp comparison."""

import pytest

from contextsync.context import Context
from contextsync.core.container import ContextContainer
from contextsync.core.item import ContextItem
from contextsync.errors import (
    InvalidTimestampTypeError,
    InvalidTimestampValueError,
)
from contextsync.sync.comparator import compare
from contextsync.sync.models import ComparisonVerdict


class TestCompare:
    """Tests for compare()."""

    def test_same_object_is_equal(self):
        item = ContextItem("v")
        result = compare(item, item)
        assert result.verdict is ComparisonVerdict.EQUAL
        assert result.delta_millis == 0

    def test_newer_source(self, t0, t1):
        result = compare(
            ContextItem("a", timestamp=t1), ContextItem("b", timestamp=t0)
        )
        assert result.verdict is ComparisonVerdict.A_NEWER
        assert result.delta_millis == 3_600_000
        assert result.a_timestamp == t1
        assert result.b_timestamp == t0

    def test_reversed_arguments_are_symmetric(self, t0, t1):
        a = ContextItem("a", timestamp=t1)
        b = ContextItem("b", timestamp=t0)
        forward = compare(a, b)
        backward = compare(b, a)
        assert backward.verdict is ComparisonVerdict.B_NEWER
        assert backward.delta_millis == -forward.delta_millis

    def test_compare_by_created_at(self, t0, t2):
        a = ContextItem("a", timestamp=t0)
        a.set_value("changed", timestamp=t2)
        b = ContextItem("b", timestamp=t0)
        assert compare(a, b).verdict is ComparisonVerdict.A_NEWER
        assert compare(a, b, "created_at").verdict is ComparisonVerdict.EQUAL

    def test_containers_and_contexts(self, t0, t1):
        assert (
            compare(
                ContextContainer(timestamp=t0), ContextContainer(timestamp=t1)
            ).verdict
            is ComparisonVerdict.B_NEWER
        )
        assert (
            compare(Context(timestamp=t1), Context(timestamp=t0)).verdict
            is ComparisonVerdict.A_NEWER
        )

    def test_does_not_record_access(self, t0):
        item = ContextItem("v", timestamp=t0)
        compare(item, item)
        assert item.last_accessed_at == t0


class TestCompareMissing:
    """Tests for missing operands."""

    def test_both_missing(self):
        result = compare(None, None)
        assert result.verdict is ComparisonVerdict.BOTH_MISSING
        assert result.delta_millis == 0

    def test_a_missing(self, t0):
        result = compare(None, ContextItem("b", timestamp=t0))
        assert result.verdict is ComparisonVerdict.A_MISSING
        assert result.b_timestamp == t0
        assert result.delta_millis is None

    def test_b_missing(self, t0):
        result = compare(ContextItem("a", timestamp=t0), None)
        assert result.verdict is ComparisonVerdict.B_MISSING
        assert result.a_timestamp == t0


class TestCompareMappings:
    """Tests for mapping operands and mixed timestamp representations."""

    def test_millis(self):
        result = compare({"modified_at": 2000}, {"modified_at": 1000})
        assert result.verdict is ComparisonVerdict.A_NEWER
        assert result.delta_millis == 1000

    def test_iso_string_against_millis(self):
        result = compare(
            {"modified_at": "2024-01-01T00:00:00Z"},
            {"modified_at": 1704067200000},
        )
        assert result.verdict is ComparisonVerdict.EQUAL

    def test_missing_key_raises(self):
        with pytest.raises(InvalidTimestampTypeError, match="modified_at"):
            compare({"other": 1}, {"modified_at": 1})

    def test_missing_attribute_raises(self):
        with pytest.raises(InvalidTimestampTypeError, match="object"):
            compare(object(), {"modified_at": 1})

    def test_boolean_timestamp_raises(self):
        with pytest.raises(InvalidTimestampTypeError):
            compare({"modified_at": True}, {"modified_at": 1})

    def test_unparsable_string_raises(self):
        with pytest.raises(InvalidTimestampValueError):
            compare({"modified_at": "yesterday-ish"}, {"modified_at": 1})

    def test_nan_raises(self):
        with pytest.raises(InvalidTimestampValueError):
            compare({"modified_at": float("nan")}, {"modified_at": 1})
