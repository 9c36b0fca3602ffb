"""Timestamp coercion shared by items and the comparator.

Accepted representations of a point in time:

- ``datetime`` (naive values are taken to be UTC),
- ISO-8601 strings (``Z`` suffix accepted) or RFC 2822 date strings,
- ``int`` / ``float`` epoch milliseconds.

Anything else raises ``InvalidTimestampTypeError``; an accepted type with
an unusable value raises ``InvalidTimestampValueError``.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from ..errors import InvalidTimestampTypeError, InvalidTimestampValueError


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _parse_string(value: str) -> datetime:
    text = value.strip()
    if not text:
        raise InvalidTimestampValueError("Empty timestamp string")
    iso_text = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return _aware(datetime.fromisoformat(iso_text))
    except ValueError:
        pass
    try:
        return _aware(parsedate_to_datetime(text))
    except (TypeError, ValueError) as exc:
        raise InvalidTimestampValueError(
            f"Unparsable timestamp string: '{value}'"
        ) from exc


def _check_number(value: int | float) -> None:
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        raise InvalidTimestampValueError(
            f"Timestamp must be a finite number, got {value}"
        )


def to_datetime(value: object) -> datetime:
    """Coerce *value* to an aware UTC ``datetime``.

    Raises:
        InvalidTimestampTypeError: Unsupported type (bool, list, dict, ...).
        InvalidTimestampValueError: Unparsable string or non-finite number.
    """
    match value:
        case bool():
            raise InvalidTimestampTypeError(
                "Timestamp cannot be a boolean"
            )
        case datetime():
            return _aware(value)
        case int() | float():
            _check_number(value)
            try:
                return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
            except (OverflowError, OSError, ValueError) as exc:
                raise InvalidTimestampValueError(
                    f"Timestamp out of range: {value}"
                ) from exc
        case str():
            return _parse_string(value)
        case _:
            raise InvalidTimestampTypeError(
                f"Unsupported timestamp type: {type(value).__name__}"
            )


def to_millis(value: object) -> float:
    """Return *value* as epoch milliseconds.

    Numbers are passed through unchanged (after validation) so that
    millisecond values outside the ``datetime`` range still compare.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        _check_number(value)
        return float(value)
    return to_datetime(value).timestamp() * 1000
