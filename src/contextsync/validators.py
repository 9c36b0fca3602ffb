"""
Key and path validation helpers.

Provides the reserved-key list, key validation, and the dotted-path
splitting utility used by containers and the merge orchestrator.
"""

from __future__ import annotations

from collections.abc import Callable

from .errors import ReservedKeyError

PATH_SEPARATOR = "."

RESERVED_KEYS: frozenset[str] = frozenset(
    {
        "value",
        "metadata",
        "created_at",
        "modified_at",
        "last_accessed_at",
        "size",
    }
)


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Key")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def is_reserved_key(name: str) -> bool:
    """Return ``True`` if *name* collides with a structural field name."""
    return name in RESERVED_KEYS


def validate_key(key: object) -> tuple[bool, str]:
    """
    Validate a single (non-dotted) container key.

    Args:
        key: The key to validate

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Must be a string
        - Cannot be empty or whitespace-only
        - Cannot contain the path separator
    """
    if not isinstance(key, str):
        return (
            False,
            format_validation_error(
                "Key", f"must be a string, got {type(key).__name__}"
            ),
        )

    if not key.strip():
        return (False, format_validation_error("Key", "cannot be empty"))

    if PATH_SEPARATOR in key:
        return (
            False,
            format_validation_error(
                "Key", f"cannot contain '{PATH_SEPARATOR}'"
            ),
        )

    return (True, "")


def validate_path(path: object) -> tuple[bool, str]:
    """
    Validate a dotted path such as ``"player.stats.hp"``.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not isinstance(path, str):
        return (
            False,
            format_validation_error(
                "Path", f"must be a string, got {type(path).__name__}"
            ),
        )

    if not path:
        return (False, format_validation_error("Path", "cannot be empty"))

    if any(not segment for segment in path.split(PATH_SEPARATOR)):
        return (
            False,
            format_validation_error(
                "Path", "cannot have empty path segments"
            ),
        )

    return (True, "")


def split_path(path: str) -> list[str]:
    """Split a dotted path into its segments.

    Raises:
        ValueError: If the path is empty or has empty segments.
    """
    is_valid, error = validate_path(path)
    if not is_valid:
        raise ValueError(error)
    return path.split(PATH_SEPARATOR)


def extract_first_segment_and_remainder(
    path: str,
    validate: Callable[[str], None] | None = None,
) -> tuple[str, str]:
    """Split *path* into its first segment and the remaining path.

    Args:
        path: Dotted path.
        validate: Optional callback invoked with the first segment before
            returning; it should raise to reject the segment.

    Returns:
        ``(first_key, remaining_path)``; ``remaining_path`` is ``""``
        for a single-segment path.
    """
    first_key, _, remaining = path.partition(PATH_SEPARATOR)
    if validate is not None:
        validate(first_key)
    return first_key, remaining


def reject_reserved_key(key: str) -> None:
    """Validation callback raising ``ReservedKeyError`` for reserved keys."""
    if is_reserved_key(key):
        raise ReservedKeyError(key)


def path_matches(path: str, candidate: str) -> bool:
    """Return ``True`` if *path* equals, contains, or sits inside *candidate*.

    Matching is done on segment boundaries so ``"player"`` matches
    ``"player.name"`` but not ``"players"``.
    """
    if path == candidate:
        return True
    if path.startswith(candidate + PATH_SEPARATOR):
        return True
    return candidate.startswith(path + PATH_SEPARATOR)


def join_path(*segments: str) -> str:
    """Join non-empty segments with the path separator."""
    return PATH_SEPARATOR.join(s for s in segments if s)
