"""Configuration entry point.

``load_config()`` resolves every setting with a single precedence order:

    explicit overrides > environment (including ``.env``) > YAML files >
    built-in defaults
"""

from __future__ import annotations

import logging
import os
from typing import Any

from dotenv import find_dotenv, load_dotenv

from .config_loader import load_hierarchical_config
from .config_schema import UnifiedConfig, build_config

logger = logging.getLogger(__name__)

# (section, field) -> env var
ENV_VARS: dict[tuple[str, str], str] = {
    ("merge", "strategy"): "CONTEXTSYNC_STRATEGY",
    ("merge", "compare_by"): "CONTEXTSYNC_COMPARE_BY",
    ("engine", "sync_metadata"): "CONTEXTSYNC_SYNC_METADATA",
    ("engine", "strict_type_checking"): "CONTEXTSYNC_STRICT_TYPES",
    ("logging", "level"): "LOG_LEVEL",
}

_BOOL_FIELDS = {("engine", "sync_metadata"), ("engine", "strict_type_checking")}


def get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _env_overrides() -> dict[str, dict[str, Any]]:
    sections: dict[str, dict[str, Any]] = {}
    for (section, field), env_var in ENV_VARS.items():
        if (section, field) in _BOOL_FIELDS:
            value: Any = get_bool_env(env_var)
        else:
            value = os.getenv(env_var) or None
        if value is not None:
            sections.setdefault(section, {})[field] = value
    return sections


def _layer(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for section, values in overrides.items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section] = {**merged[section], **values}
        else:
            merged[section] = values
    return merged


def load_config(
    overrides: dict[str, Any] | None = None,
    *,
    use_dotenv: bool = True,
) -> UnifiedConfig:
    """Load configuration with unified precedence.

    Args:
        overrides: Section dicts, e.g. ``{"merge": {"dry_run": True}}``.
            Fields given here beat every other source.
        use_dotenv: Load the nearest ``.env`` (searching up from the CWD)
            into the environment first.  Existing variables win.

    Returns:
        Validated ``UnifiedConfig`` instance.

    Raises:
        pydantic.ValidationError: If a resolved value is invalid, e.g. an
            unknown ``CONTEXTSYNC_STRATEGY``.
    """
    if use_dotenv:
        load_dotenv(find_dotenv(usecwd=True))

    raw = load_hierarchical_config()
    raw = _layer(raw, _env_overrides())
    raw = _layer(raw, overrides or {})

    config = build_config(raw)
    logger.debug(
        "Loaded config: strategy=%s compare_by=%s",
        config.merge.strategy,
        config.merge.compare_by,
    )
    return config
