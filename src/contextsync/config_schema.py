"""Pydantic models for every contextsync setting.

One frozen model per section: ``merge`` (orchestrator defaults),
``engine`` (pairwise sync flags), ``context`` (component layout),
``messages`` (error templates) and ``logging``.

Usage:
    from contextsync.config_loader import load_hierarchical_config
    from contextsync.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class MergeConfig(BaseModel):
    """Defaults for the merge orchestrator.

    ``strategy`` accepts any spelling of a merge strategy
    (``merge-newer-wins``, ``mergeNewerWins``, ``merge_newer_wins``) and
    stores the canonical kebab-case name.
    """

    strategy: str = Field(
        default="merge-newer-wins", description="Default merge strategy"
    )
    compare_by: str = Field(
        default="modified_at",
        description="Timestamp attribute used to compare two nodes",
    )
    create_missing: bool = Field(
        default=True,
        description="Create source entries that the target lacks",
    )
    preserve_metadata: bool = Field(
        default=False,
        description="Keep target metadata keys the source does not set",
    )
    dry_run: bool = Field(
        default=False, description="Compute changes without writing"
    )

    model_config = {"frozen": True}

    @field_validator("strategy")
    @classmethod
    def _canonical_strategy(cls, value: str) -> str:
        # Import here to avoid circular imports (sync imports config_schema)
        from .sync.models import MergeStrategy

        try:
            return MergeStrategy(value).value
        except ValueError:
            raise ValueError(
                f"Unknown merge strategy: '{value}'. Valid strategies: "
                f"{sorted(s.value for s in MergeStrategy)}"
            ) from None


class EngineConfig(BaseModel):
    """Pairwise sync engine settings."""

    sync_metadata: bool = Field(
        default=True,
        description="Copy metadata alongside values during a sync",
    )
    strict_type_checking: bool = Field(
        default=False,
        description="Reject incompatible node pairs instead of overwriting",
    )

    model_config = {"frozen": True}


class ContextConfig(BaseModel):
    """Component layout of a ``Context``."""

    components: list[str] = Field(
        default_factory=lambda: [
            "schema",
            "constants",
            "manifest",
            "flags",
            "state",
            "data",
            "settings",
        ],
        description="Ordered component names",
    )
    read_only_components: list[str] = Field(
        default_factory=lambda: ["schema", "constants", "manifest"],
        description="Components frozen after initial population",
    )

    model_config = {"frozen": True}


class MessagesConfig(BaseModel):
    """Error-message templates used by the sync facade.

    Templates are formatted with ``str.format``; available fields are
    listed per template.
    """

    unsupported_object: str = Field(
        default="Unsupported object type for sync: {type_name}",
        description="Fields: type_name",
    )
    incompatible_types: str = Field(
        default="Cannot sync {source_type} with {target_type}",
        description="Fields: source_type, target_type",
    )
    sync_failed: str = Field(
        default="Sync operation '{operation}' failed: {error}",
        description="Fields: operation, error",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or ``json`` output.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: Literal["text", "json"] = Field(
        default="text", description="Log record format"
    )

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """All sections together.

    Each section defaults independently, so an empty or partial config
    file still validates.
    """

    merge: MergeConfig = Field(default_factory=MergeConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    messages: MessagesConfig = Field(default_factory=MessagesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict | None) -> UnifiedConfig:
    """Validate a raw section dict (e.g. from ``load_hierarchical_config``).

    Absent sections take their defaults and unknown top-level keys are
    ignored.

    Raises:
        pydantic.ValidationError: If a section holds an invalid value.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
