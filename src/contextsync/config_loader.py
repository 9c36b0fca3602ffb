"""
YAML configuration files for contextsync.

Finds ``config.yml`` files by convention, loads them with a SafeLoader
subclass that understands ``!include``, expands ``${VAR}`` references,
and layers them so the most specific file wins.  ``ensure_config()``
writes a commented starter file for new projects.

Usage:
    from contextsync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CONTEXTSYNC_CONFIG"
CONFIG_DIR_NAME = ".contextsync"
CONFIG_FILE_NAME = "config.yml"

# ---------------------------------------------------------------------------
# 1. ${VAR} expansion
# ---------------------------------------------------------------------------

# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${NAME}`` and ``${NAME:-fallback}`` references in *value*.

    An unset or empty variable expands to its fallback, or to ``""`` when
    there is none.  Text such as ``"${"`` without a closing brace is kept.
    """

    def _expand(ref: re.Match) -> str:
        current = os.environ.get(ref.group(1))
        if current:
            return current
        return ref.group(2) or ""

    return _ENV_REF.sub(_expand, value)


def _interpolate_recursive(obj: Any) -> Any:
    """Apply ``interpolate_env_vars`` to every string inside *obj*."""
    match obj:
        case str():
            return interpolate_env_vars(obj)
        case dict():
            return {key: _interpolate_recursive(val) for key, val in obj.items()}
        case list():
            return [_interpolate_recursive(val) for val in obj]
        case _:
            return obj


# ---------------------------------------------------------------------------
# 2. YAML loading with !include (dedicated SafeLoader subclass)
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """YAML SafeLoader subclass that understands ``!include``.

    A dedicated subclass keeps the global ``yaml.SafeLoader`` untouched.
    Each loader carries the chain of files being loaded so a file that
    includes itself (directly or through others) is rejected.
    """

    include_chain: list[Path] = []


def _construct_include(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    """Load the file named by ``!include <path>`` in place of the node."""
    raw = Path(loader.construct_scalar(node)).expanduser()
    current = Path(loader.name).resolve()
    included = (raw if raw.is_absolute() else current.parent / raw).resolve()

    if included in loader.include_chain:
        chain = " -> ".join(str(p) for p in [*loader.include_chain, included])
        raise ValueError(f"Circular include detected: {chain}")
    if not included.exists():
        raise FileNotFoundError(
            f"Include file not found: {included} (referenced from {current})"
        )
    return load_yaml_file(included, _chain=[*loader.include_chain, included])


ConfigLoader.add_constructor("!include", _construct_include)


def load_yaml_file(path: Path, *, _chain: list[Path] | None = None) -> Any:
    """Load a single YAML file with ``ConfigLoader``, resolving includes."""
    path = Path(path).resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader.include_chain = _chain if _chain is not None else [path]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# 3. Discovery
# ---------------------------------------------------------------------------


def _project_config() -> Path:
    return Path.cwd() / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def _global_config() -> Path:
    return Path.home() / ".config" / "contextsync" / CONFIG_FILE_NAME


def discover_config_files() -> list[Path]:
    """Existing config files, most specific first.

    Looked up in this order:

    1. the file named by ``CONTEXTSYNC_CONFIG``,
    2. ``.contextsync/config.yml`` under the working directory,
    3. ``~/.config/contextsync/config.yml``.

    Candidates that do not exist are dropped silently.
    """
    candidates: list[Path] = []
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())
    candidates.extend([_project_config(), _global_config()])
    return [path for path in candidates if path.exists()]


# ---------------------------------------------------------------------------
# 3a. Starter config
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# contextsync configuration
#
# Individual settings can also be overridden via environment variables:
#   CONTEXTSYNC_STRATEGY, CONTEXTSYNC_COMPARE_BY, CONTEXTSYNC_SYNC_METADATA,
#   CONTEXTSYNC_STRICT_TYPES, LOG_LEVEL
#
# merge:
#   strategy: merge-newer-wins
#   compare_by: modified_at
#   create_missing: true
#   preserve_metadata: false
#   dry_run: false
#
# engine:
#   sync_metadata: true
#   strict_type_checking: false
#
# context:
#   components: [schema, constants, manifest, flags, state, data, settings]
#   read_only_components: [schema, constants, manifest]
#
# logging:
#   level: INFO
#   file: null
#   format: text
"""


def default_config_path() -> Path:
    """Project-level config path used when nothing exists yet."""
    return _project_config()


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a commented starter if none exists.

    Args:
        target: Where to create the starter file.  Defaults to
            ``default_config_path()``.

    Returns:
        Path to the existing or newly created config file.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# 4. Layering
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Read every discovered file and layer them into one raw dict.

    Files are applied from the least to the most specific.  A section
    (top-level key) from a more specific file replaces the whole section
    from a less specific one.  ``${VAR}`` references are expanded last.

    Returns:
        The layered dict; ``{}`` when no file exists.

    Raises:
        yaml.YAMLError: If a file is not valid YAML.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found; using built-in defaults")
        return {}

    layered: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Reading config file %s", path)
        try:
            data = load_yaml_file(path)
        except Exception:
            logger.exception("Could not read config file %s", path)
            raise

        if isinstance(data, dict):
            layered.update(data)
        elif data is not None:
            logger.warning(
                "Ignoring config file %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(layered)
