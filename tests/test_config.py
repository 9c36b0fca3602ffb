"""Tests for contextsync.config: layered config resolution.

NOT to be confused with test_config_loader.py (YAML discovery and merge)
or test_config_schema.py (Pydantic models).  This tests load_config(),
which stacks defaults, YAML files, environment variables and explicit
overrides.
"""

import pytest
from pydantic import ValidationError

from contextsync.config import ENV_VARS, get_bool_env, load_config
from contextsync.config_loader import CONFIG_ENV_VAR
from contextsync.config_schema import UnifiedConfig


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    """No config files and no contextsync env vars."""
    for env_var in [*ENV_VARS.values(), CONFIG_ENV_VAR]:
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.chdir(tmp_path)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return tmp_path


def _project_config(root, text):
    path = root / ".contextsync" / "config.yml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


# -------------------------------------------------------------------------
# get_bool_env()
# -------------------------------------------------------------------------


class TestGetBoolEnv:
    """Tests for boolean env var parsing."""

    @pytest.mark.parametrize("raw", ["true", "TRUE", "1", "yes", "on"])
    def test_truthy(self, monkeypatch, raw):
        monkeypatch.setenv("CS_FLAG", raw)
        assert get_bool_env("CS_FLAG") is True

    @pytest.mark.parametrize("raw", ["false", "0", "no", "off", "anything"])
    def test_falsy(self, monkeypatch, raw):
        monkeypatch.setenv("CS_FLAG", raw)
        assert get_bool_env("CS_FLAG") is False

    def test_unset(self, monkeypatch):
        monkeypatch.delenv("CS_FLAG", raising=False)
        assert get_bool_env("CS_FLAG") is None


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for precedence between the config sources."""

    def test_zero_config_defaults(self, clean_env):
        assert load_config(use_dotenv=False) == UnifiedConfig()

    def test_yaml_values_applied(self, clean_env):
        _project_config(
            clean_env, "merge:\n  strategy: replace\n  dry_run: true\n"
        )
        config = load_config(use_dotenv=False)
        assert config.merge.strategy == "replace"
        assert config.merge.dry_run is True

    def test_env_beats_yaml_per_field(self, clean_env, monkeypatch):
        _project_config(
            clean_env,
            "merge:\n  strategy: replace\n  compare_by: created_at\n",
        )
        monkeypatch.setenv("CONTEXTSYNC_STRATEGY", "mergeTargetPriority")
        config = load_config(use_dotenv=False)
        assert config.merge.strategy == "merge-target-priority"
        assert config.merge.compare_by == "created_at"

    def test_boolean_env_vars(self, clean_env, monkeypatch):
        monkeypatch.setenv("CONTEXTSYNC_SYNC_METADATA", "no")
        monkeypatch.setenv("CONTEXTSYNC_STRICT_TYPES", "1")
        config = load_config(use_dotenv=False)
        assert config.engine.sync_metadata is False
        assert config.engine.strict_type_checking is True

    def test_log_level_env(self, clean_env, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        assert load_config(use_dotenv=False).logging.level == "DEBUG"

    def test_empty_env_var_ignored(self, clean_env, monkeypatch):
        monkeypatch.setenv("CONTEXTSYNC_STRATEGY", "")
        assert load_config(use_dotenv=False).merge.strategy == "merge-newer-wins"

    def test_overrides_beat_env(self, clean_env, monkeypatch):
        monkeypatch.setenv("CONTEXTSYNC_STRATEGY", "replace")
        config = load_config(
            {"merge": {"strategy": "no_action"}}, use_dotenv=False
        )
        assert config.merge.strategy == "no-action"

    def test_invalid_strategy_raises(self, clean_env, monkeypatch):
        monkeypatch.setenv("CONTEXTSYNC_STRATEGY", "oldest-wins")
        with pytest.raises(ValidationError, match="Unknown merge strategy"):
            load_config(use_dotenv=False)

    def test_dotenv_file_loaded(self, clean_env, monkeypatch):
        # Register the var so monkeypatch removes what load_dotenv sets.
        monkeypatch.setenv("CONTEXTSYNC_COMPARE_BY", "placeholder")
        monkeypatch.delenv("CONTEXTSYNC_COMPARE_BY")
        (clean_env / ".env").write_text("CONTEXTSYNC_COMPARE_BY=created_at\n")

        assert load_config().merge.compare_by == "created_at"

    def test_explicit_config_path(self, clean_env, monkeypatch):
        explicit = clean_env / "custom.yml"
        explicit.write_text("engine:\n  strict_type_checking: true\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(explicit))
        assert load_config(use_dotenv=False).engine.strict_type_checking is True
