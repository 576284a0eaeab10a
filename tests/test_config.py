"""Tests for configuration loading."""

import json

import pytest

from config import UpdateConfig, load_config
from constants import Constants
from update.errors import ConfigurationError


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


class TestLoadConfig:
    """Test file, environment and default precedence."""

    def test_defaults(self):
        config = load_config(env={})
        assert config == UpdateConfig()
        assert config.max_steps == Constants.RESOLVER_MAX_STEPS

    def test_yaml_in_working_directory(self, tmp_path):
        (tmp_path / "relock.yml").write_text(
            "update:\n  frozen: true\n  max_steps: 50\n", encoding="utf-8"
        )
        config = load_config(env={})
        assert config.frozen is True
        assert config.max_steps == 50

    def test_explicit_json(self, tmp_path):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"update": {"only_update_to_newer_versions": True}}), encoding="utf-8")
        assert load_config(str(path), env={}).only_update_to_newer_versions is True

    def test_environment_overrides_file(self, tmp_path):
        (tmp_path / "relock.yaml").write_text("update:\n  frozen: true\n", encoding="utf-8")
        config = load_config(env={"RELOCK_FROZEN": "false", "RELOCK_LOG_LEVEL": "DEBUG"})
        assert config.frozen is False
        assert config.log_level == "DEBUG"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(str(tmp_path / "nope.yml"), env={})

    def test_unknown_keys(self, tmp_path):
        (tmp_path / "relock.yml").write_text("update:\n  frozzen: true\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="frozzen"):
            load_config(env={})

    def test_bad_boolean(self):
        with pytest.raises(ConfigurationError, match="Invalid boolean"):
            load_config(env={"RELOCK_FROZEN": "maybe"})

    def test_non_positive_budget(self):
        with pytest.raises(ConfigurationError):
            load_config(env={"RELOCK_MAX_STEPS": "0"})

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "relock.yml").write_text("update: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Could not read"):
            load_config(env={})

    def test_empty_file(self, tmp_path):
        (tmp_path / "relock.yml").write_text("", encoding="utf-8")
        assert load_config(env={}) == UpdateConfig()
