"""Tests for config discovery and loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from divcore.config.discovery import CONFIG_ENV_VAR, CONFIG_FILENAME, find_config, load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


class TestFindConfig:
    def test_finds_in_current_dir(self, tmp_path: Path) -> None:
        config_file = tmp_path / CONFIG_FILENAME
        config_file.write_text("[templates]\nmax_depth = 4\n")
        assert find_config(tmp_path) == config_file

    def test_walks_up(self, tmp_path: Path) -> None:
        config_file = tmp_path / CONFIG_FILENAME
        config_file.write_text("")
        child = tmp_path / "a" / "b" / "c"
        child.mkdir(parents=True)
        assert find_config(child) == config_file

    def test_returns_none_when_not_found(self, tmp_path: Path) -> None:
        child = tmp_path / "empty"
        child.mkdir()
        assert find_config(child) is None

    def test_env_var_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "custom.toml"
        config_file.write_text("")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(config_file))
        assert find_config(tmp_path / "elsewhere") == config_file

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("")
        assert find_config(tmp_path, explicit=tmp_path / "nope.toml") is None


class TestLoadConfig:
    def test_loads_from_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / CONFIG_FILENAME
        config_file.write_text("[expressions]\ncache_size = 16\n")
        cfg = load_config(config_file)
        assert cfg.expressions.cache_size == 16
        assert cfg.templates.max_depth == 32

    def test_defaults_without_file(self, tmp_path: Path) -> None:
        cfg = load_config(cwd=tmp_path)
        assert cfg.plugins.discover is True

    def test_rejects_invalid_values(self, tmp_path: Path) -> None:
        config_file = tmp_path / CONFIG_FILENAME
        config_file.write_text("[templates]\nmax_depth = 0\n")
        with pytest.raises(ValidationError):
            load_config(config_file)
