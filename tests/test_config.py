"""Tests for configuration loading.

**Feature: trade-integrity**
"""

import tempfile
from pathlib import Path

import pytest

from tradejournal.config import CONFIG_ENV_VAR, JournalConfig, get_config_path, load_config
from tradejournal.errors import ConfigError


@pytest.fixture
def config_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class TestLoadConfig:
    """
    **Feature: trade-integrity, Property 23: Configuration Defaults**

    *For any* missing setting, the documented default applies.
    """

    def test_missing_file_gives_defaults(self, config_dir: Path):
        config = load_config(config_dir / "absent.toml")

        assert config == JournalConfig()
        assert config.owner == "default"
        assert config.reporting_timezone == "UTC"

    def test_sections_are_read(self, config_dir: Path):
        path = config_dir / "config.toml"
        path.write_text(
            "[journal]\n"
            f'db_path = "{(config_dir / "j.db").as_posix()}"\n'
            'owner = "alice"\n'
            'reporting_timezone = "America/New_York"\n'
            "\n"
            "[import]\n"
            "default_multiplier = 1.0\n"
            "\n"
            "[import.multipliers]\n"
            "MNQ = 2.0\n"
            "NQ = 20.0\n"
        )

        config = load_config(path)

        assert config.db_path == config_dir / "j.db"
        assert config.owner == "alice"
        assert str(config.tz) == "America/New_York"
        assert config.multiplier_for("MNQU5") == 2.0
        assert config.multiplier_for("nqu5") == 20.0
        assert config.multiplier_for("ESU5") == 1.0

    def test_invalid_toml_raises(self, config_dir: Path):
        path = config_dir / "config.toml"
        path.write_text("[journal\nowner = ")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_unknown_timezone_raises(self, config_dir: Path):
        path = config_dir / "config.toml"
        path.write_text('[journal]\nreporting_timezone = "Mars/Olympus"\n')

        with pytest.raises(ConfigError):
            load_config(path)

    def test_env_var_overrides_path(self, config_dir: Path, monkeypatch):
        target = config_dir / "custom.toml"
        monkeypatch.setenv(CONFIG_ENV_VAR, str(target))

        assert get_config_path() == target
