"""Tests for configuration loading."""

import pytest

from mailsync.config import Config, ConfigError, get_xdg_config_home, print_paths


class TestConfig:
    """Tests for Config.load()."""

    def test_defaults_when_missing(self, temp_dir) -> None:
        config = Config.load(temp_dir / "missing.toml")

        assert config.connection.timeout_seconds == 30.0
        assert config.sync.batch_size == 50
        assert config.logging.level == "INFO"

    def test_loads_values(self, temp_dir) -> None:
        path = temp_dir / "config.toml"
        path.write_text(
            "[connection]\ntimeout_seconds = 10\n"
            "[sync]\nbatch_size = 25\n"
            "[logging]\nlevel = \"debug\"\n"
        )

        config = Config.load(path)

        assert config.connection.timeout_seconds == 10.0
        assert config.sync.batch_size == 25
        assert config.logging.level == "DEBUG"

    def test_partial_file_keeps_other_defaults(self, temp_dir) -> None:
        path = temp_dir / "config.toml"
        path.write_text("[sync]\nbatch_size = 10\n")

        config = Config.load(path)

        assert config.sync.batch_size == 10
        assert config.connection.timeout_seconds == 30.0

    def test_invalid_toml(self, temp_dir) -> None:
        path = temp_dir / "config.toml"
        path.write_text("[sync\nbatch_size = ")

        with pytest.raises(ConfigError):
            Config.load(path)

    @pytest.mark.parametrize(
        "body",
        [
            "[sync]\nbatch_size = 0\n",
            "[sync]\nbatch_size = \"fifty\"\n",
            "[connection]\ntimeout_seconds = -1\n",
            "[logging]\nlevel = \"LOUD\"\n",
            "sync = 5\n",
        ],
    )
    def test_invalid_values(self, temp_dir, body) -> None:
        path = temp_dir / "config.toml"
        path.write_text(body)

        with pytest.raises(ConfigError):
            Config.load(path)

    def test_xdg_config_home(self, temp_dir, monkeypatch) -> None:
        monkeypatch.setenv("XDG_CONFIG_HOME", str(temp_dir))

        assert get_xdg_config_home() == temp_dir / "mailsync"
        assert Config.config_file_path() == temp_dir / "mailsync" / "config.toml"

    def test_print_paths(self, temp_dir, monkeypatch, capsys) -> None:
        monkeypatch.setenv("XDG_CONFIG_HOME", str(temp_dir))

        print_paths()

        assert "config.toml" in capsys.readouterr().out
