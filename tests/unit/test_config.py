"""Unit tests for configuration loading."""

import pytest

from nutkeep.config import DEFAULT_HOME, DEFAULT_MINT_URL, load_config, validate_mint_url
from nutkeep.types import SetupError

pytestmark = pytest.mark.usefixtures("clean_env")


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()
        assert config.mint_url == DEFAULT_MINT_URL
        assert config.home == DEFAULT_HOME
        assert config.unit == "sat"
        assert config.log_level == "WARNING"

    def test_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NUTKEEP_MINT_URL", "https://mint.example.com/")
        monkeypatch.setenv("NUTKEEP_HOME", str(tmp_path / "w"))
        monkeypatch.setenv("NUTKEEP_UNIT", "USD")
        monkeypatch.setenv("NUTKEEP_LOG_LEVEL", "debug")

        config = load_config()

        assert config.mint_url == "https://mint.example.com"
        assert config.home == tmp_path / "w"
        assert config.unit == "usd"
        assert config.log_level == "DEBUG"

    def test_arguments_override_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NUTKEEP_MINT_URL", "https://env.mint")
        config = load_config(mint_url="https://arg.mint", home=tmp_path)
        assert config.mint_url == "https://arg.mint"
        assert config.home == tmp_path

    def test_env_file(self, tmp_path):
        env_file = tmp_path / "wallet.env"
        env_file.write_text('NUTKEEP_MINT_URL="https://dotenv.mint"\nNUTKEEP_UNIT=msat\n')

        config = load_config(env_file=env_file)

        assert config.mint_url == "https://dotenv.mint"
        assert config.unit == "msat"

    def test_environment_wins_over_env_file(self, monkeypatch, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("NUTKEEP_MINT_URL=https://dotenv.mint\n")
        monkeypatch.setenv("NUTKEEP_MINT_URL", "https://env.mint")

        assert load_config().mint_url == "https://env.mint"

    @pytest.mark.parametrize(
        "name, value",
        [
            ("NUTKEEP_MINT_URL", "mint.example.com"),
            ("NUTKEEP_MINT_URL", "ftp://mint.example.com"),
            ("NUTKEEP_UNIT", "doge"),
            ("NUTKEEP_LOG_LEVEL", "LOUD"),
        ],
    )
    def test_invalid_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(SetupError):
            load_config()

    def test_validate_mint_url(self):
        assert validate_mint_url("https://mint.example.com")
        assert validate_mint_url("http://127.0.0.1:3338")
        assert not validate_mint_url("")
        assert not validate_mint_url("mint.example.com")
