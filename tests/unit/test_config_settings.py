"""Tests for repo_scout.config.settings."""

import os

import pytest

from repo_scout.config.settings import ScoutSettings
from repo_scout.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep REPO_SCOUT_* variables from the host out of these tests."""
    for name in list(os.environ):
        if name.startswith("REPO_SCOUT_"):
            monkeypatch.delenv(name)


class TestDefaults:
    """Tests for default settings."""

    def test_defaults(self):
        """Test the defaults."""
        settings = ScoutSettings()

        assert settings.git_binary == "git"
        assert settings.npm_binary == "npm"
        assert settings.command_timeout == 60.0
        assert settings.max_concurrency == 16
        assert settings.locale == "zh-cn"
        assert settings.github.api_url == "https://api.github.com"
        assert settings.github.web_url == "https://github.com"
        assert settings.github.token is None
        assert settings.scan.max_depth == 5
        assert settings.scan.exclude_dirs == ["node_modules", ".git"]

    def test_environment_overrides(self, monkeypatch):
        """Test REPO_SCOUT_* variables, nested ones included."""
        monkeypatch.setenv("REPO_SCOUT_MAX_CONCURRENCY", "4")
        monkeypatch.setenv("REPO_SCOUT_GITHUB__TOKEN", "ghp_env")

        settings = ScoutSettings()

        assert settings.max_concurrency == 4
        assert settings.github.token.get_secret_value() == "ghp_env"

    @pytest.mark.parametrize("value", [0, 257])
    def test_concurrency_bounds(self, value):
        """Test max_concurrency is limited to 1..256."""
        with pytest.raises(ValueError):
            ScoutSettings(max_concurrency=value)

    def test_token_hidden_in_repr(self):
        """Test the token never appears in the settings repr."""
        settings = ScoutSettings(github={"token": "ghp_secret"})

        assert "ghp_secret" not in repr(settings)


class TestFromYaml:
    """Tests for ScoutSettings.from_yaml."""

    def test_load(self, tmp_path):
        """Test a YAML file populates nested settings."""
        config = tmp_path / "scout.yaml"
        config.write_text(
            "max_concurrency: 8\n"
            "command_timeout: 15\n"
            "github:\n"
            "  web_url: https://ghe.example.com\n"
            "scan:\n"
            "  max_depth: 2\n"
            "  exclude_dirs: [vendor]\n"
        )

        settings = ScoutSettings.from_yaml(str(config))

        assert settings.max_concurrency == 8
        assert settings.command_timeout == 15.0
        assert settings.github.web_url == "https://ghe.example.com"
        assert settings.scan.exclude_dirs == ["vendor"]

    def test_env_interpolation(self, tmp_path, monkeypatch):
        """Test ${VAR} and ${VAR:-default} substitution."""
        monkeypatch.setenv("SCOUT_TEST_TOKEN", "ghp_from_env")
        config = tmp_path / "scout.yaml"
        config.write_text(
            "github:\n"
            "  token: ${SCOUT_TEST_TOKEN}\n"
            "  api_url: ${SCOUT_TEST_API:-https://api.example.com}\n"
        )

        settings = ScoutSettings.from_yaml(str(config))

        assert settings.github.token.get_secret_value() == "ghp_from_env"
        assert settings.github.api_url == "https://api.example.com"

    def test_comment_lines_not_interpolated(self, tmp_path):
        """Test unset variables inside comments are ignored."""
        config = tmp_path / "scout.yaml"
        config.write_text("# token: ${SCOUT_TEST_UNSET_VARIABLE}\nlocale: en\n")

        assert ScoutSettings.from_yaml(str(config)).locale == "en"

    def test_empty_file(self, tmp_path):
        """Test an empty file yields defaults."""
        config = tmp_path / "scout.yaml"
        config.write_text("")

        assert ScoutSettings.from_yaml(str(config)).max_concurrency == 16

    def test_missing_file(self, tmp_path):
        """Test a missing file raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="not found"):
            ScoutSettings.from_yaml(str(tmp_path / "absent.yaml"))

    def test_unset_variable(self, tmp_path):
        """Test a required unset variable raises ConfigurationError."""
        config = tmp_path / "scout.yaml"
        config.write_text("github:\n  token: ${SCOUT_TEST_UNSET_VARIABLE}\n")

        with pytest.raises(ConfigurationError, match="SCOUT_TEST_UNSET_VARIABLE"):
            ScoutSettings.from_yaml(str(config))

    def test_invalid_yaml(self, tmp_path):
        """Test broken YAML raises ConfigurationError."""
        config = tmp_path / "scout.yaml"
        config.write_text("github: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            ScoutSettings.from_yaml(str(config))

    def test_non_mapping(self, tmp_path):
        """Test a top-level list raises ConfigurationError."""
        config = tmp_path / "scout.yaml"
        config.write_text("- one\n- two\n")

        with pytest.raises(ConfigurationError, match="YAML object"):
            ScoutSettings.from_yaml(str(config))

    def test_invalid_values(self, tmp_path):
        """Test validation failures raise ConfigurationError."""
        config = tmp_path / "scout.yaml"
        config.write_text("max_concurrency: 0\n")

        with pytest.raises(ConfigurationError, match="validate"):
            ScoutSettings.from_yaml(str(config))
