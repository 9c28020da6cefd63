"""
Configuration system using Pydantic for type-safe settings management.

Settings come from, in increasing priority: field defaults,
``REPO_SCOUT_*`` environment variables, and the values of a YAML file
loaded with :meth:`ScoutSettings.from_yaml`.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from repo_scout.exceptions import ConfigurationError


class GitHubConfig(BaseModel):
    """GitHub endpoints and credentials used by the REST fallback."""

    api_url: str = Field(default="https://api.github.com", description="REST API base URL")
    web_url: str = Field(default="https://github.com", description="Web/clone base URL")
    token: SecretStr | None = Field(default=None, description="Personal access token (optional for public repos)")


class ScanDefaults(BaseModel):
    """Defaults for local repository scans started from the CLI."""

    max_depth: int = Field(default=5, ge=0, description="Maximum recursion depth")
    exclude_dirs: list[str] = Field(
        default_factory=lambda: ["node_modules", ".git"],
        description="Directory names never descended into",
    )


class ScoutSettings(BaseSettings):
    """Main repo-scout settings.

    Example:
        >>> settings = ScoutSettings(max_concurrency=4)
        >>> settings.github.api_url
        'https://api.github.com'
    """

    model_config = SettingsConfigDict(
        env_prefix="REPO_SCOUT_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    git_binary: str = Field(default="git", description="Git executable")
    npm_binary: str = Field(default="npm", description="npm executable")
    command_timeout: float | None = Field(
        default=60.0, gt=0, description="Seconds before a git/npm subprocess is killed (None disables)"
    )
    max_concurrency: int = Field(default=16, ge=1, le=256, description="Maximum simultaneous subprocess calls")
    locale: str = Field(default="zh-cn", description="Locale for formatted dates")
    log_level: str = Field(default="INFO", description="Logging level")
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    scan: ScanDefaults = Field(default_factory=ScanDefaults)

    @classmethod
    def from_yaml(cls, config_path: str) -> ScoutSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} and ${VAR_NAME:-default} substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            ScoutSettings instance

        Raises:
            ConfigurationError: If config file is missing, unreadable or invalid
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, encoding="utf-8") as f:
                yaml_content = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            return cls(**config_dict)
        except Exception as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        YAML comment lines are left untouched.

        Raises:
            ValueError: If a required environment variable is not set
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            stripped = line.lstrip()
            if stripped.startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))
