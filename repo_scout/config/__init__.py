"""Configuration for repo-scout.

Key Components:
    - ScoutSettings: Main configuration container with YAML loading support
    - GitHubConfig: REST API and web endpoints plus optional token
    - ScanDefaults: Default depth and excluded directory names for scans

Example:
    >>> from repo_scout.config import ScoutSettings
    >>> settings = ScoutSettings.from_yaml("repo-scout.yaml")
    >>> settings.max_concurrency
    16
"""

from repo_scout.config.settings import GitHubConfig, ScanDefaults, ScoutSettings

__all__ = ["GitHubConfig", "ScanDefaults", "ScoutSettings"]
