"""Enumerations for repo-scout resolution stages."""

from enum import Enum


class ResolutionStage(str, Enum):
    """Stage of the default-branch fallback chain that produced a result.

    Used for logging and tests only; records never carry it.
    """

    LOCAL = "local"
    REMOTE_GIT_PROTOCOL = "remote-git-protocol"
    REMOTE_API = "remote-api"

    def __str__(self) -> str:
        return self.value


class Visibility(str, Enum):
    """Repository visibility as reported by the REST API."""

    PUBLIC = "public"
    PRIVATE = "private"

    def __str__(self) -> str:
        return self.value
