"""Exceptions raised while building and refreshing repository lists."""

from typing import Optional


class RepoListError(Exception):
    """Base class for repository listing failures."""

    def __init__(self, message: str, registry: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.registry = registry

    def __str__(self) -> str:
        if self.registry:
            return f"{self.registry}: {self.message}"
        return self.message


class InvalidPatternError(RepoListError, ValueError):
    """The repository filter is not a valid regular expression."""


class InvalidRegistryError(RepoListError, ValueError):
    """The registry address cannot be parsed into host[:port]."""


class CredentialsError(RepoListError):
    """Refreshing or exchanging credentials failed."""


class RetrievalError(RepoListError):
    """The listing call failed on the network or protocol level."""
