"""Repository listing for container registries.

This package selects the listing protocol a registry speaks (catalog API
or Docker Hub index API), retrieves its repository names and keeps a
filtered, time-bounded copy for the sync pipeline.
"""

from .base import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_TIMEOUT,
    AuthMode,
    ListSource,
    RegistryHandle,
    parse_registry,
)
from .catalog import CatalogSource
from .errors import (
    CredentialsError,
    InvalidPatternError,
    InvalidRegistryError,
    RepoListError,
    RetrievalError,
)
from .index import DOCKERHUB_REGISTRY, IndexSource
from .pattern import compile_filter
from .repolist import (
    DEFAULT_CACHE_TTL,
    RepositoryList,
    select_source,
    split_address,
)

__all__ = [
    "DEFAULT_CACHE_TTL",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_TIMEOUT",
    "DOCKERHUB_REGISTRY",
    "AuthMode",
    "CatalogSource",
    "CredentialsError",
    "IndexSource",
    "InvalidPatternError",
    "InvalidRegistryError",
    "ListSource",
    "RegistryHandle",
    "RepoListError",
    "RepositoryList",
    "RetrievalError",
    "compile_filter",
    "parse_registry",
    "select_source",
    "split_address",
]
