"""Cached, filtered repository lists.

A ``RepositoryList`` is created once per registry and filter when a sync
pipeline is set up. Every ``get()`` either serves the cached, filtered
names or retrieves them again through the listing source chosen for the
registry.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

import httpx

from ..auth import Credentials
from ..common.logger import get_logger
from .base import DEFAULT_PAGE_SIZE, DEFAULT_TIMEOUT, AuthMode, ListSource
from .catalog import CatalogSource
from .index import DOCKERHUB_REGISTRY, IndexSource
from .pattern import compile_filter

logger = get_logger("repo_list")

DEFAULT_CACHE_TTL = timedelta(minutes=10)


def split_address(address: str) -> Tuple[str, bool]:
    """Strip an ``http://`` or ``https://`` prefix.

    Returns:
        Tuple of (address without scheme, insecure flag)
    """
    if address.startswith("http://"):
        return address[len("http://"):], True
    if address.startswith("https://"):
        return address[len("https://"):], False
    return address, False


def select_source(
    address: str,
    credentials: Credentials,
    auth_mode: AuthMode = AuthMode.BASIC,
    namespace: Optional[str] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    timeout: float = DEFAULT_TIMEOUT,
    client: Optional[httpx.Client] = None,
) -> ListSource:
    """Pick the listing source for a registry address.

    Docker Hub gets the index source with a private copy of the
    credentials, listing ``namespace`` when given; every other registry
    gets the catalog source sharing ``credentials`` and ignores ``namespace``.
    """
    registry, insecure = split_address(address)
    server = registry.split(":", 1)[0]

    if server == DOCKERHUB_REGISTRY:
        return IndexSource(
            registry,
            Credentials.from_basic(credentials.username, credentials.password),
            insecure=insecure,
            namespace=namespace,
            page_size=page_size,
            timeout=timeout,
            client=client,
        )

    return CatalogSource(
        registry,
        credentials,
        insecure=insecure,
        auth_mode=auth_mode,
        page_size=page_size,
        timeout=timeout,
        client=client,
    )


class RepositoryList:
    """Filtered repository names of one registry, cached for ``cache_ttl``.

    ``get()`` is the only method touching the cache. A failed retrieval
    leaves both the cached names and the expiry as they were, so the
    next call after expiry tries again.
    """

    def __init__(
        self,
        registry: str,
        filter: str,
        credentials: Credentials,
        auth_mode: AuthMode = AuthMode.BASIC,
        namespace: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        cache_ttl: timedelta = DEFAULT_CACHE_TTL,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the list.

        Args:
            registry: Registry address, optionally with http:// or https://
            filter: Regular expression selecting repositories by full name
            credentials: Credentials used for image transfer on this registry
            auth_mode: Basic or bearer authentication for catalog listing
            namespace: Docker Hub namespace to list, defaults to the username
            page_size: Maximum number of catalog entries retrieved
            cache_ttl: How long a retrieved list is served from cache
            timeout: Timeout in seconds for outbound calls
            client: Optional HTTP client shared with the source
            clock: Returns the current time, timezone aware

        Raises:
            InvalidPatternError: If the filter does not compile
        """
        self.registry = registry
        self.filter = compile_filter(filter)
        self.cache_ttl = cache_ttl
        self.source = select_source(
            registry,
            credentials,
            auth_mode=auth_mode,
            namespace=namespace,
            page_size=page_size,
            timeout=timeout,
            client=client,
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._repos: List[str] = []
        self._expiry: Optional[datetime] = None
        self._lock = threading.Lock()

        logger.info(
            f"listing {registry} through {self.source.source_name} source "
            f"with filter '{self.filter.pattern}'"
        )

    @property
    def expiry(self) -> Optional[datetime]:
        """Time after which the cached list is stale, None before first use."""
        return self._expiry

    def get(self) -> List[str]:
        """Return the filtered repository names, retrieving them if stale.

        Raises:
            RepoListError: Whatever the listing source raised
        """
        with self._lock:
            if self._expiry is not None and self._clock() < self._expiry:
                logger.debug("list still valid, reusing")
                return list(self._repos)

            logger.debug(f"retrieving list from {self.registry}")
            raw = self.source.retrieve()

            self._expiry = self._clock() + self.cache_ttl
            self._repos = [r for r in raw if self.filter.fullmatch(r)]
            logger.debug(
                f"kept {len(self._repos)} of {len(raw)} repositories from {self.registry}"
            )
            return list(self._repos)

    def __repr__(self) -> str:
        return f"RepositoryList(registry={self.registry!r}, filter={self.filter.pattern!r})"
