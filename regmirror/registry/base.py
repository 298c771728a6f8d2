"""Base classes for repository listing sources.

A listing source knows how one family of registries enumerates its
repositories. Two sources exist: the generic registry catalog API and
the Docker Hub index API.
"""

import ipaddress
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Union
from urllib.parse import urlsplit

import httpx

from .errors import InvalidRegistryError

# Catalog requests ask for a single page of at most this many entries.
DEFAULT_PAGE_SIZE = 100
DEFAULT_TIMEOUT = 30.0


class AuthMode(Enum):
    """How a source authenticates its listing calls."""

    BASIC = "basic"
    BEARER = "bearer"

    @classmethod
    def parse(cls, value: Union[str, "AuthMode", None]) -> "AuthMode":
        """Parse a configuration value, defaulting to basic."""
        if isinstance(value, AuthMode):
            return value
        if not value:
            return cls.BASIC
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(
                f"Invalid auth mode: {value}. Must be one of: basic, bearer"
            ) from None


@dataclass(frozen=True)
class RegistryHandle:
    """A validated registry address with the scheme to reach it."""

    host: str
    port: Optional[int] = None
    insecure: bool = False

    @property
    def name(self) -> str:
        """Host and port as written in image references."""
        if self.port is None:
            return self.host
        return f"{self.host}:{self.port}"

    @property
    def scheme(self) -> str:
        if self.insecure or _is_local(self.host, self.port):
            return "http"
        return "https"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.name}"


# RFC 1918 ranges, reached over plain HTTP unless a scheme says otherwise.
PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)


def _is_local(host: str, port: Optional[int] = None) -> bool:
    # Bare "localhost" is treated like any other hostname; only localhost:<port> is local.
    if host == "localhost":
        return port is not None
    if host.endswith((".localhost", ".local")):
        return True
    try:
        ip = ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    if ip.is_loopback:
        return True
    return ip.version == 4 and any(ip in net for net in PRIVATE_NETWORKS)


def parse_registry(registry: str, insecure: bool = False) -> RegistryHandle:
    """Parse ``host[:port]`` into a registry handle.

    Args:
        registry: Registry address without scheme
        insecure: Reach the registry over plain HTTP

    Returns:
        RegistryHandle for the address

    Raises:
        InvalidRegistryError: If the address is empty or not host[:port]
    """
    if not registry or any(c.isspace() for c in registry):
        raise InvalidRegistryError(
            "registry address is empty or contains whitespace", registry
        )

    try:
        parts = urlsplit(f"//{registry}")
        port = parts.port
    except ValueError as e:
        raise InvalidRegistryError(f"invalid registry address: {e}", registry) from e

    if (
        not parts.hostname
        or parts.path
        or parts.query
        or parts.fragment
        or parts.username is not None
        or registry.endswith(":")
    ):
        raise InvalidRegistryError(
            "registry address must have the form host[:port]", registry
        )

    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    return RegistryHandle(host=host, port=port, insecure=insecure)


class ListSource(ABC):
    """Abstract base class for repository listing sources.

    Sources do not cache or filter; both belong to ``RepositoryList``.
    """

    def __init__(
        self,
        registry: str,
        insecure: bool = False,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize the source.

        Args:
            registry: Registry address as host[:port], scheme already stripped
            insecure: Use plain HTTP towards the registry
            page_size: Maximum number of entries requested per listing call
            timeout: Timeout in seconds for every outbound call
            client: Optional shared HTTP client, owned by the caller
        """
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.registry = registry
        self.insecure = insecure
        self.page_size = page_size
        self.timeout = timeout
        self._client = client

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return the source identifier (e.g., 'catalog')."""
        pass

    @abstractmethod
    def ping(self) -> None:
        """Check that the configured credentials are accepted.

        Raises:
            CredentialsError: If the credential exchange is rejected
            RetrievalError: If the exchange endpoint cannot be reached
        """
        pass

    @abstractmethod
    def retrieve(self) -> List[str]:
        """Retrieve all repository names, unfiltered, in registry order.

        Raises:
            InvalidRegistryError: If the registry address is malformed
            CredentialsError: If refreshing credentials fails
            RetrievalError: If the listing call fails
        """
        pass

    @contextmanager
    def session(self) -> Iterator[httpx.Client]:
        """Yield the shared client, or a short-lived one closed afterwards."""
        if self._client is not None:
            yield self._client
            return
        with httpx.Client(timeout=self.timeout) as client:
            yield client

    def __repr__(self) -> str:
        return f"{type(self).__name__}(registry={self.registry!r}, insecure={self.insecure})"
