"""Configuration management for regmirror.

Handles loading of YAML configuration files and parsing them into typed
settings for repository listing.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import yaml

from ..auth import Credentials
from ..registry.base import DEFAULT_PAGE_SIZE, DEFAULT_TIMEOUT, AuthMode
from ..registry.repolist import DEFAULT_CACHE_TTL, RepositoryList
from .logger import DEFAULT_LOG_DIR

DEFAULT_CONFIG_PATH = "/etc/regmirror/config.yaml"


@dataclass
class LoggingConfig:
    """Configuration for log output."""

    level: str = "INFO"
    log_dir: str = DEFAULT_LOG_DIR
    file_logging: bool = True


@dataclass
class ListingConfig:
    """Tunables shared by all repository lists."""

    page_size: int = DEFAULT_PAGE_SIZE
    cache_ttl: int = int(DEFAULT_CACHE_TTL.total_seconds())  # seconds
    timeout: float = DEFAULT_TIMEOUT


@dataclass
class RegistryListConfig:
    """Configuration for a single registry to list."""

    name: str
    registry: str
    filter: str = ".*"
    auth_mode: AuthMode = AuthMode.BASIC
    username: str = ""
    password: str = ""
    auth: Optional[str] = None  # base64 auth string, overrides username/password
    namespace: Optional[str] = None  # Docker Hub namespace, defaults to username


@dataclass
class RegMirrorConfig:
    """Top-level configuration for regmirror."""

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    listing: ListingConfig = field(default_factory=ListingConfig)
    registries: List[RegistryListConfig] = field(default_factory=list)


def parse_logging_config(logging_dict: Dict[str, Any]) -> LoggingConfig:
    """Parse a logging configuration dictionary.

    Args:
        logging_dict: Logging configuration dictionary

    Returns:
        LoggingConfig instance
    """
    return LoggingConfig(
        level=str(logging_dict.get("level", "INFO")),
        log_dir=logging_dict.get("dir", DEFAULT_LOG_DIR),
        file_logging=bool(logging_dict.get("file_logging", True)),
    )


def parse_listing_config(listing_dict: Dict[str, Any]) -> ListingConfig:
    """Parse listing tunables.

    Args:
        listing_dict: Listing configuration dictionary

    Returns:
        ListingConfig instance

    Raises:
        ValueError: If a tunable is not positive
    """
    config = ListingConfig(
        page_size=int(listing_dict.get("page_size", DEFAULT_PAGE_SIZE)),
        cache_ttl=int(
            listing_dict.get("cache_ttl", DEFAULT_CACHE_TTL.total_seconds())
        ),
        timeout=float(listing_dict.get("timeout", DEFAULT_TIMEOUT)),
    )
    for key in ("page_size", "cache_ttl", "timeout"):
        if getattr(config, key) <= 0:
            raise ValueError(f"listing.{key} must be positive")
    return config


def parse_registry_config(registry_dict: Dict[str, Any]) -> RegistryListConfig:
    """Parse a registry configuration dictionary.

    Args:
        registry_dict: Registry configuration dictionary

    Returns:
        RegistryListConfig instance

    Raises:
        ValueError: If the registry address is missing or auth_mode unknown
    """
    registry = registry_dict.get("registry", "")
    if not registry:
        raise ValueError("registry entry is missing 'registry'")

    auth = registry_dict.get("auth")
    namespace = registry_dict.get("namespace")

    return RegistryListConfig(
        name=registry_dict.get("name", registry),
        registry=registry,
        filter=str(registry_dict.get("filter", ".*")),
        auth_mode=AuthMode.parse(registry_dict.get("auth_mode")),
        username=str(registry_dict.get("username", "")),
        password=str(registry_dict.get("password", "")),
        auth=None if auth is None else str(auth),
        namespace=None if namespace is None else str(namespace),
    )


def parse_config(config_dict: Dict[str, Any]) -> RegMirrorConfig:
    """Parse the full configuration dictionary.

    Args:
        config_dict: Full configuration dictionary

    Returns:
        RegMirrorConfig instance
    """
    return RegMirrorConfig(
        logging=parse_logging_config(config_dict.get("logging") or {}),
        listing=parse_listing_config(config_dict.get("listing") or {}),
        registries=[
            parse_registry_config(r) for r in config_dict.get("registries") or []
        ],
    )


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise TypeError(
            f"Configuration root must be a mapping, got {type(config).__name__}"
        )

    return _expand_env_vars(config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration.

    Args:
        obj: Configuration object (dict, list, str, etc.)

    Returns:
        Configuration with expanded environment variables
    """
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def load_typed_config(config_path: str = DEFAULT_CONFIG_PATH) -> RegMirrorConfig:
    """Load and parse configuration into typed dataclasses.

    Args:
        config_path: Path to configuration file

    Returns:
        RegMirrorConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    return parse_config(load_config(config_path))


def build_credentials(registry_config: RegistryListConfig) -> Credentials:
    """Create credentials for a registry entry.

    Raises:
        ValueError: If the auth string cannot be decoded
    """
    if registry_config.auth:
        return Credentials.from_auth(registry_config.auth)
    return Credentials.from_basic(registry_config.username, registry_config.password)


def build_repo_list(
    registry_config: RegistryListConfig,
    listing_config: Optional[ListingConfig] = None,
    credentials: Optional[Credentials] = None,
    client: Optional[httpx.Client] = None,
) -> RepositoryList:
    """Create the repository list described by a registry entry.

    Args:
        registry_config: Parsed registry entry
        listing_config: Listing tunables, defaults if None
        credentials: Credentials shared with image transfer, built from
            the entry if None
        client: Optional HTTP client

    Returns:
        RepositoryList instance

    Raises:
        InvalidPatternError: If the entry's filter does not compile
    """
    listing = listing_config or ListingConfig()
    return RepositoryList(
        registry_config.registry,
        registry_config.filter,
        credentials or build_credentials(registry_config),
        auth_mode=registry_config.auth_mode,
        namespace=registry_config.namespace,
        page_size=listing.page_size,
        cache_ttl=timedelta(seconds=listing.cache_ttl),
        timeout=listing.timeout,
        client=client,
    )
