"""Listing through the generic registry catalog API (``/v2/_catalog``)."""

from typing import List, Optional

import httpx

from ..auth import Credentials
from ..common.logger import get_logger
from .httpauth import RegistryAuth, TokenExchangeError
from .base import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_TIMEOUT,
    AuthMode,
    ListSource,
    parse_registry,
)
from .errors import CredentialsError, RetrievalError

logger = get_logger("catalog_source")


class CatalogSource(ListSource):
    """Repository listing via the registry catalog API.

    Catalog listing and image push/pull share one token domain, so the
    source holds the same ``Credentials`` object as the rest of the
    pipeline for this registry.

    Only the first page of the catalog is requested. Registries holding
    more than ``page_size`` repositories yield a truncated list.
    """

    def __init__(
        self,
        registry: str,
        credentials: Credentials,
        insecure: bool = False,
        auth_mode: AuthMode = AuthMode.BASIC,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        super().__init__(
            registry,
            insecure=insecure,
            page_size=page_size,
            timeout=timeout,
            client=client,
        )
        self.credentials = credentials
        self.auth_mode = auth_mode

    @property
    def source_name(self) -> str:
        return "catalog"

    @property
    def token_url(self) -> str:
        return f"https://{self.registry}/token"

    def ping(self) -> None:
        """Exchange username and password for a token (OAuth2 password grant).

        The token is not kept. ``retrieve`` authenticates on its own.
        """
        data = {
            "grant_type": "password",
            "username": self.credentials.username,
            "password": self.credentials.password,
            "client_id": self.credentials.username,
        }
        try:
            with self.session() as client:
                response = client.post(self.token_url, data=data)
        except httpx.HTTPError as e:
            raise RetrievalError(f"token request failed: {e}", self.registry) from e

        if response.is_error:
            raise CredentialsError(
                f"token request rejected with status {response.status_code}",
                self.registry,
            )
        try:
            token = response.json().get("access_token")
        except (ValueError, AttributeError) as e:
            raise CredentialsError(
                f"token response is not a JSON object: {e}", self.registry
            ) from e
        if not token:
            raise CredentialsError("token response is missing access_token", self.registry)

        logger.debug(f"token exchange with {self.token_url} succeeded")

    def retrieve(self) -> List[str]:
        handle = parse_registry(self.registry, insecure=self.insecure)

        try:
            self.credentials.refresh()
        except Exception as e:
            raise CredentialsError(f"refreshing credentials failed: {e}", self.registry) from e

        auth = RegistryAuth(
            self.auth_mode, self.credentials.username, self.credentials.password
        )
        url = f"{handle.base_url}/v2/_catalog"

        try:
            with self.session() as client:
                response = client.get(url, params={"n": self.page_size}, auth=auth)
                response.raise_for_status()
                payload = response.json()
        except TokenExchangeError as e:
            raise CredentialsError(str(e), self.registry) from e
        except httpx.HTTPError as e:
            raise RetrievalError(f"catalog request failed: {e}", self.registry) from e
        except ValueError as e:
            raise RetrievalError(f"catalog response is not JSON: {e}", self.registry) from e

        if not isinstance(payload, dict):
            raise RetrievalError("catalog response is not a JSON object", self.registry)

        repositories = payload.get("repositories") or []
        if not isinstance(repositories, list):
            raise RetrievalError("catalog 'repositories' is not a list", self.registry)
        if not all(isinstance(r, str) for r in repositories):
            raise RetrievalError(
                "catalog 'repositories' holds non-string entries", self.registry
            )

        logger.debug(f"catalog of {self.registry} lists {len(repositories)} repositories")
        return list(repositories)
