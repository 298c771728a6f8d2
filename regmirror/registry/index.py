"""Listing through the Docker Hub index API.

Docker Hub does not expose the registry catalog API. Repositories are
enumerated per namespace through ``hub.docker.com``, which issues its own
tokens. Those are unrelated to the tokens used for push and pull, so the
source works on its own copy of the credentials.
"""

from typing import Any, Dict, List, Optional

import httpx

from ..auth import Credentials
from ..common.logger import get_logger
from .base import DEFAULT_PAGE_SIZE, DEFAULT_TIMEOUT, ListSource, parse_registry
from .errors import CredentialsError, RetrievalError

logger = get_logger("index_source")

DOCKERHUB_REGISTRY = "registry.hub.docker.com"
DOCKERHUB_API = "https://hub.docker.com/v2"


class IndexSource(ListSource):
    """Repository listing via the Docker Hub index API.

    The index API is always reached over HTTPS at ``api_url``. The
    ``insecure`` flag is kept for parity with the catalog source only.
    """

    def __init__(
        self,
        registry: str,
        credentials: Credentials,
        insecure: bool = False,
        namespace: Optional[str] = None,
        api_url: str = DOCKERHUB_API,
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
        self.namespace = namespace
        self.api_url = api_url.rstrip("/")

    @property
    def source_name(self) -> str:
        return "index"

    def ping(self) -> None:
        with self.session() as client:
            self._login(client)

    def retrieve(self) -> List[str]:
        parse_registry(self.registry, insecure=self.insecure)

        try:
            self.credentials.refresh()
        except Exception as e:
            raise CredentialsError(f"refreshing credentials failed: {e}", self.registry) from e

        namespace = self.namespace or self.credentials.username
        if not namespace:
            raise CredentialsError(
                "listing Docker Hub repositories needs a namespace or username",
                self.registry,
            )

        with self.session() as client:
            token = self._login(client)
            return self._list(client, namespace, token)

    def _login(self, client: httpx.Client) -> str:
        """Exchange username and password for an index API token."""
        url = f"{self.api_url}/users/login"
        body = {
            "username": self.credentials.username,
            "password": self.credentials.password,
        }
        try:
            response = client.post(url, json=body)
        except httpx.HTTPError as e:
            raise RetrievalError(f"index login failed: {e}", self.registry) from e

        if response.is_error:
            raise CredentialsError(
                f"index login rejected with status {response.status_code}",
                self.registry,
            )
        try:
            token = response.json().get("token")
        except (ValueError, AttributeError) as e:
            raise CredentialsError(
                f"index login response is not a JSON object: {e}", self.registry
            ) from e
        if not token:
            raise CredentialsError("index login response is missing token", self.registry)
        return token

    def _list(self, client: httpx.Client, namespace: str, token: str) -> List[str]:
        headers = {"Authorization": f"Bearer {token}"}
        url: Optional[str] = f"{self.api_url}/repositories/{namespace}/"
        params: Optional[Dict[str, Any]] = {"page_size": self.page_size}
        names: List[str] = []
        seen = set()

        while url:
            if url in seen:
                raise RetrievalError(f"index pagination loops at {url}", self.registry)
            seen.add(url)

            page = self._get_page(client, url, params, headers)
            for item in page.get("results") or []:
                names.append(f"{item.get('namespace') or namespace}/{item['name']}")

            url = page.get("next")
            # the next link already carries the query
            params = None

        logger.debug(f"index lists {len(names)} repositories for {namespace}")
        return names

    def _get_page(
        self,
        client: httpx.Client,
        url: str,
        params: Optional[Dict[str, Any]],
        headers: Dict[str, str],
    ) -> Dict[str, Any]:
        try:
            response = client.get(url, params=params, headers=headers)
            response.raise_for_status()
            page = response.json()
        except httpx.HTTPError as e:
            raise RetrievalError(f"index request failed: {e}", self.registry) from e
        except ValueError as e:
            raise RetrievalError(f"index response is not JSON: {e}", self.registry) from e

        if not isinstance(page, dict):
            raise RetrievalError("index response is not a JSON object", self.registry)
        results = page.get("results")
        if results is not None and not (
            isinstance(results, list)
            and all(isinstance(item, dict) and "name" in item for item in results)
        ):
            raise RetrievalError("index response has malformed results", self.registry)
        return page
