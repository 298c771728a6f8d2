"""HTTP authentication for registry listing calls.

Registries running the Docker token protocol answer an unauthenticated
or basic-authenticated request with ``401`` and a challenge such as::

    WWW-Authenticate: Bearer realm="https://auth.example.com/token",service="registry"

``RegistryAuth`` handles that exchange inside httpx's auth flow, so the
sources only ever see the final response.
"""

import base64
import re
from typing import Dict, Generator, Optional

import httpx

from ..common.logger import get_logger
from .base import AuthMode

logger = get_logger("registry_auth")

CATALOG_SCOPE = "registry:catalog:*"

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


class TokenExchangeError(Exception):
    """The registry's token service did not hand out a token."""


def basic_header(username: str, password: str) -> str:
    encoded = base64.b64encode(f"{username}:{password}".encode()).decode()
    return f"Basic {encoded}"


def parse_challenge(header: str) -> Optional[Dict[str, str]]:
    """Parse a Bearer ``WWW-Authenticate`` header.

    Returns:
        Dict with at least ``realm``, or None for other schemes
    """
    if not header or not header.lower().startswith("bearer "):
        return None
    params = dict(_CHALLENGE_PARAM.findall(header[len("bearer "):]))
    if "realm" not in params:
        return None
    return params


class RegistryAuth(httpx.Auth):
    """Basic or Bearer authentication with token challenge handling.

    In bearer mode the password is sent as the token and challenges are
    not followed. In basic mode a Bearer challenge is answered by fetching
    a token from the realm with the basic credentials (or anonymously when
    there are none) and replaying the request once.
    """

    requires_response_body = True

    def __init__(
        self,
        mode: AuthMode,
        username: str,
        password: str,
        scope: str = CATALOG_SCOPE,
    ):
        self.mode = mode
        self.username = username
        self.password = password
        self.scope = scope

    def _header(self) -> Optional[str]:
        if self.mode is AuthMode.BEARER:
            return f"Bearer {self.password}" if self.password else None
        if self.username or self.password:
            return basic_header(self.username, self.password)
        return None

    def auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        header = self._header()
        if header:
            request.headers["Authorization"] = header

        response = yield request

        if response.status_code != 401 or self.mode is AuthMode.BEARER:
            return

        challenge = parse_challenge(response.headers.get("WWW-Authenticate", ""))
        if challenge is None:
            return

        logger.debug(f"following token challenge from {challenge['realm']}")
        token_response = yield self._token_request(challenge)
        request.headers["Authorization"] = f"Bearer {self._token(token_response)}"
        yield request

    def _token_request(self, challenge: Dict[str, str]) -> httpx.Request:
        params = {"scope": challenge.get("scope") or self.scope}
        if challenge.get("service"):
            params["service"] = challenge["service"]
        headers = {}
        if self.username or self.password:
            headers["Authorization"] = basic_header(self.username, self.password)
        return httpx.Request("GET", challenge["realm"], params=params, headers=headers)

    @staticmethod
    def _token(response: httpx.Response) -> str:
        if response.status_code != 200:
            raise TokenExchangeError(
                f"token request to {response.request.url} failed "
                f"with status {response.status_code}"
            )
        try:
            data = response.json()
        except ValueError as e:
            raise TokenExchangeError(f"token response is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise TokenExchangeError("token response is not a JSON object")
        token = data.get("token") or data.get("access_token")
        if not token:
            raise TokenExchangeError("token response carries no token")
        return token
