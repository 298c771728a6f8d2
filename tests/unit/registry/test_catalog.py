"""Tests for the catalog listing source."""

import base64
from urllib.parse import parse_qs

import httpx
import pytest

from regmirror.auth import CallbackRefresher, Credentials
from regmirror.registry.base import AuthMode
from regmirror.registry.catalog import CatalogSource
from regmirror.registry.errors import (
    CredentialsError,
    InvalidRegistryError,
    RetrievalError,
)

REGISTRY = "registry.example.com:5000"
CHALLENGE = 'Bearer realm="https://auth.example.com/token",service="registry.example.com"'


def basic(username, password):
    return "Basic " + base64.b64encode(f"{username}:{password}".encode()).decode()


def catalog_response(*names):
    return httpx.Response(200, json={"repositories": list(names)})


class TestCatalogRetrieve:
    """Tests for CatalogSource.retrieve."""

    def test_basic_auth(self, make_client, credentials):
        """Test basic mode sends username and password."""
        seen = []

        def handler(request):
            seen.append(request)
            return catalog_response("a/b", "c/d")

        source = CatalogSource(REGISTRY, credentials, client=make_client(handler))
        assert source.retrieve() == ["a/b", "c/d"]

        request = seen[0]
        assert request.url.scheme == "https"
        assert request.url.host == "registry.example.com"
        assert request.url.port == 5000
        assert request.url.path == "/v2/_catalog"
        assert request.headers["Authorization"] == basic("bob", "s3cret")

    def test_bearer_auth(self, make_client):
        """Test bearer mode sends the password as token."""
        seen = []

        def handler(request):
            seen.append(request.headers.get("Authorization"))
            return catalog_response("a/b")

        creds = Credentials.from_token("tok-123")
        source = CatalogSource(
            REGISTRY, creds, auth_mode=AuthMode.BEARER, client=make_client(handler)
        )
        source.retrieve()

        assert seen == ["Bearer tok-123"]

    def test_anonymous(self, make_client):
        """Test empty credentials send no Authorization header."""
        seen = []

        def handler(request):
            seen.append("Authorization" in request.headers)
            return catalog_response()

        source = CatalogSource(REGISTRY, Credentials(), client=make_client(handler))
        assert source.retrieve() == []
        assert seen == [False]

    def test_page_size(self, make_client, credentials):
        """Test a single page bounded by page_size is requested."""
        seen = []

        def handler(request):
            seen.append(request.url.params["n"])
            return catalog_response("a/b")

        CatalogSource(REGISTRY, credentials, client=make_client(handler)).retrieve()
        CatalogSource(
            REGISTRY, credentials, page_size=25, client=make_client(handler)
        ).retrieve()

        assert seen == ["100", "25"]

    def test_insecure_uses_http(self, make_client, credentials):
        """Test insecure registries are listed over HTTP."""
        schemes = []

        def handler(request):
            schemes.append(request.url.scheme)
            return catalog_response()

        source = CatalogSource(
            REGISTRY, credentials, insecure=True, client=make_client(handler)
        )
        source.retrieve()

        assert schemes == ["http"]

    def test_private_address_uses_http(self, make_client, credentials):
        """Test RFC 1918 registries are listed over HTTP without a scheme."""
        urls = []

        def handler(request):
            urls.append(str(request.url))
            return catalog_response("a/b")

        source = CatalogSource("192.168.1.10:5000", credentials, client=make_client(handler))
        assert source.retrieve() == ["a/b"]

        assert urls == ["http://192.168.1.10:5000/v2/_catalog?n=100"]

    def test_order_preserved(self, make_client, credentials):
        """Test names come back in registry order, unsorted."""
        source = CatalogSource(
            REGISTRY,
            credentials,
            client=make_client(lambda r: catalog_response("z", "a", "m")),
        )
        assert source.retrieve() == ["z", "a", "m"]

    def test_null_repositories(self, make_client, credentials):
        """Test a null repository list is treated as empty."""
        source = CatalogSource(
            REGISTRY,
            credentials,
            client=make_client(lambda r: httpx.Response(200, json={"repositories": None})),
        )
        assert source.retrieve() == []

    def test_token_challenge(self, make_client, credentials):
        """Test a Bearer challenge is answered with a realm token."""
        token_requests = []

        def handler(request):
            if request.url.host == "auth.example.com":
                token_requests.append(request)
                return httpx.Response(200, json={"token": "realm-token"})
            if request.headers.get("Authorization") == "Bearer realm-token":
                return catalog_response("a/b")
            return httpx.Response(401, headers={"WWW-Authenticate": CHALLENGE})

        source = CatalogSource(REGISTRY, credentials, client=make_client(handler))
        assert source.retrieve() == ["a/b"]

        assert len(token_requests) == 1
        token_request = token_requests[0]
        assert token_request.url.params["scope"] == "registry:catalog:*"
        assert token_request.url.params["service"] == "registry.example.com"
        assert token_request.headers["Authorization"] == basic("bob", "s3cret")

    def test_token_challenge_rejected(self, make_client, credentials):
        """Test a failed token exchange surfaces as CredentialsError."""

        def handler(request):
            if request.url.host == "auth.example.com":
                return httpx.Response(401)
            return httpx.Response(401, headers={"WWW-Authenticate": CHALLENGE})

        source = CatalogSource(REGISTRY, credentials, client=make_client(handler))
        with pytest.raises(CredentialsError):
            source.retrieve()

    def test_unauthorized_without_challenge(self, make_client, credentials):
        """Test a plain 401 is a retrieval failure."""
        source = CatalogSource(
            REGISTRY, credentials, client=make_client(lambda r: httpx.Response(401))
        )
        with pytest.raises(RetrievalError):
            source.retrieve()

    def test_server_error(self, make_client, credentials):
        """Test non-2xx responses raise RetrievalError with the cause chained."""
        source = CatalogSource(
            REGISTRY, credentials, client=make_client(lambda r: httpx.Response(500))
        )
        with pytest.raises(RetrievalError) as exc_info:
            source.retrieve()

        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)
        assert exc_info.value.registry == REGISTRY

    def test_transport_error(self, make_client, credentials):
        """Test connection failures raise RetrievalError."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        source = CatalogSource(REGISTRY, credentials, client=make_client(handler))
        with pytest.raises(RetrievalError, match="connection refused"):
            source.retrieve()

    def test_invalid_json(self, make_client, credentials):
        """Test undecodable bodies raise RetrievalError."""
        source = CatalogSource(
            REGISTRY,
            credentials,
            client=make_client(lambda r: httpx.Response(200, content=b"<html>")),
        )
        with pytest.raises(RetrievalError):
            source.retrieve()

    def test_non_string_entries(self, make_client, credentials):
        """Test null or object catalog entries raise RetrievalError."""
        source = CatalogSource(
            REGISTRY,
            credentials,
            client=make_client(
                lambda r: httpx.Response(200, json={"repositories": ["a/b", None, {"x": 1}]})
            ),
        )
        with pytest.raises(RetrievalError, match="non-string"):
            source.retrieve()

    def test_unexpected_shape(self, make_client, credentials):
        """Test a non-object body raises RetrievalError."""
        source = CatalogSource(
            REGISTRY,
            credentials,
            client=make_client(lambda r: httpx.Response(200, json=["a/b"])),
        )
        with pytest.raises(RetrievalError):
            source.retrieve()

    def test_invalid_registry(self, make_client, credentials):
        """Test malformed addresses fail before any request."""
        calls = []

        def handler(request):
            calls.append(request)
            return catalog_response()

        source = CatalogSource(
            "registry.example.com/path", credentials, client=make_client(handler)
        )
        with pytest.raises(InvalidRegistryError):
            source.retrieve()
        assert calls == []

    def test_refreshes_credentials(self, make_client):
        """Test credentials are refreshed before listing."""
        seen = []

        def handler(request):
            seen.append(request.headers["Authorization"])
            return catalog_response()

        creds = Credentials(
            "bob", "old", refresher=CallbackRefresher(lambda: ("bob", "new"))
        )
        CatalogSource(REGISTRY, creds, client=make_client(handler)).retrieve()

        assert seen == [basic("bob", "new")]
        assert creds.password == "new"

    def test_refresh_failure(self, make_client):
        """Test refresh failures raise CredentialsError without listing."""
        calls = []

        def fail():
            raise RuntimeError("token service down")

        def handler(request):
            calls.append(request)
            return catalog_response()

        creds = Credentials("bob", "old", refresher=CallbackRefresher(fail))
        source = CatalogSource(REGISTRY, creds, client=make_client(handler))

        with pytest.raises(CredentialsError) as exc_info:
            source.retrieve()

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert calls == []


class TestCatalogPing:
    """Tests for CatalogSource.ping."""

    def test_valid_credentials(self, make_client, credentials):
        """Test a successful password grant."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"access_token": "abc", "token_type": "bearer"})

        source = CatalogSource(REGISTRY, credentials, client=make_client(handler))
        assert source.ping() is None

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == f"https://{REGISTRY}/token"
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["password"]
        assert form["username"] == ["bob"]
        assert form["password"] == ["s3cret"]

    def test_token_url_ignores_insecure(self, credentials):
        """Test the token endpoint is always HTTPS."""
        source = CatalogSource(REGISTRY, credentials, insecure=True)
        assert source.token_url == f"https://{REGISTRY}/token"

    def test_invalid_credentials(self, make_client, credentials):
        """Test a rejected grant raises CredentialsError."""
        source = CatalogSource(
            REGISTRY,
            credentials,
            client=make_client(lambda r: httpx.Response(401, json={"error": "invalid_grant"})),
        )
        with pytest.raises(CredentialsError, match="401"):
            source.ping()

    def test_missing_access_token(self, make_client, credentials):
        """Test a 200 without access_token raises CredentialsError."""
        source = CatalogSource(
            REGISTRY, credentials, client=make_client(lambda r: httpx.Response(200, json={}))
        )
        with pytest.raises(CredentialsError):
            source.ping()

    def test_network_failure(self, make_client, credentials):
        """Test unreachable token endpoints raise RetrievalError."""

        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        source = CatalogSource(REGISTRY, credentials, client=make_client(handler))
        with pytest.raises(RetrievalError):
            source.ping()

    def test_does_not_affect_listing(self, make_client, credentials):
        """Test ping leaves retrieval authenticating on its own."""
        auth_headers = []

        def handler(request):
            if request.url.path == "/token":
                return httpx.Response(200, json={"access_token": "abc"})
            auth_headers.append(request.headers["Authorization"])
            return catalog_response("a/b")

        source = CatalogSource(REGISTRY, credentials, client=make_client(handler))
        source.ping()
        source.retrieve()

        assert auth_headers == [basic("bob", "s3cret")]
