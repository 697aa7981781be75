"""Shared fixtures for the provider test suite.

HTTP is faked at the httpx.AsyncClient.request level: FakeGitHubAPI routes
(method, URL) pairs to canned MagicMock responses and records every call,
so tests run without network access.
"""

import asyncio
from typing import Any, Callable, Optional, Union
from unittest.mock import MagicMock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from provider.github.client import GitHubClient

API = "https://api.github.com"
TEST_APP_ID = 4242


def _generate_test_private_key() -> bytes:
    """Generate a valid RSA private key for testing."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )


TEST_PRIVATE_KEY = _generate_test_private_key()


def make_response(status_code: int, json_data: Any = None) -> MagicMock:
    """Build a minimal mock httpx.Response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = json_data if json_data is not None else {}
    return resp


Handler = Union[MagicMock, Callable[..., MagicMock]]


class FakeGitHubAPI:
    """Stand-in for httpx.AsyncClient with per-route canned responses."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.calls: list[dict] = []

    def add(
        self,
        method: str,
        url: str,
        status_code: int = 200,
        json_data: Any = None,
        handler: Optional[Callable[..., MagicMock]] = None,
    ) -> None:
        self.routes[(method, url)] = handler or make_response(status_code, json_data)

    def calls_to(self, method: str, url: str) -> list[dict]:
        return [c for c in self.calls if c["method"] == method and c["url"] == url]

    async def request(self, method, url, headers=None, json=None, params=None):
        self.calls.append(
            {"method": method, "url": url, "headers": headers, "json": json, "params": params}
        )
        # Yield so concurrent callers interleave the way real I/O would.
        await asyncio.sleep(0)
        route = self.routes.get((method, url))
        if route is None:
            return make_response(404, {"message": "Not Found"})
        if callable(route) and not isinstance(route, MagicMock):
            return route(json=json, params=params)
        return route

    async def aclose(self) -> None:
        pass


@pytest.fixture
def github_api() -> FakeGitHubAPI:
    return FakeGitHubAPI()


@pytest.fixture
def client(github_api: FakeGitHubAPI) -> GitHubClient:
    """Client authenticated with a dummy installation token."""
    return GitHubClient(api_url=API, token="ghs_test", http=github_api)
