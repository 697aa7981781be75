"""GitHub REST client bound to one identity.

Wraps an httpx.AsyncClient. The identity is either an installation token
(App mode) or a personal/OAuth token (classic mode); it can be swapped
once an installation token has been minted. Every call is single-shot:
retries and backoff, if any, belong to the transport handed in.

Any response with a status >= 300 raises TransportError. Network errors
from httpx and task cancellation propagate unchanged.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

import httpx

from provider.errors import NotAuthenticatedError, ProtocolError, TransportError
from provider.github.types import CheckRunList, SignedAppJWT

if TYPE_CHECKING:
    from provider.github.checkrun_cache import CheckRunCache

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
INSTALLATION_URL = "/app/installations"
API_VERSION = "2022-11-28"
ENTERPRISE_HOST_HEADER = "X-GitHub-Enterprise-Host"

PER_PAGE = 100


def enterprise_api_url(enterprise_host: str) -> str:
    """API base for a GitHub Enterprise Server host."""
    return f"https://{enterprise_host}/api/v3"


def enterprise_host_from_headers(headers: Mapping[str, str]) -> str:
    """Return the X-GitHub-Enterprise-Host value, or "" when absent.

    Header names are matched case-insensitively so plain dicts work as
    well as httpx/starlette header objects.
    """
    wanted = ENTERPRISE_HOST_HEADER.lower()
    for name, value in headers.items():
        if name.lower() == wanted:
            return value
    return ""


def format_timestamp(moment: Optional[datetime] = None) -> str:
    """Render *moment* (default: now) the way the GitHub API expects."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _auth_headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": API_VERSION,
    }


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("message")
    return None


async def get_response(
    http: httpx.AsyncClient,
    method: str,
    url: str,
    jwt_token: str,
) -> httpx.Response:
    """Send a JWT-authenticated request and return the raw response.

    The status code is not checked; callers apply their own rule.
    """
    return await http.request(method, url, headers=_auth_headers(jwt_token))


class GitHubClient:
    """Thin async GitHub REST client.

    Usage:
        async with GitHubClient(token=token) as client:
            await client.create_status("org", "repo", sha, {...})
    """

    def __init__(
        self,
        api_url: str = GITHUB_API_BASE,
        token: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))
        # Pipeline run name -> check-run ID, shared by every reporter on this
        # client. Attached lazily by CheckRunCache.for_client.
        self.check_run_ids: Optional["CheckRunCache"] = None

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.api_url}{path}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        """Send an authenticated request and enforce the status rule.

        Raises:
            NotAuthenticatedError: Neither *token* nor a client token is set.
            TransportError: The API answered with a status >= 300.
        """
        bearer = token or self.token
        if not bearer:
            raise NotAuthenticatedError("cannot call GitHub: no token set")

        url = self._url(path)
        response = await self._http.request(
            method,
            url,
            headers=_auth_headers(bearer),
            json=json,
            params=params,
        )
        if response.status_code >= 300:
            raise TransportError(url, response.status_code, _error_message(response))
        return response

    # ------------------------------------------------------------------
    # App / installation
    # ------------------------------------------------------------------

    async def get_app_token(
        self,
        app_jwt: SignedAppJWT,
        enterprise_host: str,
        installation_id: int,
        namespace: str,
    ) -> str:
        """Exchange an App JWT for an installation token and adopt it.

        After this call the client talks to the installation's API base
        (the enterprise host when one is given) as that installation.
        *namespace* scopes where the credential belongs; it is only used
        for log context here.
        """
        api_url = enterprise_api_url(enterprise_host) if enterprise_host else self.api_url
        response = await self.request(
            "POST",
            f"{api_url}{INSTALLATION_URL}/{installation_id}/access_tokens",
            token=app_jwt.token,
        )
        token = response.json().get("token")
        if not token:
            raise ProtocolError(
                f"installation token response for {installation_id} has no token"
            )

        self.api_url = api_url
        self.token = token
        logger.info(
            "Obtained installation token for %s (namespace=%s)",
            installation_id, namespace,
        )
        return token

    async def list_repos(self) -> list[str]:
        """Return the HTML URL of every repo the current identity can access.

        Pages through /installation/repositories until a short page.
        """
        urls: list[str] = []
        page = 1
        while True:
            response = await self.request(
                "GET",
                "/installation/repositories",
                params={"per_page": PER_PAGE, "page": page},
            )
            repos = response.json().get("repositories", [])
            urls.extend(repo["html_url"] for repo in repos)
            if len(repos) < PER_PAGE:
                break
            page += 1

        logger.debug("Listed %d repositories for installation", len(urls))
        return urls

    # ------------------------------------------------------------------
    # Checks / statuses / comments
    # ------------------------------------------------------------------

    async def list_check_runs_for_ref(
        self, org: str, repo: str, sha: str, app_id: int
    ) -> CheckRunList:
        """Return every check run *app_id* made on *sha*, across all pages."""
        result = CheckRunList()
        page = 1
        while True:
            response = await self.request(
                "GET",
                f"/repos/{org}/{repo}/commits/{sha}/check-runs",
                params={"app_id": app_id, "per_page": PER_PAGE, "page": page},
            )
            batch = CheckRunList.model_validate(response.json())
            result.total_count = batch.total_count
            result.check_runs.extend(batch.check_runs)
            if (
                len(batch.check_runs) < PER_PAGE
                or len(result.check_runs) >= batch.total_count
            ):
                break
            page += 1
        return result

    async def create_check_run(self, org: str, repo: str, payload: dict) -> dict:
        response = await self.request("POST", f"/repos/{org}/{repo}/check-runs", json=payload)
        return response.json()

    async def update_check_run(
        self, org: str, repo: str, check_run_id: int, payload: dict
    ) -> dict:
        response = await self.request(
            "PATCH", f"/repos/{org}/{repo}/check-runs/{check_run_id}", json=payload
        )
        return response.json()

    async def create_status(self, org: str, repo: str, sha: str, payload: dict) -> dict:
        response = await self.request("POST", f"/repos/{org}/{repo}/statuses/{sha}", json=payload)
        return response.json()

    async def create_comment(self, org: str, repo: str, number: int, body: str) -> dict:
        response = await self.request(
            "POST", f"/repos/{org}/{repo}/issues/{number}/comments", json={"body": body}
        )
        return response.json()
