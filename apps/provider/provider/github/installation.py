"""Find the App installation that can see a given repository.

An App JWT can list installations but not their repositories. For each
installation we mint an installation token and check whether the target
repository is among the ones the client can access, stopping at the first
match.

See:
https://docs.github.com/en/apps/creating-github-apps/authenticating-with-a-github-app/authenticating-as-a-github-app-installation
https://docs.github.com/en/rest/apps/installations#list-repositories-accessible-to-the-app-installation
"""

import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from provider.errors import ProtocolError, TransportError
from provider.github.client import (
    INSTALLATION_URL,
    GitHubClient,
    enterprise_api_url,
    get_response,
)
from provider.github.types import (
    Installation,
    InstallationRecord,
    RepositorySpec,
    SignedAppJWT,
)

logger = logging.getLogger(__name__)

_INSTALLATION_LIST = TypeAdapter(list[InstallationRecord])


@dataclass
class ResolvedInstallation:
    """Outcome of a resolution.

    installation_id is 0 when no installation can see the repository;
    token then holds whatever token was minted last ("" if none).
    """

    enterprise_host: str
    token: str
    installation_id: int
    installation: Optional[Installation] = None

    @property
    def matched(self) -> bool:
        return self.installation_id != 0


class InstallationResolver:
    """Resolves the installation (and its token) for a target repository.

    Args:
        client: Client whose identity is switched to each installation
            token in turn; its repository listing is what gets matched.
        namespace: Scope under which minted installation tokens belong.
    """

    def __init__(self, client: GitHubClient, namespace: str = ""):
        self._client = client
        self._namespace = namespace

    def installations_url(self, enterprise_host: str) -> str:
        if enterprise_host:
            # The enterprise API may live on another host than the client's
            # API base; the header is authoritative.
            return enterprise_api_url(enterprise_host) + INSTALLATION_URL
        return self._client.api_url + INSTALLATION_URL

    async def list_installations(
        self, app_jwt: SignedAppJWT, enterprise_host: str = ""
    ) -> list[Installation]:
        """List every installation of the App, in response order.

        Raises:
            TransportError: The listing answered with a status >= 300.
            ProtocolError: The body is not a list of installations, or an
                installation has a null ID.
        """
        url = self.installations_url(enterprise_host)
        response = await get_response(self._client.http, "GET", url, app_jwt.token)
        if response.status_code >= 300:
            raise TransportError(url, response.status_code, "while getting installation URL")

        try:
            records = _INSTALLATION_LIST.validate_python(response.json())
        except (ValidationError, ValueError) as exc:
            raise ProtocolError(f"cannot decode installation list from {url}: {exc}") from exc

        installations = []
        for record in records:
            if record.id is None:
                raise ProtocolError("installation ID is nil")
            account_login = record.account.login if record.account else ""
            installations.append(Installation(id=record.id, account_login=account_login))
        return installations

    async def exchange_token(
        self, app_jwt: SignedAppJWT, enterprise_host: str, installation: Installation
    ) -> Optional[str]:
        """Mint a token for *installation*; None for the zero installation ID."""
        if installation.id == 0:
            return None
        return await self._client.get_app_token(
            app_jwt, enterprise_host, installation.id, self._namespace
        )

    async def resolve(
        self,
        app_jwt: SignedAppJWT,
        target_repo: RepositorySpec,
        enterprise_host: Optional[str] = None,
    ) -> ResolvedInstallation:
        """Return the first installation whose repositories include *target_repo*.

        The repository list is fetched once, after the first token
        exchange, and reused for every later installation. It is checked
        even for an installation whose token exchange was skipped.

        No match is not an error: the result carries installation_id 0.
        """
        enterprise_host = enterprise_host or ""
        installations = await self.list_installations(app_jwt, enterprise_host)

        token = ""
        repo_urls: Optional[list[str]] = None
        for installation in installations:
            minted = await self.exchange_token(app_jwt, enterprise_host, installation)
            if minted is not None:
                token = minted

            if repo_urls is None:
                repo_urls = await self._client.list_repos()

            if target_repo.url in repo_urls:
                installation.accessible_repo_urls = tuple(repo_urls)
                logger.info(
                    "Repository %s matched installation %s (%s)",
                    target_repo.url, installation.id, installation.account_login,
                )
                return ResolvedInstallation(
                    enterprise_host=enterprise_host,
                    token=token,
                    installation_id=installation.id,
                    installation=installation,
                )

        logger.warning(
            "No installation of the App can access %s (%d checked)",
            target_repo.url, len(installations),
        )
        return ResolvedInstallation(enterprise_host=enterprise_host, token=token, installation_id=0)
