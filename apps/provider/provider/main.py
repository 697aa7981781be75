"""Wiring for the GitHub provider.

The webhook server that calls into this package is not part of it; these
helpers are what it uses to turn configuration into ready-to-use objects.
"""

from collections.abc import Mapping
from typing import Optional

import httpx

from provider.core.config import Settings, get_settings
from provider.core.logging import configure_structlog
from provider.core.sentry import init_sentry
from provider.github.auth import create_app_jwt
from provider.github.client import GitHubClient, enterprise_host_from_headers
from provider.github.installation import InstallationResolver, ResolvedInstallation
from provider.github.status import StatusReporter
from provider.github.types import AppIdentity, PacOpts, RepositorySpec


def configure(settings: Optional[Settings] = None) -> Settings:
    """Set up logging and error reporting once per process."""
    settings = settings or get_settings()
    configure_structlog(debug=settings.debug)
    init_sentry(
        dsn=settings.sentry_dsn,
        environment="development" if settings.debug else "production",
    )
    return settings


def create_client(
    settings: Settings,
    token: Optional[str] = None,
    http: Optional[httpx.AsyncClient] = None,
) -> GitHubClient:
    return GitHubClient(
        api_url=settings.github_api_url,
        token=token,
        http=http,
        timeout=settings.http_timeout_seconds,
    )


def create_reporter(settings: Settings, client: GitHubClient) -> StatusReporter:
    """Build a reporter for *client*, scoped to the configured App.

    Cheap to call per event: the check-run cache lives on *client*.
    """
    return StatusReporter(client, application_id=settings.github_app_id)


def create_pac_opts(settings: Settings) -> PacOpts:
    return PacOpts.from_settings(settings)


async def resolve_installation(
    settings: Settings,
    client: GitHubClient,
    target_repo: RepositorySpec,
    headers: Optional[Mapping[str, str]] = None,
) -> ResolvedInstallation:
    """Sign an App JWT from *settings* and resolve the installation for *target_repo*.

    On a match, *client* is left authenticated as that installation, so it
    can be handed straight to create_reporter.
    """
    identity = AppIdentity.from_settings(settings)
    app_jwt = create_app_jwt(identity)
    enterprise_host = enterprise_host_from_headers(headers or {})

    resolver = InstallationResolver(client, namespace=settings.namespace)
    return await resolver.resolve(app_jwt, target_repo, enterprise_host)
