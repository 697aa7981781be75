"""GitHub provider: App authentication, installation lookup and status writes.

Public API:
    create_app_jwt(identity, now) -> SignedAppJWT
    InstallationResolver(client).resolve(app_jwt, target_repo, enterprise_host)
    CheckRunCache.for_client(client)
    StatusReporter(client, application_id).report(event, pac_opts, status)
"""

from provider.github.auth import create_app_jwt
from provider.github.checkrun_cache import CheckRunCache
from provider.github.client import GitHubClient
from provider.github.installation import InstallationResolver, ResolvedInstallation
from provider.github.status import StatusReporter

__all__ = [
    "CheckRunCache",
    "GitHubClient",
    "InstallationResolver",
    "ResolvedInstallation",
    "StatusReporter",
    "create_app_jwt",
]
