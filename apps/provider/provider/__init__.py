"""GitHub App identity bootstrap and CI status synchronisation.

Public API:
    create_app_jwt(identity) -> SignedAppJWT
    InstallationResolver(client).resolve(app_jwt, target_repo) -> ResolvedInstallation
    StatusReporter(client, application_id).report(event, pac_opts, status)
"""
