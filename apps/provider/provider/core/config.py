from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _normalise_private_key(value: str) -> str:
    """Turn literal ``\\n`` sequences into newlines.

    Secret stores and ``.env`` files often flatten the PEM onto one line.
    PyJWT needs the real line breaks to find the PEM armour.
    """
    if "\\n" in value:
        return value.replace("\\n", "\n")
    return value


class Settings(BaseSettings):
    """Provider settings loaded from environment variables.

    The App ID and private key are normally injected by the secret store
    that fronts this service; they are read here as opaque values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # GitHub App identity. Private key is the PEM contents (not a file path).
    github_app_id: int = 0
    github_private_key: str = ""

    @field_validator("github_private_key", mode="before")
    @classmethod
    def normalise_private_key(cls, v: str) -> str:
        return _normalise_private_key(v)

    # Public API base; GitHub Enterprise hosts are switched per request
    # from the X-GitHub-Enterprise-Host header.
    github_api_url: str = "https://api.github.com"

    # Namespace that scopes secret and installation-token storage.
    namespace: str = "pipelines-as-code"

    # Shown as the check-run name and as the commit-status context.
    application_name: str = "Pipelines as Code CI"
    log_url: str = ""

    # Upper bound for every outbound GitHub call.
    http_timeout_seconds: float = 30.0

    # Sentry: leave blank to disable error capture.
    sentry_dsn: str = ""

    debug: bool = True


def get_settings() -> Settings:
    return Settings()
