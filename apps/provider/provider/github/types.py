"""Shared types for the GitHub provider.

Dataclasses describe values that live inside this process. The pydantic
models at the bottom describe the subset of GitHub responses we parse;
they ignore every field we do not read.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from provider.core.config import Settings

# Check-run lifecycle values
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"

# Conclusions. "pending" only exists on the commit-status API; an empty
# string means the run has not concluded yet.
CONCLUSION_SUCCESS = "success"
CONCLUSION_FAILURE = "failure"
CONCLUSION_SKIPPED = "skipped"
CONCLUSION_NEUTRAL = "neutral"
CONCLUSION_PENDING = "pending"

EVENT_PULL_REQUEST = "pull_request"


@dataclass(frozen=True)
class AppIdentity:
    """GitHub App ID plus the PEM private key used to sign App JWTs."""

    application_id: int
    private_key_pem: bytes

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppIdentity":
        if not settings.github_app_id or not settings.github_private_key:
            raise ValueError(
                "GitHub App credentials not configured. "
                "Set GITHUB_APP_ID and GITHUB_PRIVATE_KEY."
            )
        return cls(
            application_id=settings.github_app_id,
            private_key_pem=settings.github_private_key.encode(),
        )


@dataclass(frozen=True)
class SignedAppJWT:
    """A signed App JWT. Short-lived; never persisted."""

    token: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class RepositorySpec:
    """The repository we are looking for, by its HTML URL."""

    url: str


@dataclass
class Installation:
    id: int
    account_login: str = ""
    accessible_repo_urls: tuple[str, ...] = ()


@dataclass
class PacOpts:
    """Per-deployment options that shape how statuses are displayed."""

    application_name: str = ""
    log_url: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> "PacOpts":
        return cls(application_name=settings.application_name, log_url=settings.log_url)


@dataclass
class Event:
    """The triggering event a pipeline run reports against.

    info_from_repo is set when status information must come from the
    commit itself rather than from an App-scoped check run, i.e. when the
    client authenticates without an App installation token.
    """

    organization: str
    repository: str
    sha: str
    event_type: str = ""
    pull_request_number: int = 0
    info_from_repo: bool = False


@dataclass
class StatusOpts:
    """One status write for one pipeline run."""

    pipeline_run_name: str
    status: str
    original_pipeline_run_name: str = ""
    conclusion: str = ""
    title: str = ""
    summary: str = ""
    text: str = ""
    details_url: str = ""


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------


class InstallationAccount(BaseModel):
    login: str = ""


class InstallationRecord(BaseModel):
    """One element of ``GET /app/installations``.

    ``id`` is optional here so that a null ID can be detected and rejected
    instead of failing deep inside validation.
    """

    id: Optional[int] = None
    account: Optional[InstallationAccount] = None


class CheckRunRecord(BaseModel):
    id: int
    external_id: Optional[str] = None


class CheckRunList(BaseModel):
    total_count: int = 0
    check_runs: list[CheckRunRecord] = []


def check_name(status: StatusOpts, pac_opts: PacOpts) -> str:
    """Name shown for a run: check-run ``name`` and commit-status ``context``."""
    if pac_opts.application_name:
        if not status.original_pipeline_run_name:
            return pac_opts.application_name
        return f"{pac_opts.application_name} / {status.original_pipeline_run_name}"
    return status.original_pipeline_run_name
