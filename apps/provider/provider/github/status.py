"""Report pipeline run status onto a GitHub commit.

Two sinks exist because GitHub has two status APIs:

- CheckRunSink uses the Checks API. It is stateful (one check run per
  pipeline run, updated in place) and only available with an App
  installation token.
- CommitStatusSink uses the classic commit statuses API plus a PR
  comment. It is stateless and works with any token, but knows neither
  "skipped" nor "neutral".

The sink is chosen once per event by StatusReporter.sink_for.
"""

import logging
from dataclasses import replace
from typing import Optional, Protocol, runtime_checkable

from provider.core.logging import bind_pipeline_run
from provider.errors import NotAuthenticatedError
from provider.github.checkrun_cache import CheckRunCache
from provider.github.client import GitHubClient, format_timestamp
from provider.github.types import (
    CONCLUSION_FAILURE,
    CONCLUSION_NEUTRAL,
    CONCLUSION_PENDING,
    CONCLUSION_SKIPPED,
    CONCLUSION_SUCCESS,
    EVENT_PULL_REQUEST,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    Event,
    PacOpts,
    StatusOpts,
    check_name,
)

logger = logging.getLogger(__name__)

# conclusion → (title, summary). The summary is later prefixed with the
# application name, so it reads as the end of a sentence.
CONCLUSION_TEXT: dict[str, tuple[str, str]] = {
    CONCLUSION_SUCCESS: ("Success", "has <b>successfully</b> validated your commit."),
    CONCLUSION_FAILURE: ("Failed", "has <b>failed</b>."),
    CONCLUSION_SKIPPED: ("Skipped", "is skipping this commit."),
    CONCLUSION_NEUTRAL: ("Unknown", "doesn't know what happened with this commit."),
}
IN_PROGRESS_TEXT = ("CI has Started", "is running.")

# The statuses API only has error/failure/pending/success.
_COMMIT_STATE_FALLBACK = {
    CONCLUSION_SKIPPED: CONCLUSION_SUCCESS,
    CONCLUSION_NEUTRAL: CONCLUSION_SUCCESS,
}


def derive_title_summary(status: StatusOpts, pac_opts: PacOpts) -> StatusOpts:
    """Return a copy of *status* with title and summary set for display.

    A known conclusion replaces the caller's title and summary; an
    in_progress status always wins over the conclusion. The summary is
    then prefixed with the application name and, if set, the original
    pipeline run name.
    """
    title, summary = status.title, status.summary
    if status.conclusion in CONCLUSION_TEXT:
        title, summary = CONCLUSION_TEXT[status.conclusion]
    if status.status == STATUS_IN_PROGRESS:
        title, summary = IN_PROGRESS_TEXT

    on_pr = f"/{status.original_pipeline_run_name}" if status.original_pipeline_run_name else ""
    summary = f"{pac_opts.application_name}{on_pr} {summary}"
    return replace(status, title=title, summary=summary)


def is_terminal_conclusion(conclusion: str) -> bool:
    return conclusion not in ("", CONCLUSION_PENDING)


@runtime_checkable
class StatusSink(Protocol):
    """Writes one status update for a pipeline run onto the event's commit."""

    async def create_or_update(
        self, event: Event, pac_opts: PacOpts, status: StatusOpts
    ) -> None:
        ...  # noqa: PLR6301


class CheckRunSink:
    """Create-or-update a check run (App installation tokens only)."""

    def __init__(self, client: GitHubClient, application_id: int = 0):
        self._client = client
        self._application_id = application_id

    async def create_or_update(
        self, event: Event, pac_opts: PacOpts, status: StatusOpts
    ) -> None:
        check_run_id = await CheckRunCache.for_client(self._client).get_or_create(
            event, pac_opts, status, self._application_id
        )

        payload: dict = {
            "name": check_name(status, pac_opts),
            "status": status.status,
            "output": {
                "title": status.title,
                "summary": status.summary,
                "text": status.text,
            },
        }
        if status.details_url:
            payload["details_url"] = status.details_url

        # completed_at and conclusion travel together: GitHub rejects a
        # completed check run without a conclusion.
        if is_terminal_conclusion(status.conclusion):
            payload["completed_at"] = format_timestamp()
            payload["conclusion"] = status.conclusion

        await self._client.update_check_run(
            event.organization, event.repository, check_run_id, payload
        )


class CommitStatusSink:
    """Write a commit status, plus a PR comment once the run completes."""

    def __init__(self, client: GitHubClient):
        self._client = client

    async def create_or_update(
        self, event: Event, pac_opts: PacOpts, status: StatusOpts
    ) -> None:
        state = _COMMIT_STATE_FALLBACK.get(status.conclusion, status.conclusion)
        if status.status == STATUS_IN_PROGRESS:
            state = CONCLUSION_PENDING

        payload = {
            "state": state,
            "target_url": status.details_url,
            "description": status.title,
            "context": check_name(status, pac_opts),
            "created_at": format_timestamp(),
        }
        await self._client.create_status(
            event.organization, event.repository, event.sha, payload
        )

        if (
            status.status == STATUS_COMPLETED
            and status.text
            and event.event_type == EVENT_PULL_REQUEST
        ):
            await self._client.create_comment(
                event.organization,
                event.repository,
                event.pull_request_number,
                f"{status.summary}<br>{status.text}",
            )


class StatusReporter:
    """Entry point for status writes from pipeline runs.

    Reporters are cheap; the check-run cache that keeps a pipeline run from
    ever getting two check runs belongs to the client, so any number of
    reporters may share one.
    """

    def __init__(self, client: Optional[GitHubClient], application_id: int = 0):
        self._client = client
        self._application_id = application_id

    @property
    def check_run_ids(self) -> Optional[CheckRunCache]:
        if self._client is None:
            return None
        return CheckRunCache.for_client(self._client)

    def sink_for(self, event: Event) -> StatusSink:
        if self._client is None:
            raise NotAuthenticatedError("cannot set status on github no token or url set")
        if event.info_from_repo:
            return CommitStatusSink(self._client)
        return CheckRunSink(self._client, self._application_id)

    async def report(self, event: Event, pac_opts: PacOpts, status: StatusOpts) -> None:
        """Write *status* for its pipeline run onto *event*'s commit.

        Raises:
            NotAuthenticatedError: No client or token is configured. Raised
                before any network call.
            TransportError: GitHub rejected one of the calls.
        """
        if self._client is None or not self._client.token:
            raise NotAuthenticatedError("cannot set status on github no token or url set")

        status = derive_title_summary(status, pac_opts)
        sink = self.sink_for(event)

        with bind_pipeline_run(status.pipeline_run_name):
            logger.info(
                "Reporting %s/%s to %s/%s@%s via %s",
                status.status, status.conclusion or "-",
                event.organization, event.repository, event.sha,
                type(sink).__name__,
            )
            await sink.create_or_update(event, pac_opts, status)
