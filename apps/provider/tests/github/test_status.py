"""Tests for status reporting through check runs and commit statuses."""

import asyncio

import pytest

from provider.errors import NotAuthenticatedError, TransportError
from provider.github.client import GitHubClient
from provider.github.status import (
    CheckRunSink,
    CommitStatusSink,
    StatusReporter,
    StatusSink,
    derive_title_summary,
)
from provider.github.types import Event, PacOpts, StatusOpts, check_name
from tests.conftest import API, TEST_APP_ID

PAC_OPTS = PacOpts(application_name="Pipelines as Code CI", log_url="https://console/logs")
CHECK_RUNS_URL = f"{API}/repos/org/repo/commits/abc123/check-runs"
CREATE_URL = f"{API}/repos/org/repo/check-runs"
STATUS_URL = f"{API}/repos/org/repo/statuses/abc123"
COMMENT_URL = f"{API}/repos/org/repo/issues/42/comments"


def _event(**overrides) -> Event:
    fields = dict(
        organization="org",
        repository="repo",
        sha="abc123",
        event_type="pull_request",
        pull_request_number=42,
    )
    fields.update(overrides)
    return Event(**fields)


def _status(status="completed", conclusion="success", **overrides) -> StatusOpts:
    fields = dict(
        pipeline_run_name="pr-run-x7k2",
        original_pipeline_run_name="pr-run",
        status=status,
        conclusion=conclusion,
        text="<table>tasks</table>",
        details_url="https://console/run/pr-run-x7k2",
    )
    fields.update(overrides)
    return StatusOpts(**fields)


@pytest.fixture
def reporter(client) -> StatusReporter:
    return StatusReporter(client, application_id=TEST_APP_ID)


@pytest.fixture
def existing_check_run(github_api):
    github_api.add("GET", CHECK_RUNS_URL, json_data={
        "total_count": 1, "check_runs": [{"id": 55, "external_id": "pr-run-x7k2"}],
    })
    github_api.add("PATCH", f"{CREATE_URL}/55", json_data={"id": 55})


class TestDeriveTitleSummary:
    @pytest.mark.parametrize(
        "conclusion,title,phrase",
        [
            ("success", "Success", "successfully"),
            ("failure", "Failed", "failed"),
            ("skipped", "Skipped", "skipping"),
            ("neutral", "Unknown", "doesn't know"),
        ],
    )
    def test_conclusion_table(self, conclusion, title, phrase):
        derived = derive_title_summary(_status(conclusion=conclusion), PAC_OPTS)
        assert derived.title == title
        assert phrase in derived.summary

    @pytest.mark.parametrize("conclusion", ["success", "failure", "skipped", "neutral", ""])
    def test_in_progress_always_wins(self, conclusion):
        derived = derive_title_summary(
            _status(status="in_progress", conclusion=conclusion), PAC_OPTS
        )
        assert derived.title == "CI has Started"
        assert derived.summary.endswith("is running.")

    def test_overwrites_caller_title_and_summary(self):
        derived = derive_title_summary(
            _status(title="mine", summary="mine too"), PAC_OPTS
        )
        assert derived.title == "Success"
        assert "mine" not in derived.summary

    def test_summary_is_prefixed_with_application_and_run(self):
        derived = derive_title_summary(_status(conclusion="failure"), PAC_OPTS)
        assert derived.summary == "Pipelines as Code CI/pr-run has <b>failed</b>."

    def test_summary_prefix_without_original_run_name(self):
        derived = derive_title_summary(
            _status(conclusion="skipped", original_pipeline_run_name=""), PAC_OPTS
        )
        assert derived.summary == "Pipelines as Code CI is skipping this commit."

    def test_does_not_mutate_input(self):
        status = _status()
        derive_title_summary(status, PAC_OPTS)
        assert status.title == ""
        assert status.summary == ""


class TestCheckName:
    def test_application_and_original_run(self):
        assert check_name(_status(), PAC_OPTS) == "Pipelines as Code CI / pr-run"

    def test_application_only(self):
        assert check_name(_status(original_pipeline_run_name=""), PAC_OPTS) == "Pipelines as Code CI"

    def test_no_application_name(self):
        assert check_name(_status(), PacOpts()) == "pr-run"


class TestSinkSelection:
    def test_app_event_uses_check_runs(self, reporter):
        sink = reporter.sink_for(_event(info_from_repo=False))
        assert isinstance(sink, CheckRunSink)
        assert isinstance(sink, StatusSink)

    def test_repo_info_event_uses_commit_status(self, reporter):
        sink = reporter.sink_for(_event(info_from_repo=True))
        assert isinstance(sink, CommitStatusSink)
        assert isinstance(sink, StatusSink)


class TestReportPreconditions:
    @pytest.mark.asyncio
    async def test_no_client_raises(self):
        with pytest.raises(NotAuthenticatedError):
            await StatusReporter(None).report(_event(), PAC_OPTS, _status())

    @pytest.mark.asyncio
    async def test_client_without_token_raises_before_network(self, github_api):
        reporter = StatusReporter(GitHubClient(api_url=API, http=github_api), TEST_APP_ID)

        with pytest.raises(NotAuthenticatedError):
            await reporter.report(_event(), PAC_OPTS, _status())
        assert github_api.calls == []


class TestCheckRunPath:
    @pytest.mark.asyncio
    async def test_completed_update_sets_conclusion_and_completed_at(
        self, reporter, github_api, existing_check_run
    ):
        await reporter.report(_event(), PAC_OPTS, _status())

        payload = github_api.calls_to("PATCH", f"{CREATE_URL}/55")[0]["json"]
        assert payload["name"] == "Pipelines as Code CI / pr-run"
        assert payload["status"] == "completed"
        assert payload["conclusion"] == "success"
        assert payload["completed_at"].endswith("Z")
        assert payload["details_url"] == "https://console/run/pr-run-x7k2"
        assert payload["output"] == {
            "title": "Success",
            "summary": "Pipelines as Code CI/pr-run has <b>successfully</b> validated your commit.",
            "text": "<table>tasks</table>",
        }

    @pytest.mark.parametrize(
        "status,conclusion",
        [
            ("in_progress", ""),
            ("in_progress", "pending"),
            ("queued", ""),
            ("completed", "failure"),
            ("completed", "neutral"),
            ("completed", "skipped"),
        ],
    )
    @pytest.mark.asyncio
    async def test_completed_at_only_with_terminal_conclusion(
        self, reporter, github_api, existing_check_run, status, conclusion
    ):
        await reporter.report(_event(), PAC_OPTS, _status(status=status, conclusion=conclusion))

        payload = github_api.calls_to("PATCH", f"{CREATE_URL}/55")[0]["json"]
        terminal = conclusion not in ("", "pending")
        assert ("completed_at" in payload) is terminal
        assert ("conclusion" in payload) is terminal

    @pytest.mark.asyncio
    async def test_details_url_omitted_when_empty(
        self, reporter, github_api, existing_check_run
    ):
        await reporter.report(_event(), PAC_OPTS, _status(details_url=""))

        payload = github_api.calls_to("PATCH", f"{CREATE_URL}/55")[0]["json"]
        assert "details_url" not in payload

    @pytest.mark.asyncio
    async def test_successive_reports_reuse_one_check_run(self, reporter, github_api):
        github_api.add("GET", CHECK_RUNS_URL, json_data={"total_count": 0, "check_runs": []})
        github_api.add("POST", CREATE_URL, 201, {"id": 77})
        github_api.add("PATCH", f"{CREATE_URL}/77", json_data={"id": 77})

        await reporter.report(_event(), PAC_OPTS, _status(status="queued", conclusion=""))
        await reporter.report(_event(), PAC_OPTS, _status(status="in_progress", conclusion=""))
        await reporter.report(_event(), PAC_OPTS, _status())

        assert len(github_api.calls_to("POST", CREATE_URL)) == 1
        assert len(github_api.calls_to("GET", CHECK_RUNS_URL)) == 1
        assert len(github_api.calls_to("PATCH", f"{CREATE_URL}/77")) == 3

    @pytest.mark.asyncio
    async def test_update_failure_is_returned(self, reporter, github_api):
        github_api.add("GET", CHECK_RUNS_URL, json_data={
            "total_count": 1, "check_runs": [{"id": 55, "external_id": "pr-run-x7k2"}],
        })
        github_api.add("PATCH", f"{CREATE_URL}/55", 502)

        with pytest.raises(TransportError) as excinfo:
            await reporter.report(_event(), PAC_OPTS, _status())
        assert excinfo.value.status_code == 502
        # The check run stays known; the next update targets it again.
        assert reporter.check_run_ids.load("pr-run-x7k2") == 55

    @pytest.mark.asyncio
    async def test_reporters_on_one_client_share_check_runs(self, client, github_api):
        github_api.add("GET", CHECK_RUNS_URL, json_data={"total_count": 0, "check_runs": []})
        github_api.add("POST", CREATE_URL, 201, {"id": 88})
        github_api.add("PATCH", f"{CREATE_URL}/88", json_data={"id": 88})
        first = StatusReporter(client, application_id=TEST_APP_ID)
        second = StatusReporter(client, application_id=TEST_APP_ID)

        await asyncio.gather(
            first.report(_event(), PAC_OPTS, _status(status="in_progress", conclusion="")),
            second.report(_event(), PAC_OPTS, _status(status="in_progress", conclusion="")),
        )

        assert len(github_api.calls_to("POST", CREATE_URL)) == 1
        assert len(github_api.calls_to("PATCH", f"{CREATE_URL}/88")) == 2
        assert first.check_run_ids is second.check_run_ids is client.check_run_ids

    @pytest.mark.asyncio
    async def test_cancellation_aborts_hung_request(self, reporter, github_api, monkeypatch):
        started = asyncio.Event()

        async def hang(*args, **kwargs):
            started.set()
            await asyncio.Event().wait()

        monkeypatch.setattr(github_api, "request", hang)
        task = asyncio.create_task(reporter.report(_event(), PAC_OPTS, _status()))
        await asyncio.wait_for(started.wait(), timeout=2)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        cache = reporter.check_run_ids
        assert cache.load("pr-run-x7k2") is None
        assert not cache._lock_for("pr-run-x7k2").locked()


class TestCommitStatusPath:
    @pytest.fixture(autouse=True)
    def _routes(self, github_api):
        github_api.add("POST", STATUS_URL, 201, {"id": 1})
        github_api.add("POST", COMMENT_URL, 201, {"id": 2})

    @pytest.mark.parametrize(
        "conclusion,state",
        [
            ("success", "success"),
            ("failure", "failure"),
            ("skipped", "success"),
            ("neutral", "success"),
        ],
    )
    @pytest.mark.asyncio
    async def test_state_mapping(self, reporter, github_api, conclusion, state):
        await reporter.report(_event(info_from_repo=True), PAC_OPTS, _status(conclusion=conclusion))

        payload = github_api.calls_to("POST", STATUS_URL)[0]["json"]
        assert payload["state"] == state

    @pytest.mark.asyncio
    async def test_in_progress_forces_pending(self, reporter, github_api):
        await reporter.report(
            _event(info_from_repo=True), PAC_OPTS, _status(status="in_progress", conclusion="success")
        )

        payload = github_api.calls_to("POST", STATUS_URL)[0]["json"]
        assert payload["state"] == "pending"
        assert payload["description"] == "CI has Started"

    @pytest.mark.asyncio
    async def test_status_payload(self, reporter, github_api):
        await reporter.report(_event(info_from_repo=True), PAC_OPTS, _status(conclusion="failure"))

        payload = github_api.calls_to("POST", STATUS_URL)[0]["json"]
        assert payload["target_url"] == "https://console/run/pr-run-x7k2"
        assert payload["description"] == "Failed"
        assert payload["context"] == "Pipelines as Code CI / pr-run"
        assert payload["created_at"].endswith("Z")

    @pytest.mark.asyncio
    async def test_completed_pull_request_gets_comment(self, reporter, github_api):
        await reporter.report(_event(info_from_repo=True), PAC_OPTS, _status())

        body = github_api.calls_to("POST", COMMENT_URL)[0]["json"]["body"]
        assert body == (
            "Pipelines as Code CI/pr-run has <b>successfully</b> validated your commit."
            "<br><table>tasks</table>"
        )

    @pytest.mark.asyncio
    async def test_no_comment_on_push_events(self, reporter, github_api):
        await reporter.report(
            _event(info_from_repo=True, event_type="push"), PAC_OPTS, _status()
        )
        assert github_api.calls_to("POST", COMMENT_URL) == []

    @pytest.mark.asyncio
    async def test_no_comment_without_text(self, reporter, github_api):
        await reporter.report(_event(info_from_repo=True), PAC_OPTS, _status(text=""))
        assert github_api.calls_to("POST", COMMENT_URL) == []

    @pytest.mark.asyncio
    async def test_no_comment_while_running(self, reporter, github_api):
        await reporter.report(
            _event(info_from_repo=True), PAC_OPTS, _status(status="in_progress", conclusion="")
        )
        assert github_api.calls_to("POST", COMMENT_URL) == []

    @pytest.mark.asyncio
    async def test_never_touches_check_runs(self, reporter, github_api):
        await reporter.report(_event(info_from_repo=True), PAC_OPTS, _status())
        assert not any("check-runs" in c["url"] for c in github_api.calls)

    @pytest.mark.asyncio
    async def test_status_failure_skips_comment(self, reporter, github_api):
        github_api.add("POST", STATUS_URL, 403, {"message": "Resource not accessible"})

        with pytest.raises(TransportError):
            await reporter.report(_event(info_from_repo=True), PAC_OPTS, _status())
        assert github_api.calls_to("POST", COMMENT_URL) == []
