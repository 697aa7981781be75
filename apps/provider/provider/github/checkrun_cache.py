"""Per-client cache of pipeline run name → check-run ID.

Lives on the GitHubClient (see CheckRunCache.for_client), so every
reporter sharing a client shares it too. Guarantees that one pipeline run
maps to at most one check run for the lifetime of the client.

Resolution order on a miss:

1. Look for a check run on the commit, created by this App, whose
   external_id is the pipeline run name (survives process restarts).
2. Otherwise create a new check run in ``in_progress`` state.

Concurrent get_or_create calls for the same run serialise on a per-name
lock; different runs never wait on each other.
"""

import asyncio
import logging
from typing import Optional

from provider.errors import CacheCorruptionError, ProtocolError
from provider.github.client import GitHubClient, format_timestamp
from provider.github.types import (
    STATUS_IN_PROGRESS,
    Event,
    PacOpts,
    StatusOpts,
    check_name,
)

logger = logging.getLogger(__name__)


class CheckRunCache:
    def __init__(self, client: GitHubClient):
        self._client = client
        self._ids: dict[str, int] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @classmethod
    def for_client(cls, client: GitHubClient) -> "CheckRunCache":
        """Return *client*'s cache, attaching a new one on first use."""
        if client.check_run_ids is None:
            client.check_run_ids = cls(client)
        return client.check_run_ids

    def load(self, pipeline_run_name: str) -> Optional[int]:
        """Return the cached check-run ID, or None when the run is unknown."""
        return self._ids.get(pipeline_run_name)

    def store(self, pipeline_run_name: str, check_run_id: int) -> None:
        """Record the check-run ID for a pipeline run.

        Raises:
            CacheCorruptionError: *check_run_id* is not an integer ID.
        """
        if isinstance(check_run_id, bool) or not isinstance(check_run_id, int):
            raise CacheCorruptionError(
                f"cannot cache check run ID {check_run_id!r} for {pipeline_run_name}"
            )
        self._ids[pipeline_run_name] = check_run_id

    def _lock_for(self, pipeline_run_name: str) -> asyncio.Lock:
        # setdefault never yields to the loop, so two tasks cannot end up
        # holding different locks for one name.
        return self._locks.setdefault(pipeline_run_name, asyncio.Lock())

    async def get_or_create(
        self,
        event: Event,
        pac_opts: PacOpts,
        status: StatusOpts,
        application_id: int = 0,
    ) -> int:
        """Return the check-run ID for *status*'s pipeline run, creating it if needed.

        *application_id* narrows the remote lookup to check runs this App made.
        """
        name = status.pipeline_run_name
        cached = self.load(name)
        if cached is not None:
            return cached

        async with self._lock_for(name):
            # Another task may have filled the entry while we waited.
            cached = self.load(name)
            if cached is not None:
                return cached

            check_run_id = await self.find_existing(event, status, application_id)
            if check_run_id is None:
                check_run_id = await self.create(event, pac_opts, status)
            self.store(name, check_run_id)
            return check_run_id

    async def find_existing(
        self, event: Event, status: StatusOpts, application_id: int = 0
    ) -> Optional[int]:
        """Find this App's check run on the commit for the pipeline run."""
        result = await self._client.list_check_runs_for_ref(
            event.organization, event.repository, event.sha, application_id
        )
        if result.total_count == 0:
            return None

        for check_run in result.check_runs:
            if check_run.external_id == status.pipeline_run_name:
                logger.debug(
                    "Reusing check run %s for %s", check_run.id, status.pipeline_run_name
                )
                return check_run.id
        return None

    async def create(self, event: Event, pac_opts: PacOpts, status: StatusOpts) -> int:
        payload = {
            "name": check_name(status, pac_opts),
            "head_sha": event.sha,
            "status": STATUS_IN_PROGRESS,
            "details_url": pac_opts.log_url,
            "external_id": status.pipeline_run_name,
            "started_at": format_timestamp(),
        }
        check_run = await self._client.create_check_run(
            event.organization, event.repository, payload
        )
        check_run_id = check_run.get("id")
        if check_run_id is None:
            raise ProtocolError(
                f"created check run for {status.pipeline_run_name} has no ID"
            )
        logger.info(
            "Created check run %s for %s on %s/%s@%s",
            check_run_id, status.pipeline_run_name,
            event.organization, event.repository, event.sha,
        )
        return check_run_id
