"""Guarded entry points for one ingestion pass or one timeline replay.

Both the Dramatiq actors in :mod:`ghtrail.jobs` and the CLI run through
:func:`poll_once` and :func:`replay_once`. At most one run is active per
process: a trigger that arrives while another run holds the guard is logged
and dropped, never queued.
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import contextlib
import threading
import typing as typ

from ghtrail.config import ActivityConfig, GitHubApiConfig
from ghtrail.github.client import GitHubRestClient
from ghtrail.ingestion.observability import IngestionEventLogger
from ghtrail.ingestion.pipeline import ActivityIngestionPipeline
from ghtrail.issues.timeline import LabelTimelineProcessor
from ghtrail.storage import open_session_factory

if typ.TYPE_CHECKING:
    import httpx

    from ghtrail.ingestion.pipeline import IngestionHooks, IngestionRunResult
    from ghtrail.issues.timeline import ReplayResult


class RunGuard:
    """Non-blocking mutual exclusion for ingestion runs in one process."""

    def __init__(self) -> None:
        """Create an unheld guard."""
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        """Return True while a run holds the guard."""
        return self._lock.locked()

    @contextlib.contextmanager
    def acquire(self) -> cabc.Iterator[bool]:
        """Try to take the guard; yield whether it was acquired."""
        acquired = self._lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._lock.release()


RUN_GUARD = RunGuard()


async def run_poll(
    database_url: str,
    config: ActivityConfig,
    api_config: GitHubApiConfig,
    *,
    http_client: httpx.AsyncClient | None = None,
    hooks: IngestionHooks | None = None,
) -> IngestionRunResult:
    """Run one ingestion pass against ``database_url``."""
    client = GitHubRestClient(api_config, http_client=http_client)
    try:
        async with open_session_factory(database_url) as session_factory:
            pipeline = ActivityIngestionPipeline(
                config, session_factory, client, hooks=hooks
            )
            return await pipeline.run()
    finally:
        await client.aclose()


async def run_replay(
    database_url: str,
    api_config: GitHubApiConfig,
    repo_slug: str,
    issue_number: int | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> ReplayResult:
    """Replay the issue-events feed of a repository or a single issue."""
    client = GitHubRestClient(api_config, http_client=http_client)
    try:
        async with open_session_factory(database_url) as session_factory:
            processor = LabelTimelineProcessor(session_factory, client)
            return await processor.replay_repository(repo_slug, issue_number)
    finally:
        await client.aclose()


def poll_once(
    database_url: str,
    *,
    http_client: httpx.AsyncClient | None = None,
    guard: RunGuard = RUN_GUARD,
) -> IngestionRunResult | None:
    """Load configuration from the environment and poll once.

    Returns ``None`` when another run holds ``guard``.

    Raises
    ------
    ConfigError
        If the environment configuration is missing or invalid.

    """
    with guard.acquire() as acquired:
        if not acquired:
            IngestionEventLogger().log_run_skipped("poll_activity")
            return None
        config = ActivityConfig.from_env()
        api_config = GitHubApiConfig.from_env()
        return asyncio.run(
            run_poll(database_url, config, api_config, http_client=http_client)
        )


def replay_once(
    database_url: str,
    repo_slug: str,
    issue_number: int | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
    guard: RunGuard = RUN_GUARD,
) -> ReplayResult | None:
    """Replay issue events once; ``None`` when another run holds ``guard``."""
    with guard.acquire() as acquired:
        if not acquired:
            IngestionEventLogger().log_run_skipped("replay_issue_events")
            return None
        api_config = GitHubApiConfig.from_env()
        return asyncio.run(
            run_replay(
                database_url,
                api_config,
                repo_slug,
                issue_number,
                http_client=http_client,
            )
        )
