"""Ingestion pipeline: fetch, filter, deduplicate, persist and reconcile.

One :meth:`ActivityIngestionPipeline.run` is one full pass:

1. flag configured monitored repositories and load the watch list;
2. fetch each username's and each monitored repository's event feed;
3. drop non-public events unless private events are enabled;
4. persist every event whose id has not been seen, oldest first, each in its own
   transaction, reconciling issue aggregates for monitored repositories;
5. enrich the actors of newly stored events;
6. replay each monitored repository's issue-events feed onto label timelines.

A failure fetching one feed contributes no events; a failure persisting one
event is logged and counted, and the run moves on. Re-running after a partial
failure only stores what is still missing.
"""

from __future__ import annotations

import dataclasses
import enum
import typing as typ
import uuid

from sqlalchemy.exc import SQLAlchemyError

from ghtrail.actors.enricher import ActorEnricher
from ghtrail.common.time import ensure_utc, utcnow
from ghtrail.events.classification import classify
from ghtrail.events.links import commit_count, resolve_link, summarise
from ghtrail.events.registry import RepositoryRegistry, ensure_repository
from ghtrail.events.storage import EventRecord
from ghtrail.issues.reconciler import issue_details_from_event, upsert_issue
from ghtrail.issues.timeline import LabelTimelineProcessor
from ghtrail.logging import get_logger, log_debug

from .observability import IngestionEventLogger, IngestionRunContext

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from ghtrail.config import ActivityConfig
    from ghtrail.events.classification import ClassificationOverride
    from ghtrail.events.links import LinkOverride
    from ghtrail.github.client import ActivityClient
    from ghtrail.github.models import GitHubEvent
    from ghtrail.storage import SessionFactory

logger = get_logger(__name__)

type IssueRepoFilter = typ.Callable[[tuple[str, ...]], cabc.Iterable[str]]
"""Hook receiving the monitored repo slugs; returns those to reconcile."""


@dataclasses.dataclass(frozen=True, slots=True)
class IngestionHooks:
    """Injected callbacks that customise classification and reconciliation."""

    classify_override: ClassificationOverride | None = None
    link_override: LinkOverride | None = None
    issue_repo_filter: IssueRepoFilter | None = None


@dataclasses.dataclass(slots=True)
class IngestionRunResult:
    """Counts accumulated over one ingestion run."""

    events_fetched: int = 0
    events_filtered: int = 0
    events_duplicate: int = 0
    events_created: int = 0
    events_failed: int = 0
    issues_reconciled: int = 0
    actors_enriched: int = 0
    sub_events_applied: int = 0
    monitored_repos: tuple[str, ...] = ()


class _EventOutcome(enum.Enum):
    DUPLICATE = enum.auto()
    CREATED = enum.auto()
    CREATED_WITH_ISSUE = enum.auto()


class ActivityIngestionPipeline:
    """Poll GitHub activity into event records, aggregates and timelines.

    Parameters
    ----------
    config:
        What to poll and whether to keep private events.
    session_factory:
        Async session factory for the ghtrail database.
    client:
        GitHub API client; every fetch returns an empty result on failure.
    hooks:
        Optional classification, link and issue-repository overrides.
    event_logger:
        Structured log emitter, replaceable in tests.

    """

    def __init__(
        self,
        config: ActivityConfig,
        session_factory: SessionFactory,
        client: ActivityClient,
        *,
        hooks: IngestionHooks | None = None,
        event_logger: IngestionEventLogger | None = None,
    ) -> None:
        """Wire the pipeline and its collaborators."""
        self._config = config
        self._session_factory = session_factory
        self._client = client
        self._hooks = hooks or IngestionHooks()
        self._event_logger = event_logger or IngestionEventLogger()
        self._registry = RepositoryRegistry(session_factory)
        self._enricher = ActorEnricher(
            session_factory, client, organization=config.organization
        )
        self._timeline = LabelTimelineProcessor(
            session_factory, client, event_logger=self._event_logger
        )

    async def run(self) -> IngestionRunResult:
        """Execute one full ingestion pass and return its counts."""
        context = IngestionRunContext(
            run_id=uuid.uuid4().hex,
            started_at=utcnow(),
            usernames=self._config.usernames,
            monitored_repos=self._config.monitored_repos,
        )
        self._event_logger.log_run_started(context)
        try:
            result = await self._run(context)
        except Exception as exc:
            self._event_logger.log_run_failed(
                context, exc, utcnow() - context.started_at
            )
            raise
        self._event_logger.log_run_completed(
            context, result, utcnow() - context.started_at
        )
        return result

    async def _run(self, context: IngestionRunContext) -> IngestionRunResult:
        await self._registry.flag_monitored(self._config.monitored_repos)
        monitored = tuple(await self._registry.list_monitored_repositories())
        result = IngestionRunResult(monitored_repos=monitored)

        events = await self.collect_events(context, monitored)
        result.events_fetched = len(events)
        new_actors = await self._ingest_events(context, events, monitored, result)

        attempted: set[str] = set()
        for login in new_actors:
            profile = await self._enricher.ensure_profile(login, attempted=attempted)
            if profile is not None:
                result.actors_enriched += 1

        if self._config.replay_issue_events:
            for slug in monitored:
                replay = await self._timeline.replay_repository(slug)
                result.sub_events_applied += replay.applied
        return result

    async def collect_events(
        self, context: IngestionRunContext, monitored: tuple[str, ...]
    ) -> list[GitHubEvent]:
        """Concatenate user feeds then monitored repository feeds.

        Cross-feed duplicates are kept here; deduplication happens at
        persistence time.
        """
        events: list[GitHubEvent] = []
        for username in self._config.usernames:
            feed = await self._client.user_events(username)
            self._event_logger.log_feed_fetched(context, f"user:{username}", len(feed))
            events.extend(feed)
        for slug in monitored:
            feed = await self._client.repo_events(slug)
            self._event_logger.log_feed_fetched(context, f"repo:{slug}", len(feed))
            events.extend(feed)
        return events

    def _issue_repos(self, monitored: tuple[str, ...]) -> frozenset[str]:
        repo_filter = self._hooks.issue_repo_filter
        if repo_filter is None:
            return frozenset(slug.lower() for slug in monitored)
        return frozenset(slug.lower() for slug in repo_filter(monitored))

    async def _ingest_events(
        self,
        context: IngestionRunContext,
        events: list[GitHubEvent],
        monitored: tuple[str, ...],
        result: IngestionRunResult,
    ) -> list[str]:
        """Persist unseen events oldest first; return logins of their actors.

        Feeds arrive newest first. Replaying them in time order lets the
        latest snapshot of an issue win the aggregate upsert.
        """
        issue_repos = self._issue_repos(monitored)
        seen: set[str] = set()
        new_actors: dict[str, None] = {}
        for event in sorted(events, key=lambda event: ensure_utc(event.created_at)):
            if not event.public and not self._config.include_private:
                result.events_filtered += 1
                continue
            if event.id in seen:
                result.events_duplicate += 1
                continue
            seen.add(event.id)
            try:
                outcome = await self._persist_event(event, issue_repos)
            except (SQLAlchemyError, ValueError) as exc:
                result.events_failed += 1
                self._event_logger.log_event_failed(context, event.id, exc)
                continue
            if outcome is _EventOutcome.DUPLICATE:
                result.events_duplicate += 1
                continue
            result.events_created += 1
            if outcome is _EventOutcome.CREATED_WITH_ISSUE:
                result.issues_reconciled += 1
            new_actors[event.actor.login] = None
        return list(new_actors)

    async def _persist_event(
        self, event: GitHubEvent, issue_repos: frozenset[str]
    ) -> _EventOutcome:
        async with self._session_factory() as session, session.begin():
            if await session.get(EventRecord, event.id) is not None:
                log_debug(logger, "Event %s already stored", event.id)
                return _EventOutcome.DUPLICATE

            category = classify(
                event.type, event.action, override=self._hooks.classify_override
            )
            link = resolve_link(
                event,
                classify_override=self._hooks.classify_override,
                override=self._hooks.link_override,
            )
            commits = commit_count(event)
            details = issue_details_from_event(event)

            repo = event.repo.name.lower()
            await ensure_repository(session, repo)
            session.add(
                EventRecord(
                    id=event.id,
                    event_type=event.type,
                    action=event.action,
                    category=category,
                    repo_slug=repo,
                    actor_login=event.actor.login,
                    occurred_at=ensure_utc(event.created_at),
                    is_public=event.public,
                    link_url=link.url,
                    link_label=link.label,
                    summary=summarise(link, commits),
                    issue_number=details.number if details is not None else None,
                    metadata_=(
                        {"commit_count": commits} if commits is not None else {}
                    ),
                )
            )
            if details is None or repo not in issue_repos:
                return _EventOutcome.CREATED
            await upsert_issue(session, details)
            return _EventOutcome.CREATED_WITH_ISSUE
