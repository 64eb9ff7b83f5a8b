"""Replay issue sub-events onto issue state and label timelines.

GitHub's issue-events feeds arrive newest first and may overlap between runs.
Replays sort them by timestamp before applying, so the final state depends
only on the set of sub-events seen, never on their delivery order, and
replaying the same set again changes nothing.
"""

from __future__ import annotations

import dataclasses
import typing as typ

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ghtrail.common.slug import repo_slug_from_issue_events_url
from ghtrail.common.time import ensure_utc
from ghtrail.github.models import SubEventKind
from ghtrail.ingestion.observability import IngestionEventLogger
from ghtrail.issues.reconciler import find_issue
from ghtrail.issues.storage import IssueState, LabelTimelineEntry, TimelineStatus
from ghtrail.logging import get_logger, log_debug, log_exception

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession

    from ghtrail.github.client import ActivityClient
    from ghtrail.github.models import IssueSubEvent
    from ghtrail.issues.storage import Issue
    from ghtrail.storage import SessionFactory

logger = get_logger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class IssueTarget:
    """Issue that every sub-event of a single-issue feed applies to."""

    repo_slug: str
    number: int


@dataclasses.dataclass(slots=True)
class ReplayResult:
    """Counts from one replay."""

    received: int = 0
    applied: int = 0
    skipped: int = 0
    failed: int = 0


def order_sub_events(
    sub_events: cabc.Iterable[IssueSubEvent],
) -> list[IssueSubEvent]:
    """Keep replayable sub-events and sort them oldest first.

    The sort is stable, so sub-events sharing a timestamp keep their input
    order.
    """
    replayable = [sub_event for sub_event in sub_events if sub_event.kind is not None]
    return sorted(replayable, key=lambda sub_event: ensure_utc(sub_event.created_at))


def resolve_target(
    sub_event: IssueSubEvent, target: IssueTarget | None = None
) -> IssueTarget | None:
    """Return the issue a sub-event applies to, or ``None`` if unknown."""
    if target is not None:
        return target
    slug = repo_slug_from_issue_events_url(sub_event.url)
    if slug is None or sub_event.issue is None:
        return None
    return IssueTarget(repo_slug=slug, number=sub_event.issue.number)


async def _load_or_create_entry(
    session: AsyncSession, label_name: str, issue_slug: str
) -> LabelTimelineEntry:
    entry = await session.scalar(
        select(LabelTimelineEntry).where(
            LabelTimelineEntry.label_name == label_name,
            LabelTimelineEntry.issue_slug == issue_slug,
        )
    )
    if entry is not None:
        return entry
    entry = LabelTimelineEntry(label_name=label_name, issue_slug=issue_slug)
    session.add(entry)
    return entry


async def _apply_label_change(
    session: AsyncSession, issue: Issue, sub_event: IssueSubEvent
) -> bool:
    label_name = sub_event.label.name if sub_event.label is not None else ""
    if not label_name:
        return False
    occurred_at = ensure_utc(sub_event.created_at)
    entry = await _load_or_create_entry(session, label_name, issue.slug)
    if sub_event.kind is SubEventKind.LABELED:
        issue.add_label(label_name)
        entry.status = TimelineStatus.LABELED.value
        entry.labeled_at = occurred_at
    else:
        issue.remove_label(label_name)
        entry.status = TimelineStatus.UNLABELED.value
        entry.unlabeled_at = occurred_at
    return True


async def apply_sub_event(
    session: AsyncSession, sub_event: IssueSubEvent, target: IssueTarget
) -> bool:
    """Apply one sub-event inside the caller's transaction.

    Returns ``False`` when the sub-event is skipped: the aggregate does not
    exist yet, or a label change carries no label name.
    """
    issue = await find_issue(session, target.repo_slug, target.number)
    if issue is None:
        log_debug(
            logger,
            "No aggregate for %s#%d, skipping %s",
            target.repo_slug,
            target.number,
            sub_event.event,
        )
        return False

    match sub_event.kind:
        case SubEventKind.CLOSED:
            issue.state = IssueState.CLOSED.value
            return True
        case SubEventKind.REOPENED:
            issue.state = IssueState.OPEN.value
            return True
        case SubEventKind.LABELED | SubEventKind.UNLABELED:
            return await _apply_label_change(session, issue, sub_event)
    return False


class LabelTimelineProcessor:
    """Replay issue-events feeds in chronological order.

    Parameters
    ----------
    session_factory:
        Async session factory for the ghtrail database.
    client:
        Source of issue-events feeds for :meth:`replay_repository`.

    """

    def __init__(
        self,
        session_factory: SessionFactory,
        client: ActivityClient | None = None,
        *,
        event_logger: IngestionEventLogger | None = None,
    ) -> None:
        """Configure the processor with storage and an optional feed client."""
        self._session_factory = session_factory
        self._client = client
        self._event_logger = event_logger or IngestionEventLogger()

    async def replay(
        self,
        sub_events: cabc.Iterable[IssueSubEvent],
        *,
        target: IssueTarget | None = None,
    ) -> ReplayResult:
        """Sort and apply ``sub_events``; each one commits on its own.

        Parameters
        ----------
        sub_events:
            Decoded entries of an issue-events feed, in any order.
        target:
            Issue every sub-event applies to, for single-issue feeds. When
            omitted the issue is parsed from each sub-event's URL.

        Returns
        -------
        ReplayResult
            How many sub-events were received, applied, skipped or failed.

        """
        received = list(sub_events)
        result = ReplayResult(received=len(received))
        for sub_event in order_sub_events(received):
            resolved = resolve_target(sub_event, target)
            if resolved is None:
                log_debug(logger, "Cannot resolve issue for sub-event %s", sub_event.id)
                result.skipped += 1
                continue
            try:
                async with self._session_factory() as session, session.begin():
                    applied = await apply_sub_event(session, sub_event, resolved)
            except SQLAlchemyError as exc:
                log_exception(
                    logger, f"Failed to apply issue sub-event {sub_event.id}", exc
                )
                result.failed += 1
                continue
            if applied:
                result.applied += 1
            else:
                result.skipped += 1
        return result

    async def replay_repository(
        self, repo_slug: str, number: int | None = None
    ) -> ReplayResult:
        """Fetch and replay the issue-events feed of a repository or issue."""
        if self._client is None:
            msg = "replay_repository requires an ActivityClient"
            raise RuntimeError(msg)
        sub_events = await self._client.issue_events(repo_slug, number)
        target = None if number is None else IssueTarget(repo_slug.lower(), number)
        result = await self.replay(sub_events, target=target)
        source = repo_slug if number is None else f"{repo_slug}#{number}"
        self._event_logger.log_timeline_replayed(source, result)
        return result
