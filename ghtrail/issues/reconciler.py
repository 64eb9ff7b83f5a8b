"""Create or update issue aggregates from issue and pull request events."""

from __future__ import annotations

import dataclasses
import typing as typ

from sqlalchemy import select

from ghtrail.common.time import ensure_utc
from ghtrail.github.models import (
    IssueCommentPayload,
    IssuesPayload,
    PullRequestPayload,
    PullRequestReviewCommentPayload,
)
from ghtrail.issues.storage import Issue, IssueKind, IssueState
from ghtrail.logging import get_logger, log_debug

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession

    from ghtrail.github.models import GitHubEvent, IssueRef
    from ghtrail.storage import SessionFactory

logger = get_logger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class IssueDetails:
    """Issue or pull request state extracted from one event."""

    repo_slug: str
    number: int
    kind: IssueKind
    state: str
    title: str
    labels: tuple[str, ...]
    comment_count: int
    creator_login: str
    created_at: dt.datetime


def _issue_ref(event: GitHubEvent) -> tuple[IssueKind, IssueRef] | None:
    payload = event.payload
    if (
        isinstance(payload, PullRequestPayload | PullRequestReviewCommentPayload)
        and payload.pull_request is not None
    ):
        return IssueKind.PULL_REQUEST, payload.pull_request
    if (
        isinstance(payload, IssuesPayload | IssueCommentPayload)
        and payload.issue is not None
    ):
        return IssueKind.ISSUE, payload.issue
    return None


def issue_details_from_event(event: GitHubEvent) -> IssueDetails | None:
    """Extract aggregate details from an issue-bearing event.

    Returns ``None`` for events that carry neither an issue nor a pull
    request. The creator is the acting user when the event opens the item,
    otherwise the item's author.
    """
    found = _issue_ref(event)
    if found is None:
        return None
    kind, ref = found

    if event.action == "opened":
        creator = event.actor.display_name
    elif ref.user is not None:
        creator = ref.user.login
    else:
        creator = ""

    created_at = ref.created_at if ref.created_at is not None else event.created_at
    return IssueDetails(
        repo_slug=event.repo.name.lower(),
        number=max(ref.number, 0),
        kind=kind,
        state=ref.state or IssueState.OPEN.value,
        title=ref.title,
        labels=tuple(ref.label_names),
        comment_count=max(ref.comments, 0),
        creator_login=creator,
        created_at=ensure_utc(created_at),
    )


async def find_issue(
    session: AsyncSession, repo_slug: str, number: int
) -> Issue | None:
    """Return the aggregate for ``(repo_slug, number)`` if it exists."""
    return await session.scalar(
        select(Issue).where(Issue.repo_slug == repo_slug, Issue.number == number)
    )


async def upsert_issue(session: AsyncSession, details: IssueDetails) -> Issue:
    """Insert or update an aggregate inside the caller's transaction.

    An existing aggregate keeps its creation time, kind and creator; only
    state, labels, comment count and title follow the latest event.
    """
    existing = await find_issue(session, details.repo_slug, details.number)
    if existing is None:
        issue = Issue(
            repo_slug=details.repo_slug,
            number=details.number,
            kind=details.kind.value,
            state=details.state,
            title=details.title,
            comment_count=details.comment_count,
            creator_login=details.creator_login,
            created_at=details.created_at,
        )
        issue.set_labels(list(details.labels))
        session.add(issue)
        await session.flush()
        log_debug(logger, "Created %s aggregate %s", details.kind, issue.slug)
        return issue

    existing.state = details.state
    existing.set_labels(list(details.labels))
    existing.comment_count = details.comment_count
    existing.title = details.title
    log_debug(logger, "Updated aggregate %s", existing.slug)
    return existing


class IssueReconciler:
    """Upsert issue aggregates in their own transactions."""

    def __init__(self, session_factory: SessionFactory) -> None:
        """Configure the reconciler with a session factory."""
        self._session_factory = session_factory

    async def upsert(self, details: IssueDetails) -> Issue:
        """Create or update the aggregate described by ``details``."""
        async with self._session_factory() as session, session.begin():
            return await upsert_issue(session, details)
