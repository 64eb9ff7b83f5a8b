"""Exact-match queries over persisted activity records.

Every tag dimension (event category, repository, actor, issue state, label,
kind) is an indexed column, so each filter is an equality lookup.

Example:
-------
List the ten most recent issues opened in one repository::

    options = EventListOptions(
        category="Issue Opened",
        repo_slug="octo/widgets",
        limit=10,
    )
    events = await list_events(session_factory, options)

"""

from __future__ import annotations

import dataclasses
import typing as typ

from sqlalchemy import Select, select

from ghtrail.actors.storage import ActorProfile
from ghtrail.events.storage import EventRecord
from ghtrail.issues.storage import Issue, IssueLabel, LabelTimelineEntry

if typ.TYPE_CHECKING:
    from ghtrail.storage import SessionFactory


class NegativePaginationError(ValueError):
    """Raised when pagination parameters are negative."""

    def __init__(self, name: str) -> None:
        """Build a consistent error message for the invalid parameter."""
        msg = f"{name} must be non-negative"
        super().__init__(msg)


@dataclasses.dataclass(frozen=True, slots=True)
class EventListOptions:
    """Event listing filters; ``None`` leaves a dimension unfiltered."""

    category: str | None = None
    repo_slug: str | None = None
    actor_login: str | None = None
    limit: int | None = None
    offset: int | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class IssueListOptions:
    """Issue aggregate listing filters; ``None`` leaves a dimension open."""

    repo_slug: str | None = None
    creator_login: str | None = None
    state: str | None = None
    label: str | None = None
    kind: str | None = None
    limit: int | None = None
    offset: int | None = None


def _validate_pagination(limit: int | None, offset: int | None) -> None:
    if limit is not None and limit < 0:
        raise NegativePaginationError("limit")
    if offset is not None and offset < 0:
        raise NegativePaginationError("offset")


def _paginate(query: Select, limit: int | None, offset: int | None) -> Select:
    if offset is not None:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return query


def _build_event_query(options: EventListOptions) -> Select:
    query = select(EventRecord)
    if options.category is not None:
        query = query.where(EventRecord.category == options.category)
    if options.repo_slug is not None:
        query = query.where(EventRecord.repo_slug == options.repo_slug.lower())
    if options.actor_login is not None:
        query = query.where(EventRecord.actor_login == options.actor_login)
    query = query.order_by(EventRecord.occurred_at.desc(), EventRecord.id)
    return _paginate(query, options.limit, options.offset)


def _build_issue_query(options: IssueListOptions) -> Select:
    query = select(Issue)
    if options.label is not None:
        query = query.join(Issue.label_links).where(IssueLabel.name == options.label)
    if options.repo_slug is not None:
        query = query.where(Issue.repo_slug == options.repo_slug.lower())
    if options.creator_login is not None:
        query = query.where(Issue.creator_login == options.creator_login)
    if options.state is not None:
        query = query.where(Issue.state == options.state)
    if options.kind is not None:
        query = query.where(Issue.kind == options.kind)
    query = query.order_by(Issue.repo_slug, Issue.number)
    return _paginate(query, options.limit, options.offset)


async def list_events(
    session_factory: SessionFactory, options: EventListOptions
) -> list[EventRecord]:
    """Return event records matching ``options``, newest first.

    Raises
    ------
    NegativePaginationError
        If limit or offset is negative.

    """
    _validate_pagination(options.limit, options.offset)
    async with session_factory() as session:
        records = await session.scalars(_build_event_query(options))
        return list(records)


async def list_issues(
    session_factory: SessionFactory, options: IssueListOptions
) -> list[Issue]:
    """Return issue aggregates matching ``options``, by repository and number.

    Raises
    ------
    NegativePaginationError
        If limit or offset is negative.

    """
    _validate_pagination(options.limit, options.offset)
    async with session_factory() as session:
        issues = await session.scalars(_build_issue_query(options))
        return list(issues)


async def list_label_timeline(
    session_factory: SessionFactory,
    *,
    label_name: str | None = None,
    issue_slug: str | None = None,
) -> list[LabelTimelineEntry]:
    """Return label timeline entries for a label, an issue, or both."""
    query = select(LabelTimelineEntry)
    if label_name is not None:
        query = query.where(LabelTimelineEntry.label_name == label_name)
    if issue_slug is not None:
        query = query.where(LabelTimelineEntry.issue_slug == issue_slug)
    query = query.order_by(LabelTimelineEntry.issue_slug, LabelTimelineEntry.label_name)
    async with session_factory() as session:
        entries = await session.scalars(query)
        return list(entries)


async def get_profile(
    session_factory: SessionFactory, login: str
) -> ActorProfile | None:
    """Return the cached profile for ``login``."""
    async with session_factory() as session:
        return await session.get(ActorProfile, login)
