"""Resolve the GitHub page an event points at, plus its display label."""

from __future__ import annotations

import dataclasses
import typing as typ

from ghtrail.github.models import (
    CommitCommentPayload,
    CreatePayload,
    ForkPayload,
    IssueCommentPayload,
    IssuesPayload,
    PullRequestPayload,
    PullRequestReviewCommentPayload,
    PushPayload,
    ReleasePayload,
)

from .classification import ClassificationOverride, classify

if typ.TYPE_CHECKING:
    from ghtrail.github.models import GitHubEvent

_GITHUB_WEB_URL = "https://github.com"


@dataclasses.dataclass(frozen=True, slots=True)
class ResolvedLink:
    """Link target of an event; ``url`` is ``None`` when nothing resolves."""

    url: str | None
    label: str


type LinkOverride = typ.Callable[[ResolvedLink, GitHubEvent], ResolvedLink]


def _event_url(event: GitHubEvent) -> str | None:  # noqa: PLR0911
    payload = event.payload
    match payload:
        case IssuesPayload(issue=issue) if issue is not None:
            return issue.html_url
        case PullRequestPayload(pull_request=pull_request) if (
            pull_request is not None
        ):
            return pull_request.html_url
        case (
            IssueCommentPayload(comment=comment)
            | CommitCommentPayload(comment=comment)
            | PullRequestReviewCommentPayload(comment=comment)
        ) if comment is not None:
            return comment.html_url
        case PushPayload(head=head) if head:
            return f"{_GITHUB_WEB_URL}/{event.repo.name}/commits/{head}"
        case CreatePayload(ref=ref) if ref:
            return f"{_GITHUB_WEB_URL}/{event.repo.name}/tree/{ref}"
        case ReleasePayload(release=release) if release is not None:
            return release.html_url
        case ForkPayload(forkee=forkee) if forkee is not None:
            return forkee.html_url
    return None


def resolve_link(
    event: GitHubEvent,
    *,
    classify_override: ClassificationOverride | None = None,
    override: LinkOverride | None = None,
) -> ResolvedLink:
    """Return the URL and label for ``event``.

    Missing payload fields yield ``url=None`` rather than an error. The label
    is the event's category, so ``classify_override`` should be the same hook
    the caller classifies with.
    """
    resolved = ResolvedLink(
        url=_event_url(event) or None,
        label=classify(event.type, event.action, override=classify_override),
    )
    if override is None:
        return resolved
    return override(resolved, event)


def commit_count(event: GitHubEvent) -> int | None:
    """Return the distinct commit count of a push, ``None`` for other events."""
    if isinstance(event.payload, PushPayload):
        return max(event.payload.distinct_size, 0)
    return None


def summarise(resolved: ResolvedLink, commits: int | None = None) -> str:
    """Build the one-line summary stored with an event record.

    >>> summarise(ResolvedLink(url=None, label="Pushed a branch"), 3)
    'Pushed a branch, including 3 commits.'

    """
    if commits is None:
        return resolved.label
    return f"{resolved.label}, including {commits} commits."
