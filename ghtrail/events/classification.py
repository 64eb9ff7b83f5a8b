"""Map GitHub event types and actions to canonical activity categories."""

from __future__ import annotations

import enum
import typing as typ


class EventCategory(enum.StrEnum):
    """Canonical categories stored on every event record."""

    ISSUE_OPENED = "Issue Opened"
    ISSUE_CLOSED = "Issue Closed"
    ISSUE_TOUCHED = "Issue touched"
    PR_OPENED = "PR Opened"
    PR_CLOSED = "PR Closed"
    PR_TOUCHED = "PR touched"
    COMMENT = "Comment"
    REVIEWED_PR = "Reviewed a PR"
    PUSHED_BRANCH = "Pushed a branch"
    CREATED_TAG = "Created a tag"
    CREATED_RELEASE = "Created a release"
    DELETED_BRANCH = "Deleted a branch"
    EDITED_WIKI = "Edited a Wiki page"
    FORKED_REPO = "Forked a repo"
    OTHER = "Did something"


type ClassificationOverride = typ.Callable[[str, str, str], str]
"""Hook receiving ``(category, event_type, action)``; returns the category."""

_ACTION_CATEGORIES: dict[str, tuple[EventCategory, EventCategory, EventCategory]] = {
    "IssuesEvent": (
        EventCategory.ISSUE_OPENED,
        EventCategory.ISSUE_CLOSED,
        EventCategory.ISSUE_TOUCHED,
    ),
    "PullRequestEvent": (
        EventCategory.PR_OPENED,
        EventCategory.PR_CLOSED,
        EventCategory.PR_TOUCHED,
    ),
}

_TYPE_CATEGORIES: dict[str, EventCategory] = {
    "IssueCommentEvent": EventCategory.COMMENT,
    "CommitCommentEvent": EventCategory.COMMENT,
    "PullRequestReviewCommentEvent": EventCategory.REVIEWED_PR,
    "PushEvent": EventCategory.PUSHED_BRANCH,
    "CreateEvent": EventCategory.CREATED_TAG,
    "ReleaseEvent": EventCategory.CREATED_RELEASE,
    "DeleteEvent": EventCategory.DELETED_BRANCH,
    "GollumEvent": EventCategory.EDITED_WIKI,
    "ForkEvent": EventCategory.FORKED_REPO,
}


def _default_category(event_type: str, action: str) -> EventCategory:
    by_action = _ACTION_CATEGORIES.get(event_type)
    if by_action is not None:
        opened, closed, touched = by_action
        if action == "opened":
            return opened
        if action == "closed":
            return closed
        return touched
    return _TYPE_CATEGORIES.get(event_type, EventCategory.OTHER)


def classify(
    event_type: str,
    action: str = "",
    *,
    override: ClassificationOverride | None = None,
) -> str:
    """Return the canonical category for an event.

    Parameters
    ----------
    event_type
        GitHub event ``type``, e.g. ``"IssuesEvent"``.
    action
        Payload ``action``; empty when the payload has none.
    override
        Optional hook that may replace the default category.

    Returns
    -------
    str
        The category. Unrecognised types map to ``"Did something"``.

    Examples
    --------
    >>> classify("IssuesEvent", "opened")
    'Issue Opened'
    >>> classify("IssuesEvent", "edited")
    'Issue touched'
    >>> classify("WatchEvent")
    'Did something'

    """
    category = _default_category(event_type, action).value
    if override is None:
        return category
    return override(category, event_type, action)
