"""Repository and issue slug utilities.

Repository slugs are GitHub identifiers in ``owner/name`` format and issue
slugs append the issue number as ``owner/name#number``. They are not
filesystem paths, even though they use ``/`` as a separator, so they should be
parsed using these helpers rather than ``pathlib``. Stored slugs are lower case,
matching GitHub's case-insensitive resolution of owner and repository names.
"""

from __future__ import annotations

import re

_ISSUE_EVENTS_URL = re.compile(r"repos/(?P<slug>[^/\s]+/[^/\s]+)/issues(?:/|$)")


def repo_slug(owner: str, name: str) -> str:
    """Build a repository slug from owner and name.

    Examples
    --------
    >>> repo_slug("octo", "reef")
    'octo/reef'

    """
    return f"{owner}/{name}"


def parse_repo_slug(slug: str) -> tuple[str, str]:
    """Parse a repository slug into owner and name.

    Raises
    ------
    ValueError
        If the slug is not in ``owner/name`` format.

    Examples
    --------
    >>> parse_repo_slug("octo/reef")
    ('octo', 'reef')

    """
    if slug.count("/") != 1:
        msg = f"Invalid repository slug: expected 'owner/name', got {slug!r}"
        raise ValueError(msg)

    owner, name = slug.split("/")
    if not owner.strip() or not name.strip():
        msg = f"Invalid repository slug: expected 'owner/name', got {slug!r}"
        raise ValueError(msg)

    return owner, name


def issue_slug(repo: str, number: int) -> str:
    """Return the ``owner/name#number`` key used by label timeline entries.

    >>> issue_slug("octo/reef", 7)
    'octo/reef#7'

    """
    return f"{repo}#{number}"


def repo_slug_from_issue_events_url(url: str | None) -> str | None:
    """Extract ``owner/name`` from an issue-events API URL.

    Returns ``None`` when the URL does not follow the
    ``.../repos/<owner>/<name>/issues...`` pattern.

    >>> repo_slug_from_issue_events_url(
    ...     "https://api.github.com/repos/octo/reef/issues/events/42"
    ... )
    'octo/reef'
    >>> repo_slug_from_issue_events_url("https://api.github.com/users/octo") is None
    True

    """
    if not url:
        return None
    match = _ISSUE_EVENTS_URL.search(url)
    if match is None:
        return None
    return match.group("slug").lower()
