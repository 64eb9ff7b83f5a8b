"""Unit tests for repository and issue slug utilities."""

from __future__ import annotations

import pytest

from ghtrail.common.slug import (
    issue_slug,
    parse_repo_slug,
    repo_slug,
    repo_slug_from_issue_events_url,
)


def test_repo_slug_combines_owner_and_name() -> None:
    """repo_slug returns owner/name format."""
    assert repo_slug("octo", "reef") == "octo/reef"
    assert repo_slug("org", "repo") == "org/repo"


def test_parse_repo_slug_splits_owner_and_name() -> None:
    """parse_repo_slug returns (owner, name) for valid slugs."""
    assert parse_repo_slug("octo/reef") == ("octo", "reef")
    assert parse_repo_slug("Owner-Org/Repo_Name") == ("Owner-Org", "Repo_Name")


@pytest.mark.parametrize(
    "slug",
    [
        "",
        "   ",
        "/",
        "invalid",
        "owner/name/extra",
        "owner/",
        "/name",
        "owner//name",
    ],
)
def test_parse_repo_slug_rejects_invalid_slugs(slug: str) -> None:
    """parse_repo_slug raises ValueError for invalid slugs."""
    with pytest.raises(ValueError, match="Invalid repository slug"):
        parse_repo_slug(slug)


def test_issue_slug_appends_number() -> None:
    """issue_slug builds the owner/name#number key."""
    assert issue_slug("octo/reef", 42) == "octo/reef#42"


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://api.github.com/repos/octo/reef/issues/events/9", "octo/reef"),
        ("https://api.github.com/repos/octo/reef/issues/3/events", "octo/reef"),
        ("https://ghe.example.com/api/v3/repos/a/b/issues", "a/b"),
        ("https://api.github.com/repos/Octo/Reef/issues/events/1", "octo/reef"),
        ("https://api.github.com/users/octocat", None),
        ("https://api.github.com/repos/octo/reef/pulls/3", None),
        ("", None),
        (None, None),
    ],
)
def test_repo_slug_from_issue_events_url(url: str | None, expected: str | None) -> None:
    """Issue-event URLs yield their repository; anything else yields None."""
    assert repo_slug_from_issue_events_url(url) == expected
