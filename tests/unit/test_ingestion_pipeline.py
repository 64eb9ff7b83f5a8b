"""Unit tests for the activity ingestion pipeline."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest
from sqlalchemy import func, select

from ghtrail.config import ActivityConfig
from ghtrail.events.registry import RepositoryRegistry
from ghtrail.events.storage import EventRecord
from ghtrail.github.models import UserProfile
from ghtrail.ingestion import observability
from ghtrail.ingestion.pipeline import ActivityIngestionPipeline, IngestionHooks
from ghtrail.issues.reconciler import find_issue
from ghtrail.listing import get_profile, list_label_timeline
from tests.helpers import RecordingLogger
from tests.unit.activity_test_helpers import (
    FakeActivityClient,
    make_event,
    make_issue_event,
    make_sub_events,
    raw_sub_event,
)

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

pytestmark = pytest.mark.asyncio

type SessionFactory = async_sessionmaker[AsyncSession]


def _config(**overrides: typ.Any) -> ActivityConfig:  # noqa: ANN401
    values: dict[str, typ.Any] = {
        "token": "t0k3n",
        "usernames": ("octocat",),
        "monitored_repos": ("octo/reef",),
    }
    values.update(overrides)
    return ActivityConfig(**values)


async def _count_events(session_factory: SessionFactory) -> int:
    async with session_factory() as session:
        count = await session.scalar(select(func.count()).select_from(EventRecord))
    return count or 0


async def _get_event(session_factory: SessionFactory, event_id: str) -> EventRecord:
    async with session_factory() as session:
        record = await session.get(EventRecord, event_id)
    assert record is not None, f"Expected event {event_id} to be stored."
    return record


async def test_run_stores_classified_linked_events(
    session_factory: SessionFactory,
) -> None:
    """Every new event is stored with category, link, summary and tags."""
    client = FakeActivityClient(
        user_feeds={
            "octocat": [
                make_event(
                    "10",
                    "PushEvent",
                    payload={"head": "abc123", "distinct_size": 3},
                    repo="octo/elsewhere",
                ),
                make_issue_event("11", 5),
            ]
        }
    )

    result = await ActivityIngestionPipeline(_config(), session_factory, client).run()

    assert result.events_fetched == 2
    assert result.events_created == 2
    push = await _get_event(session_factory, "10")
    assert push.category == "Pushed a branch"
    assert push.link_url == "https://github.com/octo/elsewhere/commits/abc123"
    assert push.summary == "Pushed a branch, including 3 commits."
    assert push.metadata_ == {"commit_count": 3}
    assert push.repo_slug == "octo/elsewhere"
    assert push.actor_login == "octocat"
    assert push.occurred_at == dt.datetime(2024, 5, 1, 10, 0, tzinfo=dt.UTC)
    opened = await _get_event(session_factory, "11")
    assert opened.category == "Issue Opened"
    assert opened.issue_number == 5
    assert opened.summary == "Issue Opened"
    registry = RepositoryRegistry(session_factory)
    assert await registry.list_repositories() == ["octo/elsewhere", "octo/reef"]


async def test_rerun_is_idempotent(session_factory: SessionFactory) -> None:
    """Polling the same feeds twice stores each event once."""
    feed = [make_event("1", "PushEvent"), make_issue_event("2", 3)]
    client = FakeActivityClient(user_feeds={"octocat": feed})
    pipeline = ActivityIngestionPipeline(_config(), session_factory, client)

    first = await pipeline.run()
    second = await pipeline.run()

    assert first.events_created == 2
    assert second.events_created == 0
    assert second.events_duplicate == 2
    assert await _count_events(session_factory) == 2


async def test_event_in_user_and_repo_feed_is_stored_once(
    session_factory: SessionFactory,
) -> None:
    """Cross-feed duplicates within one run are dropped."""
    shared = make_issue_event("42", 7)
    client = FakeActivityClient(
        user_feeds={"octocat": [shared]},
        repo_feeds={"octo/reef": [shared, make_event("43", "WatchEvent")]},
    )

    result = await ActivityIngestionPipeline(_config(), session_factory, client).run()

    assert result.events_fetched == 3
    assert result.events_created == 2
    assert result.events_duplicate == 1
    assert result.issues_reconciled == 1
    assert client.calls[:2] == [
        ("user_events", "octocat"),
        ("repo_events", "octo/reef"),
    ]


@pytest.mark.parametrize(
    ("include_private", "expected_created"), [(False, 1), (True, 2)]
)
async def test_private_events_follow_configuration(
    session_factory: SessionFactory,
    expected_created: int,
    *,
    include_private: bool,
) -> None:
    """Non-public events are dropped unless explicitly enabled."""
    client = FakeActivityClient(
        user_feeds={
            "octocat": [
                make_event("1", "PushEvent"),
                make_event("2", "PushEvent", public=False),
            ]
        }
    )
    config = _config(include_private=include_private)

    result = await ActivityIngestionPipeline(config, session_factory, client).run()

    assert result.events_created == expected_created
    assert result.events_filtered == 2 - expected_created


async def test_issues_reconcile_only_for_monitored_repositories(
    session_factory: SessionFactory,
) -> None:
    """Aggregates exist for monitored repositories only."""
    client = FakeActivityClient(
        user_feeds={
            "octocat": [
                make_issue_event("1", 1, repo="octo/reef"),
                make_issue_event("2", 1, repo="octo/other"),
            ]
        }
    )

    result = await ActivityIngestionPipeline(_config(), session_factory, client).run()

    assert result.events_created == 2
    assert result.issues_reconciled == 1
    async with session_factory() as session:
        assert await find_issue(session, "octo/reef", 1) is not None
        assert await find_issue(session, "octo/other", 1) is None


async def test_later_events_keep_issue_creation_time(
    session_factory: SessionFactory,
) -> None:
    """A close seen in a later run updates state but not creation facts."""
    client = FakeActivityClient(
        user_feeds={"octocat": [make_issue_event("1", 8, login="octocat")]}
    )
    pipeline = ActivityIngestionPipeline(_config(), session_factory, client)
    await pipeline.run()
    client.user_feeds["octocat"] = [
        make_issue_event(
            "2",
            8,
            action="closed",
            login="hubot",
            state="closed",
            created_at="2024-05-09T00:00:00Z",
        )
    ]

    await pipeline.run()

    async with session_factory() as session:
        issue = await find_issue(session, "octo/reef", 8)
    assert issue is not None
    assert issue.state == "closed"
    assert issue.creator_login == "octocat"
    assert issue.created_at == dt.datetime(2024, 4, 30, 9, 0, tzinfo=dt.UTC)


async def test_newest_first_feed_leaves_latest_issue_snapshot(
    session_factory: SessionFactory,
) -> None:
    """An older event later in the feed never overwrites a newer one."""
    newer = make_issue_event(
        "2",
        9,
        action="edited",
        created_at="2024-05-02T10:00:00Z",
        title="New title",
        labels=("bug",),
        comments=3,
    )
    older = make_issue_event(
        "1", 9, created_at="2024-05-01T10:00:00Z", title="Old title", comments=2
    )
    client = FakeActivityClient(user_feeds={"octocat": [newer, older]})
    config = _config(replay_issue_events=False)

    result = await ActivityIngestionPipeline(config, session_factory, client).run()

    assert result.issues_reconciled == 2
    async with session_factory() as session:
        issue = await find_issue(session, "octo/reef", 9)
    assert issue is not None
    assert issue.title == "New title"
    assert issue.labels == ["bug"]
    assert issue.comment_count == 3
    assert issue.creator_login == "octocat"


async def test_repository_slugs_match_regardless_of_case(
    session_factory: SessionFactory,
) -> None:
    """Mixed-case configuration and feed slugs share one repository tag."""
    client = FakeActivityClient(
        user_feeds={
            "octocat": [
                make_issue_event("1", 4, repo="octo/reef"),
                make_issue_event("2", 4, action="edited", repo="OCTO/Reef"),
            ]
        }
    )
    config = _config(monitored_repos=("Octo/Reef",), replay_issue_events=False)

    result = await ActivityIngestionPipeline(config, session_factory, client).run()

    assert result.monitored_repos == ("octo/reef",)
    assert result.issues_reconciled == 2
    registry = RepositoryRegistry(session_factory)
    assert await registry.list_repositories() == ["octo/reef"]
    record = await _get_event(session_factory, "2")
    assert record.repo_slug == "octo/reef"
    async with session_factory() as session:
        assert await find_issue(session, "octo/reef", 4) is not None


async def test_one_bad_event_does_not_abort_the_run(
    session_factory: SessionFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A persistence failure is logged, counted and skipped."""
    recorder = RecordingLogger()
    monkeypatch.setattr(observability, "logger", recorder)
    client = FakeActivityClient(
        user_feeds={
            "octocat": [
                make_event("1", "PushEvent"),
                make_event("2", "PushEvent", repo="not-a-slug"),
                make_event("3", "PushEvent"),
            ]
        }
    )

    result = await ActivityIngestionPipeline(_config(), session_factory, client).run()

    assert result.events_created == 2
    assert result.events_failed == 1
    assert await _count_events(session_factory) == 2
    failures = [m for m in recorder.messages("WARNING") if "event_id=2" in m]
    assert len(failures) == 1
    assert any("[ingestion.run.completed]" in m for m in recorder.messages("INFO"))


async def test_run_failure_is_logged_and_raised(
    session_factory: SessionFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Unexpected errors end the run with a failure log."""
    recorder = RecordingLogger()
    monkeypatch.setattr(observability, "logger", recorder)
    client = FakeActivityClient()

    async def _explode(login: str) -> list[object]:
        msg = f"feed exploded for {login}"
        raise RuntimeError(msg)

    monkeypatch.setattr(client, "user_events", _explode)

    with pytest.raises(RuntimeError, match="feed exploded"):
        await ActivityIngestionPipeline(_config(), session_factory, client).run()

    (message,) = recorder.messages("ERROR")
    assert "[ingestion.run.failed]" in message
    assert "error_category=unknown" in message


async def test_new_actors_are_enriched_once(session_factory: SessionFactory) -> None:
    """Each new actor is looked up once; later runs reuse the cache."""
    client = FakeActivityClient(
        user_feeds={
            "octocat": [
                make_event("1", "PushEvent", login="octocat"),
                make_event("2", "PushEvent", login="octocat"),
                make_event("3", "PushEvent", login="ghost"),
            ]
        },
        profiles={"octocat": UserProfile(login="octocat", name="The Octocat")},
    )
    pipeline = ActivityIngestionPipeline(_config(), session_factory, client)

    result = await pipeline.run()
    client.user_feeds["octocat"].append(make_event("4", "PushEvent", login="octocat"))
    await pipeline.run()

    assert result.actors_enriched == 1
    assert client.count("user_profile") == 2
    profile = await get_profile(session_factory, "octocat")
    assert profile is not None
    assert profile.name == "The Octocat"


async def test_monitored_repositories_are_replayed(
    session_factory: SessionFactory,
) -> None:
    """The label timeline pass runs per monitored repository after ingestion."""
    client = FakeActivityClient(
        repo_feeds={"octo/reef": [make_issue_event("1", 1)]},
        issue_feeds={
            "octo/reef": make_sub_events(
                raw_sub_event("labeled", "2024-05-01T11:00:00Z", label="bug"),
            )
        },
    )

    result = await ActivityIngestionPipeline(_config(), session_factory, client).run()

    assert result.monitored_repos == ("octo/reef",)
    assert result.sub_events_applied == 1
    (entry,) = await list_label_timeline(session_factory, label_name="bug")
    assert entry.issue_slug == "octo/reef#1"


async def test_replay_can_be_disabled(session_factory: SessionFactory) -> None:
    """Configurations may skip the issue-events pass."""
    client = FakeActivityClient()
    config = _config(replay_issue_events=False)

    result = await ActivityIngestionPipeline(config, session_factory, client).run()

    assert result.sub_events_applied == 0
    assert client.count("issue_events") == 0


async def test_database_flagged_repositories_join_the_watch_list(
    session_factory: SessionFactory,
) -> None:
    """Repositories flagged earlier are polled alongside configured ones."""
    await RepositoryRegistry(session_factory).set_full_reporting("octo/kelp")
    client = FakeActivityClient()

    result = await ActivityIngestionPipeline(_config(), session_factory, client).run()

    assert result.monitored_repos == ("octo/kelp", "octo/reef")
    assert ("repo_events", "octo/kelp") in client.calls


async def test_hooks_customise_classification_and_reconciliation(
    session_factory: SessionFactory,
) -> None:
    """Injected hooks rename categories and narrow issue reconciliation."""

    def classify_override(category: str, event_type: str, action: str) -> str:
        del action
        return "Starred a repo" if event_type == "WatchEvent" else category

    hooks = IngestionHooks(
        classify_override=classify_override,
        issue_repo_filter=lambda repos: [slug for slug in repos if slug != "octo/reef"],
    )
    client = FakeActivityClient(
        user_feeds={
            "octocat": [
                make_event("1", "WatchEvent", payload={"action": "started"}),
                make_issue_event("2", 4),
            ]
        }
    )
    pipeline = ActivityIngestionPipeline(
        _config(), session_factory, client, hooks=hooks
    )

    result = await pipeline.run()

    starred = await _get_event(session_factory, "1")
    assert starred.category == "Starred a repo"
    assert starred.link_label == "Starred a repo"
    assert result.issues_reconciled == 0
