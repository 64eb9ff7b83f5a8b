"""Unit tests for environment-driven configuration."""

from __future__ import annotations

import typing as typ

import pytest

from ghtrail.config import (
    MONITORED_REPO_LIMIT,
    ActivityConfig,
    ConfigError,
    GitHubApiConfig,
    broker_url_from_env,
    cap_monitored_repos,
    database_url_from_env,
    split_names,
)

_ENV_VARS = (
    "GHTRAIL_GITHUB_TOKEN",
    "GHTRAIL_USERNAMES",
    "GHTRAIL_MONITORED_REPOS",
    "GHTRAIL_INCLUDE_PRIVATE",
    "GHTRAIL_ORGANIZATION",
    "GHTRAIL_REPLAY_ISSUE_EVENTS",
    "GHTRAIL_API_URL",
    "GHTRAIL_HTTP_TIMEOUT",
    "GHTRAIL_PAGE_SIZE",
    "GHTRAIL_MAX_PAGES",
    "GHTRAIL_DATABASE_URL",
    "GHTRAIL_BROKER_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test without ghtrail variables."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_split_names_accepts_commas_and_whitespace() -> None:
    """Lists may mix separators and contain empty entries."""
    assert split_names("octocat, hubot\nmonalisa,,") == (
        "octocat",
        "hubot",
        "monalisa",
    )
    assert split_names("") == ()
    assert split_names(None) == ()


def test_cap_monitored_repos_dedupes_then_caps() -> None:
    """Duplicates are removed before the ten repository cap applies."""
    repos = [f"octo/repo{i}" for i in range(12)]

    capped = cap_monitored_repos(["octo/repo0", *repos])

    assert len(capped) == MONITORED_REPO_LIMIT
    assert capped[0] == "octo/repo0"
    assert capped[-1] == "octo/repo9"


def test_activity_config_caps_direct_construction() -> None:
    """Building a config directly still honours the cap."""
    config = ActivityConfig(
        token="t", monitored_repos=tuple(f"o/r{i}" for i in range(15))
    )

    assert len(config.monitored_repos) == MONITORED_REPO_LIMIT


def test_activity_config_from_env_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    """Only the token is required; everything else has a default."""
    monkeypatch.setenv("GHTRAIL_GITHUB_TOKEN", " t0k3n ")

    config = ActivityConfig.from_env()

    assert config.token == "t0k3n"
    assert config.usernames == ()
    assert config.monitored_repos == ()
    assert config.include_private is False
    assert config.organization is None
    assert config.replay_issue_events is True


def test_activity_config_from_env_reads_all_values(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Every documented variable is parsed."""
    monkeypatch.setenv("GHTRAIL_GITHUB_TOKEN", "t0k3n")
    monkeypatch.setenv("GHTRAIL_USERNAMES", "octocat hubot")
    monkeypatch.setenv("GHTRAIL_MONITORED_REPOS", "Octo/Reef,octo/kelp,octo/reef")
    monkeypatch.setenv("GHTRAIL_INCLUDE_PRIVATE", "yes")
    monkeypatch.setenv("GHTRAIL_ORGANIZATION", "octo-org")
    monkeypatch.setenv("GHTRAIL_REPLAY_ISSUE_EVENTS", "0")

    config = ActivityConfig.from_env()

    assert config.usernames == ("octocat", "hubot")
    assert config.monitored_repos == ("octo/reef", "octo/kelp")
    assert config.include_private is True
    assert config.organization == "octo-org"
    assert config.replay_issue_events is False


def test_missing_token_raises() -> None:
    """A missing token is a configuration error naming the variable."""
    with pytest.raises(ConfigError, match="GHTRAIL_GITHUB_TOKEN"):
        ActivityConfig.from_env()
    with pytest.raises(ConfigError, match="GHTRAIL_GITHUB_TOKEN"):
        GitHubApiConfig.from_env()


@pytest.mark.parametrize(
    ("loader", "name", "value"),
    [
        (ActivityConfig.from_env, "GHTRAIL_MONITORED_REPOS", "octo/reef, bad"),
        (ActivityConfig.from_env, "GHTRAIL_INCLUDE_PRIVATE", "maybe"),
        (GitHubApiConfig.from_env, "GHTRAIL_PAGE_SIZE", "101"),
        (GitHubApiConfig.from_env, "GHTRAIL_PAGE_SIZE", "ten"),
        (GitHubApiConfig.from_env, "GHTRAIL_MAX_PAGES", "0"),
        (GitHubApiConfig.from_env, "GHTRAIL_HTTP_TIMEOUT", "-1"),
    ],
)
def test_invalid_values_raise(
    monkeypatch: pytest.MonkeyPatch,
    loader: typ.Callable[[], object],
    name: str,
    value: str,
) -> None:
    """Unparseable values name the offending variable."""
    monkeypatch.setenv("GHTRAIL_GITHUB_TOKEN", "t0k3n")
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigError, match=name):
        loader()


def test_api_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """API settings strip trailing slashes and parse numbers."""
    monkeypatch.setenv("GHTRAIL_GITHUB_TOKEN", "t0k3n")
    monkeypatch.setenv("GHTRAIL_API_URL", "https://ghe.example.com/api/v3/")
    monkeypatch.setenv("GHTRAIL_HTTP_TIMEOUT", "5.5")
    monkeypatch.setenv("GHTRAIL_PAGE_SIZE", "30")
    monkeypatch.setenv("GHTRAIL_MAX_PAGES", "3")

    config = GitHubApiConfig.from_env()

    assert config.base_url == "https://ghe.example.com/api/v3"
    assert config.timeout_s == pytest.approx(5.5)
    assert config.page_size == 30
    assert config.max_pages == 3


def test_database_url_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """The database URL is required when asked for."""
    with pytest.raises(ConfigError, match="GHTRAIL_DATABASE_URL"):
        database_url_from_env()

    monkeypatch.setenv("GHTRAIL_DATABASE_URL", "sqlite+aiosqlite:///x.db")

    assert database_url_from_env() == "sqlite+aiosqlite:///x.db"


def test_broker_url_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """The broker URL is optional but must be an AMQP URL when given."""
    assert broker_url_from_env() is None

    monkeypatch.setenv("GHTRAIL_BROKER_URL", "redis://localhost:6379/0")
    with pytest.raises(ConfigError, match="GHTRAIL_BROKER_URL"):
        broker_url_from_env()

    monkeypatch.setenv("GHTRAIL_BROKER_URL", " amqp://mq.internal:5672/ ")

    assert broker_url_from_env() == "amqp://mq.internal:5672/"
