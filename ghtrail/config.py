"""Runtime configuration for the activity poller.

Configuration is read once, validated, and passed explicitly to the pipeline
and its collaborators; nothing in ghtrail reads the environment after
start-up.

Usage
-----
Build a configuration directly:

>>> config = ActivityConfig(token="t0k3n", usernames=("octocat",))
>>> config.include_private
False

Or load it from environment variables:

>>> import os
>>> os.environ["GHTRAIL_GITHUB_TOKEN"] = "t0k3n"
>>> os.environ["GHTRAIL_USERNAMES"] = "octocat, hubot"
>>> ActivityConfig.from_env().usernames
('octocat', 'hubot')

"""

from __future__ import annotations

import dataclasses as dc
import os
import re

from ghtrail.common.slug import parse_repo_slug

MONITORED_REPO_LIMIT = 10
"""Upper bound on monitored repositories, to stay within GitHub rate limits."""

MAX_PAGE_SIZE = 100

_LIST_SEPARATORS = re.compile(r"[,\s]+")
_DEFAULT_API_URL = "https://api.github.com"
_DEFAULT_TIMEOUT_S = 20.0
_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off", ""})
_AMQP_SCHEMES = ("amqp://", "amqps://")


class ConfigError(ValueError):
    """Raised when environment configuration is missing or invalid."""

    @classmethod
    def missing(cls, env_var: str) -> ConfigError:
        """Return an error for a required variable that is unset."""
        return cls(f"{env_var} is required")

    @classmethod
    def invalid(cls, env_var: str, raw: str, expected: str) -> ConfigError:
        """Return an error for a variable holding an unusable value."""
        return cls(f"{env_var} must be {expected}, got: {raw!r}")


def split_names(raw: str | None) -> tuple[str, ...]:
    """Split a comma and/or whitespace separated list, dropping empties.

    >>> split_names("octocat, hubot  monalisa,,")
    ('octocat', 'hubot', 'monalisa')

    """
    if not raw:
        return ()
    return tuple(part for part in _LIST_SEPARATORS.split(raw) if part)


def cap_monitored_repos(repos: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    """Lower-case and deduplicate repo slugs in order, keeping the first ten."""
    unique = tuple(dict.fromkeys(slug.lower() for slug in repos))
    return unique[:MONITORED_REPO_LIMIT]


def _parse_bool(env_var: str, *, default: bool) -> bool:
    raw = os.environ.get(env_var)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ConfigError.invalid(env_var, raw, "a boolean")


def _parse_positive_int(
    env_var: str, default: int, *, maximum: int | None = None
) -> int:
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError.invalid(env_var, raw, "an integer") from exc
    if value < 1 or (maximum is not None and value > maximum):
        bound = f"between 1 and {maximum}" if maximum is not None else "positive"
        raise ConfigError.invalid(env_var, raw, bound)
    return value


def _parse_positive_float(env_var: str, default: float) -> float:
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError.invalid(env_var, raw, "a number") from exc
    if value <= 0:
        raise ConfigError.invalid(env_var, raw, "positive")
    return value


def _parse_repo_list(env_var: str) -> tuple[str, ...]:
    repos = split_names(os.environ.get(env_var))
    for slug in repos:
        try:
            parse_repo_slug(slug)
        except ValueError as exc:
            raise ConfigError.invalid(env_var, slug, "'owner/name' slugs") from exc
    return cap_monitored_repos(repos)


@dc.dataclass(frozen=True, slots=True)
class GitHubApiConfig:
    """Connection settings for the GitHub REST API.

    Attributes
    ----------
    token
        Personal access token sent as a bearer ``Authorization`` header.
    base_url
        REST API root. Overridden in tests and for GitHub Enterprise.
    timeout_s
        Per-request timeout handed to ``httpx``.
    page_size
        ``per_page`` value for list endpoints; GitHub caps this at 100.
    max_pages
        Number of pages followed per feed while pages come back full.

    """

    token: str
    base_url: str = _DEFAULT_API_URL
    timeout_s: float = _DEFAULT_TIMEOUT_S
    page_size: int = MAX_PAGE_SIZE
    max_pages: int = 1
    user_agent: str = "ghtrail/0.1"

    @classmethod
    def from_env(cls) -> GitHubApiConfig:
        """Build API settings from ``GHTRAIL_*`` environment variables."""
        token = os.environ.get("GHTRAIL_GITHUB_TOKEN", "").strip()
        if not token:
            raise ConfigError.missing("GHTRAIL_GITHUB_TOKEN")
        base_url = os.environ.get("GHTRAIL_API_URL", "").strip() or _DEFAULT_API_URL
        return cls(
            token=token,
            base_url=base_url.rstrip("/"),
            timeout_s=_parse_positive_float(
                "GHTRAIL_HTTP_TIMEOUT", _DEFAULT_TIMEOUT_S
            ),
            page_size=_parse_positive_int(
                "GHTRAIL_PAGE_SIZE", MAX_PAGE_SIZE, maximum=MAX_PAGE_SIZE
            ),
            max_pages=_parse_positive_int("GHTRAIL_MAX_PAGES", 1),
        )


@dc.dataclass(frozen=True, slots=True)
class ActivityConfig:
    """What to poll and how to treat what comes back.

    Attributes
    ----------
    token
        GitHub access token.
    usernames
        Users whose public event feeds are polled.
    monitored_repos
        Repositories polled for every actor; flagged for full reporting at
        the start of each run. Never more than ten entries.
    include_private
        Keep events GitHub marks as non-public.
    organization
        Organization login used to compute ``is_org_member`` on profiles.
    replay_issue_events
        Run the label timeline pass after ingestion.

    """

    token: str
    usernames: tuple[str, ...] = ()
    monitored_repos: tuple[str, ...] = ()
    include_private: bool = False
    organization: str | None = None
    replay_issue_events: bool = True

    def __post_init__(self) -> None:
        """Enforce the monitored repository cap for directly built configs."""
        object.__setattr__(
            self, "monitored_repos", cap_monitored_repos(self.monitored_repos)
        )

    @classmethod
    def from_env(cls) -> ActivityConfig:
        """Create configuration from environment variables.

        Reads ``GHTRAIL_GITHUB_TOKEN`` (required), ``GHTRAIL_USERNAMES``,
        ``GHTRAIL_MONITORED_REPOS``, ``GHTRAIL_INCLUDE_PRIVATE``,
        ``GHTRAIL_ORGANIZATION`` and ``GHTRAIL_REPLAY_ISSUE_EVENTS``.

        Raises
        ------
        ConfigError
            If the token is missing or a value cannot be parsed.

        """
        token = os.environ.get("GHTRAIL_GITHUB_TOKEN", "").strip()
        if not token:
            raise ConfigError.missing("GHTRAIL_GITHUB_TOKEN")
        organization = os.environ.get("GHTRAIL_ORGANIZATION", "").strip() or None
        return cls(
            token=token,
            usernames=split_names(os.environ.get("GHTRAIL_USERNAMES")),
            monitored_repos=_parse_repo_list("GHTRAIL_MONITORED_REPOS"),
            include_private=_parse_bool("GHTRAIL_INCLUDE_PRIVATE", default=False),
            organization=organization,
            replay_issue_events=_parse_bool(
                "GHTRAIL_REPLAY_ISSUE_EVENTS", default=True
            ),
        )


def database_url_from_env() -> str:
    """Return ``GHTRAIL_DATABASE_URL`` or raise :class:`ConfigError`."""
    url = os.environ.get("GHTRAIL_DATABASE_URL", "").strip()
    if not url:
        raise ConfigError.missing("GHTRAIL_DATABASE_URL")
    return url


def broker_url_from_env() -> str | None:
    """Return ``GHTRAIL_BROKER_URL`` when set, checking it is an AMQP URL.

    Raises
    ------
    ConfigError
        If the URL does not use the ``amqp`` or ``amqps`` scheme.

    """
    url = os.environ.get("GHTRAIL_BROKER_URL", "").strip()
    if not url:
        return None
    if not url.startswith(_AMQP_SCHEMES):
        raise ConfigError.invalid("GHTRAIL_BROKER_URL", url, "an amqp:// URL")
    return url
