"""GitHub REST client used by the activity poller.

Every fetch is best effort: transport failures, non-success statuses and
unparseable bodies are logged and surface as empty results, so one broken
feed never aborts an ingestion run.
"""

from __future__ import annotations

import json
import typing as typ

import httpx

from ghtrail.logging import get_logger, log_debug, log_warning

from .errors import GitHubAPIError, GitHubConfigError
from .models import (
    GitHubEvent,
    IssueSubEvent,
    UserProfile,
    decode_events,
    decode_organization_logins,
    decode_profile,
    decode_sub_events,
)

if typ.TYPE_CHECKING:
    from ghtrail.config import GitHubApiConfig

logger = get_logger(__name__)

_HTTP_ERROR_STATUS_THRESHOLD = 400


class ActivityClient(typ.Protocol):
    """Interface for fetching the GitHub data the poller consumes."""

    async def user_events(self, login: str) -> list[GitHubEvent]:
        """Return recent events performed by ``login``."""
        ...

    async def repo_events(self, repo_slug: str) -> list[GitHubEvent]:
        """Return recent events that happened in ``repo_slug``."""
        ...

    async def issue_events(
        self, repo_slug: str, number: int | None = None
    ) -> list[IssueSubEvent]:
        """Return issue sub-events for a repository or a single issue."""
        ...

    async def user_profile(self, login: str) -> UserProfile | None:
        """Return the public profile of ``login`` when it can be fetched."""
        ...

    async def user_organizations(self, login: str) -> list[str]:
        """Return the organization logins ``login`` publicly belongs to."""
        ...


class GitHubRestClient:
    """httpx implementation of :class:`ActivityClient`."""

    def __init__(
        self,
        config: GitHubApiConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with the provided API configuration."""
        if not config.token.strip():
            raise GitHubConfigError.empty_token()

        self._config = config
        self._owns_client = http_client is None
        self._base_url = config.base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "Authorization": f"Bearer {config.token}",
                "User-Agent": config.user_agent,
                "Accept": "application/vnd.github+json",
            },
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def user_events(self, login: str) -> list[GitHubEvent]:
        """Return recent events performed by ``login``."""
        raw = await self._fetch_pages(f"/users/{login}/events")
        return decode_events(raw)

    async def repo_events(self, repo_slug: str) -> list[GitHubEvent]:
        """Return recent events that happened in ``repo_slug``."""
        raw = await self._fetch_pages(f"/repos/{repo_slug}/events")
        return decode_events(raw)

    async def issue_events(
        self, repo_slug: str, number: int | None = None
    ) -> list[IssueSubEvent]:
        """Return issue sub-events for a repository or a single issue.

        Parameters
        ----------
        repo_slug
            ``owner/name`` of the repository.
        number
            When given, fetch ``/issues/{number}/events`` instead of the
            repository-wide feed.

        """
        if number is None:
            path = f"/repos/{repo_slug}/issues/events"
        else:
            path = f"/repos/{repo_slug}/issues/{number}/events"
        raw = await self._fetch_pages(path)
        return decode_sub_events(raw)

    async def user_profile(self, login: str) -> UserProfile | None:
        """Return the public profile of ``login`` when it can be fetched."""
        path = f"/users/{login}"
        try:
            raw = await self._get(path)
        except GitHubAPIError as exc:
            log_warning(logger, "Profile fetch failed for %s: %s", login, exc)
            return None
        return decode_profile(raw)

    async def user_organizations(self, login: str) -> list[str]:
        """Return the organization logins ``login`` publicly belongs to."""
        raw = await self._fetch_pages(f"/users/{login}/orgs")
        return decode_organization_logins(raw)

    async def _fetch_pages(self, path: str) -> list[object]:
        """Collect up to ``max_pages`` pages of a list endpoint.

        Paging stops early on the first short page. A failure on any page is
        logged and ends paging; items already collected are kept.
        """
        items: list[object] = []
        page_size = self._config.page_size
        for page in range(1, self._config.max_pages + 1):
            try:
                params = {"per_page": page_size, "page": page}
                body = await self._get(path, params=params)
            except GitHubAPIError as exc:
                log_warning(logger, "GitHub fetch failed: %s", exc)
                break
            if not isinstance(body, list):
                log_warning(logger, "GitHub GET %s did not return a list", path)
                break
            items.extend(body)
            if len(body) < page_size:
                break
        log_debug(logger, "GitHub GET %s yielded %d items", path, len(items))
        return items

    async def _get(
        self, path: str, *, params: dict[str, typ.Any] | None = None
    ) -> object:
        try:
            response = await self._client.get(
                f"{self._base_url}{path}", params=params
            )
        except httpx.HTTPError as exc:
            raise GitHubAPIError.transport(path, exc) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise GitHubAPIError.http_error(path, response.status_code)
        if not response.content:
            raise GitHubAPIError.empty_body(path)
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise GitHubAPIError.invalid_json(path) from exc
