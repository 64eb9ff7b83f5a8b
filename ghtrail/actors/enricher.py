"""Lazily fetch and cache GitHub profiles for event actors."""

from __future__ import annotations

import typing as typ

from ghtrail.actors.storage import ActorProfile
from ghtrail.logging import get_logger, log_debug, log_info

if typ.TYPE_CHECKING:
    from ghtrail.github.client import ActivityClient
    from ghtrail.storage import SessionFactory

logger = get_logger(__name__)


class ActorEnricher:
    """Create one profile per login, at most one fetch attempt per run.

    Parameters
    ----------
    session_factory:
        Async session factory for the ghtrail database.
    client:
        Source of user profiles and organization memberships.
    organization:
        Organization login used to set ``is_org_member``; when ``None`` every
        profile is stored as a non-member.

    """

    def __init__(
        self,
        session_factory: SessionFactory,
        client: ActivityClient,
        *,
        organization: str | None = None,
    ) -> None:
        """Configure the enricher with storage, an API client and the org."""
        self._session_factory = session_factory
        self._client = client
        self._organization = organization.lower() if organization else None

    async def ensure_profile(
        self, login: str, *, attempted: set[str]
    ) -> ActorProfile | None:
        """Return the cached profile for ``login``, fetching it if needed.

        ``attempted`` holds logins already tried during the current run; it is
        updated in place so a failing login is fetched only once per run.
        Returns ``None`` when no profile exists and none could be fetched.
        """
        async with self._session_factory() as session:
            cached = await session.get(ActorProfile, login)
        if cached is not None:
            return cached
        if login in attempted:
            return None
        attempted.add(login)

        fetched = await self._client.user_profile(login)
        if fetched is None:
            log_debug(logger, "No profile available for %s", login)
            return None

        is_member = False
        if self._organization is not None:
            organizations = await self._client.user_organizations(login)
            is_member = self._organization in {org.lower() for org in organizations}

        profile = ActorProfile(
            login=login,
            name=fetched.name or login,
            avatar_url=fetched.avatar_url,
            bio=fetched.bio,
            is_org_member=is_member,
        )
        async with self._session_factory() as session, session.begin():
            session.add(profile)
        log_info(logger, "Stored profile for %s (org member: %s)", login, is_member)
        return profile
