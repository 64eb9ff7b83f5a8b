"""Repository tag registry and the monitored repository watch list.

Every event is tagged with its repository. Repositories flagged for full
reporting are *monitored*: their event feeds are polled for every actor and
their issues are reconciled into aggregates.
"""

from __future__ import annotations

import typing as typ

from sqlalchemy import func, select

from ghtrail.common.slug import parse_repo_slug
from ghtrail.config import MONITORED_REPO_LIMIT
from ghtrail.events.errors import RepositoryNotFoundError
from ghtrail.events.storage import Repository
from ghtrail.logging import get_logger, log_info, log_warning

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession

    from ghtrail.storage import SessionFactory

logger = get_logger(__name__)


async def find_repository(session: AsyncSession, slug: str) -> Repository | None:
    """Return the repository tag for ``slug`` if it exists."""
    owner, name = parse_repo_slug(slug.lower())
    return await session.scalar(
        select(Repository).where(Repository.owner == owner, Repository.name == name)
    )


async def ensure_repository(session: AsyncSession, slug: str) -> Repository:
    """Return the repository tag for ``slug``, creating it when absent.

    The new row is flushed so a second call within the same session finds it.
    """
    existing = await find_repository(session, slug)
    if existing is not None:
        return existing
    owner, name = parse_repo_slug(slug.lower())
    repository = Repository(owner=owner, name=name)
    session.add(repository)
    await session.flush()
    return repository


class RepositoryRegistry:
    """Manage repository tags and which of them are monitored.

    Parameters
    ----------
    session_factory:
        Async session factory for the ghtrail database.

    """

    def __init__(self, session_factory: SessionFactory) -> None:
        """Configure the registry with a session factory."""
        self._session_factory = session_factory

    async def set_full_reporting(self, slug: str, *, enabled: bool = True) -> bool:
        """Flag or unflag ``slug`` as monitored.

        Enabling creates the repository tag when it does not exist yet.
        Disabling an unknown repository raises
        :class:`~ghtrail.events.errors.RepositoryNotFoundError`.

        Returns
        -------
        bool
            ``True`` when the flag changed.

        """
        async with self._session_factory() as session, session.begin():
            if enabled:
                repository = await ensure_repository(session, slug)
            else:
                repository = await find_repository(session, slug)
                if repository is None:
                    raise RepositoryNotFoundError(slug)
            if repository.full_reporting == enabled:
                return False
            repository.full_reporting = enabled
            await session.flush()
            flagged = await self._count_flagged(session)

        log_info(logger, "Set full_reporting=%s for %s", enabled, slug)
        if flagged > MONITORED_REPO_LIMIT:
            log_warning(
                logger,
                "%d repositories are flagged for full reporting; only the "
                "first %d by slug are monitored",
                flagged,
                MONITORED_REPO_LIMIT,
            )
        return True

    async def flag_monitored(self, slugs: cabc.Iterable[str]) -> None:
        """Ensure each slug exists and is flagged for full reporting."""
        for slug in slugs:
            await self.set_full_reporting(slug, enabled=True)

    async def list_monitored_repositories(self) -> list[str]:
        """Return monitored repository slugs, sorted, never more than ten."""
        async with self._session_factory() as session:
            repos = await session.scalars(
                select(Repository)
                .where(Repository.full_reporting.is_(True))
                .order_by(Repository.owner, Repository.name)
                .limit(MONITORED_REPO_LIMIT)
            )
            return [repo.slug for repo in repos]

    async def list_repositories(self) -> list[str]:
        """Return every known repository slug, sorted."""
        async with self._session_factory() as session:
            repos = await session.scalars(
                select(Repository).order_by(Repository.owner, Repository.name)
            )
            return [repo.slug for repo in repos]

    @staticmethod
    async def _count_flagged(session: AsyncSession) -> int:
        count = await session.scalar(
            select(func.count())
            .select_from(Repository)
            .where(Repository.full_reporting.is_(True))
        )
        return count or 0
