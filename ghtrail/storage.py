"""Shared persistence primitives for ghtrail tables."""

from __future__ import annotations

import contextlib
import datetime as dt
import typing as typ

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import DateTime, TypeDecorator

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

type SessionFactory = async_sessionmaker[AsyncSession]


class TimezoneAwareRequiredError(ValueError):
    """Raised when a naive datetime is bound to a UTC column."""

    @classmethod
    def for_column(cls) -> TimezoneAwareRequiredError:
        """Return the error for a naive value written to ``UTCDateTime``."""
        return cls("timestamps must be timezone-aware")


class Base(DeclarativeBase):
    """Base declarative class for every ghtrail table."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError.for_column()
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


@contextlib.asynccontextmanager
async def open_session_factory(
    database_url: str,
) -> cabc.AsyncIterator[SessionFactory]:
    """Yield a session factory over a fresh engine, disposed on exit.

    Sessions keep loaded attributes after commit so results can be read once
    their transaction has closed.
    """
    engine = create_async_engine(database_url)
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


async def init_storage(engine: AsyncEngine) -> None:
    """Create every ghtrail table that is absent."""
    # Table modules register themselves with Base on import.
    from ghtrail.actors import storage as _actors  # noqa: F401
    from ghtrail.events import storage as _events  # noqa: F401
    from ghtrail.issues import storage as _issues  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
