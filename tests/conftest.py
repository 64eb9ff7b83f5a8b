"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import dramatiq
import pytest_asyncio
from dramatiq.brokers.stub import StubBroker
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ghtrail.storage import init_storage
from tests.helpers import sqlite_url

if typ.TYPE_CHECKING:
    from pathlib import Path

# Actor declaration resolves the global broker on import; keep it in memory.
dramatiq.set_broker(StubBroker())


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = create_async_engine(sqlite_url(tmp_path))
    try:
        await init_storage(engine)
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()
