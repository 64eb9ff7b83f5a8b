"""Shared test utilities."""

from __future__ import annotations

import asyncio
import typing as typ

from sqlalchemy.ext.asyncio import create_async_engine

from ghtrail.storage import init_storage

if typ.TYPE_CHECKING:
    from pathlib import Path


def sqlite_url(tmp_path: Path, name: str = "ghtrail_test.db") -> str:
    """Return an aiosqlite URL for a database file under ``tmp_path``."""
    return f"sqlite+aiosqlite:///{tmp_path / name}"


def run_async[T](coro_func: typ.Callable[[], typ.Coroutine[typ.Any, typ.Any, T]]) -> T:
    """Execute an async callable within the test context."""
    return asyncio.run(coro_func())


def create_tables(database_url: str) -> None:
    """Create every ghtrail table in ``database_url`` synchronously."""

    async def _create() -> None:
        engine = create_async_engine(database_url)
        try:
            await init_storage(engine)
        finally:
            await engine.dispose()

    run_async(_create)


class RecordingLogger:
    """femtologging stand-in collecting ``(level, message, exc_info, stack)``."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, object | None, bool]] = []

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str:
        self.calls.append((level, message, exc_info, stack_info))
        return message

    def messages(self, level: str | None = None) -> list[str]:
        """Return logged messages, optionally for one level only."""
        return [
            message
            for call_level, message, _, _ in self.calls
            if level is None or call_level == level
        ]
