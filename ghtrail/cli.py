"""Command-line entry points for on-demand polling and maintenance."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

from sqlalchemy.ext.asyncio import create_async_engine

from ghtrail.common.slug import parse_repo_slug
from ghtrail.config import ConfigError, database_url_from_env
from ghtrail.events.errors import RepositoryNotFoundError
from ghtrail.events.registry import RepositoryRegistry
from ghtrail.listing import EventListOptions, NegativePaginationError, list_events
from ghtrail.logging import configure_logging, get_logger, log_warning
from ghtrail.runner import poll_once, replay_once
from ghtrail.storage import init_storage, open_session_factory

logger = get_logger(__name__)


def _repo_slug(value: str) -> str:
    try:
        parse_repo_slug(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return value


def _cmd_poll(args: argparse.Namespace, database_url: str) -> int:
    result = poll_once(database_url)
    if result is None:
        print("Another run is in progress; skipped.")
        return 0
    print(
        f"fetched={result.events_fetched} created={result.events_created} "
        f"duplicate={result.events_duplicate} filtered={result.events_filtered} "
        f"failed={result.events_failed} issues={result.issues_reconciled} "
        f"actors={result.actors_enriched} sub_events={result.sub_events_applied}"
    )
    return 0


def _cmd_replay(args: argparse.Namespace, database_url: str) -> int:
    result = replay_once(database_url, args.repo, args.issue)
    if result is None:
        print("Another run is in progress; skipped.")
        return 0
    print(
        f"received={result.received} applied={result.applied} "
        f"skipped={result.skipped} failed={result.failed}"
    )
    return 0


async def _set_monitoring(database_url: str, slug: str, *, enabled: bool) -> bool:
    async with open_session_factory(database_url) as session_factory:
        registry = RepositoryRegistry(session_factory)
        return await registry.set_full_reporting(slug, enabled=enabled)


def _cmd_monitor(args: argparse.Namespace, database_url: str) -> int:
    enabled = not args.disable
    try:
        changed = asyncio.run(_set_monitoring(database_url, args.repo, enabled=enabled))
    except RepositoryNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    state = "monitored" if enabled else "not monitored"
    suffix = "" if changed else " (unchanged)"
    print(f"{args.repo} is {state}{suffix}")
    return 0


async def _init_db(database_url: str) -> None:
    engine = create_async_engine(database_url)
    try:
        await init_storage(engine)
    finally:
        await engine.dispose()


def _cmd_init_db(args: argparse.Namespace, database_url: str) -> int:
    asyncio.run(_init_db(database_url))
    print("Database tables are in place.")
    return 0


async def _events(database_url: str, options: EventListOptions) -> list[str]:
    async with open_session_factory(database_url) as session_factory:
        records = await list_events(session_factory, options)
        return [
            f"{record.occurred_at.isoformat()} {record.repo_slug} "
            f"{record.actor_login}: {record.summary}"
            + (f" <{record.link_url}>" if record.link_url else "")
            for record in records
        ]


def _cmd_events(args: argparse.Namespace, database_url: str) -> int:
    options = EventListOptions(
        category=args.category,
        repo_slug=args.repo,
        actor_login=args.actor,
        limit=args.limit,
    )
    try:
        lines = asyncio.run(_events(database_url, options))
    except NegativePaginationError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    for line in lines:
        print(line)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ghtrail", description=__doc__)
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy async URL; defaults to GHTRAIL_DATABASE_URL",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level; defaults to GHTRAIL_LOG_LEVEL or INFO",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    poll = commands.add_parser("poll", help="Run one ingestion pass now")
    poll.set_defaults(handler=_cmd_poll)

    replay = commands.add_parser(
        "replay", help="Replay issue events onto label timelines"
    )
    replay.add_argument("repo", type=_repo_slug, help="Repository as OWNER/NAME")
    replay.add_argument(
        "--issue", type=int, default=None, help="Replay a single issue only"
    )
    replay.set_defaults(handler=_cmd_replay)

    monitor = commands.add_parser(
        "monitor", help="Flag a repository for full reporting"
    )
    monitor.add_argument("repo", type=_repo_slug, help="Repository as OWNER/NAME")
    monitor.add_argument(
        "--disable", action="store_true", help="Stop monitoring the repository"
    )
    monitor.set_defaults(handler=_cmd_monitor)

    init_db = commands.add_parser("init-db", help="Create missing tables")
    init_db.set_defaults(handler=_cmd_init_db)

    events = commands.add_parser("events", help="List stored events")
    events.add_argument("--category", default=None)
    events.add_argument("--repo", default=None)
    events.add_argument("--actor", default=None)
    events.add_argument("--limit", type=int, default=20)
    events.set_defaults(handler=_cmd_events)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run a ghtrail command.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 on success, 1 on configuration, lookup or argument
        errors.

    """
    args = _build_parser().parse_args(argv)

    raw_level = args.log_level or os.environ.get("GHTRAIL_LOG_LEVEL", "INFO")
    normalized_level, invalid_level = configure_logging(raw_level)
    if invalid_level:
        log_warning(
            logger,
            "Invalid log level %r, falling back to %s",
            raw_level,
            normalized_level,
        )

    try:
        database_url = args.database_url or database_url_from_env()
        return args.handler(args, database_url)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
