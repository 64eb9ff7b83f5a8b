"""Persistence models for ingested activity events and repository tags."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import typing as typ

from sqlalchemy import (
    JSON,
    Boolean,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ghtrail.common.slug import repo_slug
from ghtrail.common.time import utcnow
from ghtrail.storage import Base, UTCDateTime


class Repository(Base):
    """Repository tag; ``full_reporting`` marks monitored repositories."""

    __tablename__ = "repositories"
    __table_args__ = (
        UniqueConstraint("owner", "name", name="uq_repositories_owner_name"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner: Mapped[str] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(255))
    full_reporting: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)

    @property
    def slug(self) -> str:
        """Return the ``owner/name`` slug."""
        return repo_slug(self.owner, self.name)


class EventRecord(Base):
    """One persisted GitHub event, keyed by the GitHub event id.

    Rows are written once and never updated; a second sighting of the same id
    is skipped by the ingestion pipeline.
    """

    __tablename__ = "activity_events"
    __table_args__ = (
        Index("ix_activity_events_repo_time", "repo_slug", "occurred_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(64))
    action: Mapped[str] = mapped_column(String(64), default="")
    category: Mapped[str] = mapped_column(String(64), index=True)
    repo_slug: Mapped[str] = mapped_column(String(255), index=True)
    actor_login: Mapped[str] = mapped_column(String(255), index=True)
    occurred_at: Mapped[dt.datetime] = mapped_column(UTCDateTime())
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    link_url: Mapped[str | None] = mapped_column(Text(), default=None)
    link_label: Mapped[str] = mapped_column(String(64))
    summary: Mapped[str] = mapped_column(Text(), default="")
    issue_number: Mapped[int | None] = mapped_column(Integer, default=None)
    metadata_: Mapped[dict[str, typ.Any]] = mapped_column(
        "metadata", JSON, default=dict
    )
    ingested_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
