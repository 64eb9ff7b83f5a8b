"""Persistence model for cached actor profiles."""

from __future__ import annotations

import datetime as dt  # noqa: TC003

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ghtrail.common.time import utcnow
from ghtrail.storage import Base, UTCDateTime


class ActorProfile(Base):
    """Profile fetched once per login and never refreshed."""

    __tablename__ = "actor_profiles"

    login: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    avatar_url: Mapped[str | None] = mapped_column(Text(), default=None)
    bio: Mapped[str | None] = mapped_column(Text(), default=None)
    is_org_member: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
