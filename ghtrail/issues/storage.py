"""Persistence models for issue aggregates and label timelines."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ghtrail.common.slug import issue_slug
from ghtrail.common.time import utcnow
from ghtrail.storage import Base, UTCDateTime


class IssueKind(enum.StrEnum):
    """Whether an aggregate tracks an issue or a pull request."""

    ISSUE = "issue"
    PULL_REQUEST = "pull_request"


class IssueState(enum.StrEnum):
    """Open/closed state shared by issues and pull requests."""

    OPEN = "open"
    CLOSED = "closed"


class TimelineStatus(enum.StrEnum):
    """Last change applied to a label timeline entry."""

    LABELED = "labeled"
    UNLABELED = "unlabeled"
    CLOSED = "closed"
    REOPENED = "reopened"


class Issue(Base):
    """Long-lived state of one issue or pull request."""

    __tablename__ = "issues"
    __table_args__ = (
        UniqueConstraint("repo_slug", "number", name="uq_issues_repo_number"),
        Index("ix_issues_repo_state", "repo_slug", "state"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    repo_slug: Mapped[str] = mapped_column(String(255), index=True)
    number: Mapped[int] = mapped_column(Integer)
    kind: Mapped[str] = mapped_column(String(16), index=True)
    state: Mapped[str] = mapped_column(String(16), default=IssueState.OPEN.value)
    title: Mapped[str] = mapped_column(String, default="")
    comment_count: Mapped[int] = mapped_column(Integer, default=0)
    creator_login: Mapped[str] = mapped_column(String(255), default="", index=True)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime())
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )

    label_links: Mapped[list[IssueLabel]] = relationship(
        back_populates="issue",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="IssueLabel.id",
    )

    @property
    def slug(self) -> str:
        """Return the ``owner/name#number`` key used by label timelines."""
        return issue_slug(self.repo_slug, self.number)

    @property
    def labels(self) -> list[str]:
        """Return label names in the order they were attached."""
        return [link.name for link in self.label_links]

    def add_label(self, name: str) -> None:
        """Attach ``name`` unless it is already present."""
        if name not in self.labels:
            self.label_links.append(IssueLabel(name=name))
            self.updated_at = utcnow()

    def remove_label(self, name: str) -> None:
        """Detach ``name`` if present."""
        if name in self.labels:
            self.label_links = [
                link for link in self.label_links if link.name != name
            ]
            self.updated_at = utcnow()

    def set_labels(self, names: list[str]) -> None:
        """Make the label set equal ``names``, touching only the difference."""
        wanted = list(dict.fromkeys(names))
        for name in self.labels:
            if name not in wanted:
                self.remove_label(name)
        for name in wanted:
            self.add_label(name)


class IssueLabel(Base):
    """Association between an issue aggregate and one label name."""

    __tablename__ = "issue_labels"
    __table_args__ = (
        UniqueConstraint("issue_id", "name", name="uq_issue_labels_issue_name"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    issue_id: Mapped[int] = mapped_column(
        ForeignKey("issues.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), index=True)

    issue: Mapped[Issue] = relationship(back_populates="label_links")


class LabelTimelineEntry(Base):
    """When a label was last applied to and removed from one issue."""

    __tablename__ = "label_timeline"
    __table_args__ = (
        UniqueConstraint(
            "label_name", "issue_slug", name="uq_label_timeline_label_issue"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    label_name: Mapped[str] = mapped_column(String(255), index=True)
    issue_slug: Mapped[str] = mapped_column(String(300), index=True)
    status: Mapped[str] = mapped_column(String(16))
    labeled_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    unlabeled_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
