"""Typed shapes for the GitHub REST payloads ghtrail consumes.

Every inbound JSON value is converted into one of these msgspec structs at the
ingestion boundary. Event payloads form a closed set of variants keyed by the
event ``type``; unknown types, and known types whose payload does not validate,
decode to :class:`UnknownPayload` so they still classify and persist.
"""

from __future__ import annotations

import dataclasses
import datetime as dt  # noqa: TC003
import enum
import typing as typ

import msgspec

from ghtrail.logging import get_logger, log_warning

logger = get_logger(__name__)


class UserRef(msgspec.Struct, frozen=True):
    """Author reference embedded in issues and pull requests."""

    login: str = ""


class LabelRef(msgspec.Struct, frozen=True):
    """Label reference embedded in issues, pull requests and issue events."""

    name: str = ""


class HtmlRef(msgspec.Struct, frozen=True):
    """Any embedded object that only matters for its ``html_url``."""

    html_url: str | None = None


class IssueRef(msgspec.Struct, frozen=True, kw_only=True):
    """Issue or pull request object embedded in an event payload."""

    number: int = 0
    title: str = ""
    state: str = "open"
    html_url: str | None = None
    created_at: dt.datetime | None = None
    comments: int = 0
    labels: tuple[LabelRef, ...] = ()
    user: UserRef | None = None

    @property
    def label_names(self) -> list[str]:
        """Return non-empty label names in payload order."""
        return [label.name for label in self.labels if label.name]


class WikiPage(msgspec.Struct, frozen=True):
    """Single page entry of a Gollum (wiki) event."""

    page_name: str = ""
    action: str = ""
    html_url: str | None = None


class EventPayload(msgspec.Struct, frozen=True, kw_only=True):
    """Base class for all event payload variants."""

    action: str = ""


class IssuesPayload(EventPayload, frozen=True, kw_only=True):
    """Payload of ``IssuesEvent``."""

    issue: IssueRef | None = None


class PullRequestPayload(EventPayload, frozen=True, kw_only=True):
    """Payload of ``PullRequestEvent``."""

    number: int | None = None
    pull_request: IssueRef | None = None


class IssueCommentPayload(EventPayload, frozen=True, kw_only=True):
    """Payload of ``IssueCommentEvent``."""

    issue: IssueRef | None = None
    comment: HtmlRef | None = None


class CommitCommentPayload(EventPayload, frozen=True, kw_only=True):
    """Payload of ``CommitCommentEvent``."""

    comment: HtmlRef | None = None


class PullRequestReviewCommentPayload(EventPayload, frozen=True, kw_only=True):
    """Payload of ``PullRequestReviewCommentEvent``."""

    pull_request: IssueRef | None = None
    comment: HtmlRef | None = None


class PushPayload(EventPayload, frozen=True, kw_only=True):
    """Payload of ``PushEvent``."""

    ref: str | None = None
    head: str | None = None
    distinct_size: int = 0


class CreatePayload(EventPayload, frozen=True, kw_only=True):
    """Payload of ``CreateEvent``."""

    ref: str | None = None
    ref_type: str | None = None


class ReleasePayload(EventPayload, frozen=True, kw_only=True):
    """Payload of ``ReleaseEvent``."""

    release: HtmlRef | None = None


class DeletePayload(EventPayload, frozen=True, kw_only=True):
    """Payload of ``DeleteEvent``."""

    ref: str | None = None
    ref_type: str | None = None


class GollumPayload(EventPayload, frozen=True, kw_only=True):
    """Payload of ``GollumEvent``."""

    pages: tuple[WikiPage, ...] = ()


class ForkPayload(EventPayload, frozen=True, kw_only=True):
    """Payload of ``ForkEvent``."""

    forkee: HtmlRef | None = None


class UnknownPayload(EventPayload, frozen=True, kw_only=True):
    """Fallback for unrecognised event types and malformed payloads."""


_PAYLOAD_TYPES: dict[str, type[EventPayload]] = {
    "IssuesEvent": IssuesPayload,
    "PullRequestEvent": PullRequestPayload,
    "IssueCommentEvent": IssueCommentPayload,
    "CommitCommentEvent": CommitCommentPayload,
    "PullRequestReviewCommentEvent": PullRequestReviewCommentPayload,
    "PushEvent": PushPayload,
    "CreateEvent": CreatePayload,
    "ReleaseEvent": ReleasePayload,
    "DeleteEvent": DeletePayload,
    "GollumEvent": GollumPayload,
    "ForkEvent": ForkPayload,
}


class EventActor(msgspec.Struct, frozen=True):
    """Actor block of an event."""

    login: str
    display_login: str | None = None

    @property
    def display_name(self) -> str:
        """Return ``display_login`` when GitHub supplies one, else ``login``."""
        return self.display_login or self.login


class EventRepo(msgspec.Struct, frozen=True):
    """Repository block of an event; ``name`` is the ``owner/name`` slug."""

    name: str


class _EventEnvelope(msgspec.Struct, frozen=True):
    id: str
    type: str
    created_at: dt.datetime
    actor: EventActor
    repo: EventRepo
    payload: dict[str, typ.Any] = msgspec.field(default_factory=dict)
    public: bool = True


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubEvent:
    """Decoded activity event, alive only between fetch and persistence."""

    id: str
    type: str
    created_at: dt.datetime
    actor: EventActor
    repo: EventRepo
    payload: EventPayload
    public: bool = True

    @property
    def action(self) -> str:
        """Return the payload action, or an empty string when absent."""
        return self.payload.action


class SubEventKind(enum.StrEnum):
    """Issue sub-events replayed onto issue state and label timelines."""

    LABELED = "labeled"
    UNLABELED = "unlabeled"
    CLOSED = "closed"
    REOPENED = "reopened"


class IssueNumberRef(msgspec.Struct, frozen=True):
    """Issue block of a repository-wide issue event."""

    number: int


class IssueSubEvent(msgspec.Struct, frozen=True, kw_only=True):
    """One entry of an issue-events feed.

    Repository-wide feeds carry ``issue``; single-issue feeds omit it, and the
    target issue is supplied by the caller instead.
    """

    event: str
    created_at: dt.datetime
    id: int | None = None
    url: str | None = None
    issue: IssueNumberRef | None = None
    label: LabelRef | None = None

    @property
    def kind(self) -> SubEventKind | None:
        """Return the replayable kind, or ``None`` for other event names."""
        try:
            return SubEventKind(self.event)
        except ValueError:
            return None


class UserProfile(msgspec.Struct, frozen=True, kw_only=True):
    """Subset of ``GET /users/{login}`` used for actor enrichment."""

    login: str
    name: str | None = None
    avatar_url: str | None = None
    bio: str | None = None


class OrganizationRef(msgspec.Struct, frozen=True):
    """Entry of ``GET /users/{login}/orgs``."""

    login: str


def _raw_action(raw: object) -> str:
    if isinstance(raw, dict):
        action = raw.get("action")
        if isinstance(action, str):
            return action
    return ""


def decode_payload(event_type: str, raw: object) -> EventPayload:
    """Convert a raw payload into the variant registered for ``event_type``."""
    model = _PAYLOAD_TYPES.get(event_type)
    if model is None:
        return UnknownPayload(action=_raw_action(raw))
    try:
        return msgspec.convert(raw, type=model, strict=False)
    except msgspec.ValidationError as exc:
        log_warning(
            logger,
            "Malformed %s payload, falling back to unknown shape: %s",
            event_type,
            exc,
        )
        return UnknownPayload(action=_raw_action(raw))


def decode_event(raw: object) -> GitHubEvent | None:
    """Decode one event from a user or repository feed.

    Returns ``None`` when the envelope itself (id, type, timestamp, actor or
    repo) is missing or malformed; such events cannot be deduplicated.
    """
    try:
        envelope = msgspec.convert(raw, type=_EventEnvelope, strict=False)
    except msgspec.ValidationError as exc:
        log_warning(logger, "Skipping malformed GitHub event: %s", exc)
        return None
    return GitHubEvent(
        id=envelope.id,
        type=envelope.type,
        created_at=envelope.created_at,
        actor=envelope.actor,
        repo=envelope.repo,
        payload=decode_payload(envelope.type, envelope.payload),
        public=envelope.public,
    )


def decode_events(raw: object) -> list[GitHubEvent]:
    """Decode an event feed, dropping entries that fail validation."""
    if not isinstance(raw, list):
        return []
    events: list[GitHubEvent] = []
    for item in raw:
        event = decode_event(item)
        if event is not None:
            events.append(event)
    return events


def decode_sub_events(raw: object) -> list[IssueSubEvent]:
    """Decode an issue-events feed, dropping entries that fail validation."""
    if not isinstance(raw, list):
        return []
    sub_events: list[IssueSubEvent] = []
    for item in raw:
        try:
            sub_event = msgspec.convert(item, type=IssueSubEvent, strict=False)
        except msgspec.ValidationError as exc:
            log_warning(logger, "Skipping malformed issue event: %s", exc)
            continue
        sub_events.append(sub_event)
    return sub_events


def decode_profile(raw: object) -> UserProfile | None:
    """Decode a user profile, or ``None`` for empty or malformed bodies."""
    if not raw:
        return None
    try:
        return msgspec.convert(raw, type=UserProfile, strict=False)
    except msgspec.ValidationError as exc:
        log_warning(logger, "Skipping malformed user profile: %s", exc)
        return None


def decode_organization_logins(raw: object) -> list[str]:
    """Return organization logins from an orgs feed; invalid entries drop out."""
    if not isinstance(raw, list):
        return []
    logins: list[str] = []
    for item in raw:
        try:
            logins.append(msgspec.convert(item, type=OrganizationRef).login)
        except msgspec.ValidationError:
            continue
    return logins
