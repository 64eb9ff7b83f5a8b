"""GitHub REST client and the payload shapes it decodes."""

from __future__ import annotations

from .client import ActivityClient, GitHubRestClient
from .errors import GitHubAPIError, GitHubConfigError
from .models import (
    EventPayload,
    GitHubEvent,
    IssueSubEvent,
    SubEventKind,
    UnknownPayload,
    UserProfile,
    decode_event,
    decode_events,
    decode_sub_events,
)

__all__ = [
    "ActivityClient",
    "EventPayload",
    "GitHubAPIError",
    "GitHubConfigError",
    "GitHubEvent",
    "GitHubRestClient",
    "IssueSubEvent",
    "SubEventKind",
    "UnknownPayload",
    "UserProfile",
    "decode_event",
    "decode_events",
    "decode_sub_events",
]
