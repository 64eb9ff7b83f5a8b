"""Event records, classification, link resolution and repository tags."""

from __future__ import annotations

from .classification import ClassificationOverride, EventCategory, classify
from .errors import RegistryError, RepositoryNotFoundError
from .links import LinkOverride, ResolvedLink, commit_count, resolve_link, summarise
from .registry import RepositoryRegistry, ensure_repository
from .storage import EventRecord, Repository

__all__ = [
    "ClassificationOverride",
    "EventCategory",
    "EventRecord",
    "LinkOverride",
    "RegistryError",
    "Repository",
    "RepositoryNotFoundError",
    "RepositoryRegistry",
    "ResolvedLink",
    "classify",
    "commit_count",
    "ensure_repository",
    "resolve_link",
    "summarise",
]
