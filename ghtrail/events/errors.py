"""Errors specific to the repository registry."""

from __future__ import annotations


class RegistryError(Exception):
    """Base class for registry errors."""


class RepositoryNotFoundError(RegistryError):
    """Raised when a repository cannot be found by slug."""

    def __init__(self, slug: str) -> None:
        """Initialise with the missing repository slug."""
        self.slug = slug
        super().__init__(f"Repository not found: {slug}")
