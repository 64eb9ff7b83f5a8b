"""GitHub API errors."""

from __future__ import annotations


class GitHubAPIError(RuntimeError):
    """Raised when a GitHub request cannot produce a usable JSON body.

    The client raises this internally and converts it to an empty result at
    the fetch boundary, so callers only ever see it in logs.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, path: str, status_code: int) -> GitHubAPIError:
        """Return an error for non-success HTTP responses."""
        return cls(
            f"GitHub GET {path} returned HTTP {status_code}", status_code=status_code
        )

    @classmethod
    def transport(cls, path: str, exc: Exception) -> GitHubAPIError:
        """Return an error for connection, timeout and protocol failures."""
        return cls(f"GitHub GET {path} failed: {type(exc).__name__}: {exc}")

    @classmethod
    def empty_body(cls, path: str) -> GitHubAPIError:
        """Return an error for successful responses without a body."""
        return cls(f"GitHub GET {path} returned an empty body")

    @classmethod
    def invalid_json(cls, path: str) -> GitHubAPIError:
        """Return an error for bodies that are not valid JSON."""
        return cls(f"GitHub GET {path} returned a body that is not JSON")


class GitHubConfigError(RuntimeError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def empty_token(cls) -> GitHubConfigError:
        """Return an error when the provided token is empty."""
        return cls("GitHub token must be non-empty")
