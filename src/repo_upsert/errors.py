"""
Error types for repo-upsert.

Remote failures are modelled as RemoteError carrying the HTTP status code of
the failed request (when there was one), so callers can branch on "not found"
or "conflict" without matching on message text.

Every error raised out of an upsert carries the outcome accumulated before
the abort in its ``outcome`` attribute.
"""

from typing import Dict, Optional


class RepoUpsertError(Exception):
    """Base exception for all repo-upsert failures."""

    def __init__(self, message: str, outcome: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.outcome: Dict[str, str] = dict(outcome or {})


class RemoteError(RepoUpsertError):
    """Raised when a remote API call fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        outcome: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message, outcome)
        self.status_code = status_code


class NotFoundError(RemoteError):
    """Ref, content or repository is absent (HTTP 404)."""

    def __init__(self, message: str, outcome: Optional[Dict[str, str]] = None):
        super().__init__(message, 404, outcome)


class ConflictError(RemoteError):
    """HTTP 409; on ref resolution this signals an empty repository."""

    def __init__(self, message: str, outcome: Optional[Dict[str, str]] = None):
        super().__init__(message, 409, outcome)


class AuthenticationError(RemoteError):
    """Token missing, invalid or expired (HTTP 401)."""

    def __init__(self, message: str, outcome: Optional[Dict[str, str]] = None):
        super().__init__(message, 401, outcome)


class RateLimitError(RemoteError):
    """GitHub API rate limit exhausted."""

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        outcome: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message, 403, outcome)
        self.reset_at = reset_at


class ConcurrentModificationError(RepoUpsertError):
    """The branch moved between the initial read and the ref update."""

    def __init__(
        self,
        message: str,
        expected_sha: Optional[str] = None,
        actual_sha: Optional[str] = None,
        outcome: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message, outcome)
        self.expected_sha = expected_sha
        self.actual_sha = actual_sha


class InconsistentStateError(RepoUpsertError):
    """Fetched head commit, or its tree reference, is missing."""

    pass


class CancelledError(RepoUpsertError):
    """Caller requested cancellation or the operation deadline expired."""

    pass


class ContentDecodeError(RepoUpsertError):
    """Remote file content could not be decoded to bytes."""

    pass


def with_outcome(error: RepoUpsertError, outcome: Dict[str, str]) -> RepoUpsertError:
    """Attach a snapshot of ``outcome`` to ``error`` and return it."""
    error.outcome = dict(outcome)
    return error
