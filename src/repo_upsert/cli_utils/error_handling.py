"""Error formatting for repo-upsert CLI commands."""

from typing import Tuple

from ..errors import (
    AuthenticationError,
    CancelledError,
    ConcurrentModificationError,
    InconsistentStateError,
    NotFoundError,
    RateLimitError,
    RemoteError,
)


def _get_error_message(error: Exception) -> Tuple[str, str]:
    """Get base message and verbose details for an error.

    Returns:
        Tuple of (base_message, verbose_details)
    """
    error_msg = str(error)

    if isinstance(error, AuthenticationError):
        return (
            "Authentication failed. Check the GITHUB_TOKEN environment variable.",
            f"Details: {error_msg}",
        )

    if isinstance(error, RateLimitError):
        return (
            f"Rate limited: {error_msg}",
            "Wait for the rate limit window to reset before trying again.",
        )

    if isinstance(error, NotFoundError):
        return (
            f"Not found: {error_msg}",
            "Check the owner, repository name and token permissions.",
        )

    if isinstance(error, ConcurrentModificationError):
        return (
            f"Concurrent modification: {error_msg}",
            "Another push moved the branch. Run the sync again.",
        )

    if isinstance(error, InconsistentStateError):
        return (
            f"Repository in inconsistent state: {error_msg}",
            "The branch head commit could not be read completely.",
        )

    if isinstance(error, CancelledError):
        return (f"Cancelled: {error_msg}", "No branch was modified by the cancelled step.")

    if isinstance(error, RemoteError):
        status = error.status_code
        base = (
            f"API error (HTTP {status}): {error_msg}"
            if status
            else f"API error: {error_msg}"
        )
        return (base, "")

    if isinstance(error, (ValueError, FileNotFoundError)):
        return (error_msg, "")

    return (f"Unexpected error: {error_msg}", f"Error type: {type(error).__name__}")


def handle_remote_error(error: Exception, verbose: bool = False) -> str:
    """Format remote API errors for user-friendly display.

    Args:
        error: The exception that occurred
        verbose: Include additional details if True

    Returns:
        Formatted error message string
    """
    base_msg, verbose_detail = _get_error_message(error)
    if verbose and verbose_detail:
        return f"{base_msg}\n{verbose_detail}"
    return base_msg
