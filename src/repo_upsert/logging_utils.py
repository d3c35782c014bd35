"""
Log formatting for repo-upsert.

Failure messages carry an error code ("[UPSERT-REF-001] GetRef failed
branch=main") and, inside an operation, the correlation ID shared by every
record that operation emits.
"""

import contextlib
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

# Header and option names whose values never reach the log
SENSITIVE_FIELDS = {
    "authorization",
    "token",
    "github_token",
    "access_token",
}

_correlation_id: ContextVar[Optional[str]] = ContextVar(
    "repo_upsert_correlation_id", default=None
)


def get_correlation_id() -> Optional[str]:
    """Return the correlation ID of the current operation, if any."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: Optional[str]) -> None:
    """Set the correlation ID for the current context."""
    _correlation_id.set(correlation_id)


@contextlib.contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """
    Bind a correlation ID for the duration of one operation.

    Reuses an ID already bound by an enclosing scope so that ensure + upsert
    issued by the same CLI run share one ID.
    """
    existing = get_correlation_id()
    value = correlation_id or existing or uuid.uuid4().hex[:12]
    token = _correlation_id.set(value)
    try:
        yield value
    finally:
        _correlation_id.reset(token)


def format_error_log(error_code: str, message: str, **context) -> str:
    """Prefix ``message`` with ``[error_code]`` and append ``key=value`` context."""
    context_str = " ".join(f"{k}={v}" for k, v in context.items())
    return " ".join(p for p in (f"[{error_code}]", message, context_str) if p)


def get_log_extra(error_code: str) -> Dict[str, Any]:
    extra: Dict[str, Any] = {"error_code": error_code}
    correlation_id = get_correlation_id()
    if correlation_id:
        extra["correlation_id"] = correlation_id
    return extra


def sanitize_for_logging(data: Any) -> Any:
    """Redact credential values from a header mapping; anything else is returned as is."""
    if not isinstance(data, dict):
        return data
    return {
        key: "***REDACTED***" if key.lower() in SENSITIVE_FIELDS else value
        for key, value in data.items()
    }
