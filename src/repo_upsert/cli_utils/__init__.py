"""CLI utilities package for repo-upsert.

Provides reusable patterns for CLI command implementation including:
- JSON output formatting
- Error message formatting
- Outcome summary rendering
"""

from .output_helpers import (
    format_json_success,
    format_json_error,
    build_summary_table,
)
from .error_handling import handle_remote_error

__all__ = [
    "format_json_success",
    "format_json_error",
    "build_summary_table",
    "handle_remote_error",
]
