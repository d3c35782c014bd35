"""Output helpers for repo-upsert CLI commands.

Provides JSON output formatting and the rich summary table printed after a
sync.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from rich.table import Table

STATUS_STYLES = {
    "created": "green",
    "updated": "yellow",
    "skipped": "dim",
    "error": "red",
}


def format_json_success(data: Any, metadata: Optional[Dict[str, Any]] = None) -> str:
    """Format successful result as JSON with standard structure.

    Args:
        data: The data to include in the response
        metadata: Optional additional metadata

    Returns:
        JSON string with format: {"success": true, "data": ..., "metadata": {...}}
    """
    result_metadata = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if metadata:
        result_metadata.update(metadata)

    result = {
        "success": True,
        "data": data,
        "metadata": result_metadata,
    }
    return json.dumps(result, indent=2, default=str)


def format_json_error(
    error_message: str,
    error_type: Optional[str] = None,
    data: Optional[Any] = None,
) -> str:
    """Format error result as JSON with standard structure.

    Args:
        error_message: The error message
        error_type: Optional error type/class name
        data: Optional partial result (e.g. the outcome computed before abort)

    Returns:
        JSON string with format: {"success": false, "error": ..., "error_type": ...}
    """
    result: Dict[str, Any] = {
        "success": False,
        "error": error_message,
        "error_type": error_type or "Error",
    }
    if data is not None:
        result["data"] = data
    return json.dumps(result, indent=2, default=str)


def build_summary_table(outcome: Mapping[str, Any]) -> Table:
    """Render an upsert outcome as a two-column table (path, status)."""
    table = Table(title="File Update Summary")
    table.add_column("File", style="cyan")
    table.add_column("Status")

    for path, status in outcome.items():
        value = getattr(status, "value", status)
        style = STATUS_STYLES.get(value, "")
        table.add_row(path, f"[{style}]{value}[/{style}]" if style else value)

    return table
