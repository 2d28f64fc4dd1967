"""
Tool Output Formatting

Renders search hits, add confirmations and store statistics as the plain
text returned by the named-memory tools. All tool text is produced here.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from namedmem.types import MemoryRecord

NO_ACTIVE_STORE = "No active named memory. Call store_use first."

SEARCH_SEPARATOR = "\n\n---\n\n"


def format_search_results(
    records: List[MemoryRecord], query: str, name: Optional[str],
) -> str:
    """Numbered hits with relevance and creation date."""
    if not records:
        return f"No memories found for \"{query}\" in '{name}'."
    return SEARCH_SEPARATOR.join(
        f"=== Memory #{i} (relevance: {(r.score or 0.0):.3f}) ===\n"
        f"{r.content}\n"
        f"Created: {r.created_date}"
        for i, r in enumerate(records, 1)
    )


def format_added(name: Optional[str], record_id: str, content: str) -> str:
    return f"✅ Added to '{name}' (ID: {record_id})\n{content}"


def format_stats(name: Optional[str], db_path: Optional[Path], stats: Dict[str, Any]) -> str:
    """Total count and store location."""
    return (
        f"Named memory '{name}': {stats.get('total', 0)} memories\n"
        f"Location: {db_path}"
    )


def format_error(prefix: str, exc: BaseException) -> str:
    return f"{prefix}: {str(exc) or type(exc).__name__}"
