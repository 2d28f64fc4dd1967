"""
Named Memory Data Model

Records returned by a memory backend, the request-scoped ranked candidate,
judgment verdicts, and the protocol every memory backend must satisfy.
Records are immutable once written; there is no edit path.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Protocol

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

IngestPredicate = Callable[[str], Awaitable[bool]]

VerdictKind = Literal[
    "too_short", "too_long", "unjudgeable",
    "duplicate", "worthy", "not_important",
]

VALID_VERDICTS: set = {
    "too_short", "too_long", "unjudgeable",
    "duplicate", "worthy", "not_important",
}


def _now_iso() -> str:
    """Current UTC time as ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _generate_id(prefix: str = "NM") -> str:
    """Generate a unique record ID with prefix."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def parse_timestamp(value: Any) -> datetime:
    """Parse a record timestamp into an aware UTC datetime.

    Accepts datetimes, ISO-8601 strings, and epoch values in seconds or
    milliseconds (values above 1e11 are treated as milliseconds).

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000.0 if value > 1e11 else float(value)
        dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Unsupported timestamp: {value!r}")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Memory record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MemoryRecord:
    """A stored memory as returned by a backend.

    ``score`` is only meaningful on search results; higher is more relevant.
    """

    content: str
    created_at: str = field(default_factory=_now_iso)
    metadata: Dict[str, Any] = field(default_factory=dict)
    score: Optional[float] = None
    id: str = field(default_factory=_generate_id)

    @property
    def created(self) -> datetime:
        """Creation time as an aware datetime."""
        return parse_timestamp(self.created_at)

    @property
    def created_date(self) -> str:
        """Creation date as ``YYYY-MM-DD`` (UTC)."""
        return self.created.date().isoformat()


@dataclass(frozen=True)
class RankedCandidate:
    """A search hit after recency re-weighting. Lives for one call only."""

    record: MemoryRecord
    position: int
    boost: float
    final_score: float


# ---------------------------------------------------------------------------
# Judgment
# ---------------------------------------------------------------------------

_MANUAL_GUIDANCE = (
    "Manual guidance:\n"
    "✅ SAVE if: User preferences, personal facts, lessons learned, project rules, "
    "or things explicitly requested to remember\n"
    "❌ SKIP if: Ephemeral events, casual chat, questions, status updates, "
    "opinions about external things, or emotional reactions"
)


def _preview(text: str, limit: int = 100) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


@dataclass(frozen=True)
class Verdict:
    """Outcome of an advisory judgment on a piece of content."""

    kind: VerdictKind
    content: str
    min_length: int = 20
    max_length: int = 800
    match: Optional[MemoryRecord] = None

    @property
    def worth_saving(self) -> bool:
        return self.kind == "worthy"

    @property
    def similarity(self) -> float:
        if self.match is None:
            return 0.0
        return self.match.score or 0.0

    def render(self) -> str:
        """Human-readable form returned by the judgment tool."""
        content = self.content
        if self.kind == "too_short":
            return (
                "❌ NOT worth saving\n"
                f"Reason: Too short ({len(content)} chars, minimum {self.min_length})\n"
                f"Content: {content}"
            )
        if self.kind == "too_long":
            return (
                "❌ NOT worth saving\n"
                f"Reason: Too long ({len(content)} chars, maximum {self.max_length})\n"
                f"Content: {content[:100]}..."
            )
        if self.kind == "unjudgeable":
            return (
                "⚠️ Cannot auto-judge: No active memory. Call store_use first "
                "to activate memory-based judgment.\n\n"
                f"Content to evaluate: {content}\n\n"
                f"{_MANUAL_GUIDANCE}"
            )
        if self.kind == "duplicate":
            existing = self.match.content if self.match else ""
            return (
                "❌ DUPLICATE - NOT SAVED\n"
                "Reason: Too similar to existing memory "
                f"(similarity: {self.similarity:.3f})\n"
                f"Existing: {_preview(existing)}\n\n"
                f"New content: {content}\n\n"
                "This appears to be a duplicate of something already remembered."
            )
        if self.kind == "not_important":
            return (
                "❌ NOT IMPORTANT ENOUGH\n"
                "Reason: Content doesn't meet importance threshold for permanent storage\n"
                f"Content: {content}\n\n"
                "Tip: Permanent memories should capture user preferences, facts, "
                "lessons learned, or project rules. Avoid ephemeral details like "
                '"currently fixing a bug" or "thanks for the help".'
            )
        return (
            "✅ WORTH SAVING\n"
            f"Content: {content}\n\n"
            "This appears to be a permanent preference, fact, or lesson that "
            "should be remembered."
        )


# ---------------------------------------------------------------------------
# Backend contract
# ---------------------------------------------------------------------------

class MemoryHandle(Protocol):
    """An open memory store. All operations are coroutines."""

    async def should_create(
        self, importance_threshold: float, novelty_threshold: float,
    ) -> IngestPredicate: ...

    async def add(self, text: str, metadata: Dict[str, Any]) -> str: ...

    async def search_hybrid(self, query: str, limit: int) -> List[MemoryRecord]: ...

    async def get_stats(self) -> Dict[str, Any]: ...

    async def close(self) -> None: ...
