"""
Recall Ranker — memory injection at session compaction.

Pipeline:
    1. Derive a task hint from the compaction input.
    2. Hybrid-search the active store for max_memories + overfetch candidates.
    3. Re-weight by recency: boost = max(floor, exp(-age_hours / decay_hours)).
    4. Stable sort by final score, keep the top max_memories.
    5. Render one delimited block and append it to the output context.

Recall is best-effort: any failure is logged and compaction proceeds
without injected memories.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, List, Mapping, MutableMapping, Optional, Sequence

from namedmem.config import RecallConfig
from namedmem.ingest import normalize_content
from namedmem.naming import escape_query
from namedmem.registry import SessionContext
from namedmem.types import MemoryRecord, RankedCandidate, parse_timestamp

logger = logging.getLogger(__name__)

BLOCK_TAG = "named-memory"


def recency_boost(age_hours: float, decay_hours: float = 72.0, floor: float = 0.55) -> float:
    """Exponential recency weight, never below ``floor``."""
    return max(floor, math.exp(-age_hours / decay_hours))


class RecallRanker:
    """Turns hybrid-search hits into a bounded, ordered context block."""

    def __init__(self, config: Optional[RecallConfig] = None) -> None:
        self._config = config or RecallConfig()

    @property
    def config(self) -> RecallConfig:
        return self._config

    def derive_hint(self, compaction_input: Optional[Mapping[str, Any]]) -> str:
        """Prompt, else last message content, else the default hint."""
        hint: Any = None
        if compaction_input:
            hint = compaction_input.get("prompt")
            if not hint:
                messages = compaction_input.get("messages") or []
                if messages:
                    last = messages[-1]
                    if isinstance(last, Mapping):
                        hint = last.get("content")
        if not hint:
            hint = self._config.default_hint
        return normalize_content(hint)

    def rank(
        self,
        records: Sequence[MemoryRecord],
        now: Optional[datetime] = None,
    ) -> List[RankedCandidate]:
        """Apply recency decay and keep the best ``max_memories``.

        Ties keep retrieval order.
        """
        cfg = self._config
        now = now or datetime.now(timezone.utc)
        ranked = []
        for position, record in enumerate(records):
            age_hours = (now - parse_timestamp(record.created_at)).total_seconds() / 3600.0
            boost = recency_boost(age_hours, cfg.decay_hours, cfg.decay_floor)
            ranked.append(RankedCandidate(
                record=record,
                position=position,
                boost=boost,
                final_score=(record.score or 0.0) * boost,
            ))
        ranked.sort(key=lambda c: c.final_score, reverse=True)
        return ranked[:cfg.max_memories]

    def render(self, name: str, candidates: Sequence[RankedCandidate]) -> str:
        entries = "\n\n".join(
            f"Memory #{i} ({c.record.created_date}):\n{c.record.content}"
            for i, c in enumerate(candidates, 1)
        )
        return (
            f'<{BLOCK_TAG} name="{name}">\n'
            f"These are your permanent memories for '{name}'. "
            "Respect them in every decision:\n\n"
            f"{entries}\n"
            f"</{BLOCK_TAG}>"
        )

    async def recall(
        self,
        session: SessionContext,
        compaction_input: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        """Rendered block for the active store, or None if nothing ranks."""
        active = session.active
        if active is None:
            return None
        hint = self.derive_hint(compaction_input)
        limit = self._config.max_memories + self._config.overfetch
        records = await active.handle.search_hybrid(escape_query(hint), limit)
        candidates = self.rank(records, now=now)
        if not candidates:
            return None
        logger.debug("recalled %d memories from '%s'", len(candidates), active.name)
        return self.render(active.name, candidates)

    async def on_compacting(
        self,
        session: SessionContext,
        compaction_input: Optional[Mapping[str, Any]],
        output: MutableMapping[str, Any],
    ) -> None:
        """Host hook: append the memory block to ``output["context"]``."""
        try:
            block = await self.recall(session, compaction_input)
        except Exception as exc:
            logger.error("Inject failed: %s", exc, exc_info=True)
            return
        if block is None:
            return
        if output.get("context") is None:
            output["context"] = []
        output["context"].append(block)
