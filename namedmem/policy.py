"""
Ingest Policy — importance and novelty scoring

Backs the ingest predicate of the reference SQLite backend. Content is
scored on two axes:

- importance: how much durable signal the text carries. Casual chat
  (greetings, thanks, acknowledgements) scores 0; preferences, rules and
  facts score higher than plain prose.
- novelty: 1 - similarity to the closest memory already in the store.

Both scores are deterministic and stdlib-only.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable

from namedmem.similarity import STOP_WORDS, best_match, tokenize

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Pattern sets
# ---------------------------------------------------------------------------

# Whole-message chatter with no durable content
_EPHEMERAL_PATTERNS = [
    re.compile(r"^\s*(?:hi|hello|hey|yo)\b[\s!.,]*$", re.IGNORECASE),
    re.compile(r"^\s*(?:thanks?|thank\s+you|thx|ty)\b.{0,40}$", re.IGNORECASE),
    re.compile(r"^\s*(?:ok(?:ay)?|k|sure|yes|no|yep|nope|cool|nice|great|lol)\b[\s!.,]*$",
               re.IGNORECASE),
    re.compile(r"^\s*(?:continue|go\s+on|next|proceed|retry|again)\b[\s!.,]*$", re.IGNORECASE),
]

# Durable-signal markers: preferences, rules, facts, explicit requests
_SIGNAL_PATTERNS = [
    re.compile(r"\b(?:i|we)\s+(?:prefer|like|love|hate|dislike|want|need|use)\b", re.IGNORECASE),
    re.compile(r"\bprefer(?:s|red|ence)?\b", re.IGNORECASE),
    re.compile(r"\b(?:always|never|must|should\s+not|don'?t\s+ever)\b", re.IGNORECASE),
    re.compile(r"\bremember\b", re.IGNORECASE),
    re.compile(r"\b(?:my|our)\s+(?:name|birthday|team|project|stack|company|role)\b",
               re.IGNORECASE),
    re.compile(r"\b(?:rule|convention|policy|standard|decided|decision)\b", re.IGNORECASE),
    re.compile(r"\blesson(?:s)?\s+learned\b", re.IGNORECASE),
]


@dataclass
class IngestScore:
    """Scores for one candidate text."""

    importance: float
    novelty: float


class IngestPolicy:
    """Scores candidate memories against the contents of one store."""

    # Content words at which the length component saturates
    SATURATION_WORDS = 24
    SIGNAL_BONUS = 0.25

    def importance(self, text: str) -> float:
        """Importance score in [0.0, 1.0]."""
        if not text or not text.strip():
            return 0.0
        for pattern in _EPHEMERAL_PATTERNS:
            if pattern.search(text):
                return 0.0
        words = tokenize(text)
        if not words:
            return 0.0
        content = [w for w in words if w not in STOP_WORDS]
        if not content:
            return 0.0
        density = len(content) / len(words)
        coverage = min(1.0, len(set(content)) / self.SATURATION_WORDS)
        signals = sum(1 for p in _SIGNAL_PATTERNS if p.search(text))
        score = density * coverage + self.SIGNAL_BONUS * min(signals, 2)
        return min(1.0, score)

    def novelty(self, text: str, existing: Iterable[str]) -> float:
        """1 - similarity to the closest existing text; 1.0 if none."""
        idx, best = best_match(text, existing)
        if idx is None:
            return 1.0
        return 1.0 - best

    def score(self, text: str, existing: Iterable[str]) -> IngestScore:
        return IngestScore(
            importance=self.importance(text),
            novelty=self.novelty(text, existing),
        )

    def accepts(
        self,
        text: str,
        existing: Iterable[str],
        importance_threshold: float,
        novelty_threshold: float,
    ) -> bool:
        """Decide whether ``text`` should become a new memory.

        ``novelty_threshold`` is the similarity ceiling: the text is novel
        while its closest existing memory scores below it.
        """
        result = self.score(text, existing)
        if result.importance < importance_threshold:
            logger.debug("ingest rejected: importance %.3f < %.3f",
                         result.importance, importance_threshold)
            return False
        if 1.0 - result.novelty >= novelty_threshold:
            logger.debug("ingest rejected: similarity %.3f >= %.3f",
                         1.0 - result.novelty, novelty_threshold)
            return False
        return True
