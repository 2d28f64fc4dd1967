"""
Stdlib text similarity for the reference memory backend.

Two complementary measures stand in for a semantic signal:
- **Token Jaccard**: overlap of content-word sets (order-insensitive).
- **SequenceMatcher ratio**: character-level similarity (order-sensitive).

The weighted blend scores near-duplicates close to 1.0 and unrelated texts
close to 0.0, which is what the hybrid search and the novelty check need.
"""

from __future__ import annotations

import re
from difflib import SequenceMatcher
from typing import Iterable, List, Optional, Tuple

# Anything that is not a letter, digit or underscore splits words
_SPLIT_RE = re.compile(r"[\W_]+", re.UNICODE)

# Words too common to carry meaning for overlap scoring
STOP_WORDS = frozenset({
    "the", "a", "an", "in", "on", "at", "to", "for", "of", "with",
    "by", "from", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "can", "shall",
    "it", "its", "this", "that", "these", "those",
    "i", "me", "my", "we", "our", "you", "your", "he", "him", "his",
    "she", "her", "they", "them", "their",
    "not", "no", "nor", "so", "but", "or", "and", "if", "then",
    "about", "up", "out", "into", "over", "after", "before", "just",
})


def normalize(text: str) -> str:
    """Lowercase, turn punctuation into spaces, collapse whitespace."""
    return " ".join(_SPLIT_RE.sub(" ", text.lower()).split())


def tokenize(text: str, *, drop_stop_words: bool = False) -> List[str]:
    """Word tokens of ``text`` (normalized internally)."""
    words = normalize(text).split()
    if drop_stop_words:
        kept = [w for w in words if w not in STOP_WORDS]
        return kept or words
    return words


def jaccard(a: str, b: str) -> float:
    """Jaccard overlap of content-word sets.

    1.0 when both sides are empty, 0.0 when exactly one is.
    """
    set_a = set(tokenize(a, drop_stop_words=True))
    set_b = set(tokenize(b, drop_stop_words=True))
    if not set_a and not set_b:
        return 1.0
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def sequence_ratio(a: str, b: str) -> float:
    """difflib ratio of the normalized texts."""
    norm_a, norm_b = normalize(a), normalize(b)
    if not norm_a and not norm_b:
        return 1.0
    if not norm_a or not norm_b:
        return 0.0
    return SequenceMatcher(None, norm_a, norm_b).ratio()


def similarity(
    a: str,
    b: str,
    *,
    jaccard_weight: float = 0.5,
    sequence_weight: float = 0.5,
) -> float:
    """Weighted blend of jaccard() and sequence_ratio(), in [0.0, 1.0].

    Raises:
        ValueError: If weights are negative or both zero.
    """
    if jaccard_weight < 0 or sequence_weight < 0:
        raise ValueError("Weights must be non-negative")
    total = jaccard_weight + sequence_weight
    if total == 0:
        raise ValueError("At least one weight must be positive")
    return (
        jaccard_weight * jaccard(a, b) + sequence_weight * sequence_ratio(a, b)
    ) / total


def best_match(text: str, candidates: Iterable[str]) -> Tuple[Optional[int], float]:
    """Index and similarity of the candidate closest to ``text``.

    Returns ``(None, 0.0)`` for an empty candidate list. Ties keep the
    earliest candidate.
    """
    best_idx: Optional[int] = None
    best = 0.0
    for idx, cand in enumerate(candidates):
        score = similarity(text, cand)
        if best_idx is None or score > best:
            best_idx, best = idx, score
    return best_idx, best
